"""Initial schema

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


session_status_enum = sa.Enum(
    "scheduled",
    "in_progress",
    "completed",
    "cancelled",
    "rescheduled",
    name="session_status_enum",
    native_enum=False,
)
session_format_enum = sa.Enum("in-person", "online", "hybrid", name="session_format_enum", native_enum=False)
availability_rule_type_enum = sa.Enum(
    "regular",
    "exception",
    "vacation",
    "blocked",
    name="availability_rule_type_enum",
    native_enum=False,
)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "trainer_sessions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("trainer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("bootcamp_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("format", session_format_enum, nullable=False),
        sa.Column("status", session_status_enum, nullable=False),
        sa.Column("meeting_url", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "rescheduled_from_session_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("trainer_sessions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.CheckConstraint("end_at > start_at", name="ck_trainer_sessions_end_after_start"),
    )
    op.create_index("ix_trainer_sessions_trainer_id", "trainer_sessions", ["trainer_id"])
    op.create_index("ix_trainer_sessions_bootcamp_id", "trainer_sessions", ["bootcamp_id"])
    op.create_index("ix_trainer_sessions_start_at", "trainer_sessions", ["start_at"])
    op.create_index("ix_trainer_sessions_end_at", "trainer_sessions", ["end_at"])
    op.create_index("ix_trainer_sessions_status", "trainer_sessions", ["status"])
    # Must agree with SLOT_RELEASING_STATUSES in the sessions models.
    op.execute(
        """
        ALTER TABLE trainer_sessions
        ADD CONSTRAINT ex_trainer_sessions_trainer_overlap
        EXCLUDE USING gist (
            trainer_id WITH =,
            tstzrange(start_at, end_at, '[)') WITH &&
        )
        WHERE (status NOT IN ('cancelled', 'rescheduled'))
        """,
    )

    op.create_table(
        "availability_rules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("trainer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", availability_rule_type_enum, nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("recurring", sa.Boolean(), nullable=False),
        sa.CheckConstraint(
            "day_of_week IS NULL OR day_of_week BETWEEN 0 AND 6",
            name="ck_availability_rules_day_of_week_range",
        ),
    )
    op.create_index("ix_availability_rules_trainer_id", "availability_rules", ["trainer_id"])
    op.create_index("ix_availability_rules_type", "availability_rules", ["type"])
    op.create_index("ix_availability_rules_start_date", "availability_rules", ["start_date"])
    op.create_index("ix_availability_rules_end_date", "availability_rules", ["end_date"])

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"])
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"])
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"])
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"])


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_availability_rules_end_date", table_name="availability_rules")
    op.drop_index("ix_availability_rules_start_date", table_name="availability_rules")
    op.drop_index("ix_availability_rules_type", table_name="availability_rules")
    op.drop_index("ix_availability_rules_trainer_id", table_name="availability_rules")
    op.drop_table("availability_rules")

    op.execute("ALTER TABLE trainer_sessions DROP CONSTRAINT IF EXISTS ex_trainer_sessions_trainer_overlap")
    op.drop_index("ix_trainer_sessions_status", table_name="trainer_sessions")
    op.drop_index("ix_trainer_sessions_end_at", table_name="trainer_sessions")
    op.drop_index("ix_trainer_sessions_start_at", table_name="trainer_sessions")
    op.drop_index("ix_trainer_sessions_bootcamp_id", table_name="trainer_sessions")
    op.drop_index("ix_trainer_sessions_trainer_id", table_name="trainer_sessions")
    op.drop_table("trainer_sessions")
