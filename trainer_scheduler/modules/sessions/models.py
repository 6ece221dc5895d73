"""Training session ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from trainer_scheduler.core.database import Base, BaseModelMixin
from trainer_scheduler.core.enums import SessionFormatEnum, SessionStatusEnum

# Exclusion constraint created by the initial migration (requires btree_gist).
# Its WHERE clause must match SLOT_RELEASING_STATUSES.
SESSION_OVERLAP_CONSTRAINT = "ex_trainer_sessions_trainer_overlap"

# Sessions in these statuses no longer occupy their interval.
SLOT_RELEASING_STATUSES = frozenset({SessionStatusEnum.CANCELLED, SessionStatusEnum.RESCHEDULED})


class TrainingSession(BaseModelMixin, Base):
    """One scheduled teaching interval owned by a trainer."""

    __tablename__ = "trainer_sessions"
    __table_args__ = (CheckConstraint("end_at > start_at", name="end_after_start"),)

    trainer_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    bootcamp_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    format: Mapped[SessionFormatEnum] = mapped_column(
        SAEnum(
            SessionFormatEnum,
            name="session_format_enum",
            native_enum=False,
            values_callable=lambda enum: [item.value for item in enum],
        ),
        default=SessionFormatEnum.ONLINE,
        nullable=False,
    )
    status: Mapped[SessionStatusEnum] = mapped_column(
        SAEnum(
            SessionStatusEnum,
            name="session_status_enum",
            native_enum=False,
            values_callable=lambda enum: [item.value for item in enum],
        ),
        default=SessionStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )
    meeting_url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rescheduled_from_session_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("trainer_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )
