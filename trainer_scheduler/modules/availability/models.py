"""Availability rule ORM models."""

from __future__ import annotations

from datetime import date, time
from uuid import UUID

from sqlalchemy import Boolean, Date, SmallInteger, String, Time
from sqlalchemy import Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from trainer_scheduler.core.database import Base, BaseModelMixin
from trainer_scheduler.core.enums import AvailabilityRuleTypeEnum


class AvailabilityRuleRow(BaseModelMixin, Base):
    """Stored availability rule; columns are the union of all variants."""

    __tablename__ = "availability_rules"

    trainer_id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), nullable=False, index=True)
    type: Mapped[AvailabilityRuleTypeEnum] = mapped_column(
        SAEnum(
            AvailabilityRuleTypeEnum,
            name="availability_rule_type_enum",
            native_enum=False,
            values_callable=lambda enum: [item.value for item in enum],
        ),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True, index=True)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    recurring: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
