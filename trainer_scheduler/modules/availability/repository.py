"""Availability rule repository layer."""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import delete, or_, select

from trainer_scheduler.core.database import acquire_xact_lock, advisory_lock_key
from trainer_scheduler.core.enums import AvailabilityRuleTypeEnum
from trainer_scheduler.modules.availability.models import AvailabilityRuleRow
from trainer_scheduler.modules.availability.schemas import (
    AvailabilityRule,
    AvailabilityRuleCreate,
    stored_rule_adapter,
)
from trainer_scheduler.shared.repository import GuardedRepository, repository_call


def rule_from_row(row: AvailabilityRuleRow) -> AvailabilityRule:
    """Convert a stored row into its typed variant."""
    rule_type = AvailabilityRuleTypeEnum(row.type)
    data: dict[str, Any] = {
        "type": rule_type.value,
        "id": row.id,
        "trainer_id": row.trainer_id,
        "created_at": row.created_at,
        "timezone": row.timezone,
        "reason": row.reason or "",
    }
    if rule_type == AvailabilityRuleTypeEnum.REGULAR:
        data.update(
            day_of_week=row.day_of_week,
            start_time=row.start_time,
            end_time=row.end_time,
            is_available=row.is_available,
        )
    elif rule_type == AvailabilityRuleTypeEnum.EXCEPTION:
        data.update(
            start_date=row.start_date,
            end_date=row.end_date,
            start_time=row.start_time,
            end_time=row.end_time,
            is_available=row.is_available,
        )
    else:
        data.update(start_date=row.start_date, end_date=row.end_date)
    return stored_rule_adapter.validate_python(data)


def row_from_rule(trainer_id: UUID, rule: AvailabilityRuleCreate) -> AvailabilityRuleRow:
    return AvailabilityRuleRow(
        trainer_id=trainer_id,
        type=AvailabilityRuleTypeEnum(rule.type),
        day_of_week=getattr(rule, "day_of_week", None),
        start_date=getattr(rule, "start_date", None),
        end_date=getattr(rule, "end_date", None),
        start_time=getattr(rule, "start_time", None),
        end_time=getattr(rule, "end_time", None),
        timezone=rule.timezone,
        is_available=rule.is_available,
        reason=rule.reason,
        recurring=rule.recurring,
    )


class AvailabilityRepository(GuardedRepository):
    """DB access for trainer availability rules."""

    @repository_call
    async def replace_all(
        self,
        trainer_id: UUID,
        rules: list[AvailabilityRuleCreate],
    ) -> list[AvailabilityRule]:
        await acquire_xact_lock(self.session, advisory_lock_key("availability_rules", trainer_id))
        await self.session.execute(
            delete(AvailabilityRuleRow).where(AvailabilityRuleRow.trainer_id == trainer_id),
        )
        rows = [row_from_rule(trainer_id, rule) for rule in rules]
        self.session.add_all(rows)
        await self.session.flush()
        return [rule_from_row(row) for row in rows]

    @repository_call
    async def list_rules(
        self,
        trainer_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[AvailabilityRule]:
        stmt = select(AvailabilityRuleRow).where(AvailabilityRuleRow.trainer_id == trainer_id)
        if date_from is not None:
            stmt = stmt.where(
                or_(AvailabilityRuleRow.end_date.is_(None), AvailabilityRuleRow.end_date >= date_from),
            )
        if date_to is not None:
            stmt = stmt.where(
                or_(AvailabilityRuleRow.start_date.is_(None), AvailabilityRuleRow.start_date <= date_to),
            )
        stmt = stmt.order_by(
            AvailabilityRuleRow.start_date.asc().nulls_first(),
            AvailabilityRuleRow.start_time.asc().nulls_first(),
            AvailabilityRuleRow.created_at.asc(),
        )
        rows = (await self.session.scalars(stmt)).all()
        return [rule_from_row(row) for row in rows]
