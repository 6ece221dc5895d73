"""Availability business logic layer."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime, time
from typing import Any
from uuid import UUID

from fastapi import Depends
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from trainer_scheduler.core.config import get_settings
from trainer_scheduler.core.database import get_db_session
from trainer_scheduler.modules.availability.repository import AvailabilityRepository
from trainer_scheduler.modules.availability.resolver import AvailabilityResolution, AvailabilityResolver
from trainer_scheduler.modules.availability.schemas import (
    AvailabilityRule,
    AvailabilityRuleCreate,
    rule_create_list_adapter,
)
from trainer_scheduler.shared.exceptions import ValidationException

logger = logging.getLogger(__name__)


def validate_rule_set(rules: Sequence[AvailabilityRuleCreate | dict[str, Any]]) -> list[AvailabilityRuleCreate]:
    """Check every rule's variant shape and that the set shares one timezone."""
    raw = [rule.model_dump() if isinstance(rule, BaseModel) else rule for rule in rules]
    try:
        validated = rule_create_list_adapter.validate_python(raw)
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationException(f"Invalid availability rule at {location}: {first['msg']}") from exc

    timezones = {rule.timezone for rule in validated}
    if len(timezones) > 1:
        raise ValidationException(
            f"All availability rules of a trainer must share one timezone, got {sorted(timezones)}",
        )
    return validated


class AvailabilityService:
    """Manage trainer rule sets and answer availability questions."""

    def __init__(self, repository: AvailabilityRepository, resolver: AvailabilityResolver) -> None:
        self.repository = repository
        self.resolver = resolver

    async def replace_rules(
        self,
        trainer_id: UUID,
        rules: Sequence[AvailabilityRuleCreate | dict[str, Any]],
    ) -> list[AvailabilityRule]:
        """Replace the whole rule set of a trainer."""
        validated = validate_rule_set(rules)
        stored = await self.repository.replace_all(trainer_id, validated)
        logger.info("Replaced availability of trainer %s with %d rules", trainer_id, len(stored))
        return stored

    async def list_rules(
        self,
        trainer_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[AvailabilityRule]:
        if date_from is not None and date_to is not None and date_to < date_from:
            raise ValidationException("date_to must not be before date_from")
        return await self.repository.list_rules(trainer_id, date_from=date_from, date_to=date_to)

    async def resolve(
        self,
        trainer_id: UUID,
        on_date: date,
        time_start: time,
        time_end: time,
    ) -> AvailabilityResolution:
        return await self.resolver.resolve(trainer_id, on_date, time_start, time_end)

    async def check_interval(
        self,
        trainer_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> AvailabilityResolution:
        return await self.resolver.check_interval(trainer_id, start_at, end_at)


def build_availability_resolver(session: AsyncSession) -> AvailabilityResolver:
    return AvailabilityResolver(
        AvailabilityRepository(session),
        default_timezone=get_settings().default_timezone,
    )


async def get_availability_service(
    session: AsyncSession = Depends(get_db_session),
) -> AvailabilityService:
    """Dependency provider for availability service."""
    resolver = build_availability_resolver(session)
    return AvailabilityService(resolver.repository, resolver)
