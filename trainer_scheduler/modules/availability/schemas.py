"""Availability rule schemas.

Rules are a tagged union on ``type``. Each variant only carries the fields
that are meaningful for it, so shape errors (a regular rule with a date range,
a vacation without any bound) are rejected at validation time.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Annotated, Literal
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from trainer_scheduler.shared.utils import end_minute_of_day, minute_of_day


def day_of_week_for(day: date) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday."""
    return day.isoweekday() % 7


class _RuleBase(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    timezone: str = "UTC"
    reason: str = Field(default="", max_length=255)
    recurring: Literal[False] = False

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @property
    def date_span_days(self) -> int | None:
        """Number of days in the date scope, None when unbounded."""
        return None

    def time_window(self) -> tuple[int, int]:
        """Minute offsets [start, end) within a day; whole day by default."""
        return 0, 24 * 60


class _TimedRule(_RuleBase):
    start_time: time
    end_time: time
    is_available: bool = True

    @model_validator(mode="after")
    def validate_time_window(self) -> _TimedRule:
        if end_minute_of_day(self.end_time) <= minute_of_day(self.start_time):
            raise ValueError("end_time must be after start_time (00:00 means midnight)")
        return self

    def time_window(self) -> tuple[int, int]:
        return minute_of_day(self.start_time), end_minute_of_day(self.end_time)


class _DatedRule(_RuleBase):
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def validate_date_range(self) -> _DatedRule:
        if self.start_date is None and self.end_date is None:
            raise ValueError("at least one of start_date or end_date is required")
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def covers_date(self, day: date) -> bool:
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True

    @property
    def date_span_days(self) -> int | None:
        if self.start_date is None or self.end_date is None:
            return None
        return (self.end_date - self.start_date).days + 1


class RegularRuleCreate(_TimedRule):
    """Weekly recurring window."""

    type: Literal["regular"] = "regular"
    day_of_week: int = Field(ge=0, le=6)
    recurring: Literal[True] = True

    def covers_date(self, day: date) -> bool:
        return day_of_week_for(day) == self.day_of_week


class ExceptionRuleCreate(_TimedRule, _DatedRule):
    """One-off override for a dated range within its own time window."""

    type: Literal["exception"] = "exception"
    start_date: date
    end_date: date


class VacationRuleCreate(_DatedRule):
    """Whole-day unavailability over a date range."""

    type: Literal["vacation"] = "vacation"
    is_available: Literal[False] = False


class BlockedRuleCreate(_DatedRule):
    """Whole-day block over a date range; outranks every other rule."""

    type: Literal["blocked"] = "blocked"
    is_available: Literal[False] = False


AvailabilityRuleCreate = Annotated[
    RegularRuleCreate | ExceptionRuleCreate | VacationRuleCreate | BlockedRuleCreate,
    Field(discriminator="type"),
]


class _StoredRule(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: UUID
    trainer_id: UUID
    created_at: datetime


class RegularRule(RegularRuleCreate, _StoredRule):
    pass


class ExceptionRule(ExceptionRuleCreate, _StoredRule):
    pass


class VacationRule(VacationRuleCreate, _StoredRule):
    pass


class BlockedRule(BlockedRuleCreate, _StoredRule):
    pass


AvailabilityRule = Annotated[
    RegularRule | ExceptionRule | VacationRule | BlockedRule,
    Field(discriminator="type"),
]

rule_create_list_adapter = TypeAdapter(list[AvailabilityRuleCreate])
stored_rule_adapter = TypeAdapter(AvailabilityRule)


class AvailabilityReplaceRequest(BaseModel):
    """Full replacement of a trainer's rule set."""

    rules: list[AvailabilityRuleCreate] = Field(default_factory=list)


class ResolvedSegmentRead(BaseModel):
    on_date: date
    start_minute: int
    end_minute: int
    available: bool
    winning_rule_id: UUID | None


class AvailabilityResolutionRead(BaseModel):
    available: bool
    winning_rule: AvailabilityRule | None
    segments: list[ResolvedSegmentRead]
