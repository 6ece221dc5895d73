"""Resolve whether a trainer is nominally available for a time window.

Rules apply to a date (weekday for regular rules, a date range otherwise) and
to a time window within that day (vacation and blocked rules cover the whole
day). When several rules cover the same minutes the most specific one wins:

1. rule type: blocked > vacation > exception > regular;
2. within a type, the rule with the smaller date range wins (unbounded ranges
   and weekly rules count as infinite);
3. then the most recently created rule wins.

A requested window is split at every rule boundary that falls inside it, so a
partial-day exception only overrides the minutes it actually covers. The
window is available only when every piece is available.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from datetime import timezone as dt_timezone
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from trainer_scheduler.core.enums import AvailabilityRuleTypeEnum
from trainer_scheduler.core.metrics import AVAILABILITY_RESOLUTIONS_TOTAL
from trainer_scheduler.modules.availability.schemas import AvailabilityRule
from trainer_scheduler.shared.exceptions import ValidationException
from trainer_scheduler.shared.utils import end_minute_of_day, ensure_utc, minute_of_day

logger = logging.getLogger(__name__)

# Answer for minutes no rule speaks about. Trainers are bookable only inside
# windows their rules declare.
DEFAULT_AVAILABLE_WHEN_NO_RULE = False

RULE_PRECEDENCE: dict[AvailabilityRuleTypeEnum, int] = {
    AvailabilityRuleTypeEnum.BLOCKED: 4,
    AvailabilityRuleTypeEnum.VACATION: 3,
    AvailabilityRuleTypeEnum.EXCEPTION: 2,
    AvailabilityRuleTypeEnum.REGULAR: 1,
}


class RuleSource(Protocol):
    """Narrow read interface the resolver needs from rule storage."""

    async def list_rules(
        self,
        trainer_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[AvailabilityRule]: ...


@dataclass(frozen=True, slots=True)
class ResolvedSegment:
    on_date: date
    start_minute: int
    end_minute: int
    available: bool
    winning_rule: AvailabilityRule | None


@dataclass(frozen=True, slots=True)
class AvailabilityResolution:
    available: bool
    winning_rule: AvailabilityRule | None
    segments: tuple[ResolvedSegment, ...]


def _precedence_key(rule: AvailabilityRule) -> tuple[int, float, float, str]:
    span = rule.date_span_days
    return (
        -RULE_PRECEDENCE[AvailabilityRuleTypeEnum(rule.type)],
        float("inf") if span is None else float(span),
        -ensure_utc(rule.created_at).timestamp(),
        str(rule.id),
    )


def pick_winner(rules: Iterable[AvailabilityRule]) -> AvailabilityRule | None:
    """Return the highest-precedence rule, or None when nothing applies."""
    return min(rules, key=_precedence_key, default=None)


def _window_minutes(time_start: time, time_end: time) -> tuple[int, int]:
    start = minute_of_day(time_start)
    end = end_minute_of_day(time_end)
    if end <= start:
        raise ValidationException("time_end must be after time_start (00:00 means midnight)")
    return start, end


def resolve_rules(
    rules: Sequence[AvailabilityRule],
    on_date: date,
    time_start: time,
    time_end: time,
) -> AvailabilityResolution:
    """Pure resolution over an in-memory rule set."""
    window_start, window_end = _window_minutes(time_start, time_end)

    applicable: list[tuple[AvailabilityRule, int, int]] = []
    for rule in rules:
        if not rule.covers_date(on_date):
            continue
        rule_start, rule_end = rule.time_window()
        if rule_start < window_end and rule_end > window_start:
            applicable.append((rule, rule_start, rule_end))

    cuts = {window_start, window_end}
    for _, rule_start, rule_end in applicable:
        cuts.update(edge for edge in (rule_start, rule_end) if window_start < edge < window_end)
    ordered_cuts = sorted(cuts)

    segments: list[ResolvedSegment] = []
    for piece_start, piece_end in zip(ordered_cuts, ordered_cuts[1:]):
        winner = pick_winner(
            rule
            for rule, rule_start, rule_end in applicable
            if rule_start <= piece_start and rule_end >= piece_end
        )
        available = DEFAULT_AVAILABLE_WHEN_NO_RULE if winner is None else winner.is_available
        previous = segments[-1] if segments else None
        if previous is not None and previous.available == available and previous.winning_rule is winner:
            segments[-1] = ResolvedSegment(on_date, previous.start_minute, piece_end, available, winner)
        else:
            segments.append(ResolvedSegment(on_date, piece_start, piece_end, available, winner))

    return _combine(segments)


def _combine(segments: Sequence[ResolvedSegment]) -> AvailabilityResolution:
    blocking = next((segment for segment in segments if not segment.available), None)
    if blocking is not None:
        return AvailabilityResolution(False, blocking.winning_rule, tuple(segments))
    winner = segments[0].winning_rule if segments else None
    return AvailabilityResolution(True, winner, tuple(segments))


def _local_midnight(day: date, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(UTC)


def _offset_at(instant: datetime, zone: ZoneInfo) -> timedelta | None:
    return instant.astimezone(zone).utcoffset()


def _offset_change(start: datetime, end: datetime, zone: ZoneInfo) -> datetime:
    """First whole-second instant in (start, end] that has end's UTC offset."""
    target = _offset_at(end, zone)
    low = math.floor(start.timestamp())
    high = math.ceil(end.timestamp())
    while high - low > 1:
        middle = (low + high) // 2
        if _offset_at(datetime.fromtimestamp(middle, UTC), zone) == target:
            high = middle
        else:
            low = middle
    return datetime.fromtimestamp(high, UTC)


def _wall_clock_pieces(
    day: date,
    start: datetime,
    end: datetime,
    day_end: datetime,
    zone: ZoneInfo,
) -> list[tuple[date, time, time]]:
    """Wall-clock windows for [start, end) within one local day, cut at offset changes."""
    last_offset = _offset_at(end - timedelta(microseconds=1), zone)
    if _offset_at(start, zone) != last_offset:
        change = _offset_change(start, end - timedelta(microseconds=1), zone)
        return _wall_clock_pieces(day, start, change, day_end, zone) + _wall_clock_pieces(
            day, change, end, day_end, zone
        )
    fixed = dt_timezone(last_offset or timedelta(0))
    end_clock = time.min if end == day_end else end.astimezone(fixed).time()
    return [(day, start.astimezone(fixed).time(), end_clock)]


def split_by_local_day(
    start_at: datetime,
    end_at: datetime,
    zone: ZoneInfo,
) -> list[tuple[date, time, time]]:
    """Cut an absolute interval into per-day wall-clock windows in zone.

    Day boundaries are compared as UTC instants. A piece that spans a DST
    change is cut at the change, so the repeated hour after a fall-back
    yields two windows instead of an inverted one.
    """
    start = ensure_utc(start_at)
    end = ensure_utc(end_at)
    if end <= start:
        raise ValidationException("Interval end must be after its start")

    pieces: list[tuple[date, time, time]] = []
    day = start.astimezone(zone).date()
    while (day_start := _local_midnight(day, zone)) < end:
        day_end = _local_midnight(day + timedelta(days=1), zone)
        piece_start = max(start, day_start)
        piece_end = min(end, day_end)
        if piece_end > piece_start:
            pieces.extend(_wall_clock_pieces(day, piece_start, piece_end, day_end, zone))
        day += timedelta(days=1)
    return pieces


class AvailabilityResolver:
    """Answer availability questions against a trainer's current rule set."""

    def __init__(self, repository: RuleSource, default_timezone: str = "UTC") -> None:
        self.repository = repository
        self.default_timezone = default_timezone

    async def resolve(
        self,
        trainer_id: UUID,
        on_date: date,
        time_start: time,
        time_end: time,
    ) -> AvailabilityResolution:
        rules = await self.repository.list_rules(trainer_id, date_from=on_date, date_to=on_date)
        resolution = resolve_rules(rules, on_date, time_start, time_end)
        AVAILABILITY_RESOLUTIONS_TOTAL.labels(available=str(resolution.available).lower()).inc()
        return resolution

    async def check_interval(
        self,
        trainer_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> AvailabilityResolution:
        """Resolve an absolute interval, day by day in the rule set's timezone."""
        rules = await self.repository.list_rules(trainer_id)
        zone = ZoneInfo(rules[0].timezone if rules else self.default_timezone)
        pieces = split_by_local_day(start_at, end_at, zone)

        segments: list[ResolvedSegment] = []
        for on_date, time_start, time_end in pieces:
            day_rules = [rule for rule in rules if rule.covers_date(on_date)]
            segments.extend(resolve_rules(day_rules, on_date, time_start, time_end).segments)

        resolution = _combine(segments)
        AVAILABILITY_RESOLUTIONS_TOTAL.labels(available=str(resolution.available).lower()).inc()
        logger.debug(
            "Availability for trainer %s in [%s, %s): %s",
            trainer_id,
            start_at,
            end_at,
            resolution.available,
        )
        return resolution
