from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from fakes import FakeSessionRepository, make_session, utc
from trainer_scheduler.core.enums import SessionStatusEnum
from trainer_scheduler.modules.sessions.conflicts import ConflictDetector, intervals_overlap
from trainer_scheduler.shared.exceptions import ValidationException


@pytest.mark.asyncio
async def test_overlapping_active_session_is_reported(trainer_id) -> None:
    existing = make_session(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11))
    detector = ConflictDetector(FakeSessionRepository([existing]))

    conflicts = await detector.find_conflicts(trainer_id, utc(2024, 1, 10, 10, 30), utc(2024, 1, 10, 11, 30))

    assert conflicts == [existing]


@pytest.mark.asyncio
async def test_touching_endpoints_do_not_conflict(trainer_id) -> None:
    existing = make_session(trainer_id, utc(2024, 1, 10, 9), utc(2024, 1, 10, 10))
    detector = ConflictDetector(FakeSessionRepository([existing]))

    assert await detector.find_conflicts(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11)) == []
    assert await detector.find_conflicts(trainer_id, utc(2024, 1, 10, 8), utc(2024, 1, 10, 9)) == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("first", "second"),
    [
        ((9, 0, 10, 0), (9, 30, 10, 30)),
        ((9, 0, 12, 0), (10, 0, 11, 0)),
        ((9, 0, 10, 0), (10, 0, 11, 0)),
        ((9, 0, 10, 0), (9, 0, 10, 0)),
    ],
)
async def test_conflict_answer_is_symmetric(trainer_id, first, second) -> None:
    def interval(bounds: tuple[int, int, int, int]) -> tuple[datetime, datetime]:
        return utc(2024, 1, 10, bounds[0], bounds[1]), utc(2024, 1, 10, bounds[2], bounds[3])

    a_start, a_end = interval(first)
    b_start, b_end = interval(second)

    a_then_b = await ConflictDetector(
        FakeSessionRepository([make_session(trainer_id, a_start, a_end)]),
    ).find_conflicts(trainer_id, b_start, b_end)
    b_then_a = await ConflictDetector(
        FakeSessionRepository([make_session(trainer_id, b_start, b_end)]),
    ).find_conflicts(trainer_id, a_start, a_end)

    assert bool(a_then_b) == bool(b_then_a)
    assert bool(a_then_b) == intervals_overlap(a_start, a_end, b_start, b_end)


@pytest.mark.asyncio
async def test_cancelled_and_rescheduled_sessions_never_conflict(trainer_id) -> None:
    cancelled = make_session(
        trainer_id,
        utc(2024, 1, 10, 10),
        utc(2024, 1, 10, 11),
        status=SessionStatusEnum.CANCELLED,
    )
    rescheduled = make_session(
        trainer_id,
        utc(2024, 1, 10, 10),
        utc(2024, 1, 10, 11),
        status=SessionStatusEnum.RESCHEDULED,
    )
    detector = ConflictDetector(FakeSessionRepository([cancelled, rescheduled]))

    assert await detector.find_conflicts(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11)) == []


@pytest.mark.asyncio
async def test_in_progress_and_completed_sessions_still_conflict(trainer_id) -> None:
    running = make_session(
        trainer_id,
        utc(2024, 1, 10, 10),
        utc(2024, 1, 10, 11),
        status=SessionStatusEnum.IN_PROGRESS,
    )
    done = make_session(
        trainer_id,
        utc(2024, 1, 10, 12),
        utc(2024, 1, 10, 13),
        status=SessionStatusEnum.COMPLETED,
    )
    detector = ConflictDetector(FakeSessionRepository([running, done]))

    conflicts = await detector.find_conflicts(trainer_id, utc(2024, 1, 10, 9), utc(2024, 1, 10, 14))

    assert conflicts == [running, done]


@pytest.mark.asyncio
async def test_excluded_session_and_other_trainers_are_ignored(trainer_id) -> None:
    own = make_session(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11))
    foreign = make_session(uuid4(), utc(2024, 1, 10, 10), utc(2024, 1, 10, 11))
    detector = ConflictDetector(FakeSessionRepository([own, foreign]))

    conflicts = await detector.find_conflicts(
        trainer_id,
        utc(2024, 1, 10, 10),
        utc(2024, 1, 10, 11),
        exclude_session_id=own.id,
    )

    assert conflicts == []


@pytest.mark.asyncio
async def test_offset_timestamps_are_compared_in_utc(trainer_id) -> None:
    existing = make_session(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11))
    detector = ConflictDetector(FakeSessionRepository([existing]))
    plus_two = timezone(timedelta(hours=2))

    conflicts = await detector.find_conflicts(
        trainer_id,
        datetime(2024, 1, 10, 12, 30, tzinfo=plus_two),
        datetime(2024, 1, 10, 13, 30, tzinfo=plus_two),
    )

    assert conflicts == [existing]


@pytest.mark.asyncio
async def test_empty_or_inverted_interval_is_rejected(trainer_id) -> None:
    detector = ConflictDetector(FakeSessionRepository())

    with pytest.raises(ValidationException):
        await detector.find_conflicts(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 10))
    with pytest.raises(ValidationException):
        await detector.find_conflicts(trainer_id, utc(2024, 1, 10, 11), utc(2024, 1, 10, 10))
