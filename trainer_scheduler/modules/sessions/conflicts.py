"""Overlap detection between a candidate interval and a trainer's sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from trainer_scheduler.modules.sessions.models import SLOT_RELEASING_STATUSES, TrainingSession
from trainer_scheduler.shared.exceptions import ValidationException
from trainer_scheduler.shared.utils import ensure_utc


class ActiveSessionSource(Protocol):
    """Narrow read interface the detector needs from session storage."""

    async def list_active_sessions(
        self,
        trainer_id: UUID,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        exclude_session_id: UUID | None = None,
    ) -> list[TrainingSession]: ...


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """Half-open intersection test; touching endpoints do not overlap."""
    return start_a < end_b and end_a > start_b


class ConflictDetector:
    """Report active sessions of a trainer that intersect a candidate interval.

    Cancelled and rescheduled sessions never conflict; a reschedule books a
    replacement session and the original stops holding its slot.
    """

    def __init__(self, repository: ActiveSessionSource) -> None:
        self.repository = repository

    async def find_conflicts(
        self,
        trainer_id: UUID,
        start_at: datetime,
        end_at: datetime,
        exclude_session_id: UUID | None = None,
    ) -> list[TrainingSession]:
        start_at = ensure_utc(start_at)
        end_at = ensure_utc(end_at)
        if end_at <= start_at:
            raise ValidationException("Interval end must be after its start")

        candidates = await self.repository.list_active_sessions(
            trainer_id,
            window_start=start_at,
            window_end=end_at,
            exclude_session_id=exclude_session_id,
        )
        return [
            item
            for item in candidates
            if item.trainer_id == trainer_id
            and item.status not in SLOT_RELEASING_STATUSES
            and item.id != exclude_session_id
            and intervals_overlap(ensure_utc(item.start_at), ensure_utc(item.end_at), start_at, end_at)
        ]
