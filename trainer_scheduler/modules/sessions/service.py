"""Session lifecycle business logic layer."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from fastapi import Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from trainer_scheduler.core.config import get_settings
from trainer_scheduler.core.database import get_db_session
from trainer_scheduler.core.enums import SessionEventTypeEnum, SessionStatusEnum
from trainer_scheduler.core.metrics import SCHEDULE_CONFLICTS_TOTAL, SESSION_OPERATIONS_TOTAL
from trainer_scheduler.modules.availability.resolver import AvailabilityResolution
from trainer_scheduler.modules.availability.service import build_availability_resolver
from trainer_scheduler.modules.outbox.publisher import OutboxEventPublisher
from trainer_scheduler.modules.outbox.repository import OutboxRepository
from trainer_scheduler.modules.sessions.conflicts import ConflictDetector
from trainer_scheduler.modules.sessions.events import EventPublisher, SessionLifecycleEvent
from trainer_scheduler.modules.sessions.models import TrainingSession
from trainer_scheduler.modules.sessions.repository import SessionRepository
from trainer_scheduler.modules.sessions.schemas import SessionCreate, SessionRead, SessionUpdate
from trainer_scheduler.shared.exceptions import (
    AppException,
    InvalidSessionTransitionException,
    ScheduleConflictException,
    SessionNotFoundException,
    TrainerUnavailableException,
    ValidationException,
)
from trainer_scheduler.shared.locks import KeyedLockRegistry, trainer_write_locks
from trainer_scheduler.shared.utils import ensure_utc, minutes_between

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[SessionStatusEnum, frozenset[SessionStatusEnum]] = {
    SessionStatusEnum.SCHEDULED: frozenset(
        {SessionStatusEnum.IN_PROGRESS, SessionStatusEnum.CANCELLED, SessionStatusEnum.RESCHEDULED},
    ),
    SessionStatusEnum.IN_PROGRESS: frozenset({SessionStatusEnum.COMPLETED, SessionStatusEnum.CANCELLED}),
}
TERMINAL_STATUSES = frozenset(
    {SessionStatusEnum.COMPLETED, SessionStatusEnum.CANCELLED, SessionStatusEnum.RESCHEDULED},
)

DESCRIPTIVE_FIELDS = ("title", "description", "location", "format", "meeting_url", "notes")
TEMPORAL_FIELDS = ("start_at", "end_at")
NULLABLE_FIELDS = frozenset({"meeting_url", "notes"})


class SessionStore(Protocol):
    async def create_session(self, **fields) -> TrainingSession: ...

    async def get_session_by_id(self, session_id: UUID, lock: bool = False) -> TrainingSession | None: ...

    async def list_active_sessions(
        self,
        trainer_id: UUID,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        exclude_session_id: UUID | None = None,
    ) -> list[TrainingSession]: ...

    async def list_sessions(self, **filters) -> tuple[list[TrainingSession], int]: ...

    async def save(self, session_row: TrainingSession) -> TrainingSession: ...

    async def lock_trainer(self, trainer_id: UUID) -> None: ...


class AvailabilityChecker(Protocol):
    async def check_interval(
        self,
        trainer_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> AvailabilityResolution: ...


def validate_interval(start_at: datetime, end_at: datetime) -> tuple[datetime, datetime]:
    """Normalize to UTC and require a non-empty interval."""
    start_at = ensure_utc(start_at)
    end_at = ensure_utc(end_at)
    if end_at <= start_at:
        raise ValidationException("Session end_at must be after start_at")
    if minutes_between(start_at, end_at) < 1:
        raise ValidationException("Session must last at least one minute")
    return start_at, end_at


class SessionLifecycleManager:
    """Create, change and retire training sessions without double-booking a trainer."""

    def __init__(
        self,
        repository: SessionStore,
        publisher: EventPublisher,
        availability: AvailabilityChecker | None = None,
        *,
        enforce_availability: bool = False,
        locks: KeyedLockRegistry = trainer_write_locks,
    ) -> None:
        if enforce_availability and availability is None:
            raise ValueError("Availability checker is required when availability is enforced")
        self.repository = repository
        self.publisher = publisher
        self.availability = availability
        self.enforce_availability = enforce_availability
        self.locks = locks
        self.conflict_detector = ConflictDetector(repository)

    @asynccontextmanager
    async def _tracked(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except AppException as exc:
            SESSION_OPERATIONS_TOTAL.labels(operation=operation, outcome=exc.code).inc()
            raise
        SESSION_OPERATIONS_TOTAL.labels(operation=operation, outcome="success").inc()

    @asynccontextmanager
    async def _trainer_write_lock(self, trainer_id: UUID) -> AsyncIterator[None]:
        async with self.locks.hold(trainer_id):
            await self.repository.lock_trainer(trainer_id)
            yield

    async def _load(self, session_id: UUID, *, lock: bool = False) -> TrainingSession:
        session_row = await self.repository.get_session_by_id(session_id, lock=lock)
        if session_row is None:
            raise SessionNotFoundException(f"Session {session_id} not found")
        return session_row

    async def _ensure_bookable(
        self,
        trainer_id: UUID,
        start_at: datetime,
        end_at: datetime,
        exclude_session_id: UUID | None = None,
    ) -> None:
        conflicts = await self.conflict_detector.find_conflicts(
            trainer_id,
            start_at,
            end_at,
            exclude_session_id=exclude_session_id,
        )
        if conflicts:
            SCHEDULE_CONFLICTS_TOTAL.inc()
            logger.info(
                "Schedule conflict for trainer %s in [%s, %s): %s",
                trainer_id,
                start_at,
                end_at,
                [str(item.id) for item in conflicts],
            )
            raise ScheduleConflictException("Trainer has conflicting sessions at this time", conflicts)

        if not self.enforce_availability:
            return
        resolution = await self.availability.check_interval(trainer_id, start_at, end_at)
        if not resolution.available:
            rule = resolution.winning_rule
            logger.info(
                "Trainer %s unavailable in [%s, %s), rule=%s",
                trainer_id,
                start_at,
                end_at,
                rule.id if rule else None,
            )
            raise TrainerUnavailableException(
                "Trainer is not available at this time",
                winning_rule_id=str(rule.id) if rule else None,
            )

    def _ensure_transition(self, session_row: TrainingSession, target: SessionStatusEnum) -> None:
        allowed = ALLOWED_TRANSITIONS.get(session_row.status, frozenset())
        if target not in allowed:
            raise InvalidSessionTransitionException(
                f"Session cannot move from {session_row.status} to {target}",
            )

    async def _publish(
        self,
        event_type: SessionEventTypeEnum,
        session_row: TrainingSession,
        previous: SessionRead | None = None,
    ) -> None:
        event = SessionLifecycleEvent(
            event_type=event_type,
            session=SessionRead.model_validate(session_row),
            previous=previous,
        )
        try:
            await self.publisher.publish(event)
        except Exception:
            logger.exception("Failed to publish %s for session %s", event_type, session_row.id)

    async def create(self, payload: SessionCreate) -> TrainingSession:
        """Book a new session for a trainer if the interval is free."""
        async with self._tracked("create"):
            start_at, end_at = validate_interval(payload.start_at, payload.end_at)
            async with self._trainer_write_lock(payload.trainer_id):
                await self._ensure_bookable(payload.trainer_id, start_at, end_at)
                session_row = await self.repository.create_session(
                    trainer_id=payload.trainer_id,
                    bootcamp_id=payload.bootcamp_id,
                    title=payload.title,
                    description=payload.description,
                    start_at=start_at,
                    end_at=end_at,
                    duration_minutes=minutes_between(start_at, end_at),
                    location=payload.location,
                    format=payload.format,
                    status=SessionStatusEnum.SCHEDULED,
                    meeting_url=payload.meeting_url,
                    notes=payload.notes,
                )

        logger.info(
            "Session %s created for trainer %s [%s, %s)",
            session_row.id,
            session_row.trainer_id,
            start_at,
            end_at,
        )
        await self._publish(SessionEventTypeEnum.SESSION_CREATED, session_row)
        return session_row

    async def update(self, session_id: UUID, patch: SessionUpdate | dict[str, Any]) -> TrainingSession:
        """Apply a partial change; only interval changes are re-checked."""
        async with self._tracked("update"):
            changes = patch.model_dump(exclude_unset=True) if isinstance(patch, BaseModel) else dict(patch)
            unknown = set(changes) - set(DESCRIPTIVE_FIELDS) - set(TEMPORAL_FIELDS)
            if unknown:
                raise ValidationException(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
            missing = [key for key, value in changes.items() if value is None and key not in NULLABLE_FIELDS]
            if missing:
                raise ValidationException(f"Fields cannot be null: {', '.join(sorted(missing))}")

            session_row = await self._load(session_id, lock=True)
            if session_row.status in TERMINAL_STATUSES:
                raise InvalidSessionTransitionException(
                    f"Session in status {session_row.status} can no longer be changed",
                )
            previous = SessionRead.model_validate(session_row)

            current_start = ensure_utc(session_row.start_at)
            current_end = ensure_utc(session_row.end_at)
            start_at, end_at = validate_interval(
                changes.get("start_at", current_start),
                changes.get("end_at", current_end),
            )
            interval_changed = (start_at, end_at) != (current_start, current_end)

            async with self._trainer_write_lock(session_row.trainer_id):
                if interval_changed:
                    await self._ensure_bookable(
                        session_row.trainer_id,
                        start_at,
                        end_at,
                        exclude_session_id=session_row.id,
                    )
                    session_row.start_at = start_at
                    session_row.end_at = end_at
                    session_row.duration_minutes = minutes_between(start_at, end_at)
                for key in DESCRIPTIVE_FIELDS:
                    if key in changes:
                        setattr(session_row, key, changes[key])
                await self.repository.save(session_row)

        logger.info("Session %s updated (interval changed: %s)", session_row.id, interval_changed)
        await self._publish(SessionEventTypeEnum.SESSION_UPDATED, session_row, previous)
        return session_row

    async def cancel(self, session_id: UUID) -> TrainingSession:
        """Cancel a session and release its interval; repeat calls are no-ops."""
        async with self._tracked("cancel"):
            session_row = await self._load(session_id, lock=True)
            if session_row.status == SessionStatusEnum.CANCELLED:
                logger.info("Session %s already cancelled", session_row.id)
                return session_row
            self._ensure_transition(session_row, SessionStatusEnum.CANCELLED)

            previous = SessionRead.model_validate(session_row)
            session_row.status = SessionStatusEnum.CANCELLED
            await self.repository.save(session_row)

        logger.info("Session %s cancelled", session_row.id)
        await self._publish(SessionEventTypeEnum.SESSION_CANCELLED, session_row, previous)
        return session_row

    async def start(self, session_id: UUID) -> TrainingSession:
        return await self._transition("start", session_id, SessionStatusEnum.IN_PROGRESS)

    async def complete(self, session_id: UUID) -> TrainingSession:
        return await self._transition("complete", session_id, SessionStatusEnum.COMPLETED)

    async def _transition(
        self,
        operation: str,
        session_id: UUID,
        target: SessionStatusEnum,
    ) -> TrainingSession:
        async with self._tracked(operation):
            session_row = await self._load(session_id, lock=True)
            self._ensure_transition(session_row, target)
            previous = SessionRead.model_validate(session_row)
            session_row.status = target
            await self.repository.save(session_row)

        logger.info("Session %s moved from %s to %s", session_row.id, previous.status, target)
        await self._publish(SessionEventTypeEnum.SESSION_UPDATED, session_row, previous)
        return session_row

    async def reschedule(
        self,
        session_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> TrainingSession:
        """Retire a scheduled session and book its replacement at a new interval."""
        async with self._tracked("reschedule"):
            original = await self._load(session_id, lock=True)
            self._ensure_transition(original, SessionStatusEnum.RESCHEDULED)
            start_at, end_at = validate_interval(start_at, end_at)

            async with self._trainer_write_lock(original.trainer_id):
                await self._ensure_bookable(
                    original.trainer_id,
                    start_at,
                    end_at,
                    exclude_session_id=original.id,
                )
                previous = SessionRead.model_validate(original)
                original.status = SessionStatusEnum.RESCHEDULED
                await self.repository.save(original)
                replacement = await self.repository.create_session(
                    trainer_id=original.trainer_id,
                    bootcamp_id=original.bootcamp_id,
                    title=original.title,
                    description=original.description,
                    start_at=start_at,
                    end_at=end_at,
                    duration_minutes=minutes_between(start_at, end_at),
                    location=original.location,
                    format=original.format,
                    status=SessionStatusEnum.SCHEDULED,
                    meeting_url=original.meeting_url,
                    notes=original.notes,
                    rescheduled_from_session_id=original.id,
                )

        logger.info("Session %s rescheduled as %s", original.id, replacement.id)
        await self._publish(SessionEventTypeEnum.SESSION_UPDATED, original, previous)
        await self._publish(SessionEventTypeEnum.SESSION_CREATED, replacement)
        return replacement

    async def get(self, session_id: UUID) -> TrainingSession:
        return await self._load(session_id)

    async def list_sessions(
        self,
        *,
        trainer_id: UUID | None = None,
        bootcamp_id: UUID | None = None,
        status: SessionStatusEnum | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TrainingSession], int]:
        """List sessions ordered by start, for calendar-style consumers."""
        return await self.repository.list_sessions(
            trainer_id=trainer_id,
            bootcamp_id=bootcamp_id,
            status=status,
            date_from=ensure_utc(date_from) if date_from else None,
            date_to=ensure_utc(date_to) if date_to else None,
            limit=limit,
            offset=offset,
        )

    async def check_conflicts(
        self,
        trainer_id: UUID,
        start_at: datetime,
        end_at: datetime,
        exclude_session_id: UUID | None = None,
    ) -> list[TrainingSession]:
        """Read-only conflict query; never takes the writer lock."""
        return await self.conflict_detector.find_conflicts(
            trainer_id,
            start_at,
            end_at,
            exclude_session_id=exclude_session_id,
        )


async def get_session_manager(session: AsyncSession = Depends(get_db_session)) -> SessionLifecycleManager:
    """Dependency provider for the session lifecycle manager."""
    settings = get_settings()
    return SessionLifecycleManager(
        repository=SessionRepository(session),
        publisher=OutboxEventPublisher(OutboxRepository(session)),
        availability=build_availability_resolver(session),
        enforce_availability=settings.enforce_trainer_availability,
    )
