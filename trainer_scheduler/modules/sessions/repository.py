"""Training session repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError

from trainer_scheduler.core.database import acquire_xact_lock, advisory_lock_key
from trainer_scheduler.core.enums import SessionStatusEnum
from trainer_scheduler.modules.sessions.models import (
    SESSION_OVERLAP_CONSTRAINT,
    SLOT_RELEASING_STATUSES,
    TrainingSession,
)
from trainer_scheduler.shared.exceptions import ScheduleConflictException
from trainer_scheduler.shared.repository import GuardedRepository, repository_call


class SessionRepository(GuardedRepository):
    """DB access for training sessions."""

    @repository_call
    async def create_session(self, **fields) -> TrainingSession:
        session_row = TrainingSession(**fields)
        self.session.add(session_row)
        await self._flush_checked(session_row)
        return session_row

    @repository_call
    async def get_session_by_id(self, session_id: UUID, lock: bool = False) -> TrainingSession | None:
        stmt = select(TrainingSession).where(TrainingSession.id == session_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return await self.session.scalar(stmt)

    @repository_call
    async def list_active_sessions(
        self,
        trainer_id: UUID,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        exclude_session_id: UUID | None = None,
    ) -> list[TrainingSession]:
        stmt = select(TrainingSession).where(
            TrainingSession.trainer_id == trainer_id,
            TrainingSession.status.notin_(sorted(SLOT_RELEASING_STATUSES)),
        )
        if window_end is not None:
            stmt = stmt.where(TrainingSession.start_at < window_end)
        if window_start is not None:
            stmt = stmt.where(TrainingSession.end_at > window_start)
        if exclude_session_id is not None:
            stmt = stmt.where(TrainingSession.id != exclude_session_id)
        stmt = stmt.order_by(TrainingSession.start_at.asc())
        return list((await self.session.scalars(stmt)).all())

    @repository_call
    async def list_sessions(
        self,
        *,
        trainer_id: UUID | None,
        bootcamp_id: UUID | None,
        status: SessionStatusEnum | None,
        date_from: datetime | None,
        date_to: datetime | None,
        limit: int,
        offset: int,
    ) -> tuple[list[TrainingSession], int]:
        base_stmt: Select[tuple[TrainingSession]] = select(TrainingSession)
        if trainer_id is not None:
            base_stmt = base_stmt.where(TrainingSession.trainer_id == trainer_id)
        if bootcamp_id is not None:
            base_stmt = base_stmt.where(TrainingSession.bootcamp_id == bootcamp_id)
        if status is not None:
            base_stmt = base_stmt.where(TrainingSession.status == status)
        if date_from is not None:
            base_stmt = base_stmt.where(TrainingSession.start_at >= date_from)
        if date_to is not None:
            base_stmt = base_stmt.where(TrainingSession.start_at < date_to)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(TrainingSession.start_at.asc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    @repository_call
    async def save(self, session_row: TrainingSession) -> TrainingSession:
        await self._flush_checked(session_row)
        return session_row

    @repository_call
    async def lock_trainer(self, trainer_id: UUID) -> None:
        """Serialize writers for one trainer until the transaction ends."""
        await acquire_xact_lock(self.session, advisory_lock_key("trainer_sessions", trainer_id))

    async def _flush_checked(self, session_row: TrainingSession) -> None:
        """Flush; an overlap constraint hit becomes a conflict listing the winners.

        The failed flush leaves the transaction unusable, so it is rolled back
        before the overlapping sessions are read for the error.
        """
        trainer_id, start_at, end_at = session_row.trainer_id, session_row.start_at, session_row.end_at
        own_id = session_row.id
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if SESSION_OVERLAP_CONSTRAINT not in str(exc.orig):
                raise
            await self.session.rollback()
            conflicts = await self.list_active_sessions(
                trainer_id,
                window_start=start_at,
                window_end=end_at,
                exclude_session_id=own_id,
            )
            raise ScheduleConflictException(
                "Trainer has conflicting sessions at this time",
                conflicts,
            ) from exc
