"""Outbox repository layer."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from trainer_scheduler.core.enums import OutboxStatusEnum
from trainer_scheduler.modules.outbox.models import OutboxEvent
from trainer_scheduler.shared.repository import GuardedRepository, repository_call


class OutboxRepository(GuardedRepository):
    """DB operations for the event outbox."""

    @repository_call
    async def create_event(
        self,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict,
        occurred_at: datetime,
    ) -> OutboxEvent:
        """Insert inside a savepoint so a failed write leaves the caller's transaction usable."""
        async with self.session.begin_nested():
            event = OutboxEvent(
                aggregate_type=aggregate_type,
                aggregate_id=aggregate_id,
                event_type=event_type,
                payload=payload,
                occurred_at=occurred_at,
                status=OutboxStatusEnum.PENDING,
            )
            self.session.add(event)
        return event

    @repository_call
    async def list_pending(self, limit: int) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatusEnum.PENDING)
            .order_by(OutboxEvent.occurred_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list((await self.session.scalars(stmt)).all())

    @repository_call
    async def list_retryable_failed(self, limit: int, max_retries: int) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxStatusEnum.FAILED,
                OutboxEvent.retries < max_retries,
            )
            .order_by(OutboxEvent.updated_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return list((await self.session.scalars(stmt)).all())

    @repository_call
    async def mark_pending(self, event: OutboxEvent) -> OutboxEvent:
        event.status = OutboxStatusEnum.PENDING
        event.error_message = None
        event.processed_at = None
        await self.session.flush()
        return event

    @repository_call
    async def mark_processed(self, event: OutboxEvent, processed_at: datetime) -> OutboxEvent:
        event.status = OutboxStatusEnum.PROCESSED
        event.processed_at = processed_at
        event.error_message = None
        await self.session.flush()
        return event

    @repository_call
    async def mark_failed(self, event: OutboxEvent, error_message: str) -> OutboxEvent:
        event.status = OutboxStatusEnum.FAILED
        event.retries += 1
        event.error_message = error_message[:2000]
        event.processed_at = None
        await self.session.flush()
        return event
