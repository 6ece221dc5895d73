"""Outbox consumer that hands stored lifecycle events to in-process subscribers."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Protocol

from trainer_scheduler.core.metrics import OUTBOX_EVENTS_TOTAL
from trainer_scheduler.modules.outbox.models import OutboxEvent
from trainer_scheduler.modules.outbox.publisher import SESSION_AGGREGATE
from trainer_scheduler.modules.sessions.events import SessionLifecycleEvent
from trainer_scheduler.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class OutboxStore(Protocol):
    async def list_pending(self, limit: int) -> list[OutboxEvent]: ...

    async def list_retryable_failed(self, limit: int, max_retries: int) -> list[OutboxEvent]: ...

    async def mark_pending(self, event: OutboxEvent) -> OutboxEvent: ...

    async def mark_processed(self, event: OutboxEvent, processed_at: datetime) -> OutboxEvent: ...

    async def mark_failed(self, event: OutboxEvent, error_message: str) -> OutboxEvent: ...


class EventDelivery(Protocol):
    async def deliver(self, event: SessionLifecycleEvent) -> None: ...


class OutboxDispatcher:
    """Drain pending outbox rows into subscribers, retrying failures with backoff."""

    def __init__(
        self,
        repository: OutboxStore,
        bus: EventDelivery,
        *,
        batch_size: int = 100,
        max_retries: int = 5,
        base_backoff_seconds: int = 30,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.repository = repository
        self.bus = bus
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"requeued": 0, "processed": 0, "failed": 0, "skipped": 0}
        stats["requeued"] = await self._requeue_retryable_failed_events()

        events = await self.repository.list_pending(limit=self.batch_size)
        for event in events:
            if event.aggregate_type != SESSION_AGGREGATE:
                logger.warning("Skipping outbox event %s of unknown aggregate %s", event.id, event.aggregate_type)
                await self.repository.mark_processed(event, self.now_provider())
                stats["skipped"] += 1
                OUTBOX_EVENTS_TOTAL.labels(outcome="skipped").inc()
                continue
            try:
                await self.bus.deliver(SessionLifecycleEvent.from_payload(event.payload or {}))
            except Exception as exc:
                logger.warning("Outbox event %s (%s) failed: %s", event.id, event.event_type, exc)
                await self.repository.mark_failed(event, str(exc))
                stats["failed"] += 1
                OUTBOX_EVENTS_TOTAL.labels(outcome="failed").inc()
                continue
            await self.repository.mark_processed(event, self.now_provider())
            stats["processed"] += 1
            OUTBOX_EVENTS_TOTAL.labels(outcome="processed").inc()
        return stats

    async def _requeue_retryable_failed_events(self) -> int:
        now = self.now_provider()
        failed_events = await self.repository.list_retryable_failed(
            limit=self.batch_size,
            max_retries=self.max_retries,
        )
        requeued = 0
        for event in failed_events:
            if self.is_backoff_elapsed(event, now):
                await self.repository.mark_pending(event)
                requeued += 1
        return requeued

    def backoff_seconds(self, retries: int) -> int:
        return min(self.max_backoff_seconds, self.base_backoff_seconds * (2 ** (max(retries, 1) - 1)))

    def is_backoff_elapsed(self, event: OutboxEvent, now: datetime) -> bool:
        last_attempt_at = ensure_utc(event.updated_at or event.occurred_at)
        return now >= last_attempt_at + timedelta(seconds=self.backoff_seconds(event.retries))
