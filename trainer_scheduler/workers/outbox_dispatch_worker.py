"""Executable worker that dispatches stored session events to subscribers."""

from __future__ import annotations

import asyncio
import logging

from trainer_scheduler.core.config import get_settings
from trainer_scheduler.core.database import close_engine, session_scope
from trainer_scheduler.modules.outbox.dispatcher import OutboxDispatcher
from trainer_scheduler.modules.outbox.repository import OutboxRepository
from trainer_scheduler.modules.sessions.events import InProcessEventBus, log_session_event

logger = logging.getLogger(__name__)


def build_event_bus() -> InProcessEventBus:
    """Subscribers that consume dispatched session events."""
    bus = InProcessEventBus()
    bus.subscribe(log_session_event)
    return bus


async def run_cycle(bus: InProcessEventBus) -> dict[str, int]:
    """Run a single outbox processing cycle in one DB transaction."""
    settings = get_settings()
    async with session_scope() as session:
        dispatcher = OutboxDispatcher(
            OutboxRepository(session),
            bus,
            batch_size=settings.outbox_batch_size,
            max_retries=settings.outbox_max_retries,
            base_backoff_seconds=settings.outbox_base_backoff_seconds,
            max_backoff_seconds=settings.outbox_max_backoff_seconds,
        )
        return await dispatcher.run_once()


async def main() -> None:
    """Run once or keep polling according to worker mode."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    bus = build_event_bus()

    try:
        if settings.outbox_worker_mode == "once":
            stats = await run_cycle(bus)
            logger.info("Outbox dispatch worker stats: %s", stats)
            return

        while True:
            try:
                stats = await run_cycle(bus)
                logger.info("Outbox dispatch worker stats: %s", stats)
            except Exception:
                logger.exception("Outbox dispatch worker cycle failed")
            await asyncio.sleep(settings.outbox_poll_seconds)
    finally:
        await close_engine()


if __name__ == "__main__":
    asyncio.run(main())
