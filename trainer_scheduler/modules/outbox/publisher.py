"""Event publisher backed by the transactional outbox."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from trainer_scheduler.modules.outbox.repository import OutboxRepository
from trainer_scheduler.modules.sessions.events import SessionLifecycleEvent
from trainer_scheduler.shared.exceptions import AppException

logger = logging.getLogger(__name__)

SESSION_AGGREGATE = "training_session"


class OutboxEventPublisher:
    """Store lifecycle events next to the change; the dispatcher delivers them later."""

    def __init__(self, repository: OutboxRepository) -> None:
        self.repository = repository

    async def publish(self, event: SessionLifecycleEvent) -> None:
        try:
            await self.repository.create_event(
                aggregate_type=SESSION_AGGREGATE,
                aggregate_id=str(event.session.id),
                event_type=event.event_type.value,
                payload=event.to_payload(),
                occurred_at=event.occurred_at,
            )
        except (SQLAlchemyError, AppException):
            logger.exception(
                "Could not store %s for session %s in the outbox",
                event.event_type,
                event.session.id,
            )
