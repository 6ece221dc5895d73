"""Session lifecycle events and the in-process subscriber bus.

The lifecycle manager publishes one event per committed change. Subscribers
(notification dispatch, external calendar sync) are independent consumers:
publishing never waits on them and a failing subscriber never changes the
result of the operation that produced the event.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID, uuid4

from trainer_scheduler.core.enums import SessionEventTypeEnum
from trainer_scheduler.modules.sessions.schemas import SessionRead
from trainer_scheduler.shared.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionLifecycleEvent:
    event_type: SessionEventTypeEnum
    session: SessionRead
    previous: SessionRead | None = None
    occurred_at: datetime = field(default_factory=utc_now)
    event_id: UUID = field(default_factory=uuid4)

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": str(self.event_id),
            "event_type": self.event_type.value,
            "occurred_at": self.occurred_at.isoformat(),
            "session": self.session.model_dump(mode="json"),
            "previous": self.previous.model_dump(mode="json") if self.previous else None,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> SessionLifecycleEvent:
        previous = payload.get("previous")
        return cls(
            event_type=SessionEventTypeEnum(payload["event_type"]),
            session=SessionRead.model_validate(payload["session"]),
            previous=SessionRead.model_validate(previous) if previous else None,
            occurred_at=datetime.fromisoformat(payload["occurred_at"]),
            event_id=UUID(payload["event_id"]),
        )


EventHandler = Callable[[SessionLifecycleEvent], Awaitable[None]]


class EventPublisher(Protocol):
    """Outbound channel the lifecycle manager publishes to."""

    async def publish(self, event: SessionLifecycleEvent) -> None: ...


class SubscriberDeliveryError(Exception):
    """Raised by deliver() when at least one subscriber failed."""

    def __init__(self, failures: list[tuple[str, BaseException]]) -> None:
        self.failures = failures
        names = ", ".join(name for name, _ in failures)
        super().__init__(f"Subscribers failed: {names}")


class InProcessEventBus:
    """Fan events out to registered async handlers."""

    def __init__(self) -> None:
        self._handlers: list[tuple[SessionEventTypeEnum | None, EventHandler]] = []
        self._tasks: set[asyncio.Task[None]] = set()

    def subscribe(
        self,
        handler: EventHandler,
        event_type: SessionEventTypeEnum | None = None,
    ) -> None:
        """Register handler for one event type, or for all when omitted."""
        self._handlers.append((event_type, handler))

    def _matching(self, event: SessionLifecycleEvent) -> list[EventHandler]:
        return [
            handler
            for event_type, handler in self._handlers
            if event_type is None or event_type == event.event_type
        ]

    async def publish(self, event: SessionLifecycleEvent) -> None:
        """Schedule every matching handler and return without awaiting them."""
        for handler in self._matching(event):
            task = asyncio.create_task(self._run_detached(handler, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def deliver(self, event: SessionLifecycleEvent) -> None:
        """Await every matching handler; raise if any of them failed."""
        handlers = self._matching(event)
        results = await asyncio.gather(
            *(handler(event) for handler in handlers),
            return_exceptions=True,
        )
        failures = [
            (_handler_name(handler), result)
            for handler, result in zip(handlers, results)
            if isinstance(result, Exception)
        ]
        if failures:
            raise SubscriberDeliveryError(failures)

    async def drain(self) -> None:
        """Wait for detached handler tasks still in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @staticmethod
    async def _run_detached(handler: EventHandler, event: SessionLifecycleEvent) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception(
                "Subscriber %s failed for %s of session %s",
                _handler_name(handler),
                event.event_type,
                event.session.id,
            )


def _handler_name(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", repr(handler))


async def log_session_event(event: SessionLifecycleEvent) -> None:
    """Default subscriber that records every lifecycle event in the log."""
    logger.info(
        "Session event %s: session=%s trainer=%s status=%s",
        event.event_type,
        event.session.id,
        event.session.trainer_id,
        event.session.status,
    )
