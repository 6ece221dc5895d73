from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fakes import make_session, utc
from trainer_scheduler.core.enums import SessionEventTypeEnum, SessionStatusEnum
from trainer_scheduler.modules.sessions.events import (
    InProcessEventBus,
    SessionLifecycleEvent,
    SubscriberDeliveryError,
)
from trainer_scheduler.modules.sessions.schemas import SessionRead


def make_event(trainer_id, event_type=SessionEventTypeEnum.SESSION_CREATED) -> SessionLifecycleEvent:
    session_row = make_session(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11))
    return SessionLifecycleEvent(event_type=event_type, session=SessionRead.model_validate(session_row))


@pytest.mark.asyncio
async def test_publish_isolates_failing_subscriber(trainer_id) -> None:
    bus = InProcessEventBus()
    received: list[SessionLifecycleEvent] = []

    async def broken(_: SessionLifecycleEvent) -> None:
        raise RuntimeError("calendar sync down")

    async def recorder(event: SessionLifecycleEvent) -> None:
        received.append(event)

    bus.subscribe(broken)
    bus.subscribe(recorder)
    event = make_event(trainer_id)

    await bus.publish(event)
    await bus.drain()

    assert received == [event]


@pytest.mark.asyncio
async def test_subscriber_filter_by_event_type(trainer_id) -> None:
    bus = InProcessEventBus()
    cancellations: list[SessionLifecycleEvent] = []

    async def on_cancel(event: SessionLifecycleEvent) -> None:
        cancellations.append(event)

    bus.subscribe(on_cancel, SessionEventTypeEnum.SESSION_CANCELLED)

    await bus.deliver(make_event(trainer_id))
    cancelled = make_event(trainer_id, SessionEventTypeEnum.SESSION_CANCELLED)
    await bus.deliver(cancelled)

    assert cancellations == [cancelled]


@pytest.mark.asyncio
async def test_deliver_reports_failures_after_running_everyone(trainer_id) -> None:
    bus = InProcessEventBus()
    received: list[SessionLifecycleEvent] = []

    async def broken(_: SessionLifecycleEvent) -> None:
        raise RuntimeError("boom")

    async def recorder(event: SessionLifecycleEvent) -> None:
        received.append(event)

    bus.subscribe(broken)
    bus.subscribe(recorder)

    with pytest.raises(SubscriberDeliveryError) as exc:
        await bus.deliver(make_event(trainer_id))

    assert len(received) == 1
    assert [name for name, _ in exc.value.failures] == [broken.__qualname__]


def test_event_payload_survives_storage(trainer_id) -> None:
    created = make_session(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11))
    previous = SessionRead.model_validate(created)
    created.status = SessionStatusEnum.CANCELLED
    event = SessionLifecycleEvent(
        event_type=SessionEventTypeEnum.SESSION_CANCELLED,
        session=SessionRead.model_validate(created),
        previous=previous,
        occurred_at=datetime(2024, 1, 9, 8, 0, tzinfo=UTC),
    )

    restored = SessionLifecycleEvent.from_payload(event.to_payload())

    assert restored == event
    assert restored.previous.status == SessionStatusEnum.SCHEDULED
