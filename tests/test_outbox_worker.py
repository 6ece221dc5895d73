from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import pytest

import trainer_scheduler.workers.outbox_dispatch_worker as worker_module
from fakes import make_session, utc
from trainer_scheduler.core.enums import SessionEventTypeEnum
from trainer_scheduler.modules.sessions.events import SessionLifecycleEvent
from trainer_scheduler.modules.sessions.schemas import SessionRead


class EmptyOutboxRepository:
    def __init__(self, session: object) -> None:
        self.session = session

    async def list_pending(self, limit: int) -> list:
        return []

    async def list_retryable_failed(self, limit: int, max_retries: int) -> list:
        return []


@pytest.mark.asyncio
async def test_worker_bus_logs_every_session_event(trainer_id, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    session_row = make_session(trainer_id, utc(2024, 1, 10, 10), utc(2024, 1, 10, 11))
    event = SessionLifecycleEvent(
        event_type=SessionEventTypeEnum.SESSION_CANCELLED,
        session=SessionRead.model_validate(session_row),
    )

    await worker_module.build_event_bus().deliver(event)

    assert str(session_row.id) in caplog.text


@pytest.mark.asyncio
async def test_run_cycle_uses_one_transaction(monkeypatch: pytest.MonkeyPatch) -> None:
    opened: list[object] = []

    @asynccontextmanager
    async def fake_scope():
        marker = object()
        opened.append(marker)
        yield marker

    monkeypatch.setattr(worker_module, "session_scope", fake_scope)
    monkeypatch.setattr(worker_module, "OutboxRepository", EmptyOutboxRepository)

    stats = await worker_module.run_cycle(worker_module.build_event_bus())

    assert len(opened) == 1
    assert stats == {"requeued": 0, "processed": 0, "failed": 0, "skipped": 0}
