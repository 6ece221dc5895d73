from __future__ import annotations

from collections.abc import AsyncIterator
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio

from fakes import FakeRuleRepository, FakeSessionRepository, RecordingPublisher
from trainer_scheduler.main import app
from trainer_scheduler.modules.availability.resolver import AvailabilityResolver
from trainer_scheduler.modules.availability.service import AvailabilityService, get_availability_service
from trainer_scheduler.modules.sessions.service import SessionLifecycleManager, get_session_manager
from trainer_scheduler.shared.locks import KeyedLockRegistry

API = "/api/v1"


@pytest_asyncio.fixture
async def client() -> AsyncIterator[httpx.AsyncClient]:
    sessions = FakeSessionRepository()
    rules = FakeRuleRepository()
    resolver = AvailabilityResolver(rules)
    manager = SessionLifecycleManager(
        sessions,  # type: ignore[arg-type]
        RecordingPublisher(),
        resolver,
        enforce_availability=True,
        locks=KeyedLockRegistry(),
    )
    app.dependency_overrides[get_session_manager] = lambda: manager
    app.dependency_overrides[get_availability_service] = lambda: AvailabilityService(rules, resolver)  # type: ignore[arg-type]
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
    app.dependency_overrides.clear()


async def open_wednesdays(client: httpx.AsyncClient, trainer_id: str) -> None:
    response = await client.put(
        f"{API}/trainers/{trainer_id}/availability",
        json={"rules": [{"type": "regular", "day_of_week": 3, "start_time": "08:00", "end_time": "18:00"}]},
    )
    assert response.status_code == 200


def session_body(trainer_id: str, start: str, end: str, **extra) -> dict:
    return {"trainer_id": trainer_id, "title": "Conditioning", "start_at": start, "end_at": end, **extra}


@pytest.mark.asyncio
async def test_session_lifecycle_over_http(client: httpx.AsyncClient) -> None:
    trainer_id = str(uuid4())
    await open_wednesdays(client, trainer_id)

    created = await client.post(
        f"{API}/sessions",
        json=session_body(trainer_id, "2024-01-10T10:00:00Z", "2024-01-10T11:00:00Z", format="in-person"),
    )
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "scheduled"
    assert body["duration_minutes"] == 60
    assert body["format"] == "in-person"
    session_id = body["id"]

    fetched = await client.get(f"{API}/sessions/{session_id}")
    assert fetched.json()["id"] == session_id

    patched = await client.patch(f"{API}/sessions/{session_id}", json={"title": "Renamed"})
    assert patched.status_code == 200
    assert patched.json()["title"] == "Renamed"

    started = await client.post(f"{API}/sessions/{session_id}/start")
    assert started.json()["status"] == "in_progress"

    completed = await client.post(f"{API}/sessions/{session_id}/complete")
    assert completed.json()["status"] == "completed"

    refused = await client.post(f"{API}/sessions/{session_id}/cancel")
    assert refused.status_code == 409
    assert refused.json()["error"]["code"] == "invalid_transition"


@pytest.mark.asyncio
async def test_conflict_response_lists_overlapping_sessions(client: httpx.AsyncClient) -> None:
    trainer_id = str(uuid4())
    await open_wednesdays(client, trainer_id)
    first = await client.post(
        f"{API}/sessions",
        json=session_body(trainer_id, "2024-01-10T10:00:00Z", "2024-01-10T11:00:00Z"),
    )

    clash = await client.post(
        f"{API}/sessions",
        json=session_body(trainer_id, "2024-01-10T10:30:00Z", "2024-01-10T11:30:00Z"),
    )

    assert clash.status_code == 409
    error = clash.json()["error"]
    assert error["code"] == "schedule_conflict"
    assert [item["id"] for item in error["details"]["conflicts"]] == [first.json()["id"]]

    check = await client.post(
        f"{API}/sessions/conflicts",
        json={"trainer_id": trainer_id, "start_at": "2024-01-10T10:30:00Z", "end_at": "2024-01-10T11:30:00Z"},
    )
    assert [item["id"] for item in check.json()] == [first.json()["id"]]


@pytest.mark.asyncio
async def test_booking_outside_availability_is_refused(client: httpx.AsyncClient) -> None:
    trainer_id = str(uuid4())
    await open_wednesdays(client, trainer_id)

    response = await client.post(
        f"{API}/sessions",
        json=session_body(trainer_id, "2024-01-10T19:00:00Z", "2024-01-10T20:00:00Z"),
    )

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "trainer_unavailable"


@pytest.mark.asyncio
async def test_cancel_and_reschedule_routes(client: httpx.AsyncClient) -> None:
    trainer_id = str(uuid4())
    await open_wednesdays(client, trainer_id)
    created = (
        await client.post(
            f"{API}/sessions",
            json=session_body(trainer_id, "2024-01-10T09:00:00Z", "2024-01-10T10:00:00Z"),
        )
    ).json()

    moved = await client.post(
        f"{API}/sessions/{created['id']}/reschedule",
        json={"start_at": "2024-01-17T09:00:00Z", "end_at": "2024-01-17T10:00:00Z"},
    )
    assert moved.status_code == 201
    replacement = moved.json()
    assert replacement["rescheduled_from_session_id"] == created["id"]

    cancelled = await client.post(f"{API}/sessions/{replacement['id']}/cancel")
    again = await client.post(f"{API}/sessions/{replacement['id']}/cancel")
    assert cancelled.json()["status"] == "cancelled"
    assert again.status_code == 200

    listing = await client.get(f"{API}/sessions", params={"trainer_id": trainer_id, "limit": 1})
    page = listing.json()
    assert page["total"] == 2
    assert page["has_more"] is True
    assert page["items"][0]["status"] == "rescheduled"


@pytest.mark.asyncio
async def test_unknown_session_and_bad_patch(client: httpx.AsyncClient) -> None:
    missing = await client.get(f"{API}/sessions/{uuid4()}")
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "session_not_found"

    status_patch = await client.patch(f"{API}/sessions/{uuid4()}", json={"status": "completed"})
    assert status_patch.status_code == 422


@pytest.mark.asyncio
async def test_availability_routes(client: httpx.AsyncClient) -> None:
    trainer_id = str(uuid4())
    replaced = await client.put(
        f"{API}/trainers/{trainer_id}/availability",
        json={
            "rules": [
                {"type": "regular", "day_of_week": 1, "start_time": "09:00", "end_time": "17:00"},
                {
                    "type": "exception",
                    "start_date": "2024-01-15",
                    "end_date": "2024-01-15",
                    "start_time": "09:00",
                    "end_time": "12:00",
                    "is_available": False,
                },
            ],
        },
    )
    assert replaced.status_code == 200
    exception_id = replaced.json()[1]["id"]

    listed = await client.get(f"{API}/trainers/{trainer_id}/availability")
    assert [rule["type"] for rule in listed.json()] == ["regular", "exception"]

    resolved = await client.get(
        f"{API}/trainers/{trainer_id}/availability/resolve",
        params={"date": "2024-01-15", "time_start": "11:00", "time_end": "13:00"},
    )
    body = resolved.json()
    assert body["available"] is False
    assert body["winning_rule"]["id"] == exception_id
    assert [segment["available"] for segment in body["segments"]] == [False, True]

    inverted = await client.get(
        f"{API}/trainers/{trainer_id}/availability/resolve",
        params={"date": "2024-01-15", "time_start": "13:00", "time_end": "11:00"},
    )
    assert inverted.status_code == 422
    assert inverted.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_invalid_rule_shape_is_rejected(client: httpx.AsyncClient) -> None:
    response = await client.put(
        f"{API}/trainers/{uuid4()}/availability",
        json={"rules": [{"type": "vacation"}]},
    )

    assert response.status_code == 422
