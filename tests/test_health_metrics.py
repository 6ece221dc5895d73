from __future__ import annotations

import pytest
from fastapi import HTTPException, Request, Response

import trainer_scheduler.main as main_module
from trainer_scheduler.core.metrics import build_metrics_response, instrument_http_request, path_label


def _make_request(path: str) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "headers": [],
        "client": ("127.0.0.1", 12345),
        "scheme": "http",
        "server": ("testserver", 80),
        "query_string": b"",
    }
    return Request(scope)


@pytest.mark.asyncio
async def test_readiness_reports_ready_when_database_answers(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _ready() -> bool:
        return True

    monkeypatch.setattr(main_module, "probe_database", _ready)

    response = await main_module.readiness()

    assert response["status"] == "ready"
    assert response["database"] == "ok"
    assert "checked_at" in response


@pytest.mark.asyncio
async def test_readiness_returns_503_when_database_is_down(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _not_ready() -> bool:
        return False

    monkeypatch.setattr(main_module, "probe_database", _not_ready)

    with pytest.raises(HTTPException) as exc:
        await main_module.readiness()
    assert exc.value.status_code == 503


@pytest.mark.asyncio
async def test_http_metrics_instrumentation_tracks_status_and_path() -> None:
    async def _no_content(_: Request) -> Response:
        return Response(status_code=204)

    await instrument_http_request(_make_request("/health"), _no_content)

    payload = build_metrics_response().body.decode("utf-8")
    assert "trainer_scheduler_http_requests_total" in payload
    assert 'path="/health"' in payload
    assert 'status_code="204"' in payload


def test_unmatched_paths_collapse_identifiers() -> None:
    request = _make_request("/api/v1/sessions/6f1c2f7e-2b1a-4c4e-9a57-0d1e2f3a4b5c/start")

    assert path_label(request) == "/api/v1/sessions/{id}/start"


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_scheduling_counters() -> None:
    response = await main_module.metrics(_make_request("/metrics"))
    payload = response.body.decode("utf-8")

    assert response.status_code == 200
    assert "trainer_scheduler_http_requests_total" in payload
    assert "trainer_scheduler_schedule_conflicts_total" in payload
