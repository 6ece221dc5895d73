"""Prometheus metrics for HTTP traffic and scheduling operations."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from time import perf_counter

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

HTTP_REQUESTS_TOTAL = Counter(
    "trainer_scheduler_http_requests_total",
    "HTTP requests served, by route template and status.",
    ["method", "path", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "trainer_scheduler_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

SESSION_OPERATIONS_TOTAL = Counter(
    "trainer_scheduler_session_operations_total",
    "Session lifecycle operations by outcome.",
    ["operation", "outcome"],
)

SCHEDULE_CONFLICTS_TOTAL = Counter(
    "trainer_scheduler_schedule_conflicts_total",
    "Session writes refused because the trainer was already booked.",
)

AVAILABILITY_RESOLUTIONS_TOTAL = Counter(
    "trainer_scheduler_availability_resolutions_total",
    "Availability resolutions by answer.",
    ["available"],
)

OUTBOX_EVENTS_TOTAL = Counter(
    "trainer_scheduler_outbox_events_total",
    "Outbox events handled by the dispatcher by outcome.",
    ["outcome"],
)


_UUID_SEGMENT = re.compile(r"/[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def path_label(request: Request) -> str:
    """Route template when matched, else the raw path with ids collapsed."""
    route_path = getattr(request.scope.get("route"), "path", None)
    if route_path:
        return str(route_path)
    return _UUID_SEGMENT.sub("/{id}", request.url.path)


def observe_http_request(method: str, path: str, status_code: int, elapsed: float) -> None:
    HTTP_REQUESTS_TOTAL.labels(method=method, path=path, status_code=str(status_code)).inc()
    HTTP_REQUEST_DURATION_SECONDS.labels(method=method, path=path).observe(elapsed)


async def instrument_http_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Middleware body; unhandled errors are counted as 500."""
    started = perf_counter()
    response: Response | None = None
    try:
        response = await call_next(request)
        return response
    finally:
        observe_http_request(
            request.method.upper(),
            path_label(request),
            response.status_code if response is not None else 500,
            perf_counter() - started,
        )


def build_metrics_response() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
