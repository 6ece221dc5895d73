"""Scheduling error hierarchy and its JSON error envelope."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Root of every error the API turns into ``{"error": {...}}``."""

    status_code = 400
    code = "app_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Lookup by id found nothing."""

    status_code = 404
    code = "not_found"


class ConflictException(AppException):
    """Write clashes with stored state."""

    status_code = 409
    code = "conflict"


class BusinessRuleException(AppException):
    """Request is well formed but breaks a scheduling rule."""

    status_code = 422
    code = "business_rule_violation"


class ValidationException(BusinessRuleException):
    """Raised for malformed intervals, missing fields or invalid rule shapes."""

    code = "validation_error"


class SessionNotFoundException(NotFoundException):
    """Raised when a session id does not resolve to a stored session."""

    code = "session_not_found"


class ScheduleConflictException(ConflictException):
    """Raised when a trainer already has active sessions in the interval."""

    code = "schedule_conflict"

    def __init__(self, message: str, conflicts: list | None = None) -> None:
        self.conflicts = list(conflicts or [])
        super().__init__(
            message,
            details={
                "conflicts": [
                    {
                        "id": str(item.id),
                        "title": item.title,
                        "start_at": item.start_at.isoformat(),
                        "end_at": item.end_at.isoformat(),
                        "status": str(item.status),
                    }
                    for item in self.conflicts
                ],
            },
        )


class InvalidSessionTransitionException(ConflictException):
    """Raised when a status change is not allowed by the session state machine."""

    code = "invalid_transition"


class TrainerUnavailableException(BusinessRuleException):
    """Raised when availability rules say the trainer cannot be booked."""

    code = "trainer_unavailable"

    def __init__(self, message: str, winning_rule_id: str | None = None) -> None:
        self.winning_rule_id = winning_rule_id
        super().__init__(message, details={"winning_rule_id": winning_rule_id})


class RepositoryUnavailableException(AppException):
    """Raised when storage times out or the connection fails."""

    status_code = 503
    code = "repository_unavailable"


def _error_body(exc: AppException) -> dict[str, Any]:
    error: dict[str, Any] = {"code": exc.code, "message": exc.message}
    if exc.details is not None:
        error["details"] = exc.details
    return {"error": error}


async def app_exception_handler(_: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc))


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    """Wrap framework HTTP errors in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "http_error", "message": str(exc.detail)}},
    )


async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while serving request: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"error": {"code": "internal_error", "message": "Internal server error"}},
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
