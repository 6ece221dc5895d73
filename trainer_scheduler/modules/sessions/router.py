"""Training sessions API router."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from trainer_scheduler.core.enums import SessionStatusEnum
from trainer_scheduler.modules.sessions.schemas import (
    ConflictCheckRequest,
    SessionCreate,
    SessionRead,
    SessionRescheduleRequest,
    SessionUpdate,
)
from trainer_scheduler.modules.sessions.service import SessionLifecycleManager, get_session_manager
from trainer_scheduler.shared.pagination import Page, PaginationParams, build_page, get_pagination_params

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreate,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> SessionRead:
    """Book a session for a trainer."""
    session_row = await manager.create(payload)
    return SessionRead.model_validate(session_row)


@router.get("", response_model=Page[SessionRead])
async def list_sessions(
    trainer_id: UUID | None = Query(default=None),
    bootcamp_id: UUID | None = Query(default=None),
    status_filter: SessionStatusEnum | None = Query(default=None, alias="status"),
    date_from: datetime | None = Query(default=None),
    date_to: datetime | None = Query(default=None),
    pagination: PaginationParams = Depends(get_pagination_params),
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> Page[SessionRead]:
    """List sessions ordered by start time."""
    items, total = await manager.list_sessions(
        trainer_id=trainer_id,
        bootcamp_id=bootcamp_id,
        status=status_filter,
        date_from=date_from,
        date_to=date_to,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [SessionRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.post("/conflicts", response_model=list[SessionRead])
async def check_conflicts(
    payload: ConflictCheckRequest,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> list[SessionRead]:
    """Return active sessions of the trainer that overlap the interval."""
    conflicts = await manager.check_conflicts(
        payload.trainer_id,
        payload.start_at,
        payload.end_at,
        exclude_session_id=payload.exclude_session_id,
    )
    return [SessionRead.model_validate(item) for item in conflicts]


@router.get("/{session_id}", response_model=SessionRead)
async def get_session(
    session_id: UUID,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> SessionRead:
    return SessionRead.model_validate(await manager.get(session_id))


@router.patch("/{session_id}", response_model=SessionRead)
async def update_session(
    session_id: UUID,
    payload: SessionUpdate,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> SessionRead:
    """Apply a partial update."""
    session_row = await manager.update(session_id, payload)
    return SessionRead.model_validate(session_row)


@router.post("/{session_id}/cancel", response_model=SessionRead)
async def cancel_session(
    session_id: UUID,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> SessionRead:
    return SessionRead.model_validate(await manager.cancel(session_id))


@router.post("/{session_id}/start", response_model=SessionRead)
async def start_session(
    session_id: UUID,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> SessionRead:
    return SessionRead.model_validate(await manager.start(session_id))


@router.post("/{session_id}/complete", response_model=SessionRead)
async def complete_session(
    session_id: UUID,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> SessionRead:
    return SessionRead.model_validate(await manager.complete(session_id))


@router.post("/{session_id}/reschedule", response_model=SessionRead, status_code=status.HTTP_201_CREATED)
async def reschedule_session(
    session_id: UUID,
    payload: SessionRescheduleRequest,
    manager: SessionLifecycleManager = Depends(get_session_manager),
) -> SessionRead:
    """Move a session; returns the replacement session."""
    replacement = await manager.reschedule(session_id, payload.start_at, payload.end_at)
    return SessionRead.model_validate(replacement)
