"""Availability API router."""

from __future__ import annotations

from datetime import date, time
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from trainer_scheduler.modules.availability.schemas import (
    AvailabilityReplaceRequest,
    AvailabilityResolutionRead,
    AvailabilityRule,
    ResolvedSegmentRead,
)
from trainer_scheduler.modules.availability.service import AvailabilityService, get_availability_service

router = APIRouter(prefix="/trainers/{trainer_id}/availability", tags=["availability"])


@router.put("", response_model=list[AvailabilityRule])
async def replace_availability(
    trainer_id: UUID,
    payload: AvailabilityReplaceRequest,
    service: AvailabilityService = Depends(get_availability_service),
) -> list[AvailabilityRule]:
    """Replace the trainer's full rule set."""
    return await service.replace_rules(trainer_id, payload.rules)


@router.get("", response_model=list[AvailabilityRule])
async def list_availability(
    trainer_id: UUID,
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[AvailabilityRule]:
    """List rules whose date scope overlaps the requested range."""
    return await service.list_rules(trainer_id, date_from=date_from, date_to=date_to)


@router.get("/resolve", response_model=AvailabilityResolutionRead)
async def resolve_availability(
    trainer_id: UUID,
    on_date: date = Query(alias="date"),
    time_start: time = Query(),
    time_end: time = Query(),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResolutionRead:
    """Tell whether the trainer is nominally available in the window."""
    resolution = await service.resolve(trainer_id, on_date, time_start, time_end)
    return AvailabilityResolutionRead(
        available=resolution.available,
        winning_rule=resolution.winning_rule,
        segments=[
            ResolvedSegmentRead(
                on_date=segment.on_date,
                start_minute=segment.start_minute,
                end_minute=segment.end_minute,
                available=segment.available,
                winning_rule_id=segment.winning_rule.id if segment.winning_rule else None,
            )
            for segment in resolution.segments
        ],
    )
