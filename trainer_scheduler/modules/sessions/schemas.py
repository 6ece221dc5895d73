"""Training session schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from trainer_scheduler.core.enums import SessionFormatEnum, SessionStatusEnum


class SessionCreate(BaseModel):
    """Create session request."""

    trainer_id: UUID
    bootcamp_id: UUID | None = None
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=10000)
    start_at: datetime
    end_at: datetime
    location: str = Field(default="", max_length=255)
    format: SessionFormatEnum = SessionFormatEnum.ONLINE
    meeting_url: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class SessionUpdate(BaseModel):
    """Partial session update; only fields that were sent are applied."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    start_at: datetime | None = None
    end_at: datetime | None = None
    location: str | None = Field(default=None, max_length=255)
    format: SessionFormatEnum | None = None
    meeting_url: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class SessionRescheduleRequest(BaseModel):
    """Move a session to a new interval through a replacement session."""

    start_at: datetime
    end_at: datetime


class ConflictCheckRequest(BaseModel):
    """Ask which active sessions overlap a candidate interval."""

    trainer_id: UUID
    start_at: datetime
    end_at: datetime
    exclude_session_id: UUID | None = None


class SessionRead(BaseModel):
    """Session response schema; also used as the event snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    trainer_id: UUID
    bootcamp_id: UUID | None
    title: str
    description: str
    start_at: datetime
    end_at: datetime
    duration_minutes: int
    location: str
    format: SessionFormatEnum
    status: SessionStatusEnum
    meeting_url: str | None = None
    notes: str | None = None
    rescheduled_from_session_id: UUID | None = None
    created_at: datetime
    updated_at: datetime
