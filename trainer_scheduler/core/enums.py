"""Core enums used across modules."""

from enum import StrEnum


class SessionStatusEnum(StrEnum):
    """Training session lifecycle status."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


class SessionFormatEnum(StrEnum):
    """How a session is delivered."""

    IN_PERSON = "in-person"
    ONLINE = "online"
    HYBRID = "hybrid"


class AvailabilityRuleTypeEnum(StrEnum):
    """Availability rule variants."""

    REGULAR = "regular"
    EXCEPTION = "exception"
    VACATION = "vacation"
    BLOCKED = "blocked"


class SessionEventTypeEnum(StrEnum):
    """Lifecycle events published after a session write."""

    SESSION_CREATED = "session_created"
    SESSION_UPDATED = "session_updated"
    SESSION_CANCELLED = "session_cancelled"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
