"""OutboxEvent entity - durable record of a domain event awaiting processing."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from storymint.core.timezone import utcnow

MAX_ERROR_LENGTH = 500


class OutboxEventType(str, Enum):
    """Known outbox event types."""

    MINT_REQUESTED = "MintRequested"


class OutboxEventStatus(str, Enum):
    """Outbox event processing status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class OutboxEvent(SQLModel, table=True):
    """OutboxEvent is written in the same transaction as the state change that needs it.

    event_type is a plain string rather than an enum column so rows carrying a
    tag this build does not know about can still be loaded (and reported).
    """

    __tablename__ = "outbox_events"  # type: ignore[assignment]
    __table_args__ = (Index("ix_outbox_events_status_created_at", "status", "created_at"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    event_type: str = Field(max_length=100, index=True)
    aggregate_id: UUID = Field(foreign_key="works.id", index=True)
    payload: dict = Field(sa_column=Column(JSON, nullable=False))
    status: OutboxEventStatus = Field(default=OutboxEventStatus.PENDING, index=True)
    attempts: int = Field(default=0, ge=0)
    last_error: Optional[str] = Field(default=None, max_length=MAX_ERROR_LENGTH)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    processed_at: Optional[datetime] = Field(default=None)


def truncate_error(message: str) -> str:
    """Clip error text to the stored column width."""
    return message[:MAX_ERROR_LENGTH]
