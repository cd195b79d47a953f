"""MintIntent entity - minting saga record, one per work."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from storymint.core.timezone import utcnow
from storymint.models.types import Uint256


class MintIntentStatus(str, Enum):
    """Minting saga status."""

    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MintIntentStatus.CONFIRMED, MintIntentStatus.FAILED)


# target status -> statuses it may be entered from
MINT_INTENT_TRANSITIONS: dict[MintIntentStatus, tuple[MintIntentStatus, ...]] = {
    MintIntentStatus.SUBMITTED: (MintIntentStatus.PENDING,),
    MintIntentStatus.CONFIRMED: (MintIntentStatus.SUBMITTED,),
    MintIntentStatus.FAILED: (MintIntentStatus.SUBMITTED,),
}


def mint_intent_key(work_id: UUID) -> str:
    """Derive the idempotency key of the mint intent for a work."""
    return f"mint_{work_id}"


class MintIntent(SQLModel, table=True):
    """MintIntent tracks the on-chain mint of a single work.

    intent_key is unique, so concurrent get-or-create calls for the same work
    converge on one row.
    """

    __tablename__ = "mint_intents"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    intent_key: str = Field(max_length=100, unique=True, index=True)
    work_id: UUID = Field(foreign_key="works.id", index=True)
    status: MintIntentStatus = Field(default=MintIntentStatus.PENDING, index=True)
    tx_hash: Optional[str] = Field(default=None, max_length=66)
    token_id: Optional[int] = Field(default=None, sa_column=Column(Uint256, nullable=True))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
