"""Work entity - publishable story with NFT mint status tracking."""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from storymint.core.timezone import utcnow
from storymint.models.types import Uint256


class WorkStatus(str, Enum):
    """Work lifecycle status."""

    DRAFT = "draft"
    PUBLISHING = "publishing"
    MINTED = "minted"
    FAILED = "failed"


# target status -> statuses it may be entered from
WORK_TRANSITIONS: dict[WorkStatus, tuple[WorkStatus, ...]] = {
    WorkStatus.PUBLISHING: (WorkStatus.DRAFT,),
    WorkStatus.MINTED: (WorkStatus.PUBLISHING,),
    WorkStatus.FAILED: (WorkStatus.PUBLISHING,),
}


class Work(SQLModel, table=True):
    """Work is an author's story, published by minting it as an NFT."""

    __tablename__ = "works"  # type: ignore[assignment]

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_wallet: str = Field(max_length=42, index=True)
    title: str = Field(default="", max_length=255)
    status: WorkStatus = Field(default=WorkStatus.DRAFT, index=True)
    metadata_uri: Optional[str] = Field(default=None, max_length=512)
    nft_token_id: Optional[int] = Field(default=None, sa_column=Column(Uint256, nullable=True))
    nft_tx_hash: Optional[str] = Field(default=None, max_length=66)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_owned_by(self, wallet: str) -> bool:
        """Check ownership (wallet addresses compare case-insensitively)."""
        return self.owner_wallet.lower() == wallet.lower()
