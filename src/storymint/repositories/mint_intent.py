"""MintIntent repository.

Provides data access methods for the minting saga's records. Every status
change is a conditional UPDATE guarded by MINT_INTENT_TRANSITIONS.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storymint.core.timezone import utcnow
from storymint.models.mint_intent import MINT_INTENT_TRANSITIONS, MintIntent, MintIntentStatus


class MintIntentRepository:
    """Repository for MintIntent entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, intent: MintIntent) -> MintIntent:
        """Persist new intent.

        Raises:
            sqlalchemy.exc.IntegrityError: If an intent with the same key exists
        """
        self.session.add(intent)
        await self.session.flush()
        return intent

    async def get_by_key(self, intent_key: str) -> MintIntent | None:
        """Retrieve intent by its idempotency key, reloading from the database."""
        result = await self.session.execute(
            select(MintIntent)
            .where(MintIntent.intent_key == intent_key)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_work(self, work_id: UUID) -> MintIntent | None:
        """Retrieve the intent for a work."""
        result = await self.session.execute(
            select(MintIntent).where(MintIntent.work_id == work_id)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def _transition(self, intent_id: UUID, target: MintIntentStatus, **values) -> bool:
        result = await self.session.execute(
            update(MintIntent)
            .where(
                MintIntent.id == intent_id,  # type: ignore[arg-type]
                MintIntent.status.in_(MINT_INTENT_TRANSITIONS[target]),  # type: ignore[attr-defined]
            )
            .values(status=target, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def mark_submitted(self, intent_id: UUID, tx_hash: str) -> bool:
        """Record the mint transaction hash and move pending -> submitted."""
        if not tx_hash:
            raise ValueError("tx_hash is required")
        return await self._transition(intent_id, MintIntentStatus.SUBMITTED, tx_hash=tx_hash)

    async def mark_confirmed(self, intent_id: UUID, token_id: int) -> bool:
        """Record the minted token and move submitted -> confirmed."""
        return await self._transition(intent_id, MintIntentStatus.CONFIRMED, token_id=token_id)

    async def mark_failed(self, intent_id: UUID) -> bool:
        """Move submitted -> failed."""
        return await self._transition(intent_id, MintIntentStatus.FAILED)
