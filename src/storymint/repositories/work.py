"""Work repository.

Provides data access methods for Work entities. Status changes are conditional
UPDATEs guarded by the legal source statuses from WORK_TRANSITIONS, so a caller
that lost a race sees zero matched rows instead of overwriting someone else.
"""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storymint.core.timezone import utcnow
from storymint.models.work import WORK_TRANSITIONS, Work, WorkStatus


class WorkRepository:
    """Repository for Work entities."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get_by_id(self, work_id: UUID, refresh: bool = False) -> Work | None:
        """Retrieve work by UUID.

        Args:
            work_id: Work's unique identifier
            refresh: Overwrite any copy already held by the session

        Returns:
            Work if found, None otherwise
        """
        result = await self.session.execute(
            select(Work)
            .where(Work.id == work_id)  # type: ignore[arg-type]
            .execution_options(populate_existing=refresh)
        )
        return result.scalar_one_or_none()

    async def add(self, work: Work) -> Work:
        """Persist new work to database.

        Args:
            work: Work entity to persist

        Returns:
            Persisted work with generated ID
        """
        self.session.add(work)
        await self.session.flush()
        return work

    async def get_by_owner(self, owner_wallet: str, limit: int = 100) -> list[Work]:
        """Retrieve works owned by a wallet (case-insensitive), newest first."""
        result = await self.session.execute(
            select(Work)
            .where(func.lower(Work.owner_wallet) == owner_wallet.lower())
            .order_by(Work.created_at.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        return list(result.scalars().all())

    async def _transition(self, work_id: UUID, target: WorkStatus, *conditions, **values) -> bool:
        """Move a work to target status if it is currently in a legal source status.

        Returns:
            True if exactly one row was updated
        """
        result = await self.session.execute(
            update(Work)
            .where(
                Work.id == work_id,  # type: ignore[arg-type]
                Work.status.in_(WORK_TRANSITIONS[target]),  # type: ignore[attr-defined]
                *conditions,
            )
            .values(status=target, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def mark_publishing(self, work_id: UUID, owner_wallet: str) -> bool:
        """Flip draft -> publishing, matching on id, status and owner.

        Args:
            work_id: Work's unique identifier
            owner_wallet: Caller wallet (compared case-insensitively)

        Returns:
            False if the work is no longer a draft owned by owner_wallet
        """
        return await self._transition(
            work_id,
            WorkStatus.PUBLISHING,
            func.lower(Work.owner_wallet) == owner_wallet.lower(),
        )

    async def mark_minted(self, work_id: UUID, token_id: int, tx_hash: str) -> bool:
        """Flip publishing -> minted and attach the on-chain token."""
        return await self._transition(
            work_id, WorkStatus.MINTED, nft_token_id=token_id, nft_tx_hash=tx_hash
        )

    async def mark_failed(self, work_id: UUID) -> bool:
        """Flip publishing -> failed."""
        return await self._transition(work_id, WorkStatus.FAILED)
