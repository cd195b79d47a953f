"""Outbox repository.

Provides the durable queue operations for OutboxEvent entities: enqueue, claim
and finalize. Claiming is a conditional UPDATE (pending -> processing), so when
several workers race for the same row exactly one of them matches it.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storymint.core.timezone import utcnow
from storymint.models.outbox_event import OutboxEvent, OutboxEventStatus, truncate_error


class OutboxEventRepository:
    """Repository for OutboxEvent entities.

    Finalize methods (mark_completed, requeue, mark_failed) only touch events
    that are still in processing, i.e. held by the caller's claim.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def add(self, event: OutboxEvent) -> OutboxEvent:
        """Enqueue a new event.

        Args:
            event: OutboxEvent entity to persist (status pending)

        Returns:
            Persisted event with generated ID
        """
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_by_id(self, event_id: UUID) -> OutboxEvent | None:
        """Retrieve event by UUID, always reloading column values from the database."""
        result = await self.session.execute(
            select(OutboxEvent)
            .where(OutboxEvent.id == event_id)  # type: ignore[arg-type]
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_aggregate(self, aggregate_id: UUID) -> list[OutboxEvent]:
        """Retrieve all events raised for an aggregate (oldest first)."""
        result = await self.session.execute(
            select(OutboxEvent)
            .where(OutboxEvent.aggregate_id == aggregate_id)  # type: ignore[arg-type]
            .order_by(OutboxEvent.created_at.asc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())

    async def get_by_status(
        self, status: OutboxEventStatus, limit: int = 100, offset: int = 0
    ) -> list[OutboxEvent]:
        """Retrieve events by status with pagination (oldest first)."""
        result = await self.session.execute(
            select(OutboxEvent)
            .where(OutboxEvent.status == status)  # type: ignore[arg-type]
            .order_by(OutboxEvent.created_at.asc())  # type: ignore[attr-defined]
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[OutboxEventStatus, int]:
        """Count events per status."""
        result = await self.session.execute(
            select(OutboxEvent.status, func.count(OutboxEvent.id)).group_by(OutboxEvent.status)  # type: ignore[arg-type]
        )
        return {status: count for status, count in result.all()}

    async def claim_next(self) -> OutboxEvent | None:
        """Claim the oldest pending event.

        Query explanation:
        - WHERE status = 'pending': Only unclaimed events
        - ORDER BY created_at ASC: Oldest first
        - FOR UPDATE SKIP LOCKED: Concurrent claimers skip rows another
          transaction is about to claim (ignored on backends without it)

        The candidate is then claimed with try_claim(); a claimer that loses
        the race gets None and simply tries again on its next tick.

        Returns:
            Claimed event (status processing), or None if nothing was claimed
        """
        result = await self.session.execute(
            select(OutboxEvent.id)
            .where(OutboxEvent.status == OutboxEventStatus.PENDING)  # type: ignore[arg-type]
            .order_by(OutboxEvent.created_at.asc())  # type: ignore[attr-defined]
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        candidate_id = result.scalar_one_or_none()
        if candidate_id is None:
            return None
        return await self.try_claim(candidate_id)

    async def try_claim(self, event_id: UUID) -> OutboxEvent | None:
        """Conditionally move one event from pending to processing.

        Args:
            event_id: Event to claim

        Returns:
            The claimed event, or None if it was not pending anymore
        """
        result = await self.session.execute(
            update(OutboxEvent)
            .where(
                OutboxEvent.id == event_id,  # type: ignore[arg-type]
                OutboxEvent.status == OutboxEventStatus.PENDING,  # type: ignore[arg-type]
            )
            .values(status=OutboxEventStatus.PROCESSING, processed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:  # type: ignore[attr-defined]
            return None
        return await self.get_by_id(event_id)

    async def _finalize(self, event_id: UUID, **values) -> bool:
        result = await self.session.execute(
            update(OutboxEvent)
            .where(
                OutboxEvent.id == event_id,  # type: ignore[arg-type]
                OutboxEvent.status == OutboxEventStatus.PROCESSING,  # type: ignore[arg-type]
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def mark_completed(self, event_id: UUID) -> bool:
        """Mark a claimed event as completed."""
        return await self._finalize(event_id, status=OutboxEventStatus.COMPLETED)

    async def requeue(self, event_id: UUID, attempts: int, error_message: str) -> bool:
        """Return a claimed event to pending for a later retry.

        Args:
            event_id: Event to requeue
            attempts: New attempt count (never lower than the stored one)
            error_message: Error description (truncated to 500 characters)
        """
        return await self._finalize(
            event_id,
            status=OutboxEventStatus.PENDING,
            attempts=_monotonic_attempts(attempts),
            last_error=truncate_error(error_message),
        )

    async def mark_failed(self, event_id: UUID, attempts: int, error_message: str) -> bool:
        """Park a claimed event as permanently failed (poisoned).

        Args:
            event_id: Event to park
            attempts: Final attempt count
            error_message: Error description (truncated to 500 characters)
        """
        return await self._finalize(
            event_id,
            status=OutboxEventStatus.FAILED,
            attempts=_monotonic_attempts(attempts),
            last_error=truncate_error(error_message),
        )

    async def requeue_failed(self, event_id: UUID) -> bool:
        """Return a poisoned event to pending (operator intervention).

        The attempt counter is kept as is.
        """
        result = await self.session.execute(
            update(OutboxEvent)
            .where(
                OutboxEvent.id == event_id,  # type: ignore[arg-type]
                OutboxEvent.status == OutboxEventStatus.FAILED,  # type: ignore[arg-type]
            )
            .values(status=OutboxEventStatus.PENDING)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1  # type: ignore[attr-defined]

    async def reclaim_stale(self, claimed_before: datetime) -> int:
        """Return events abandoned in processing to pending.

        An event whose claim is older than claimed_before is assumed to belong
        to a worker that died mid-tick. Attempts are left unchanged.

        Args:
            claimed_before: Claims with processed_at earlier than this are stale

        Returns:
            Number of events reclaimed
        """
        result = await self.session.execute(
            update(OutboxEvent)
            .where(
                OutboxEvent.status == OutboxEventStatus.PROCESSING,  # type: ignore[arg-type]
                OutboxEvent.processed_at < claimed_before,  # type: ignore[operator]
            )
            .values(
                status=OutboxEventStatus.PENDING,
                last_error=truncate_error(
                    f"Reclaimed after processing claim older than {claimed_before.isoformat()}"
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount  # type: ignore[attr-defined]


def _monotonic_attempts(attempts: int):
    """SQL expression keeping the stored attempt counter from ever decreasing."""
    return case((OutboxEvent.attempts > attempts, OutboxEvent.attempts), else_=attempts)  # type: ignore[arg-type]
