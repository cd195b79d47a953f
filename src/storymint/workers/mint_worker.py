"""Mint worker - drains the outbox and drives minting sagas.

Each tick claims at most one pending outbox event, dispatches it by event type
and finalizes it according to the outcome:

- saga reached (or already was in) a terminal state -> completed
- TransientExternalError (mint not mined yet) -> back to pending, attempts unchanged
- any other error -> attempts + 1; failed once attempts reach the maximum,
  otherwise back to pending
- unknown event type -> logged and left in processing

The worker sleeps a fixed poll interval after every tick. Errors never end
the loop; only cancellation or the stop event does.
"""

import asyncio
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError

from storymint.core.config import Settings
from storymint.core.timezone import utcnow
from storymint.models.outbox_event import OutboxEvent
from storymint.models.payloads import MintRequestedPayload, parse_event_payload
from storymint.services.blockchain.adapter import BlockchainAdapter
from storymint.services.blockchain.minter import create_mint_adapter
from storymint.services.exceptions import (
    StoreUnavailableError,
    TransientExternalError,
    UnknownEventTypeError,
)
from storymint.services.minting_saga import MintingSaga
from storymint.uow import UnitOfWork, create_uow_factory

logger = structlog.get_logger()

UowFactory = Callable[[], Awaitable[UnitOfWork]]


class TickOutcome(str, Enum):
    """What a single worker tick did."""

    IDLE = "idle"
    COMPLETED = "completed"
    REQUEUED_TRANSIENT = "requeued_transient"
    REQUEUED = "requeued"
    FAILED = "failed"
    UNRESOLVED = "unresolved"


async def claim_event(uow_factory: UowFactory) -> OutboxEvent | None:
    """Claim the oldest pending event in its own transaction.

    Raises:
        StoreUnavailableError: The outbox store could not be reached
    """
    try:
        async with await uow_factory() as uow:
            return await uow.outbox.claim_next()
    except (SQLAlchemyError, OSError) as e:
        raise StoreUnavailableError(f"Failed to claim from outbox: {e}") from e


async def dispatch_event(event: OutboxEvent, saga: MintingSaga) -> None:
    """Route a claimed event to its handler.

    Raises:
        UnknownEventTypeError: No handler for the event type
        Exception: Whatever the handler raises
    """
    payload = parse_event_payload(event.event_type, event.payload)

    if isinstance(payload, MintRequestedPayload):
        await saga.run(payload)
        return

    raise UnknownEventTypeError(f"No handler for event type: {event.event_type}")


async def finalize_completed(uow_factory: UowFactory, event_id: UUID) -> None:
    async with await uow_factory() as uow:
        await uow.outbox.mark_completed(event_id)


async def finalize_failure(
    uow_factory: UowFactory,
    event: OutboxEvent,
    error: Exception,
    max_attempts: int,
) -> TickOutcome:
    """Record a failed processing attempt.

    Transient errors requeue without touching the attempt counter. Anything
    else counts one attempt and poisons the event at max_attempts.
    """
    error_message = str(error) or type(error).__name__

    if isinstance(error, TransientExternalError):
        async with await uow_factory() as uow:
            await uow.outbox.requeue(event.id, event.attempts, error_message)
        logger.info("outbox.waiting", event_id=str(event.id), message=error_message)
        return TickOutcome.REQUEUED_TRANSIENT

    attempts = event.attempts + 1

    if attempts >= max_attempts:
        async with await uow_factory() as uow:
            await uow.outbox.mark_failed(event.id, attempts, error_message)
        logger.error(
            "outbox.event_poisoned",
            event_id=str(event.id),
            event_type=event.event_type,
            attempts=attempts,
            error_type=type(error).__name__,
            error_message=error_message,
            message="Retry budget exhausted - manual intervention required",
        )
        return TickOutcome.FAILED

    async with await uow_factory() as uow:
        await uow.outbox.requeue(event.id, attempts, error_message)
    logger.warning(
        "outbox.retry",
        event_id=str(event.id),
        event_type=event.event_type,
        attempts=attempts,
        max_attempts=max_attempts,
        error_type=type(error).__name__,
        error_message=error_message,
    )
    return TickOutcome.REQUEUED


async def process_next_event(
    uow_factory: UowFactory,
    saga: MintingSaga,
    settings: Settings,
) -> TickOutcome:
    """Run one worker tick.

    Args:
        uow_factory: Factory producing UnitOfWork instances
        saga: Minting saga handling MintRequested events
        settings: Application settings (retry budget)

    Returns:
        TickOutcome describing what happened to the claimed event

    Raises:
        StoreUnavailableError: Claiming failed (nothing was claimed)
    """
    event = await claim_event(uow_factory)
    if event is None:
        return TickOutcome.IDLE

    logger.info(
        "outbox.claimed",
        event_id=str(event.id),
        event_type=event.event_type,
        aggregate_id=str(event.aggregate_id),
        attempts=event.attempts,
    )

    try:
        await dispatch_event(event, saga)
    except asyncio.CancelledError:
        raise
    except UnknownEventTypeError as e:
        logger.warning(
            "outbox.unknown_event_type",
            event_id=str(event.id),
            event_type=event.event_type,
            error_message=str(e),
            message="Event left in processing",
        )
        return TickOutcome.UNRESOLVED
    except Exception as e:
        return await finalize_failure(uow_factory, event, e, settings.outbox_max_attempts)

    await finalize_completed(uow_factory, event.id)
    logger.info("outbox.completed", event_id=str(event.id), event_type=event.event_type)
    return TickOutcome.COMPLETED


async def reclaim_stale_events(uow_factory: UowFactory, stale_after_seconds: int) -> int:
    """Return events abandoned in processing by a dead worker to pending.

    Args:
        uow_factory: Factory producing UnitOfWork instances
        stale_after_seconds: Minimum claim age for an event to count as abandoned

    Returns:
        Number of events reclaimed
    """
    claimed_before = utcnow() - timedelta(seconds=stale_after_seconds)
    async with await uow_factory() as uow:
        reclaimed = await uow.outbox.reclaim_stale(claimed_before)

    if reclaimed > 0:
        logger.warning(
            "worker.recovery",
            stale_events_reclaimed=reclaimed,
            claimed_before=claimed_before.isoformat(),
        )
    return reclaimed


async def run_mint_worker(
    session_factory: Callable,
    settings: Settings,
    adapter: BlockchainAdapter | None = None,
    stop_event: asyncio.Event | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> None:
    """Main entry point for the mint worker.

    Worker lifecycle:
    - Builds the blockchain adapter (configuration errors abort startup)
    - Reclaims stale processing events left by crashed workers
    - Ticks until stop_event is set or the task is cancelled

    Args:
        session_factory: Factory function to create new database sessions
        settings: Application settings (poll interval, retry budget, adapter config)
        adapter: Blockchain adapter (built from settings when omitted)
        stop_event: Set to stop the loop after the current tick
        sleep: Delay function used between ticks
    """
    uow_factory = create_uow_factory(session_factory)
    if adapter is None:
        adapter = create_mint_adapter(settings)
    saga = MintingSaga(uow_factory, adapter)
    stop_event = stop_event or asyncio.Event()

    try:
        await reclaim_stale_events(uow_factory, settings.outbox_stale_after_seconds)
    except Exception as e:
        logger.error(
            "worker.recovery_error",
            error=str(e),
            message="Stale event recovery failed, continuing with worker startup",
        )

    logger.info(
        "worker.started",
        worker="mint_worker",
        poll_interval=settings.poll_interval_seconds,
        max_attempts=settings.outbox_max_attempts,
    )

    try:
        while not stop_event.is_set():
            try:
                await process_next_event(uow_factory, saga, settings)

            except asyncio.CancelledError:
                raise

            except StoreUnavailableError as e:
                logger.error("outbox.claim_failed", error=str(e))

            except Exception as e:
                logger.error(
                    "worker.error",
                    worker_type="mint_worker",
                    error_type=type(e).__name__,
                    error_message=str(e),
                    exc_info=True,
                )

            await sleep(settings.poll_interval_seconds)

    except asyncio.CancelledError:
        logger.info("worker.stopped", worker="mint_worker", message="Graceful shutdown requested")
        raise

    logger.info("worker.stopped", worker="mint_worker", message="Stop requested")
