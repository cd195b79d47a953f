"""Operator CLI for inspecting and repairing the outbox.

Usage:
    storymint-outbox list [--status STATUS] [--limit N]
    storymint-outbox requeue EVENT_ID
    storymint-outbox reclaim-stale [--older-than SECONDS]

Examples:
    # Show poisoned events
    storymint-outbox list --status failed

    # Give a poisoned event another run (attempt counter is kept)
    storymint-outbox requeue 5b0c6f0e-3a57-4f4e-9d1c-2f8e0b9f7a61

    # Return events stuck in processing for more than 15 minutes to pending
    storymint-outbox reclaim-stale --older-than 900
"""

import asyncio
import sys
from argparse import ArgumentParser, ArgumentTypeError, Namespace
from typing import Sequence
from uuid import UUID

import structlog

from storymint.core import timezone  # noqa: F401
from storymint.core.config import Settings, configure_logging
from storymint.core.database import setup_db_session
from storymint.models.outbox_event import OutboxEventStatus
from storymint.uow import create_uow_factory
from storymint.workers.mint_worker import reclaim_stale_events

logger = structlog.get_logger()


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def parse_args(argv: Sequence[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(description="Inspect and repair the transactional outbox")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List outbox events")
    list_parser.add_argument(
        "--status",
        choices=[s.value for s in OutboxEventStatus],
        help="Only show events with this status (default: counts per status)",
    )
    list_parser.add_argument("--limit", type=int, default=50, help="Maximum rows (default: 50)")

    requeue_parser = subparsers.add_parser("requeue", help="Move a failed event back to pending")
    requeue_parser.add_argument("event_id", type=UUID, help="Outbox event id")

    reclaim_parser = subparsers.add_parser(
        "reclaim-stale", help="Return events abandoned in processing to pending"
    )
    reclaim_parser.add_argument(
        "--older-than",
        type=positive_int,
        default=None,
        help="Claim age in seconds (default: OUTBOX_STALE_AFTER_SECONDS)",
    )

    return parser.parse_args(argv)


async def list_events(uow_factory, status: str | None, limit: int) -> int:
    async with await uow_factory() as uow:
        if status is None:
            counts = await uow.outbox.count_by_status()
            for event_status in OutboxEventStatus:
                print(f"{event_status.value:<12} {counts.get(event_status, 0)}")
            return 0

        events = await uow.outbox.get_by_status(OutboxEventStatus(status), limit=limit)

    for event in events:
        print(
            f"{event.id}  {event.event_type:<16} work={event.aggregate_id} "
            f"attempts={event.attempts} created={event.created_at.isoformat()}"
        )
        if event.last_error:
            print(f"    last_error: {event.last_error}")
    print(f"\n{len(events)} event(s) with status {status}")
    return 0


async def requeue_event(uow_factory, event_id: UUID) -> int:
    async with await uow_factory() as uow:
        requeued = await uow.outbox.requeue_failed(event_id)

    if not requeued:
        logger.warning("cli.requeue_skipped", event_id=str(event_id))
        print(f"Error: event {event_id} not found or not in failed status", file=sys.stderr)
        return 1

    logger.info("cli.event_requeued", event_id=str(event_id))
    print(f"Event {event_id} moved back to pending")
    return 0


async def async_main(argv: Sequence[str] | None = None, uow_factory=None) -> int:
    """Main CLI entry point (async).

    Args:
        argv: Command-line arguments (defaults to sys.argv)
        uow_factory: UnitOfWork factory (built from settings when omitted)

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    args = parse_args(argv)

    settings = Settings()  # type: ignore[call-arg]

    if args.verbose:
        settings.log_level = "DEBUG"

    configure_logging(settings)

    if uow_factory is None:
        session_factory = setup_db_session(settings.database_url, pool_size=1)
        uow_factory = create_uow_factory(session_factory)

    try:
        if args.command == "list":
            return await list_events(uow_factory, args.status, args.limit)

        if args.command == "requeue":
            return await requeue_event(uow_factory, args.event_id)

        older_than = args.older_than
        if older_than is None:
            older_than = settings.outbox_stale_after_seconds
        reclaimed = await reclaim_stale_events(uow_factory, older_than)
        print(f"Reclaimed {reclaimed} stale event(s) older than {older_than}s")
        return 0

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        logger.error(
            "cli.unexpected_error",
            command=args.command,
            error=str(e),
            error_type=type(e).__name__,
        )
        print(f"\nUnexpected error: {e}", file=sys.stderr)
        return 1


def main() -> None:
    """Synchronous entry point for CLI."""
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
