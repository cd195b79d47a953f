"""Publish transaction for works.

Publishing flips a draft work to publishing and enqueues exactly one
MintRequested outbox event in the same database transaction. Either both
writes commit or neither does: the mint worker never sees an event without
the matching status flip, and a publishing work always has its event.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from storymint.models.outbox_event import OutboxEvent, OutboxEventType
from storymint.models.payloads import MintRequestedPayload
from storymint.models.work import WorkStatus
from storymint.services.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from storymint.uow import UnitOfWork

logger = structlog.get_logger()


@dataclass(frozen=True)
class Caller:
    """Identity of the authenticated caller, as established by the auth layer."""

    wallet: str | None = None


@dataclass(frozen=True)
class PublishResult:
    """Successful publish outcome."""

    work_id: UUID
    event_id: UUID
    ok: bool = True


def parse_work_id(work_id: str | UUID | None) -> UUID:
    """Parse a work id from caller input.

    Raises:
        ValidationError: If the id is missing or not a UUID
    """
    if isinstance(work_id, UUID):
        return work_id
    if not work_id:
        raise ValidationError("Invalid or missing work id")
    try:
        return UUID(str(work_id))
    except ValueError:
        raise ValidationError(f"Invalid or missing work id: {work_id!r}")


async def publish_work(
    uow_factory: Callable[[], Awaitable[UnitOfWork]],
    work_id: str | UUID | None,
    caller: Caller | None,
) -> PublishResult:
    """Publish a draft work and request its mint.

    Preconditions are checked in order, each with its own error:
    unauthenticated caller, malformed id, missing work, foreign owner,
    non-draft status. The status flip itself is conditional (id, draft,
    owner), so a concurrent publisher that got there first yields a
    ConflictError. A work without a metadata URI is rejected after the flip,
    which rolls the flip back.

    Args:
        uow_factory: Factory producing UnitOfWork instances
        work_id: Work to publish
        caller: Authenticated caller (None when unauthenticated)

    Returns:
        PublishResult with the id of the enqueued event

    Raises:
        UnauthorizedError, ValidationError, NotFoundError, ForbiddenError,
        ConflictError: Nothing is written in any of these cases
    """
    if caller is None or not caller.wallet:
        raise UnauthorizedError("Unauthorized: Wallet not connected")

    parsed_id = parse_work_id(work_id)

    async with await uow_factory() as uow:
        work = await uow.works.get_by_id(parsed_id)
        if work is None:
            raise NotFoundError(f"Work {parsed_id} not found")

        if not work.is_owned_by(caller.wallet):
            raise ForbiddenError("Forbidden: You do not own this work")

        if work.status != WorkStatus.DRAFT:
            raise ConflictError(f"Work is already {work.status.value}")

        if not await uow.works.mark_publishing(parsed_id, caller.wallet):
            raise ConflictError("Conflict: Work was modified by another process")

        work = await uow.works.get_by_id(parsed_id, refresh=True)
        if work is None or not work.metadata_uri:
            raise ValidationError("Validation Error: Work missing metadata URI")

        try:
            payload = MintRequestedPayload(
                work_id=work.id,
                owner_wallet=work.owner_wallet,
                metadata_uri=work.metadata_uri,
                title=work.title,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Validation Error: Invalid mint request: {e}") from e

        event = await uow.outbox.add(
            OutboxEvent(
                event_type=OutboxEventType.MINT_REQUESTED.value,
                aggregate_id=work.id,
                payload=payload.to_json(),
            )
        )
        event_id = event.id

    logger.info(
        "work.publish_requested",
        work_id=str(parsed_id),
        event_id=str(event_id),
        owner_wallet=caller.wallet,
    )
    return PublishResult(work_id=parsed_id, event_id=event_id)
