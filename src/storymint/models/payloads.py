"""Outbox event payload schemas.

Each event type owns one payload schema. Payloads are stored as JSON on the
outbox row and validated against their schema before dispatch.
"""

from typing import ClassVar
from uuid import UUID

from eth_utils.address import to_checksum_address
from pydantic import BaseModel, Field, field_validator

from storymint.models.outbox_event import OutboxEventType
from storymint.services.exceptions import UnknownEventTypeError


class EventPayload(BaseModel):
    """Base class for outbox event payloads."""

    event_type: ClassVar[OutboxEventType]

    def to_json(self) -> dict:
        """Serialize for storage in the outbox payload column."""
        return self.model_dump(mode="json")


class MintRequestedPayload(EventPayload):
    """Payload of a MintRequested event."""

    event_type: ClassVar[OutboxEventType] = OutboxEventType.MINT_REQUESTED

    work_id: UUID
    owner_wallet: str
    metadata_uri: str = Field(min_length=1)
    title: str = ""

    @field_validator("owner_wallet")
    @classmethod
    def validate_owner_wallet(cls, v: str) -> str:
        """Validate and normalize wallet address to checksummed format (EIP-55)."""
        if not v.startswith("0x") or len(v) != 42:
            raise ValueError("Wallet address must be in format 0x followed by 40 hex characters")
        try:
            return to_checksum_address(v)
        except ValueError:
            raise ValueError("Wallet address must contain valid hexadecimal characters")


PAYLOAD_SCHEMAS: dict[str, type[EventPayload]] = {
    OutboxEventType.MINT_REQUESTED.value: MintRequestedPayload,
}


def parse_event_payload(event_type: str, raw: dict) -> EventPayload:
    """Validate a stored payload against the schema registered for its event type.

    Raises:
        UnknownEventTypeError: If no schema is registered for event_type
        pydantic.ValidationError: If the payload does not match the schema
    """
    schema = PAYLOAD_SCHEMAS.get(event_type)
    if schema is None:
        raise UnknownEventTypeError(f"Unknown event type: {event_type}")
    return schema.model_validate(raw)
