"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from storymint.models.mint_intent import MintIntent, MintIntentStatus, mint_intent_key
from storymint.models.outbox_event import OutboxEvent, OutboxEventStatus, OutboxEventType
from storymint.models.payloads import EventPayload, MintRequestedPayload, parse_event_payload
from storymint.models.work import Work, WorkStatus

__all__ = [
    "Work",
    "WorkStatus",
    "OutboxEvent",
    "OutboxEventStatus",
    "OutboxEventType",
    "MintIntent",
    "MintIntentStatus",
    "mint_intent_key",
    "EventPayload",
    "MintRequestedPayload",
    "parse_event_payload",
]
