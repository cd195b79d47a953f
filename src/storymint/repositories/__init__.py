"""Repository layer.

Provides data access abstractions for all domain entities.
No base classes - each repository is self-contained.
"""

from storymint.repositories.mint_intent import MintIntentRepository
from storymint.repositories.outbox import OutboxEventRepository
from storymint.repositories.work import WorkRepository

__all__ = [
    "WorkRepository",
    "OutboxEventRepository",
    "MintIntentRepository",
]
