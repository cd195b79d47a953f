"""Blockchain adapter contract used by the minting saga."""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol


class TransactionState(str, Enum):
    """Observed state of a submitted transaction."""

    PENDING = "pending"  # not mined yet
    CONFIRMED = "confirmed"  # mined and succeeded
    REVERTED = "reverted"  # mined and reverted


@dataclass(frozen=True)
class TransactionStatus:
    """Result of a transaction status lookup.

    token_id (a uint256) is only set for confirmed mints whose receipt
    carried a decodable Transfer log.
    """

    state: TransactionState
    token_id: int | None = None
    block_number: int | None = None


class BlockchainAdapter(Protocol):
    """Operations the minting saga needs from the chain.

    Neither call has a timeout of its own; implementations are expected to
    bound their network calls.
    """

    async def submit_mint(self, to_address: str, token_uri: str) -> str:
        """Submit a mint transaction and return its hash without waiting for it.

        Not idempotent: every call sends a new transaction.
        """
        ...

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        """Look up the receipt of a previously submitted transaction."""
        ...
