"""Minting saga - drives the on-chain mint of a published work to a final outcome.

The saga keeps its progress in a MintIntent row keyed by the work id, so every
delivery of the same MintRequested event resumes the same record:

    pending   -> submit the mint, store the tx hash, move to submitted
    submitted -> look the tx up:
                   no receipt yet -> TransactionPendingError (nothing changes)
                   succeeded      -> confirmed, work minted
                   reverted       -> failed, work failed, TransactionRevertError
    confirmed / failed -> nothing to do

Each step is its own short transaction; no database transaction is held open
across a blockchain call.

Known gap: if the process dies after submit_mint() returned but before the
submitted state was committed, the next delivery finds the intent still
pending and submits a second mint. There is no on-chain lookup of earlier
submissions before resubmitting.
"""

from typing import Awaitable, Callable
from uuid import UUID

import structlog
from sqlalchemy.exc import IntegrityError

from storymint.models.mint_intent import MintIntent, MintIntentStatus, mint_intent_key
from storymint.models.payloads import MintRequestedPayload
from storymint.services.blockchain.adapter import BlockchainAdapter, TransactionState
from storymint.services.exceptions import (
    MintSagaError,
    MissingTokenIdError,
    TransactionPendingError,
    TransactionRevertError,
)
from storymint.uow import UnitOfWork

logger = structlog.get_logger()


class MintingSaga:
    """Per-work state machine around the blockchain adapter."""

    def __init__(
        self,
        uow_factory: Callable[[], Awaitable[UnitOfWork]],
        adapter: BlockchainAdapter,
    ):
        """
        Args:
            uow_factory: Factory producing UnitOfWork instances
            adapter: Blockchain adapter used to submit and track the mint
        """
        self.uow_factory = uow_factory
        self.adapter = adapter

    async def get_or_create_intent(self, work_id: UUID) -> MintIntent:
        """Load the intent for a work, creating it on first use.

        Two workers racing here both end up with the same row: the loser's
        insert violates the unique intent_key and it re-reads the winner's.
        """
        key = mint_intent_key(work_id)

        async with await self.uow_factory() as uow:
            intent = await uow.mint_intents.get_by_key(key)
        if intent is not None:
            return intent

        try:
            async with await self.uow_factory() as uow:
                intent = await uow.mint_intents.add(MintIntent(intent_key=key, work_id=work_id))
            logger.info("saga.intent_created", intent_key=key, work_id=str(work_id))
            return intent
        except IntegrityError:
            logger.info("saga.intent_create_raced", intent_key=key)

        async with await self.uow_factory() as uow:
            intent = await uow.mint_intents.get_by_key(key)
        if intent is None:
            raise MintSagaError(f"Mint intent {key} vanished after a duplicate insert")
        return intent

    async def _reload(self, intent: MintIntent) -> MintIntent:
        async with await self.uow_factory() as uow:
            reloaded = await uow.mint_intents.get_by_key(intent.intent_key)
        if reloaded is None:
            raise MintSagaError(f"Mint intent {intent.intent_key} not found")
        return reloaded

    async def run(self, payload: MintRequestedPayload) -> MintIntent:
        """Advance the saga for one work as far as it can go right now.

        Args:
            payload: Validated MintRequested payload

        Returns:
            The intent in a terminal state (confirmed, or failed from an
            earlier delivery)

        Raises:
            TransactionPendingError: Mint submitted but not mined yet
            TransactionRevertError: Mint reverted (intent and work marked failed)
            MissingTokenIdError: Mint succeeded but no token id could be decoded
            MintSagaError: Intent record is inconsistent
            MintSubmissionError, TransactionLookupError: Adapter faults
        """
        intent = await self.get_or_create_intent(payload.work_id)
        log = logger.bind(intent_key=intent.intent_key, work_id=str(payload.work_id))

        if intent.status.is_terminal:
            log.info("saga.already_terminal", status=intent.status.value)
            return intent

        if intent.status == MintIntentStatus.PENDING:
            intent = await self._submit(intent, payload, log)

        if intent.status == MintIntentStatus.SUBMITTED:
            intent = await self._confirm(intent, log)

        return intent

    async def _submit(self, intent: MintIntent, payload: MintRequestedPayload, log) -> MintIntent:
        log.info("saga.mint_submitting", owner_wallet=payload.owner_wallet)
        tx_hash = await self.adapter.submit_mint(payload.owner_wallet, payload.metadata_uri)

        async with await self.uow_factory() as uow:
            advanced = await uow.mint_intents.mark_submitted(intent.id, tx_hash)

        if advanced:
            log.info("saga.mint_submitted", tx_hash=tx_hash)
        else:
            log.warning("saga.submit_state_lost", tx_hash=tx_hash)
        return await self._reload(intent)

    async def _confirm(self, intent: MintIntent, log) -> MintIntent:
        if not intent.tx_hash:
            raise MintSagaError("Missing tx hash in submitted state")

        status = await self.adapter.get_transaction_status(intent.tx_hash)

        if status.state == TransactionState.PENDING:
            raise TransactionPendingError(
                f"Transaction still pending (Block: {status.block_number or 'mempool'})"
            )

        if status.state == TransactionState.REVERTED:
            async with await self.uow_factory() as uow:
                await uow.mint_intents.mark_failed(intent.id)
                work_updated = await uow.works.mark_failed(intent.work_id)
            log.error(
                "saga.mint_reverted",
                tx_hash=intent.tx_hash,
                block_number=status.block_number,
                work_updated=work_updated,
            )
            raise TransactionRevertError(f"Transaction reverted on-chain: {intent.tx_hash}")

        if status.token_id is None:
            raise MissingTokenIdError(
                f"Transaction {intent.tx_hash} succeeded but no Transfer log could be decoded"
            )

        async with await self.uow_factory() as uow:
            await uow.mint_intents.mark_confirmed(intent.id, status.token_id)
            work_updated = await uow.works.mark_minted(
                intent.work_id, token_id=status.token_id, tx_hash=intent.tx_hash
            )

        if work_updated:
            log.info("saga.mint_confirmed", tx_hash=intent.tx_hash, token_id=status.token_id)
        else:
            log.warning(
                "saga.work_not_publishing",
                tx_hash=intent.tx_hash,
                token_id=status.token_id,
                message="Intent confirmed but work was not in publishing state",
            )
        return await self._reload(intent)
