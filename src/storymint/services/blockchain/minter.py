"""Mint authority service for StoryNFT mint operations on blockchain.

web3 RPC round-trips are blocking and run in a worker thread (asyncio.to_thread).
"""

import asyncio
from typing import Tuple

import structlog
from eth_account import Account
from web3 import Web3
from web3.exceptions import TransactionNotFound
from web3.logs import DISCARD

from storymint.abi import get_contract_abi
from storymint.core.config import Settings
from storymint.services.blockchain.adapter import TransactionState, TransactionStatus
from storymint.services.exceptions import (
    AdapterConfigurationError,
    MintSubmissionError,
    TransactionLookupError,
)

logger = structlog.get_logger()


class Web3MintAdapter:
    """Blockchain adapter that mints StoryNFT tokens from the mint authority wallet."""

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        mint_authority_private_key: str,
        gas_buffer_percentage: float = 0.20,
    ):
        """
        Initialize mint adapter.

        Args:
            w3: Web3 instance connected to the target chain
            contract_address: StoryNFT contract address
            mint_authority_private_key: Private key allowed to call safeMint (0x-prefixed hex)
            gas_buffer_percentage: Safety buffer for gas estimation (default: 0.20 = 20%)

        Raises:
            AdapterConfigurationError: Contract address or private key is invalid
        """
        if not contract_address or not Web3.is_address(contract_address):
            raise AdapterConfigurationError(
                f"Blockchain Config Error: Invalid contract address format '{contract_address}'"
            )
        if not mint_authority_private_key:
            raise AdapterConfigurationError(
                "Blockchain Config Error: Missing 'MINT_AUTHORITY_PRIVATE_KEY'"
            )

        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.mint_authority_private_key = mint_authority_private_key
        self.gas_buffer = 1.0 + gas_buffer_percentage

        self.contract_abi = get_contract_abi()
        self.contract = self.w3.eth.contract(address=self.contract_address, abi=self.contract_abi)

        try:
            self.mint_authority = Account.from_key(mint_authority_private_key)
        except Exception as e:
            raise AdapterConfigurationError(
                f"Blockchain Config Error: Invalid mint authority key: {e}"
            ) from e
        self.mint_authority_address = self.mint_authority.address

        logger.info(
            "minter.initialized",
            mint_authority=self.mint_authority_address,
            contract_address=self.contract_address,
            gas_buffer=self.gas_buffer,
        )

    def _fee_params(self) -> Tuple[int, int]:
        """EIP-1559 (max_fee_per_gas, max_priority_fee_per_gas) with the gas buffer applied."""
        priority_fee = int(self.w3.eth.max_priority_fee * self.gas_buffer)
        base_fee = self.w3.eth.get_block("latest").get("baseFeePerGas", 0)  # type: ignore[arg-type]
        return base_fee * 2 + priority_fee, priority_fee

    def _send_mint(self, recipient: str, token_uri: str) -> Tuple[bytes, int, int]:
        # Blocking RPC round-trips; runs in a worker thread
        mint_call = self.contract.functions.safeMint(recipient, token_uri)
        estimated_gas = mint_call.estimate_gas({"from": self.mint_authority_address})
        gas_limit = int(estimated_gas * self.gas_buffer)
        max_fee_per_gas, max_priority_fee_per_gas = self._fee_params()
        nonce = self.w3.eth.get_transaction_count(self.mint_authority_address, "pending")

        transaction = mint_call.build_transaction(
            {
                "from": self.mint_authority_address,
                "nonce": nonce,
                "gas": gas_limit,
                "maxFeePerGas": max_fee_per_gas,
                "maxPriorityFeePerGas": max_priority_fee_per_gas,
                "chainId": self.w3.eth.chain_id,
            }  # type: ignore[arg-type]
        )
        signed_txn = self.w3.eth.account.sign_transaction(
            transaction, private_key=self.mint_authority_private_key
        )
        return self.w3.eth.send_raw_transaction(signed_txn.raw_transaction), nonce, gas_limit

    async def submit_mint(self, to_address: str, token_uri: str) -> str:
        """
        Submit a safeMint transaction and return its hash immediately.

        Gas is estimated on the same safeMint call that gets signed, so a mint
        that would revert fails here without spending gas.

        Args:
            to_address: Recipient wallet (the work's owner)
            token_uri: Metadata URI of the work

        Returns:
            Transaction hash (0x-prefixed hex string)

        Raises:
            MintSubmissionError: Invalid recipient, gas estimation, signing or send failure
        """
        if not Web3.is_address(to_address):
            raise MintSubmissionError(f"Invalid recipient address: {to_address}")
        recipient = Web3.to_checksum_address(to_address)

        try:
            tx_hash, nonce, gas_limit = await asyncio.to_thread(
                self._send_mint, recipient, token_uri
            )
        except Exception as e:
            logger.error("minter.transaction_submission_failed", error=str(e), to_address=recipient)
            raise MintSubmissionError(f"Blockchain Error: {e}") from e

        tx_hash_hex = Web3.to_hex(tx_hash)
        logger.info(
            "minter.transaction_submitted",
            tx_hash=tx_hash_hex,
            to_address=recipient,
            nonce=nonce,
            gas_limit=gas_limit,
        )
        return tx_hash_hex

    async def get_transaction_status(self, tx_hash: str) -> TransactionStatus:
        """
        Look up a submitted transaction.

        Returns:
            TransactionStatus: pending if not mined yet, reverted if the receipt
            status is 0, confirmed otherwise (with the tokenId of the first
            decodable Transfer log, or None if there is none)

        Raises:
            TransactionLookupError: RPC error while fetching the receipt
        """
        try:
            receipt = await asyncio.to_thread(
                self.w3.eth.get_transaction_receipt, tx_hash  # type: ignore[arg-type]
            )
        except TransactionNotFound:
            return TransactionStatus(state=TransactionState.PENDING)
        except Exception as e:
            logger.error("minter.receipt_lookup_failed", tx_hash=tx_hash, error=str(e))
            raise TransactionLookupError(f"Error checking tx {tx_hash}: {e}") from e

        block_number = receipt["blockNumber"]

        if receipt["status"] != 1:
            logger.warning(
                "minter.transaction_reverted", tx_hash=tx_hash, block_number=block_number
            )
            return TransactionStatus(state=TransactionState.REVERTED, block_number=block_number)

        token_id = None
        transfers = self.contract.events.Transfer().process_receipt(receipt, errors=DISCARD)
        for transfer in transfers:
            token_id = int(transfer["args"]["tokenId"])
            break

        logger.info(
            "minter.transaction_confirmed",
            tx_hash=tx_hash,
            block_number=block_number,
            token_id=token_id,
        )
        return TransactionStatus(
            state=TransactionState.CONFIRMED, token_id=token_id, block_number=block_number
        )


def create_mint_adapter(settings: Settings) -> Web3MintAdapter:
    """Build the web3 mint adapter from settings.

    Raises:
        AdapterConfigurationError: Missing RPC endpoint, key or contract address
    """
    if not settings.mint_rpc_url:
        raise AdapterConfigurationError("Blockchain Config Error: Missing 'MINT_RPC_URL'")

    w3 = Web3(Web3.HTTPProvider(settings.mint_rpc_url))
    return Web3MintAdapter(
        w3=w3,
        contract_address=settings.story_nft_contract_address,
        mint_authority_private_key=settings.mint_authority_private_key,
        gas_buffer_percentage=settings.mint_gas_buffer - 1.0,  # Convert 1.2 -> 0.2
    )
