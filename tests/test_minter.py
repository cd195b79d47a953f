"""Web3 mint adapter tests with mocked Web3.

Tests cover:
- Configuration validation at construction
- submit_mint() builds, signs and sends an EIP-1559 safeMint transaction
- get_transaction_status() maps receipts to pending/confirmed/reverted
- RPC calls do not block the event loop
"""

import asyncio
import threading
from unittest.mock import Mock

import pytest
from web3 import Web3
from web3.exceptions import TransactionNotFound

from storymint.core.config import Settings
from storymint.services.blockchain.adapter import TransactionState
from storymint.services.blockchain.minter import Web3MintAdapter, create_mint_adapter
from storymint.services.exceptions import (
    AdapterConfigurationError,
    MintSubmissionError,
    TransactionLookupError,
)

CONTRACT_ADDRESS = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
PRIVATE_KEY = "0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"
RECIPIENT = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
TOKEN_URI = "ipfs://bafkreib3lqzd5x2x4r7cyo5mdnkt2yfvxeyjo2n5oewp6i3u3hgz6r6bfe"


@pytest.fixture
def mock_w3():
    w3 = Mock()
    w3.eth.max_priority_fee = 2_000_000
    w3.eth.get_block.return_value = {"baseFeePerGas": 10_000_000}
    w3.eth.get_transaction_count.return_value = 7
    w3.eth.chain_id = 84532
    w3.eth.send_raw_transaction.return_value = bytes.fromhex("11" * 32)
    return w3


@pytest.fixture
def adapter(mock_w3):
    adapter = Web3MintAdapter(
        w3=mock_w3,
        contract_address=CONTRACT_ADDRESS,
        mint_authority_private_key=PRIVATE_KEY,
    )
    safe_mint = adapter.contract.functions.safeMint.return_value
    safe_mint.estimate_gas.return_value = 100_000
    safe_mint.build_transaction.return_value = {"to": CONTRACT_ADDRESS, "data": "0x"}
    return adapter


def test_rejects_invalid_contract_address(mock_w3):
    with pytest.raises(AdapterConfigurationError, match="Invalid contract address"):
        Web3MintAdapter(
            w3=mock_w3, contract_address="0x123", mint_authority_private_key=PRIVATE_KEY
        )


def test_rejects_missing_private_key(mock_w3):
    with pytest.raises(AdapterConfigurationError, match="MINT_AUTHORITY_PRIVATE_KEY"):
        Web3MintAdapter(
            w3=mock_w3, contract_address=CONTRACT_ADDRESS, mint_authority_private_key=""
        )


def test_rejects_malformed_private_key(mock_w3):
    with pytest.raises(AdapterConfigurationError, match="Invalid mint authority key"):
        Web3MintAdapter(
            w3=mock_w3, contract_address=CONTRACT_ADDRESS, mint_authority_private_key="0xzz"
        )


def test_create_mint_adapter_requires_rpc_url():
    settings = Settings(DATABASE_URL="sqlite+aiosqlite:///unused.db", APP_ENV="test")

    with pytest.raises(AdapterConfigurationError, match="MINT_RPC_URL"):
        create_mint_adapter(settings)


@pytest.mark.asyncio
async def test_submit_mint_signs_and_sends(adapter, mock_w3):
    tx_hash = await adapter.submit_mint(RECIPIENT, TOKEN_URI)

    assert tx_hash == "0x" + "11" * 32

    adapter.contract.functions.safeMint.assert_called_with(
        Web3.to_checksum_address(RECIPIENT), TOKEN_URI
    )

    safe_mint = adapter.contract.functions.safeMint.return_value
    tx_params = safe_mint.build_transaction.call_args.args[0]
    assert tx_params["from"] == adapter.mint_authority_address
    assert tx_params["nonce"] == 7
    assert tx_params["gas"] == 120_000
    assert tx_params["maxPriorityFeePerGas"] == 2_400_000
    assert tx_params["maxFeePerGas"] == 2 * 10_000_000 + 2_400_000
    assert tx_params["chainId"] == 84532

    mock_w3.eth.get_transaction_count.assert_called_once_with(
        adapter.mint_authority_address, "pending"
    )
    sign_kwargs = mock_w3.eth.account.sign_transaction.call_args.kwargs
    assert sign_kwargs["private_key"] == PRIVATE_KEY
    mock_w3.eth.send_raw_transaction.assert_called_once()


@pytest.mark.asyncio
async def test_submit_mint_rejects_invalid_recipient(adapter, mock_w3):
    with pytest.raises(MintSubmissionError, match="Invalid recipient"):
        await adapter.submit_mint("not-an-address", TOKEN_URI)

    mock_w3.eth.send_raw_transaction.assert_not_called()


@pytest.mark.asyncio
async def test_submit_mint_wraps_gas_estimation_failure(adapter, mock_w3):
    safe_mint = adapter.contract.functions.safeMint.return_value
    safe_mint.estimate_gas.side_effect = ValueError("insufficient funds for gas * price + value")

    with pytest.raises(MintSubmissionError, match="insufficient funds"):
        await adapter.submit_mint(RECIPIENT, TOKEN_URI)

    mock_w3.eth.send_raw_transaction.assert_not_called()


@pytest.mark.asyncio
async def test_submit_mint_wraps_send_failure(adapter, mock_w3):
    mock_w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

    with pytest.raises(MintSubmissionError, match="nonce too low"):
        await adapter.submit_mint(RECIPIENT, TOKEN_URI)


@pytest.mark.asyncio
async def test_status_pending_without_receipt(adapter, mock_w3):
    mock_w3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")

    status = await adapter.get_transaction_status("0x" + "11" * 32)

    assert status.state == TransactionState.PENDING
    assert status.token_id is None


@pytest.mark.asyncio
async def test_status_confirmed_with_token_id(adapter, mock_w3):
    receipt = {"status": 1, "blockNumber": 1234}
    mock_w3.eth.get_transaction_receipt.return_value = receipt
    adapter.contract.events.Transfer.return_value.process_receipt.return_value = [
        {"args": {"from": "0x" + "00" * 20, "to": RECIPIENT, "tokenId": 42}}
    ]

    status = await adapter.get_transaction_status("0x" + "11" * 32)

    assert status.state == TransactionState.CONFIRMED
    assert status.token_id == 42
    assert status.block_number == 1234


@pytest.mark.asyncio
async def test_status_confirmed_with_uint256_token_id(adapter, mock_w3):
    mock_w3.eth.get_transaction_receipt.return_value = {"status": 1, "blockNumber": 1234}
    adapter.contract.events.Transfer.return_value.process_receipt.return_value = [
        {"args": {"from": "0x" + "00" * 20, "to": RECIPIENT, "tokenId": 2**256 - 1}}
    ]

    status = await adapter.get_transaction_status("0x" + "11" * 32)

    assert status.token_id == 2**256 - 1

@pytest.mark.asyncio
async def test_status_confirmed_without_transfer_log(adapter, mock_w3):
    mock_w3.eth.get_transaction_receipt.return_value = {"status": 1, "blockNumber": 5}
    adapter.contract.events.Transfer.return_value.process_receipt.return_value = []

    status = await adapter.get_transaction_status("0x" + "11" * 32)

    assert status.state == TransactionState.CONFIRMED
    assert status.token_id is None


@pytest.mark.asyncio
async def test_status_reverted(adapter, mock_w3):
    mock_w3.eth.get_transaction_receipt.return_value = {"status": 0, "blockNumber": 99}

    status = await adapter.get_transaction_status("0x" + "11" * 32)

    assert status.state == TransactionState.REVERTED
    assert status.block_number == 99
    adapter.contract.events.Transfer.return_value.process_receipt.assert_not_called()


@pytest.mark.asyncio
async def test_status_lookup_failure(adapter, mock_w3):
    mock_w3.eth.get_transaction_receipt.side_effect = ConnectionError("RPC unreachable")

    with pytest.raises(TransactionLookupError, match="RPC unreachable"):
        await adapter.get_transaction_status("0x" + "11" * 32)


def wait_for_loop(loop_alive: threading.Event, result):
    """Side effect that only returns after the event loop has run other work."""

    def _call(*args, **kwargs):
        if not loop_alive.wait(timeout=5):
            raise TimeoutError("event loop was blocked by the RPC call")
        return result

    return _call


@pytest.mark.asyncio
async def test_status_lookup_does_not_block_event_loop(adapter, mock_w3):
    loop_alive = threading.Event()
    mock_w3.eth.get_transaction_receipt.side_effect = wait_for_loop(
        loop_alive, {"status": 1, "blockNumber": 7}
    )
    adapter.contract.events.Transfer.return_value.process_receipt.return_value = []

    lookup = asyncio.create_task(adapter.get_transaction_status("0x" + "11" * 32))
    await asyncio.sleep(0.05)
    loop_alive.set()

    status = await asyncio.wait_for(lookup, timeout=5)
    assert status.state == TransactionState.CONFIRMED


@pytest.mark.asyncio
async def test_submit_mint_does_not_block_event_loop(adapter, mock_w3):
    loop_alive = threading.Event()
    mock_w3.eth.send_raw_transaction.side_effect = wait_for_loop(
        loop_alive, bytes.fromhex("22" * 32)
    )

    submit = asyncio.create_task(adapter.submit_mint(RECIPIENT, TOKEN_URI))
    await asyncio.sleep(0.05)
    loop_alive.set()

    assert await asyncio.wait_for(submit, timeout=5) == "0x" + "22" * 32
