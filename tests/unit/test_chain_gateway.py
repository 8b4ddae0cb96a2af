"""Unit tests for Web3ChainGateway with a mocked AsyncWeb3."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from pakchain.config.constants import MAX_GAS_PRICE_GWEI
from pakchain.services.blockchain.chain_gateway import Web3ChainGateway
from pakchain.utils.exceptions import InvalidConfiguration


TEST_KEY = "0x" + "4c" * 32
CHAIN_ID = 11155111


async def resolved(value):
    return value


@pytest.fixture
def web3():
    mock = MagicMock()
    mock.eth.get_transaction = AsyncMock()
    mock.eth.get_transaction_receipt = AsyncMock()
    mock.eth.get_block = AsyncMock()
    mock.eth.get_transaction_count = AsyncMock(return_value=7)
    mock.eth.send_raw_transaction = AsyncMock(return_value=b"\xab" * 32)
    mock.eth.wait_for_transaction_receipt = AsyncMock()
    return mock


@pytest.fixture
def gateway(web3):
    return Web3ChainGateway(web3, CHAIN_ID, private_key=TEST_KEY)


class TestSubmitTransfer:
    """Signing and broadcasting."""

    @pytest.mark.asyncio
    async def test_returns_lowercase_hash(self, gateway, web3):
        web3.eth.gas_price = resolved(Web3.to_wei(5, "gwei"))

        tx_hash = await gateway.submit_transfer("0x" + "A" * 40, 10**18)

        assert tx_hash == "0x" + "ab" * 32
        web3.eth.send_raw_transaction.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_uses_pending_nonce(self, gateway, web3):
        web3.eth.gas_price = resolved(Web3.to_wei(5, "gwei"))

        await gateway.submit_transfer("0x" + "a" * 40, 1)

        web3.eth.get_transaction_count.assert_awaited_once_with(
            Account.from_key(TEST_KEY).address, "pending"
        )

    @pytest.mark.asyncio
    async def test_read_only_gateway_cannot_submit(self, web3):
        gateway = Web3ChainGateway(web3, CHAIN_ID)

        with pytest.raises(InvalidConfiguration):
            await gateway.submit_transfer("0x" + "a" * 40, 1)

        web3.eth.send_raw_transaction.assert_not_awaited()

    def test_signer_address(self, gateway, web3):
        assert gateway.signer_address == Account.from_key(TEST_KEY).address
        assert Web3ChainGateway(web3, CHAIN_ID).signer_address is None


class TestGasPrice:
    """Gas price capping."""

    @pytest.mark.asyncio
    async def test_price_below_cap_kept(self, gateway, web3):
        web3.eth.gas_price = resolved(Web3.to_wei(3, "gwei"))

        assert await gateway._get_gas_price() == Web3.to_wei(3, "gwei")

    @pytest.mark.asyncio
    async def test_price_above_cap_capped(self, gateway, web3):
        web3.eth.gas_price = resolved(Web3.to_wei(MAX_GAS_PRICE_GWEI * 10, "gwei"))

        assert await gateway._get_gas_price() == Web3.to_wei(
            MAX_GAS_PRICE_GWEI, "gwei"
        )


class TestReads:
    """Read calls and error mapping."""

    @pytest.mark.asyncio
    async def test_unknown_transaction_is_none(
        self, gateway, web3, sample_transaction_hash
    ):
        web3.eth.get_transaction.side_effect = TransactionNotFound("not found")

        assert await gateway.get_transaction(sample_transaction_hash) is None

    @pytest.mark.asyncio
    async def test_missing_receipt_is_none(
        self, gateway, web3, sample_transaction_hash
    ):
        web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("nope")

        assert await gateway.get_transaction_receipt(sample_transaction_hash) is None

    @pytest.mark.asyncio
    async def test_transaction_returned(self, gateway, web3, sample_transaction_hash):
        web3.eth.get_transaction.return_value = {"to": "0x" + "a" * 40, "value": 1}

        tx = await gateway.get_transaction(sample_transaction_hash)

        assert tx["value"] == 1

    @pytest.mark.asyncio
    async def test_inclusion_timeout(self, gateway, web3, sample_transaction_hash):
        web3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("slow")

        with pytest.raises(TimeoutError):
            await gateway.await_inclusion(sample_transaction_hash, timeout=1.0)

    @pytest.mark.asyncio
    async def test_inclusion_returns_receipt(
        self, gateway, web3, sample_transaction_hash
    ):
        web3.eth.wait_for_transaction_receipt.return_value = {
            "status": 1, "blockNumber": 10,
        }

        receipt = await gateway.await_inclusion(sample_transaction_hash, timeout=1.0)

        assert receipt["blockNumber"] == 10


class TestEnsureChain:
    """Chain id binding."""

    @pytest.mark.asyncio
    async def test_matching_chain(self, gateway, web3):
        web3.eth.chain_id = resolved(CHAIN_ID)

        await gateway.ensure_chain()

    @pytest.mark.asyncio
    async def test_mismatched_chain(self, gateway, web3):
        web3.eth.chain_id = resolved(1)

        with pytest.raises(InvalidConfiguration):
            await gateway.ensure_chain()
