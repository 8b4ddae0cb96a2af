"""Unit tests for ChainVerifier."""

import pytest

from pakchain.services.blockchain.chain_verifier import (
    ChainVerifier,
    VerificationReason,
)


RECIPIENT = "0x" + "a" * 40
ONE_ETHER = 10**18


@pytest.fixture
def verifier(chain):
    return ChainVerifier(chain)


class TestVerify:
    """Tests for transaction verification."""

    @pytest.mark.asyncio
    async def test_exact_match_verifies(self, chain, verifier):
        tx_hash = chain.add_transaction(
            RECIPIENT, ONE_ETHER, block_number=4242, timestamp=1_700_000_123
        )

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.verified is True
        assert result.block_number == 4242
        assert result.timestamp == 1_700_000_123
        assert result.reason is None

    @pytest.mark.asyncio
    async def test_recipient_compared_case_insensitively(self, chain, verifier):
        tx_hash = chain.add_transaction("0x" + "A" * 40, ONE_ETHER)

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.verified is True

    @pytest.mark.asyncio
    async def test_one_percent_over_verifies(self, chain, verifier):
        tx_hash = chain.add_transaction(RECIPIENT, 1_010_000_000_000_000_000)

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.verified is True

    @pytest.mark.asyncio
    async def test_over_one_percent_fails(self, chain, verifier):
        tx_hash = chain.add_transaction(RECIPIENT, 1_011_000_000_000_000_000)

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.verified is False
        assert result.reason == VerificationReason.AMOUNT_MISMATCH
        assert result.is_transient is False

    @pytest.mark.asyncio
    async def test_wrong_recipient_fails(self, chain, verifier):
        tx_hash = chain.add_transaction("0x" + "b" * 40, ONE_ETHER)

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.verified is False
        assert result.reason == VerificationReason.RECIPIENT_MISMATCH

    @pytest.mark.asyncio
    async def test_contract_creation_has_no_recipient(self, chain, verifier):
        tx_hash = chain.add_transaction(None, ONE_ETHER)

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.reason == VerificationReason.RECIPIENT_MISMATCH

    @pytest.mark.asyncio
    async def test_unknown_hash_is_transient(self, verifier, sample_transaction_hash):
        result = await verifier.verify(
            sample_transaction_hash, RECIPIENT, str(ONE_ETHER)
        )

        assert result.verified is False
        assert result.reason == VerificationReason.NOT_FOUND
        assert result.is_transient is True

    @pytest.mark.asyncio
    async def test_reverted_is_permanent(self, chain, verifier):
        tx_hash = chain.add_transaction(RECIPIENT, ONE_ETHER, status=0)

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.verified is False
        assert result.reason == VerificationReason.REVERTED
        assert result.is_transient is False

    @pytest.mark.asyncio
    async def test_unmined_transfer_is_transient(self, chain, verifier):
        tx_hash = chain.add_transaction(RECIPIENT, ONE_ETHER, status=None)

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.reason == VerificationReason.NOT_MINED
        assert result.is_transient is True

    @pytest.mark.asyncio
    async def test_pending_block_number_is_transient(self, chain, verifier):
        tx_hash = chain.add_transaction(RECIPIENT, ONE_ETHER)
        chain.transactions[tx_hash]["blockNumber"] = None

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.reason == VerificationReason.NOT_MINED
        assert result.is_transient is True

    @pytest.mark.asyncio
    async def test_verifies_once_mined(self, chain, verifier):
        tx_hash = chain.add_transaction(RECIPIENT, ONE_ETHER, status=None)
        await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        chain.mine(tx_hash)
        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.verified is True

    @pytest.mark.asyncio
    async def test_rpc_error_is_transient(self, chain, verifier):
        tx_hash = chain.add_transaction(RECIPIENT, ONE_ETHER)
        chain.rpc_errors = 1

        result = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert result.reason == VerificationReason.RPC_ERROR
        assert result.is_transient is True

    @pytest.mark.asyncio
    async def test_verification_is_repeatable(self, chain, verifier):
        """Verifying the same hash twice gives the same answer."""
        tx_hash = chain.add_transaction(RECIPIENT, ONE_ETHER)

        first = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))
        second = await verifier.verify(tx_hash, RECIPIENT, str(ONE_ETHER))

        assert first == second
