"""Unit tests for DonationService."""

import pytest

from pakchain.utils.exceptions import (
    CampaignNotFound,
    InvalidConfiguration,
    TransferRejected,
    VerificationFailed,
    VerificationTransient,
)


RECIPIENT = "0x" + "a" * 40
FEE_ADDRESS = "0x" + "f" * 40
ONE_ETHER = "1000000000000000000"


class TestDonate:
    """Tests for the full donation flow."""

    @pytest.mark.asyncio
    async def test_happy_path(self, ledger, chain, donation_service, donor_wallet):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)

        outcome = await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        assert outcome.status == "confirmed"
        assert outcome.warnings == []
        assert outcome.fee_transaction_hash is None
        assert outcome.explorer_url == (
            f"https://sepolia.etherscan.io/tx/{outcome.transaction_hash}"
        )
        assert ledger.campaign_total(campaign.id) == ONE_ETHER
        assert ledger.user_by_wallet(donor_wallet)["total_donated"] == ONE_ETHER

    @pytest.mark.asyncio
    async def test_fee_split(self, ledger, chain, donation_service, donor_wallet):
        campaign = ledger.add_campaign(
            receiving_wallet_address=RECIPIENT,
            platform_fee_address=FEE_ADDRESS,
            platform_fee_amount="10000000000000000",
        )

        outcome = await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        submits = [event for event in chain.events if event[0] == "submit"]
        assert submits == [("submit", FEE_ADDRESS), ("submit", RECIPIENT)]
        assert outcome.fee_transaction_hash is not None
        # Only the donation amount is credited; the fee is not
        assert ledger.campaign_total(campaign.id) == ONE_ETHER
        row = ledger.donation_by_hash(outcome.transaction_hash)
        assert row["fee_transaction_hash"] == outcome.fee_transaction_hash

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, donation_service, donor_wallet):
        with pytest.raises(CampaignNotFound):
            await donation_service.donate("missing", donor_wallet, ONE_ETHER)

    @pytest.mark.asyncio
    async def test_inactive_campaign(self, ledger, chain, donation_service, donor_wallet):
        campaign = ledger.add_campaign(status="completed")

        with pytest.raises(InvalidConfiguration):
            await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        assert chain.events == []

    @pytest.mark.asyncio
    async def test_invalid_donor_wallet(self, ledger, chain, donation_service):
        campaign = ledger.add_campaign()

        with pytest.raises(InvalidConfiguration):
            await donation_service.donate(campaign.id, "0xnope", ONE_ETHER)

        assert chain.events == []

    @pytest.mark.asyncio
    async def test_rejected_transfer_records_nothing(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        chain.reject_recipients.add(RECIPIENT)

        with pytest.raises(TransferRejected):
            await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        assert ledger.donations == {}

    @pytest.mark.asyncio
    async def test_reverted_transfer_records_nothing(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        chain.receipt_status[RECIPIENT] = 0

        with pytest.raises(VerificationFailed) as exc_info:
            await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        assert exc_info.value.reason == "reverted"
        assert ledger.donations == {}
        assert ledger.campaign_total(campaign.id) == "0"

    @pytest.mark.asyncio
    async def test_not_mined_stored_pending(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        chain.unmined_recipients.add(RECIPIENT)

        with pytest.raises(VerificationTransient) as exc_info:
            await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        row = ledger.donation_by_hash(exc_info.value.tx_hash)
        assert row["status"] == "pending"
        assert ledger.campaign_total(campaign.id) == "0"

    @pytest.mark.asyncio
    async def test_retries_until_indexed(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        chain.hidden_reads = 2  # max_retries is 3

        outcome = await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        assert outcome.status == "confirmed"

    @pytest.mark.asyncio
    async def test_retries_exhausted_stored_pending(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        chain.hidden_reads = 3

        with pytest.raises(VerificationTransient) as exc_info:
            await donation_service.donate(campaign.id, donor_wallet, ONE_ETHER)

        assert ledger.donation_by_hash(exc_info.value.tx_hash)["status"] == "pending"


class TestConfirmDonation:
    """Late verification of a transfer sent elsewhere."""

    @pytest.mark.asyncio
    async def test_confirms_matching_transfer(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        tx_hash = chain.add_transaction(RECIPIENT, 10**18)

        outcome = await donation_service.confirm_donation(
            campaign.id, donor_wallet, ONE_ETHER, tx_hash
        )

        assert outcome.status == "confirmed"
        assert ledger.campaign_total(campaign.id) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_amount_mismatch_creates_no_row(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        tx_hash = chain.add_transaction(RECIPIENT, 2 * 10**18)

        with pytest.raises(VerificationFailed) as exc_info:
            await donation_service.confirm_donation(
                campaign.id, donor_wallet, ONE_ETHER, tx_hash
            )

        assert exc_info.value.reason == "amount_mismatch"
        assert ledger.donations == {}

    @pytest.mark.asyncio
    async def test_same_hash_twice_counts_once(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        tx_hash = chain.add_transaction(RECIPIENT, 10**18)

        await donation_service.confirm_donation(
            campaign.id, donor_wallet, ONE_ETHER, tx_hash
        )
        await donation_service.confirm_donation(
            campaign.id, donor_wallet, ONE_ETHER, tx_hash
        )

        assert len(ledger.donations) == 1
        assert ledger.campaign_total(campaign.id) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_overstated_pending_amount_is_not_credited(
        self, ledger, chain, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        tx_hash = chain.add_transaction(RECIPIENT, 10**18)
        chain.hidden_reads = 3

        with pytest.raises(VerificationTransient):
            await donation_service.confirm_donation(
                campaign.id, donor_wallet, "100000000000000000000", tx_hash
            )
        assert ledger.donation_by_hash(tx_hash)["status"] == "pending"

        outcome = await donation_service.confirm_donation(
            campaign.id, donor_wallet, ONE_ETHER, tx_hash
        )

        assert outcome.status == "confirmed"
        assert ledger.donation_by_hash(tx_hash)["amount"] == ONE_ETHER
        assert ledger.campaign_total(campaign.id) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_malformed_hash(self, ledger, donation_service, donor_wallet):
        campaign = ledger.add_campaign()

        with pytest.raises(InvalidConfiguration):
            await donation_service.confirm_donation(
                campaign.id, donor_wallet, ONE_ETHER, "0x123"
            )

    @pytest.mark.asyncio
    async def test_malformed_amount(self, ledger, donation_service, donor_wallet):
        campaign = ledger.add_campaign()

        with pytest.raises(InvalidConfiguration):
            await donation_service.confirm_donation(
                campaign.id, donor_wallet, "0.5", "0x" + "1" * 64
            )


class TestVerifyPending:
    """Tests for re-verifying pending donations."""

    @pytest.mark.asyncio
    async def test_pending_resolved(
        self, ledger, chain, recorder, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        good = chain.add_transaction(RECIPIENT, 10**18)
        reverted = chain.add_transaction(RECIPIENT, 10**18, status=0)
        unknown = "0x" + "9" * 64
        for tx_hash in (good, reverted, unknown):
            await recorder.record_pending(campaign.id, donor_wallet, ONE_ETHER, tx_hash)

        result = await donation_service.verify_pending()

        assert result.success
        assert result.data == {
            "confirmed": 1, "failed": 1, "pending": 1, "skipped": 0,
        }
        assert ledger.donation_by_hash(good)["status"] == "confirmed"
        assert ledger.donation_by_hash(reverted)["status"] == "failed"
        assert ledger.donation_by_hash(unknown)["status"] == "pending"
        assert ledger.campaign_total(campaign.id) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_unmined_stays_pending_until_mined(
        self, ledger, chain, recorder, donation_service, donor_wallet
    ):
        campaign = ledger.add_campaign(receiving_wallet_address=RECIPIENT)
        tx_hash = chain.add_transaction(RECIPIENT, 10**18, status=None)
        await recorder.record_pending(campaign.id, donor_wallet, ONE_ETHER, tx_hash)

        first = await donation_service.verify_pending()

        assert first.data["pending"] == 1
        assert first.data["failed"] == 0
        assert ledger.donation_by_hash(tx_hash)["status"] == "pending"

        chain.mine(tx_hash)
        second = await donation_service.verify_pending()

        assert second.data["confirmed"] == 1
        assert ledger.donation_by_hash(tx_hash)["status"] == "confirmed"
        assert ledger.campaign_total(campaign.id) == ONE_ETHER

    @pytest.mark.asyncio
    async def test_pending_without_campaign_skipped(
        self, ledger, recorder, donation_service, donor_wallet
    ):
        await recorder.record_pending(None, donor_wallet, ONE_ETHER, "0x" + "3" * 64)

        result = await donation_service.verify_pending()

        assert result.data["skipped"] == 1
