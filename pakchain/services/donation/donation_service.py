"""
Donation service.

Orchestrates the two-phase donation flow: dispatch the transfer(s), wait
for inclusion, verify against the chain (retrying while the node has not
indexed the transaction yet) and hand the verified transfer to the
reconciliation recorder.
"""

import asyncio
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from pakchain.config.constants import PENDING_VERIFICATION_BATCH_SIZE
from pakchain.config.settings import settings
from pakchain.models.campaign import Campaign
from pakchain.models.enums import CampaignStatus, DonationStatus
from pakchain.repositories.campaign_repository import CampaignRepository
from pakchain.repositories.donation_repository import DonationRepository
from pakchain.services.base_service import BaseService, ServiceResult
from pakchain.services.blockchain.chain_gateway import ChainGateway
from pakchain.services.blockchain.chain_verifier import (
    ChainVerifier,
    VerificationResult,
)
from pakchain.services.blockchain.transfer_dispatcher import (
    TransferDispatcher,
    TransferTarget,
)
from pakchain.services.donation.reconciliation_recorder import (
    LedgerEntry,
    ReconciliationRecorder,
)
from pakchain.utils.amounts import parse_positive_wei
from pakchain.utils.exceptions import (
    CampaignNotFound,
    InvalidConfiguration,
    ReconciliationPartial,
    VerificationFailed,
    VerificationTransient,
    is_chain_transient,
)
from pakchain.utils.explorer import explorer_tx_url
from pakchain.utils.security import mask_tx_hash
from pakchain.utils.validation import (
    is_valid_address,
    normalize_address,
    normalize_tx_hash,
)


@dataclass
class DonationOutcome:
    """Result of a completed donation, as shown to the donor."""

    transaction_hash: str
    status: str
    explorer_url: str
    fee_transaction_hash: str | None = None
    donation_id: str | None = None
    warnings: list[ReconciliationPartial] = field(default_factory=list)


class DonationService(BaseService):
    """
    Donation flow orchestrator.

    Verification failure writes nothing. A transfer that cannot be verified
    in time is stored as ``pending`` and reported with
    ``VerificationTransient``; ``verify_pending`` picks it up later.
    """

    def __init__(
        self,
        session: AsyncSession,
        gateway: ChainGateway,
        recorder: ReconciliationRecorder | None = None,
        campaign_repo: CampaignRepository | None = None,
        donation_repo: DonationRepository | None = None,
        chain_id: int | None = None,
        inclusion_timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        """
        Initialize donation service.

        Args:
            session: Async database session
            gateway: Chain gateway
            recorder: Reconciliation recorder (defaults to one on ``session``)
            campaign_repo: Campaign repository
            donation_repo: Donation repository
            chain_id: Chain for explorer links (defaults to settings)
            inclusion_timeout: Seconds to wait for a transfer to be mined
            max_retries: Verification attempts for not-yet-indexed transfers
            retry_delay: Base backoff delay in seconds
        """
        super().__init__(session)
        self.gateway = gateway
        self.campaign_repo = campaign_repo or CampaignRepository(session)
        self.donation_repo = donation_repo or DonationRepository(session)
        self.recorder = recorder or ReconciliationRecorder(
            session,
            campaign_repo=self.campaign_repo,
            donation_repo=self.donation_repo,
        )

        self.chain_id = chain_id if chain_id is not None else settings.chain_id
        self.inclusion_timeout = (
            inclusion_timeout
            if inclusion_timeout is not None
            else settings.inclusion_timeout
        )
        self.max_retries = (
            max_retries
            if max_retries is not None
            else settings.verification_max_retries
        )
        self.retry_delay = (
            retry_delay
            if retry_delay is not None
            else settings.verification_retry_delay
        )

        self.dispatcher = TransferDispatcher(
            gateway, inclusion_timeout=self.inclusion_timeout
        )
        self.verifier = ChainVerifier(gateway)

    async def donate(
        self,
        campaign_id: str,
        donor_wallet: str,
        amount: str,
        auth_identity: str | None = None,
    ) -> DonationOutcome:
        """
        Run the full donation flow.

        Args:
            campaign_id: Target campaign
            donor_wallet: Donor wallet
            amount: Wei amount as decimal string
            auth_identity: Signed-in donor's auth user id (optional)

        Returns:
            DonationOutcome for a verified and recorded donation

        Raises:
            CampaignNotFound: Unknown campaign
            InvalidConfiguration: Campaign, wallet or amount unusable
            TransferRejected: Transfer declined, nothing recorded
            VerificationTransient: Sent but not verified yet (stored pending)
            VerificationFailed: Sent but does not match, nothing recorded
        """
        campaign = await self._get_campaign(campaign_id)
        if campaign.status != CampaignStatus.ACTIVE.value:
            raise InvalidConfiguration(
                f"Campaign {campaign_id} is {campaign.status}",
                user_message="This campaign is not accepting donations.",
            )
        wallet = self._normalize_wallet(donor_wallet)

        dispatch = await self.dispatcher.dispatch(
            TransferTarget.from_campaign(campaign), amount
        )
        tx_hash = dispatch.transaction_hash

        try:
            await self.gateway.await_inclusion(tx_hash, self.inclusion_timeout)
        except Exception as e:
            if not is_chain_transient(e):
                raise
            self.logger.warning(
                f"Donation {mask_tx_hash(tx_hash)} not mined in time: {e}"
            )
            await self.recorder.record_pending(
                campaign.id, wallet, amount, tx_hash,
                fee_tx_hash=dispatch.fee_transaction_hash,
            )
            raise VerificationTransient(
                f"Transaction {tx_hash} not mined within "
                f"{self.inclusion_timeout}s",
                tx_hash=tx_hash,
            ) from e

        return await self._verify_and_record(
            campaign=campaign,
            wallet=wallet,
            amount=amount,
            tx_hash=tx_hash,
            auth_identity=auth_identity,
            fee_tx_hash=dispatch.fee_transaction_hash,
        )

    async def confirm_donation(
        self,
        campaign_id: str,
        donor_wallet: str,
        amount: str,
        tx_hash: str,
        auth_identity: str | None = None,
        fee_tx_hash: str | None = None,
    ) -> DonationOutcome:
        """
        Verify and record a transfer submitted earlier (e.g. by the donor's
        own wallet).

        Raises:
            CampaignNotFound: Unknown campaign
            InvalidConfiguration: Campaign or wallet unusable
            VerificationTransient: Not verified yet (stored pending)
            VerificationFailed: Does not match, nothing recorded
        """
        campaign = await self._get_campaign(campaign_id)
        wallet = self._normalize_wallet(donor_wallet)
        try:
            parse_positive_wei(amount)
        except ValueError as e:
            raise InvalidConfiguration(
                str(e), user_message="Please enter a valid donation amount."
            ) from e
        try:
            tx_hash = normalize_tx_hash(tx_hash)
        except ValueError as e:
            raise InvalidConfiguration(
                str(e), user_message="Invalid transaction hash."
            ) from e

        return await self._verify_and_record(
            campaign=campaign,
            wallet=wallet,
            amount=amount,
            tx_hash=tx_hash,
            auth_identity=auth_identity,
            fee_tx_hash=fee_tx_hash,
        )

    async def verify_pending(
        self, limit: int = PENDING_VERIFICATION_BATCH_SIZE
    ) -> ServiceResult:
        """
        Re-verify pending donations.

        Verified ones are recorded, permanently failing ones are marked
        failed, the rest stay pending.

        Returns:
            ServiceResult with counts in ``data``
        """
        stats = {"confirmed": 0, "failed": 0, "pending": 0, "skipped": 0}
        pending = [
            LedgerEntry.of(donation)
            for donation in await self.donation_repo.find_by_status(
                DonationStatus.PENDING.value, limit=limit
            )
        ]
        self.logger.info(f"Re-verifying {len(pending)} pending donation(s)")

        for entry in pending:
            campaign = (
                await self.campaign_repo.get_by_id(entry.campaign_id)
                if entry.campaign_id
                else None
            )
            recipient = campaign.receiving_wallet_address if campaign else None
            if not is_valid_address(recipient):
                self.logger.warning(
                    f"Cannot verify {mask_tx_hash(entry.transaction_hash)}: "
                    f"campaign missing or has no receiving wallet"
                )
                stats["skipped"] += 1
                continue

            result = await self.verifier.verify(
                entry.transaction_hash, recipient, entry.amount
            )

            if result.verified:
                await self.recorder.record(
                    campaign_id=entry.campaign_id,
                    donor_wallet=entry.donor_wallet,
                    amount=entry.amount,
                    tx_hash=entry.transaction_hash,
                    block_number=result.block_number,
                    timestamp=result.timestamp,
                    fee_tx_hash=entry.fee_transaction_hash,
                )
                stats["confirmed"] += 1
            elif result.is_transient:
                stats["pending"] += 1
            else:
                await self.recorder.mark_failed(
                    entry.transaction_hash, result.reason.value
                )
                stats["failed"] += 1

        self.logger.info(f"Pending verification finished: {stats}")
        return ServiceResult(success=True, data=stats)

    async def _verify_and_record(
        self,
        campaign: Campaign,
        wallet: str,
        amount: str,
        tx_hash: str,
        auth_identity: str | None,
        fee_tx_hash: str | None,
    ) -> DonationOutcome:
        """Verify with retries, then record, store pending or reject."""
        result = await self._verify_with_retry(
            tx_hash, campaign.receiving_wallet_address, amount
        )

        if result.verified:
            reconciliation = await self.recorder.record(
                campaign_id=campaign.id,
                donor_wallet=wallet,
                amount=amount,
                tx_hash=tx_hash,
                block_number=result.block_number,
                timestamp=result.timestamp,
                auth_identity=auth_identity,
                fee_tx_hash=fee_tx_hash,
            )
            donation = reconciliation.donation
            return DonationOutcome(
                transaction_hash=donation.transaction_hash,
                status=donation.status,
                explorer_url=self.explorer_url(donation.transaction_hash),
                fee_transaction_hash=donation.fee_transaction_hash,
                donation_id=donation.id,
                warnings=reconciliation.warnings,
            )

        if result.is_transient:
            await self.recorder.record_pending(
                campaign.id, wallet, amount, tx_hash, fee_tx_hash=fee_tx_hash
            )
            raise VerificationTransient(
                f"Transaction {tx_hash} not verified after "
                f"{self.max_retries} attempt(s): {result.reason}",
                tx_hash=tx_hash,
            )

        await self.recorder.mark_failed(tx_hash, result.reason.value)
        raise VerificationFailed(
            f"Transaction {tx_hash} failed verification: {result.reason}",
            tx_hash=tx_hash,
            reason=result.reason.value,
        )

    async def _verify_with_retry(
        self, tx_hash: str, recipient: str | None, amount: str
    ) -> VerificationResult:
        """Verify, retrying transient results with exponential backoff."""
        if not is_valid_address(recipient):
            raise InvalidConfiguration(
                f"Invalid receiving address: {recipient!r}"
            )

        result = await self.verifier.verify(tx_hash, recipient, amount)
        for attempt in range(1, self.max_retries):
            if result.verified or not result.is_transient:
                break
            delay = self.retry_delay * (2 ** (attempt - 1))
            self.logger.info(
                f"Verification of {mask_tx_hash(tx_hash)} attempt {attempt}/"
                f"{self.max_retries}: {result.reason}, retrying in {delay}s"
            )
            await asyncio.sleep(delay)
            result = await self.verifier.verify(tx_hash, recipient, amount)
        return result

    async def _get_campaign(self, campaign_id: str) -> Campaign:
        campaign = await self.campaign_repo.get_by_id(campaign_id)
        if campaign is None:
            raise CampaignNotFound(f"Campaign {campaign_id} not found")
        return campaign

    @staticmethod
    def _normalize_wallet(donor_wallet: str) -> str:
        try:
            return normalize_address(donor_wallet)
        except ValueError as e:
            raise InvalidConfiguration(
                str(e), user_message="Please connect a valid wallet."
            ) from e

    def explorer_url(self, tx_hash: str) -> str:
        """Block explorer link for a transaction."""
        return explorer_tx_url(tx_hash, self.chain_id, settings.explorer_base_url)
