"""
Reconciliation recorder.

Writes a verified donation into the ledger and folds it into the derived
aggregates (campaign running total, donor statistics).

Each step commits on its own:

1. Donation row (fatal if it fails; keyed by transaction hash)
2. Campaign credit (marker flip + single-statement increment)
3. Donor resolution (by wallet, then auth identity, else create)
4. Donor credit (marker flip + single-statement increment)

Steps 2-4 are non-fatal: a failure rolls back only that step and is
returned as a ``ReconciliationPartial`` warning. The marker columns on the
donation make replaying any step safe, so a donation is credited exactly
once per aggregate however often it is recorded.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from pakchain.models.donation import Donation
from pakchain.models.enums import DonationStatus
from pakchain.models.user import User
from pakchain.repositories.campaign_repository import CampaignRepository
from pakchain.repositories.donation_repository import DonationRepository
from pakchain.repositories.user_repository import UserRepository
from pakchain.services.base_service import BaseService
from pakchain.utils.amounts import format_ether, parse_positive_wei, to_wei_string
from pakchain.utils.exceptions import STORE_RECOVERABLE, ReconciliationPartial
from pakchain.utils.security import mask_address, mask_tx_hash
from pakchain.utils.validation import normalize_address, normalize_tx_hash


@dataclass(frozen=True)
class LedgerEntry:
    """
    Detached copy of the donation columns reconciliation works from.

    A rollback expires every ORM instance in the session; steps that may
    roll back read this copy instead of the mapped ``Donation``.
    """

    id: str
    transaction_hash: str
    donor_wallet: str
    amount: str
    campaign_id: str | None
    campaign_credited: bool
    donor_credited: bool
    confirmed_at: datetime | None = None
    fee_transaction_hash: str | None = None

    @classmethod
    def of(cls, donation: "Donation | LedgerEntry") -> "LedgerEntry":
        if isinstance(donation, LedgerEntry):
            return donation
        return cls(
            id=donation.id,
            transaction_hash=donation.transaction_hash,
            donor_wallet=donation.donor_wallet,
            amount=donation.amount,
            campaign_id=donation.campaign_id,
            campaign_credited=donation.campaign_credited,
            donor_credited=donation.donor_credited,
            confirmed_at=donation.confirmed_at,
            fee_transaction_hash=donation.fee_transaction_hash,
        )


@dataclass
class ReconciliationResult:
    """What ``record`` did."""

    donation: Donation
    created: bool
    warnings: list[ReconciliationPartial] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        """Donation row and both aggregates are up to date."""
        return not self.warnings


class ReconciliationRecorder(BaseService):
    """Records verified donations and keeps aggregates in step."""

    def __init__(
        self,
        session: AsyncSession,
        campaign_repo: CampaignRepository | None = None,
        donation_repo: DonationRepository | None = None,
        user_repo: UserRepository | None = None,
    ) -> None:
        """
        Initialize recorder.

        Args:
            session: Async database session
            campaign_repo: Campaign repository (defaults to one on ``session``)
            donation_repo: Donation repository (defaults to one on ``session``)
            user_repo: User repository (defaults to one on ``session``)
        """
        super().__init__(session)
        self.campaign_repo = campaign_repo or CampaignRepository(session)
        self.donation_repo = donation_repo or DonationRepository(session)
        self.user_repo = user_repo or UserRepository(session)

    async def record(
        self,
        campaign_id: str,
        donor_wallet: str,
        amount: str,
        tx_hash: str,
        block_number: int,
        timestamp: int | None,
        auth_identity: str | None = None,
        fee_tx_hash: str | None = None,
    ) -> ReconciliationResult:
        """
        Record a verified donation.

        A pending row for the same hash is promoted with the verified
        campaign, wallet and amount; what was stored while the transfer was
        unverified is not trusted.

        Args:
            campaign_id: Campaign the donation went to
            donor_wallet: Sender wallet
            amount: Verified wei amount as decimal string
            tx_hash: Verified donation transaction hash
            block_number: Block containing the transfer
            timestamp: Block timestamp
            auth_identity: Signed-in donor's auth user id (optional)
            fee_tx_hash: Platform fee transaction hash (optional)

        Returns:
            ReconciliationResult with the donation row and any warnings

        Raises:
            ValueError: Malformed wallet, hash or amount
            SQLAlchemyError: The donation row itself could not be written
        """
        tx_hash = normalize_tx_hash(tx_hash)
        wallet = normalize_address(donor_wallet)
        amount_str = to_wei_string(parse_positive_wei(amount))
        fee_tx_hash = normalize_tx_hash(fee_tx_hash) if fee_tx_hash else None

        warnings: list[ReconciliationPartial] = []

        # Step 1: donation row
        try:
            campaign = await self.campaign_repo.get_by_id(campaign_id)
            target_campaign_id = campaign.id if campaign else None

            donation = await self.donation_repo.insert_if_absent(
                campaign_id=target_campaign_id,
                donor_wallet=wallet,
                amount=amount_str,
                transaction_hash=tx_hash,
                fee_transaction_hash=fee_tx_hash,
                block_number=block_number,
                timestamp_on_chain=timestamp,
                status=DonationStatus.CONFIRMED.value,
                confirmed_at=datetime.now(UTC),
            )
            created = donation is not None

            if donation is None:
                donation = await self.donation_repo.get_by_tx_hash(tx_hash)
                if donation is None:
                    raise LookupError(
                        f"Donation {tx_hash} conflicted on insert but is missing"
                    )
                if donation.status == DonationStatus.PENDING.value:
                    if donation.amount != amount_str:
                        self.logger.warning(
                            f"Pending {mask_tx_hash(tx_hash)} was stored with "
                            f"{donation.amount} wei, verified {amount_str} wei; "
                            f"keeping the verified amount"
                        )
                    await self.donation_repo.promote_to_confirmed(
                        donation.id,
                        amount=amount_str,
                        campaign_id=target_campaign_id,
                        donor_wallet=wallet,
                        block_number=block_number,
                        timestamp=timestamp,
                        fee_tx_hash=fee_tx_hash,
                    )
                    donation = await self.donation_repo.get_by_tx_hash(tx_hash)

            status = donation.status
            entry = LedgerEntry.of(donation)
            await self.commit()
        except Exception:
            await self.rollback()
            raise

        needs_campaign = created or not entry.campaign_credited
        if (
            campaign is None
            and needs_campaign
            and status != DonationStatus.FAILED.value
        ):
            self.logger.warning(
                f"Campaign {campaign_id} not found for "
                f"{mask_tx_hash(tx_hash)}, recording donation without it"
            )
            warnings.append(
                ReconciliationPartial(
                    f"Campaign {campaign_id} not found, "
                    f"campaign total not updated",
                    tx_hash=tx_hash,
                    step="campaign",
                )
            )

        if created:
            self.logger.info(
                f"Donation recorded: {mask_tx_hash(tx_hash)} "
                f"from {mask_address(wallet)}, {format_ether(amount_str)} ETH"
            )
        else:
            self.logger.info(
                f"Donation {mask_tx_hash(tx_hash)} already recorded "
                f"(status={status}), replaying aggregates"
            )

        if status == DonationStatus.FAILED.value:
            self.logger.warning(
                f"Donation {mask_tx_hash(tx_hash)} is marked failed, "
                f"not crediting aggregates"
            )
            return ReconciliationResult(
                donation=donation, created=False, warnings=warnings
            )

        warnings.extend(await self.reconcile(entry, auth_identity))

        if warnings:
            self.logger.warning(
                f"Donation {mask_tx_hash(tx_hash)} recorded with "
                f"{len(warnings)} pending aggregate update(s)"
            )
        else:
            self.logger.success(
                f"Donation {mask_tx_hash(tx_hash)} fully reconciled"
            )

        refreshed = await self.donation_repo.get_by_tx_hash(tx_hash)
        return ReconciliationResult(
            donation=refreshed or donation, created=created, warnings=warnings
        )

    async def reconcile(
        self,
        donation: Donation | LedgerEntry,
        auth_identity: str | None = None,
    ) -> list[ReconciliationPartial]:
        """
        Run the aggregate steps (2-4) for a confirmed donation.

        Safe to call repeatedly; used by ``record`` and by ledger repair.

        Returns:
            Warnings for steps that could not complete
        """
        entry = LedgerEntry.of(donation)
        warnings: list[ReconciliationPartial] = []

        warning = await self._credit_campaign(entry)
        if warning:
            warnings.append(warning)

        warning = await self._credit_donor(entry, auth_identity)
        if warning:
            warnings.append(warning)

        return warnings

    async def record_pending(
        self,
        campaign_id: str | None,
        donor_wallet: str,
        amount: str,
        tx_hash: str,
        fee_tx_hash: str | None = None,
    ) -> Donation:
        """
        Store a donation whose transfer is submitted but not verified yet.

        No aggregate is touched. An existing row for the hash is returned
        unchanged.
        """
        tx_hash = normalize_tx_hash(tx_hash)
        try:
            donation = await self.donation_repo.insert_if_absent(
                campaign_id=campaign_id,
                donor_wallet=normalize_address(donor_wallet),
                amount=to_wei_string(parse_positive_wei(amount)),
                transaction_hash=tx_hash,
                fee_transaction_hash=(
                    normalize_tx_hash(fee_tx_hash) if fee_tx_hash else None
                ),
                status=DonationStatus.PENDING.value,
            )
            if donation is None:
                donation = await self.donation_repo.get_by_tx_hash(tx_hash)
            status = donation.status
            await self.commit()
        except Exception:
            await self.rollback()
            raise

        self.logger.info(f"Donation {mask_tx_hash(tx_hash)} stored as {status}")
        return donation

    async def mark_failed(self, tx_hash: str, reason: str) -> bool:
        """
        Move a pending donation to failed.

        Returns:
            True if a pending donation was marked failed
        """
        tx_hash = normalize_tx_hash(tx_hash)
        try:
            donation = await self.donation_repo.get_by_tx_hash(tx_hash)
            if donation is None or not donation.can_transition(
                DonationStatus.FAILED
            ):
                await self.rollback()
                return False
            changed = await self.donation_repo.mark_failed(donation.id)
            await self.commit()
        except Exception:
            await self.rollback()
            raise

        if changed:
            self.logger.warning(
                f"Donation {mask_tx_hash(tx_hash)} marked failed: {reason}"
            )
        return changed

    async def _credit_campaign(
        self, entry: LedgerEntry
    ) -> ReconciliationPartial | None:
        """Step 2: add the amount to the campaign total once."""
        if entry.campaign_credited:
            return None
        if entry.campaign_id is None:
            # Campaign was missing or deleted; warned when recorded
            return None

        try:
            campaign = await self.campaign_repo.get_by_id(entry.campaign_id)
            if campaign is None:
                await self.rollback()
                return ReconciliationPartial(
                    f"Campaign {entry.campaign_id} not found",
                    tx_hash=entry.transaction_hash,
                    step="campaign",
                )

            claimed = await self.donation_repo.claim_campaign_credit(entry.id)
            if not claimed:
                await self.rollback()
                return None

            incremented = await self.campaign_repo.increment_current_amount(
                entry.campaign_id, entry.amount
            )
            if not incremented:
                await self.rollback()
                return ReconciliationPartial(
                    f"Campaign {entry.campaign_id} disappeared during credit",
                    tx_hash=entry.transaction_hash,
                    step="campaign",
                )

            await self.commit()
        except STORE_RECOVERABLE as e:
            await self.rollback()
            self.logger.error(
                f"Campaign credit failed for "
                f"{mask_tx_hash(entry.transaction_hash)}: {e}"
            )
            return ReconciliationPartial(
                f"Campaign total update failed: {e}",
                tx_hash=entry.transaction_hash,
                step="campaign",
            )

        self.logger.info(
            f"Campaign {entry.campaign_id} credited "
            f"{format_ether(entry.amount)} ETH "
            f"from {mask_tx_hash(entry.transaction_hash)}"
        )
        return None

    async def _credit_donor(
        self, entry: LedgerEntry, auth_identity: str | None
    ) -> ReconciliationPartial | None:
        """Steps 3 and 4: resolve the donor and add to their statistics once."""
        try:
            user = await self._resolve_user(entry.donor_wallet, auth_identity)
            user_id = user.id
            await self.commit()
        except STORE_RECOVERABLE as e:
            await self.rollback()
            self.logger.error(
                f"Donor resolution failed for "
                f"{mask_address(entry.donor_wallet)}: {e}"
            )
            return ReconciliationPartial(
                f"Donor record could not be resolved: {e}",
                tx_hash=entry.transaction_hash,
                step="user",
            )

        if entry.donor_credited:
            return None

        try:
            claimed = await self.donation_repo.claim_donor_credit(entry.id)
            if not claimed:
                await self.rollback()
                return None

            credited = await self.user_repo.credit_donation(
                user_id,
                entry.amount,
                entry.confirmed_at or datetime.now(UTC),
            )
            if not credited:
                await self.rollback()
                return ReconciliationPartial(
                    f"Donor {user_id} disappeared during credit",
                    tx_hash=entry.transaction_hash,
                    step="user_totals",
                )

            await self.commit()
        except STORE_RECOVERABLE as e:
            await self.rollback()
            self.logger.error(
                f"Donor credit failed for "
                f"{mask_tx_hash(entry.transaction_hash)}: {e}"
            )
            return ReconciliationPartial(
                f"Donor totals update failed: {e}",
                tx_hash=entry.transaction_hash,
                step="user_totals",
            )

        self.logger.info(
            f"Donor {mask_address(entry.donor_wallet)} credited "
            f"{format_ether(entry.amount)} ETH"
        )
        return None

    async def _resolve_user(
        self, wallet: str, auth_identity: str | None
    ) -> User:
        """
        Find or create the donor record.

        Wallet match wins; an unlinked wallet record is linked to the auth
        identity. Otherwise an auth record without a wallet adopts this one.
        An auth record bound to a different wallet is left alone and a new
        wallet-only record is created.
        """
        user = await self.user_repo.find_by_wallet_address(wallet)
        if user is not None:
            if auth_identity and user.auth_user_id is None:
                owner = await self.user_repo.get_by_auth_user_id(auth_identity)
                if owner is None:
                    await self.user_repo.link_auth_identity(user.id, auth_identity)
                    user.auth_user_id = auth_identity
                    self.logger.info(
                        f"Linked wallet {mask_address(wallet)} to auth identity"
                    )
            return user

        link_auth = None
        if auth_identity:
            user = await self.user_repo.get_by_auth_user_id(auth_identity)
            if user is None:
                link_auth = auth_identity
            elif user.wallet_address is None:
                await self.user_repo.set_wallet(user.id, wallet)
                user.wallet_address = wallet
                self.logger.info(
                    f"Auth user {user.id} adopted wallet {mask_address(wallet)}"
                )
                return user
            else:
                self.logger.warning(
                    f"Auth user {user.id} is bound to "
                    f"{mask_address(user.wallet_address)}, creating separate "
                    f"record for {mask_address(wallet)}"
                )

        user = await self.user_repo.insert(
            wallet_address=wallet,
            auth_user_id=link_auth,
        )
        self.logger.info(f"Created donor record for {mask_address(wallet)}")
        return user
