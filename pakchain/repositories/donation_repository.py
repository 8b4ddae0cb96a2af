"""
Donation repository.

Data access layer for Donation model.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from pakchain.models.base import new_uuid
from pakchain.models.donation import Donation
from pakchain.models.enums import DonationStatus
from pakchain.repositories.base import BaseRepository


class DonationRepository(BaseRepository[Donation]):
    """Donation repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize donation repository."""
        super().__init__(Donation, session)

    async def get_by_tx_hash(
        self, tx_hash: str
    ) -> Donation | None:
        """
        Get donation by transaction hash.

        Always reloads the row so markers flipped by UPDATE statements are seen.

        Args:
            tx_hash: Transaction hash (lower-case)

        Returns:
            Donation or None
        """
        stmt = (
            select(Donation)
            .where(Donation.transaction_hash == tx_hash)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_if_absent(self, **data: Any) -> Donation | None:
        """
        Insert a donation unless its transaction hash is already recorded.

        Uses ``INSERT .. ON CONFLICT (transaction_hash) DO NOTHING RETURNING``
        so two concurrent reconciliations of the same hash create one row.

        Args:
            **data: Donation columns

        Returns:
            The new donation, or None if the hash already exists
        """
        data.setdefault("id", new_uuid())
        stmt = (
            insert(Donation)
            .values(**data)
            .on_conflict_do_nothing(index_elements=["transaction_hash"])
            .returning(Donation)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_status(
        self, status: str, limit: int | None = None
    ) -> list[Donation]:
        """
        Get donations by status, oldest first.

        Args:
            status: pending, confirmed or failed
            limit: Optional max number of rows

        Returns:
            List of donations
        """
        stmt = (
            select(Donation)
            .where(Donation.status == status)
            .order_by(Donation.created_at)
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_uncredited(self, limit: int | None = None) -> list[Donation]:
        """
        Get confirmed donations not yet absorbed by one of the aggregates.

        Donations whose campaign is gone only count for the donor side.

        Args:
            limit: Optional max number of rows

        Returns:
            List of donations needing reconciliation replay
        """
        stmt = (
            select(Donation)
            .where(Donation.status == DonationStatus.CONFIRMED.value)
            .where(
                or_(
                    and_(
                        Donation.campaign_credited == False,  # noqa: E712
                        Donation.campaign_id.is_not(None),
                    ),
                    Donation.donor_credited == False,  # noqa: E712
                )
            )
            .order_by(Donation.created_at)
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def promote_to_confirmed(
        self,
        donation_id: str,
        amount: str,
        campaign_id: str | None,
        donor_wallet: str,
        block_number: int,
        timestamp: int | None,
        fee_tx_hash: str | None = None,
    ) -> bool:
        """
        Move a pending donation to confirmed with its verified transfer data.

        Amount, campaign and wallet are overwritten with the verified values.

        Args:
            donation_id: Donation ID
            amount: Verified wei amount as decimal string
            campaign_id: Campaign the transfer was verified against
            donor_wallet: Sender wallet (lower-case)
            block_number: Block containing the transfer
            timestamp: Block timestamp
            fee_tx_hash: Platform-fee transfer hash, if known

        Returns:
            True if the donation was pending and is now confirmed
        """
        values: dict[str, Any] = {
            "status": DonationStatus.CONFIRMED.value,
            "amount": amount,
            "campaign_id": campaign_id,
            "donor_wallet": donor_wallet,
            "block_number": block_number,
            "timestamp_on_chain": timestamp,
            "confirmed_at": datetime.now(UTC),
        }
        if fee_tx_hash:
            values["fee_transaction_hash"] = fee_tx_hash

        stmt = (
            update(Donation)
            .where(Donation.id == donation_id)
            .where(Donation.status == DonationStatus.PENDING.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_failed(self, donation_id: str) -> bool:
        """
        Move a pending donation to failed.

        Args:
            donation_id: Donation ID

        Returns:
            True if the donation was pending and is now failed
        """
        stmt = (
            update(Donation)
            .where(Donation.id == donation_id)
            .where(Donation.status == DonationStatus.PENDING.value)
            .values(status=DonationStatus.FAILED.value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def claim_campaign_credit(self, donation_id: str) -> bool:
        """
        Flip ``campaign_credited`` for a confirmed donation.

        Must run in the same transaction as the campaign increment: exactly one
        caller wins the flip, so the amount is added once.

        Returns:
            True if this call claimed the credit
        """
        stmt = (
            update(Donation)
            .where(Donation.id == donation_id)
            .where(Donation.status == DonationStatus.CONFIRMED.value)
            .where(Donation.campaign_credited == False)  # noqa: E712
            .values(campaign_credited=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def claim_donor_credit(self, donation_id: str) -> bool:
        """
        Flip ``donor_credited`` for a confirmed donation.

        Returns:
            True if this call claimed the credit
        """
        stmt = (
            update(Donation)
            .where(Donation.id == donation_id)
            .where(Donation.status == DonationStatus.CONFIRMED.value)
            .where(Donation.donor_credited == False)  # noqa: E712
            .values(donor_credited=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_donor_credited_for_wallet(self, wallet: str) -> list[str]:
        """
        Mark every confirmed donation of a wallet as absorbed by the donor total.

        Runs before the donor totals are recomputed, so every row summed by
        ``get_credited_totals_for_wallet`` is already marked.

        Returns:
            IDs of the rows this call marked
        """
        stmt = (
            update(Donation)
            .where(Donation.donor_wallet == wallet)
            .where(Donation.status == DonationStatus.CONFIRMED.value)
            .where(Donation.donor_credited == False)  # noqa: E712
            .values(donor_credited=True)
            .returning(Donation.id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_credited_totals_for_wallet(
        self, wallet: str
    ) -> tuple[str, int, datetime | None]:
        """
        Sum confirmed donations of a wallet already absorbed by the donor total.

        Args:
            wallet: Donor wallet (lower-case)

        Returns:
            Tuple of (total amount as decimal string, count, first confirmation time)
        """
        stmt = (
            select(
                func.coalesce(func.sum(Donation.amount), 0),
                func.count(Donation.id),
                func.min(Donation.confirmed_at),
            )
            .where(Donation.donor_wallet == wallet)
            .where(Donation.status == DonationStatus.CONFIRMED.value)
            .where(Donation.donor_credited == True)  # noqa: E712
        )
        result = await self.session.execute(stmt)
        total, count, first_at = result.one()
        return str(int(total)), int(count), first_at
