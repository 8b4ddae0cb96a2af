"""
Donation model.

One row per donation transfer, keyed by its unique transaction hash.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pakchain.models.base import Base, new_uuid
from pakchain.models.enums import DonationStatus
from pakchain.models.types import WeiAmount


if TYPE_CHECKING:
    from pakchain.models.campaign import Campaign


class Donation(Base):
    """Donation model - a verified (or awaiting verification) transfer."""

    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint(
            'amount > 0', name='check_donation_amount_positive'
        ),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'failed')",
            name='check_donation_status'
        ),
        CheckConstraint(
            "status <> 'confirmed' OR block_number IS NOT NULL",
            name='check_donation_confirmed_has_block'
        ),
        Index('idx_donation_donor_status', 'donor_wallet', 'status'),
    )

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_uuid
    )

    # Campaign reference (kept as proof of transfer if the campaign goes away)
    campaign_id: Mapped[str | None] = mapped_column(
        ForeignKey("campaigns.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Transfer details
    donor_wallet: Mapped[str] = mapped_column(String(42), nullable=False)
    amount: Mapped[str] = mapped_column(WeiAmount, nullable=False)

    # Blockchain data
    transaction_hash: Mapped[str] = mapped_column(
        String(66), nullable=False, unique=True
    )
    fee_transaction_hash: Mapped[str | None] = mapped_column(
        String(66), nullable=True
    )
    block_number: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )
    timestamp_on_chain: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DonationStatus.PENDING.value, index=True
    )  # pending, confirmed, failed

    # Reconciliation markers: set once the aggregate has absorbed this amount
    campaign_credited: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    donor_credited: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    campaign: Mapped["Campaign | None"] = relationship(
        "Campaign",
        back_populates="donations",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Donation(id={self.id}, campaign_id={self.campaign_id}, "
            f"amount={self.amount}, status={self.status})>"
        )

    @property
    def is_confirmed(self) -> bool:
        return self.status == DonationStatus.CONFIRMED.value

    @property
    def is_fully_reconciled(self) -> bool:
        """Both aggregates absorbed this donation."""
        return self.campaign_credited and self.donor_credited

    def can_transition(self, new_status: str | DonationStatus) -> bool:
        """
        Check a status change against the donation state machine.

        pending -> confirmed | failed; confirmed and failed are terminal.
        """
        current = DonationStatus(self.status)
        target = DonationStatus(new_status)
        if current.is_terminal:
            return current == target
        return True
