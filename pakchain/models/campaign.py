"""
Campaign model.

Represents a fundraising campaign receiving direct wallet transfers.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pakchain.models.base import Base, new_uuid
from pakchain.models.enums import CampaignStatus
from pakchain.models.types import WeiAmount


if TYPE_CHECKING:
    from pakchain.models.donation import Donation


class Campaign(Base):
    """Campaign model - donation targets created by administrators."""

    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint(
            'goal_amount >= 0', name='check_campaign_goal_non_negative'
        ),
        CheckConstraint(
            'current_amount >= 0',
            name='check_campaign_current_non_negative'
        ),
        CheckConstraint(
            "status IN ('active', 'inactive', 'completed')",
            name='check_campaign_status'
        ),
        CheckConstraint(
            '(platform_fee_address IS NULL) = (platform_fee_amount IS NULL)',
            name='check_campaign_fee_pair'
        ),
    )

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_uuid
    )

    # Presentation
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Amounts (wei, decimal strings)
    goal_amount: Mapped[str] = mapped_column(WeiAmount, nullable=False)
    current_amount: Mapped[str] = mapped_column(
        WeiAmount, nullable=False, default="0"
    )

    # Wallets
    receiving_wallet_address: Mapped[str | None] = mapped_column(
        String(42), nullable=True
    )
    platform_fee_address: Mapped[str | None] = mapped_column(
        String(42), nullable=True
    )
    platform_fee_amount: Mapped[str | None] = mapped_column(
        WeiAmount, nullable=True
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CampaignStatus.ACTIVE.value, index=True
    )
    is_featured: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    # Relationships
    donations: Mapped[list["Donation"]] = relationship(
        "Donation",
        back_populates="campaign",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Campaign(id={self.id}, title={self.title!r}, "
            f"current={self.current_amount}/{self.goal_amount}, status={self.status})>"
        )

    @property
    def has_platform_fee(self) -> bool:
        """Both fee fields are set."""
        return bool(self.platform_fee_address) and bool(self.platform_fee_amount)

    def fee_configuration_error(self) -> str | None:
        """Describe a half-configured platform fee, or None if consistent."""
        has_address = bool(self.platform_fee_address)
        has_amount = bool(self.platform_fee_amount)
        if has_address and not has_amount:
            return "platform_fee_address is set without platform_fee_amount"
        if has_amount and not has_address:
            return "platform_fee_amount is set without platform_fee_address"
        return None
