"""
User model.

Donor identity: keyed by wallet, by auth identity, or both once linked.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from pakchain.models.base import Base, new_uuid
from pakchain.models.types import WeiAmount


class User(Base):
    """User model - donors and signed-in accounts."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            'total_donated >= 0', name='check_user_total_donated_non_negative'
        ),
        CheckConstraint(
            'donation_count >= 0', name='check_user_donation_count_non_negative'
        ),
        CheckConstraint(
            'wallet_address IS NOT NULL OR auth_user_id IS NOT NULL',
            name='check_user_has_identity'
        ),
    )

    # Primary key
    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_uuid
    )

    # Identity
    auth_user_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True, unique=True, index=True
    )
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    display_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    wallet_address: Mapped[str | None] = mapped_column(
        String(42), nullable=True, unique=True
    )

    # Donation statistics
    total_donated: Mapped[str] = mapped_column(
        WeiAmount, nullable=False, default="0"
    )
    donation_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    first_donation_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    is_blocked: Mapped[bool] = mapped_column(
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

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<User(id={self.id}, wallet={self.wallet_address}, "
            f"auth_user_id={self.auth_user_id}, total={self.total_donated})>"
        )
