"""
User repository.

Data access layer for User model.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import bindparam, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pakchain.models.types import WeiAmount
from pakchain.models.user import User
from pakchain.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def find_by_wallet_address(
        self, wallet_address: str
    ) -> User | None:
        """
        Get user by wallet address (case-insensitive).

        Args:
            wallet_address: Wallet address

        Returns:
            User or None
        """
        stmt = (
            select(User)
            .where(User.wallet_address == wallet_address.lower())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, user_id: str) -> User | None:
        """
        Get user by ID and lock the row until the transaction ends.

        Concurrent donor credits wait for the lock, so a recomputed total
        is not overwritten by an increment computed from the old one.
        """
        stmt = (
            select(User)
            .where(User.id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_auth_user_id(
        self, auth_user_id: str
    ) -> User | None:
        """
        Get user by external auth identity.

        Args:
            auth_user_id: Auth provider user id

        Returns:
            User or None
        """
        stmt = (
            select(User)
            .where(User.auth_user_id == auth_user_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def link_auth_identity(
        self, user_id: str, auth_user_id: str, email: str | None = None
    ) -> bool:
        """
        Attach an auth identity to a wallet-keyed user.

        Only fills an empty link; an existing link is never overwritten.

        Returns:
            True if the link was set
        """
        values: dict[str, Any] = {"auth_user_id": auth_user_id}
        if email:
            values["email"] = email

        stmt = (
            update(User)
            .where(User.id == user_id)
            .where(User.auth_user_id.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def set_wallet(self, user_id: str, wallet_address: str) -> bool:
        """
        Attach a wallet to an auth-keyed user that has none yet.

        Returns:
            True if the wallet was set
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .where(User.wallet_address.is_(None))
            .values(wallet_address=wallet_address.lower())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def credit_donation(
        self, user_id: str, amount: str, donated_at: datetime
    ) -> bool:
        """
        Add one confirmed donation to the user's statistics.

        Single UPDATE: total and count move together and the first donation
        time is set only once.

        Args:
            user_id: User ID
            amount: Wei amount as decimal string
            donated_at: Confirmation time

        Returns:
            True if the user exists and was updated
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                total_donated=User.total_donated
                + bindparam("increment", amount, type_=WeiAmount()),
                donation_count=User.donation_count + 1,
                first_donation_at=func.coalesce(
                    User.first_donation_at, donated_at
                ),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def set_totals(
        self,
        user_id: str,
        total_donated: str,
        donation_count: int,
        first_donation_at: datetime | None,
    ) -> bool:
        """
        Overwrite donation statistics with recomputed values.

        Returns:
            True if the user exists and was updated
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                total_donated=total_donated,
                donation_count=donation_count,
                first_donation_at=first_donation_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def find_with_wallet(
        self, limit: int | None = None, offset: int | None = None
    ) -> list[User]:
        """Users that have a wallet attached, oldest first."""
        stmt = (
            select(User)
            .where(User.wallet_address.is_not(None))
            .order_by(User.created_at)
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
