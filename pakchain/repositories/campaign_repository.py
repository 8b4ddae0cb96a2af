"""
Campaign repository.

Data access layer for Campaign model.
"""

from sqlalchemy import bindparam, update
from sqlalchemy.ext.asyncio import AsyncSession

from pakchain.models.campaign import Campaign
from pakchain.models.types import WeiAmount
from pakchain.repositories.base import BaseRepository


class CampaignRepository(BaseRepository[Campaign]):
    """Campaign repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize campaign repository."""
        super().__init__(Campaign, session)

    async def find_by_status(
        self, status: str, limit: int | None = None
    ) -> list[Campaign]:
        """
        Get campaigns by status.

        Args:
            status: active, inactive or completed
            limit: Optional max number of rows

        Returns:
            List of campaigns
        """
        return await self.find_by(limit=limit, status=status)

    async def increment_current_amount(
        self, campaign_id: str, amount: str
    ) -> bool:
        """
        Add ``amount`` to the campaign's running total.

        Issued as one ``UPDATE .. SET current_amount = current_amount + :amount``
        so concurrent donations never lose an update.

        Args:
            campaign_id: Campaign ID
            amount: Wei amount as decimal string

        Returns:
            True if the campaign exists and was updated
        """
        stmt = (
            update(Campaign)
            .where(Campaign.id == campaign_id)
            .values(
                current_amount=Campaign.current_amount
                + bindparam("increment", amount, type_=WeiAmount())
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
