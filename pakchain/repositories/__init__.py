"""
Repositories.

Typed async data access per entity.
"""

from pakchain.repositories.campaign_repository import CampaignRepository
from pakchain.repositories.donation_repository import DonationRepository
from pakchain.repositories.user_repository import UserRepository

__all__ = [
    "CampaignRepository",
    "DonationRepository",
    "UserRepository",
]
