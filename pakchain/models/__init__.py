"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from pakchain.models.admin import Admin
from pakchain.models.base import Base
from pakchain.models.campaign import Campaign
from pakchain.models.donation import Donation
from pakchain.models.enums import CampaignStatus, DonationStatus
from pakchain.models.user import User

__all__ = [
    # Base
    "Base",
    # Enums
    "CampaignStatus",
    "DonationStatus",
    # Models
    "Admin",
    "Campaign",
    "Donation",
    "User",
]
