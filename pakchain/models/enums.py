"""Status enumerations shared by models and services."""

from enum import StrEnum


class CampaignStatus(StrEnum):
    """Campaign lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"


class DonationStatus(StrEnum):
    """
    Donation status.

    ``confirmed`` and ``failed`` are terminal.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DonationStatus.PENDING
