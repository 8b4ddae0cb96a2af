"""Donation flow, reconciliation and ledger repair."""

from pakchain.services.donation.donation_service import (
    DonationOutcome,
    DonationService,
)
from pakchain.services.donation.ledger_repair_service import LedgerRepairService
from pakchain.services.donation.reconciliation_recorder import (
    ReconciliationRecorder,
    ReconciliationResult,
)

__all__ = [
    "DonationOutcome",
    "DonationService",
    "LedgerRepairService",
    "ReconciliationRecorder",
    "ReconciliationResult",
]
