"""
Donation error taxonomy.

Every error carries a donor-facing message next to the technical detail, so
callers can surface ``user_message`` without leaking internals.
"""

from sqlalchemy.exc import SQLAlchemyError
from web3.exceptions import Web3Exception


class DonationError(Exception):
    """Base class for donation flow errors."""

    user_message = "Donation failed. Please try again."

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class InvalidConfiguration(DonationError):
    """Campaign or signer is configured in a way that forbids donating."""

    user_message = (
        "This campaign is not configured to receive donations. "
        "Please contact the administrator."
    )


class CampaignNotFound(DonationError):
    """Campaign id does not resolve to a record."""

    user_message = "Campaign not found."


class TransferRejected(DonationError):
    """Signer or network declined a transfer. Nothing was recorded."""

    user_message = "Donation failed, nothing was recorded."


class VerificationTransient(DonationError):
    """Transaction is not indexed yet; verification should be retried later."""

    user_message = (
        "Your donation was sent and is waiting for confirmation. "
        "It will be credited once the network confirms it."
    )

    def __init__(
        self,
        message: str,
        tx_hash: str,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message, user_message)
        self.tx_hash = tx_hash


class VerificationFailed(DonationError):
    """Transaction does not match the expected transfer and is not credited."""

    user_message = "Transaction verification failed. Please contact support."

    def __init__(
        self,
        message: str,
        tx_hash: str,
        reason: str,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message, user_message)
        self.tx_hash = tx_hash
        self.reason = reason


class ReconciliationPartial(DonationError):
    """
    Donation row is durable but a derived aggregate was not updated.

    Non-fatal: returned as a warning and repaired by replaying reconciliation.
    """

    user_message = "Donation recorded."

    def __init__(self, message: str, tx_hash: str, step: str) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash
        self.step = step


class OtpError(Exception):
    """One-time code could not be issued or verified."""


# Exception categories based on handling strategy

# Retry later - the chain node may not have indexed the data yet
CHAIN_TRANSIENT = (
    Web3Exception,
    ConnectionError,
    TimeoutError,
    OSError,
)

# Must log and leave for repair - aggregate update failures
STORE_RECOVERABLE = (
    SQLAlchemyError,
)


def is_chain_transient(exc: Exception) -> bool:
    """
    Check if a chain read failure is worth retrying.

    Args:
        exc: Exception to check

    Returns:
        True if the call can be retried
    """
    return isinstance(exc, CHAIN_TRANSIENT)
