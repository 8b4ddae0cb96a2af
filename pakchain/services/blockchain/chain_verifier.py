"""
Chain verifier.

Checks a transaction hash against the transfer the ledger expects:
mined, successful, to the expected recipient, and within 1% of the
expected amount. Read-only and safe to repeat at any time.
"""

from dataclasses import dataclass
from enum import StrEnum

from loguru import logger

from pakchain.services.blockchain.chain_gateway import ChainGateway
from pakchain.utils.amounts import parse_wei, within_tolerance
from pakchain.utils.exceptions import is_chain_transient
from pakchain.utils.security import mask_address, mask_tx_hash
from pakchain.utils.validation import addresses_equal


class VerificationReason(StrEnum):
    """Why a transaction did not verify."""

    NOT_FOUND = "not_found"
    NOT_MINED = "not_mined"
    REVERTED = "reverted"
    RECIPIENT_MISMATCH = "recipient_mismatch"
    AMOUNT_MISMATCH = "amount_mismatch"
    RPC_ERROR = "rpc_error"

    @property
    def is_transient(self) -> bool:
        """The same call may succeed later."""
        return self in (
            VerificationReason.NOT_FOUND,
            VerificationReason.NOT_MINED,
            VerificationReason.RPC_ERROR,
        )


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of ``ChainVerifier.verify``."""

    verified: bool
    block_number: int | None = None
    timestamp: int | None = None
    reason: VerificationReason | None = None

    @property
    def is_transient(self) -> bool:
        """Unverified, but worth retrying."""
        return (
            not self.verified
            and self.reason is not None
            and self.reason.is_transient
        )

    @classmethod
    def failed(cls, reason: VerificationReason) -> "VerificationResult":
        return cls(verified=False, reason=reason)


class ChainVerifier:
    """Verifies donation transfers against chain data."""

    def __init__(self, gateway: ChainGateway) -> None:
        """
        Initialize verifier.

        Args:
            gateway: Chain gateway (read access is enough)
        """
        self.gateway = gateway
        self.logger = logger.bind(service="ChainVerifier")

    async def verify(
        self,
        tx_hash: str,
        expected_recipient: str,
        expected_amount: str,
    ) -> VerificationResult:
        """
        Verify a transfer.

        Args:
            tx_hash: Transaction hash
            expected_recipient: Campaign receiving address
            expected_amount: Wei amount as decimal string

        Returns:
            VerificationResult; ``reason`` is set when not verified
        """
        expected_wei = parse_wei(expected_amount, "expected amount")

        try:
            tx = await self.gateway.get_transaction(tx_hash)
            if tx is None:
                self.logger.info(
                    f"Transaction {mask_tx_hash(tx_hash)} not found (yet)"
                )
                return VerificationResult.failed(VerificationReason.NOT_FOUND)

            # Pending transactions carry blockNumber=None
            if "blockNumber" in tx and tx["blockNumber"] is None:
                self.logger.info(
                    f"Transaction {mask_tx_hash(tx_hash)} not mined yet"
                )
                return VerificationResult.failed(VerificationReason.NOT_MINED)

            receipt = await self.gateway.get_transaction_receipt(tx_hash)
            if receipt is None:
                self.logger.info(
                    f"No receipt yet for {mask_tx_hash(tx_hash)}"
                )
                return VerificationResult.failed(VerificationReason.NOT_MINED)
            if receipt.get("status") != 1:
                self.logger.warning(
                    f"Transaction {mask_tx_hash(tx_hash)} reverted"
                )
                return VerificationResult.failed(VerificationReason.REVERTED)

            recipient = tx.get("to")
            if not addresses_equal(recipient, expected_recipient):
                self.logger.warning(
                    f"Recipient mismatch for {mask_tx_hash(tx_hash)}: "
                    f"expected {mask_address(expected_recipient)}, "
                    f"got {mask_address(recipient)}"
                )
                return VerificationResult.failed(
                    VerificationReason.RECIPIENT_MISMATCH
                )

            actual_wei = int(tx.get("value", 0))
            if not within_tolerance(actual_wei, expected_wei):
                self.logger.warning(
                    f"Amount mismatch for {mask_tx_hash(tx_hash)}: "
                    f"expected {expected_wei}, got {actual_wei}"
                )
                return VerificationResult.failed(
                    VerificationReason.AMOUNT_MISMATCH
                )

            block_number = int(receipt["blockNumber"])
            block = await self.gateway.get_block(block_number)
            timestamp = int(block["timestamp"])

        except Exception as e:
            if not is_chain_transient(e):
                raise
            self.logger.warning(
                f"RPC error verifying {mask_tx_hash(tx_hash)}: {e}"
            )
            return VerificationResult.failed(VerificationReason.RPC_ERROR)

        self.logger.success(
            f"Transaction {mask_tx_hash(tx_hash)} verified "
            f"in block {block_number}"
        )
        return VerificationResult(
            verified=True, block_number=block_number, timestamp=timestamp
        )
