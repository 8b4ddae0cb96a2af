"""
Transfer dispatcher.

Turns one donation into up to two native transfers: the platform fee
first, then (only once the fee is mined successfully) the donation itself.
Nothing is persisted here.
"""

from dataclasses import dataclass

from loguru import logger

from pakchain.config.constants import INCLUSION_TIMEOUT
from pakchain.models.campaign import Campaign
from pakchain.services.blockchain.chain_gateway import ChainGateway
from pakchain.utils.amounts import parse_positive_wei
from pakchain.utils.exceptions import InvalidConfiguration, TransferRejected
from pakchain.utils.security import mask_address, mask_tx_hash
from pakchain.utils.validation import is_valid_address, normalize_address


@dataclass(frozen=True)
class TransferTarget:
    """Where a donation goes: campaign wallet plus optional platform fee."""

    receiving_address: str | None
    platform_fee_address: str | None = None
    platform_fee_amount: str | None = None

    @classmethod
    def from_campaign(cls, campaign: Campaign) -> "TransferTarget":
        return cls(
            receiving_address=campaign.receiving_wallet_address,
            platform_fee_address=campaign.platform_fee_address,
            platform_fee_amount=campaign.platform_fee_amount,
        )


@dataclass(frozen=True)
class DispatchResult:
    """Hashes of the submitted transfers."""

    transaction_hash: str
    fee_transaction_hash: str | None = None


class TransferDispatcher:
    """Submits the fee and donation transfers in order."""

    def __init__(
        self,
        gateway: ChainGateway,
        inclusion_timeout: float = INCLUSION_TIMEOUT,
    ) -> None:
        """
        Initialize dispatcher.

        Args:
            gateway: Chain gateway with a signer
            inclusion_timeout: Seconds to wait for the fee transfer to be mined
        """
        self.gateway = gateway
        self.inclusion_timeout = inclusion_timeout
        self.logger = logger.bind(service="TransferDispatcher")

    async def send_donation(
        self, campaign: TransferTarget, donation_amount: str
    ) -> str:
        """
        Send a donation and return the donation transfer hash.

        Raises:
            InvalidConfiguration: Bad target or amount, nothing submitted
            TransferRejected: Signer or network declined, nothing recorded
        """
        result = await self.dispatch(campaign, donation_amount)
        return result.transaction_hash

    async def dispatch(
        self, campaign: TransferTarget, donation_amount: str
    ) -> DispatchResult:
        """
        Send fee (if configured) then donation.

        Args:
            campaign: Transfer target
            donation_amount: Wei amount as decimal string

        Returns:
            DispatchResult with the donation hash and the fee hash (if any)

        Raises:
            InvalidConfiguration: Bad target or amount, nothing submitted
            TransferRejected: Signer or network declined, nothing recorded
        """
        recipient, amount_wei, fee = self._validate(campaign, donation_amount)

        fee_tx_hash: str | None = None
        if fee is not None:
            fee_address, fee_wei = fee
            fee_tx_hash = await self._send_fee(fee_address, fee_wei)

        try:
            tx_hash = await self.gateway.submit_transfer(recipient, amount_wei)
        except InvalidConfiguration:
            raise
        except Exception as e:
            self.logger.error(
                f"Donation transfer to {mask_address(recipient)} rejected: {e}"
            )
            raise TransferRejected(
                f"Donation transfer rejected: {e}"
            ) from e

        self.logger.info(
            f"Donation transfer submitted: {mask_tx_hash(tx_hash)} "
            f"-> {mask_address(recipient)}, amount={amount_wei} wei"
        )
        return DispatchResult(
            transaction_hash=tx_hash, fee_transaction_hash=fee_tx_hash
        )

    async def _send_fee(self, fee_address: str, fee_wei: int) -> str:
        """Submit the fee transfer and wait for a successful receipt."""
        try:
            fee_tx_hash = await self.gateway.submit_transfer(
                fee_address, fee_wei
            )
        except InvalidConfiguration:
            raise
        except Exception as e:
            self.logger.error(f"Platform fee transfer rejected: {e}")
            raise TransferRejected(
                f"Platform fee transfer rejected: {e}"
            ) from e

        self.logger.info(
            f"Platform fee submitted: {mask_tx_hash(fee_tx_hash)}, "
            f"waiting for inclusion"
        )

        try:
            receipt = await self.gateway.await_inclusion(
                fee_tx_hash, self.inclusion_timeout
            )
        except Exception as e:
            self.logger.error(
                f"Platform fee {mask_tx_hash(fee_tx_hash)} not confirmed: {e}"
            )
            raise TransferRejected(
                f"Platform fee transfer {fee_tx_hash} not confirmed: {e}"
            ) from e

        if receipt is None or receipt.get("status") != 1:
            self.logger.error(
                f"Platform fee {mask_tx_hash(fee_tx_hash)} reverted"
            )
            raise TransferRejected(
                f"Platform fee transfer {fee_tx_hash} reverted"
            )

        return fee_tx_hash

    @staticmethod
    def _validate(
        campaign: TransferTarget, donation_amount: str
    ) -> tuple[str, int, tuple[str, int] | None]:
        """Check the target and amounts before anything is signed."""
        if not is_valid_address(campaign.receiving_address):
            raise InvalidConfiguration(
                f"Invalid receiving address: {campaign.receiving_address!r}"
            )
        recipient = normalize_address(campaign.receiving_address)

        try:
            amount_wei = parse_positive_wei(donation_amount, "donation amount")
        except ValueError as e:
            raise InvalidConfiguration(
                str(e), user_message="Please enter a valid donation amount."
            ) from e

        has_fee_address = bool(campaign.platform_fee_address)
        has_fee_amount = campaign.platform_fee_amount not in (None, "")
        if has_fee_address != has_fee_amount:
            raise InvalidConfiguration(
                "Platform fee address and amount must be set together"
            )
        if not has_fee_address:
            return recipient, amount_wei, None

        if not is_valid_address(campaign.platform_fee_address):
            raise InvalidConfiguration(
                f"Invalid platform fee address: {campaign.platform_fee_address!r}"
            )
        try:
            fee_wei = parse_positive_wei(
                campaign.platform_fee_amount, "platform fee amount"
            )
        except ValueError as e:
            raise InvalidConfiguration(str(e)) from e

        return (
            recipient,
            amount_wei,
            (normalize_address(campaign.platform_fee_address), fee_wei),
        )
