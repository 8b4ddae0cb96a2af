"""
Chain gateway.

Thin async boundary to the chain: submit a native transfer, read a
transaction, its receipt and its block, and wait for inclusion. The
dispatcher and verifier depend only on the ``ChainGateway`` protocol so
tests can swap in an in-memory chain.
"""

import asyncio
from collections.abc import Mapping
from typing import Any, Protocol

from eth_account import Account
from eth_account.signers.local import LocalAccount
from loguru import logger
from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted, TransactionNotFound

from pakchain.config.constants import (
    BLOCKCHAIN_RPC_TIMEOUT,
    BLOCKCHAIN_TIMEOUT,
    MAX_GAS_PRICE_GWEI,
    NATIVE_TRANSFER_GAS_LIMIT,
)
from pakchain.config.settings import settings
from pakchain.utils.exceptions import InvalidConfiguration
from pakchain.utils.security import mask_address, mask_tx_hash
from pakchain.utils.validation import to_checksum


class ChainGateway(Protocol):
    """Capabilities the donation flow needs from a chain node and signer."""

    async def submit_transfer(self, to: str, amount_wei: int) -> str:
        """Sign and broadcast a native transfer, return its hash."""
        ...

    async def get_transaction(self, tx_hash: str) -> Mapping[str, Any] | None:
        """Transaction with ``to`` and ``value`` keys, or None if unknown."""
        ...

    async def get_transaction_receipt(
        self, tx_hash: str
    ) -> Mapping[str, Any] | None:
        """Receipt with ``status`` and ``blockNumber`` keys, or None."""
        ...

    async def get_block(self, block_number: int) -> Mapping[str, Any]:
        """Block with a ``timestamp`` key."""
        ...

    async def await_inclusion(
        self, tx_hash: str, timeout: float
    ) -> Mapping[str, Any]:
        """Wait for the receipt; raise ``TimeoutError`` past ``timeout``."""
        ...


class Web3ChainGateway:
    """
    ``ChainGateway`` over ``AsyncWeb3``.

    The signer (optional) is bound to one chain id; every signed
    transaction carries it and ``ensure_chain`` checks the node agrees.
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        chain_id: int,
        private_key: str | None = None,
    ) -> None:
        """
        Initialize gateway.

        Args:
            web3: AsyncWeb3 instance
            chain_id: Chain the signer is bound to
            private_key: Signer key for server-side dispatch (optional)
        """
        self.web3 = web3
        self.chain_id = chain_id
        self._account: LocalAccount | None = None

        # Serializes nonce acquisition + broadcast for this signer
        self._nonce_lock = asyncio.Lock()

        if private_key:
            self._account = Account.from_key(private_key)
            logger.info(
                f"Chain gateway initialized with signer "
                f"{mask_address(self._account.address)} on chain {chain_id}"
            )
        else:
            logger.info(
                f"Chain gateway initialized read-only on chain {chain_id}"
            )

    @classmethod
    def from_settings(cls) -> "Web3ChainGateway":
        """Build a gateway from application settings."""
        web3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                settings.rpc_url,
                request_kwargs={"timeout": BLOCKCHAIN_RPC_TIMEOUT},
            )
        )
        return cls(
            web3=web3,
            chain_id=settings.chain_id,
            private_key=settings.donor_private_key,
        )

    @property
    def signer_address(self) -> str | None:
        """Address of the configured signer."""
        return self._account.address if self._account else None

    async def ensure_chain(self) -> None:
        """
        Check the RPC endpoint serves the configured chain.

        Raises:
            InvalidConfiguration: If the node reports another chain id
        """
        remote_chain_id = await asyncio.wait_for(
            self.web3.eth.chain_id, timeout=BLOCKCHAIN_TIMEOUT
        )
        if remote_chain_id != self.chain_id:
            raise InvalidConfiguration(
                f"RPC serves chain {remote_chain_id}, "
                f"signer is bound to chain {self.chain_id}",
                user_message="Wrong network. Please switch to the supported network.",
            )

    async def _get_gas_price(self) -> int:
        """Current gas price, capped at MAX_GAS_PRICE_GWEI."""
        rpc_gas = await asyncio.wait_for(
            self.web3.eth.gas_price, timeout=BLOCKCHAIN_TIMEOUT
        )
        max_gas = Web3.to_wei(MAX_GAS_PRICE_GWEI, "gwei")
        if rpc_gas > max_gas:
            logger.warning(
                f"Gas price capped! RPC: {Web3.from_wei(rpc_gas, 'gwei')} Gwei, "
                f"Used: {MAX_GAS_PRICE_GWEI} Gwei"
            )
            return int(max_gas)
        return int(rpc_gas)

    async def submit_transfer(self, to: str, amount_wei: int) -> str:
        """
        Sign and broadcast a native transfer.

        Args:
            to: Recipient address
            amount_wei: Amount in wei

        Returns:
            Transaction hash (0x-prefixed, lower-case)

        Raises:
            InvalidConfiguration: If no signer is configured
            Web3Exception: If the node rejects the transaction
        """
        if not self._account:
            raise InvalidConfiguration(
                "No signer configured for server-side dispatch",
                user_message="Donations cannot be sent right now.",
            )

        recipient = to_checksum(to)

        async with self._nonce_lock:
            nonce = await asyncio.wait_for(
                self.web3.eth.get_transaction_count(
                    self._account.address, "pending"
                ),
                timeout=BLOCKCHAIN_TIMEOUT,
            )
            gas_price = await self._get_gas_price()

            tx = {
                "to": recipient,
                "value": amount_wei,
                "gas": NATIVE_TRANSFER_GAS_LIMIT,
                "gasPrice": gas_price,
                "nonce": nonce,
                "chainId": self.chain_id,
            }
            signed = self._account.sign_transaction(tx)
            tx_hash = await asyncio.wait_for(
                self.web3.eth.send_raw_transaction(signed.raw_transaction),
                timeout=BLOCKCHAIN_TIMEOUT,
            )

        tx_hash_hex = Web3.to_hex(tx_hash).lower()
        logger.info(
            f"Transfer submitted: {mask_tx_hash(tx_hash_hex)} "
            f"to {mask_address(recipient)}, value={amount_wei} wei, nonce={nonce}"
        )
        return tx_hash_hex

    async def get_transaction(self, tx_hash: str) -> Mapping[str, Any] | None:
        """Transaction by hash, or None if the node does not know it."""
        try:
            return await asyncio.wait_for(
                self.web3.eth.get_transaction(tx_hash),
                timeout=BLOCKCHAIN_TIMEOUT,
            )
        except TransactionNotFound:
            return None

    async def get_transaction_receipt(
        self, tx_hash: str
    ) -> Mapping[str, Any] | None:
        """Receipt by hash, or None if not mined yet."""
        try:
            return await asyncio.wait_for(
                self.web3.eth.get_transaction_receipt(tx_hash),
                timeout=BLOCKCHAIN_TIMEOUT,
            )
        except TransactionNotFound:
            return None

    async def get_block(self, block_number: int) -> Mapping[str, Any]:
        """Block by number."""
        return await asyncio.wait_for(
            self.web3.eth.get_block(block_number),
            timeout=BLOCKCHAIN_TIMEOUT,
        )

    async def await_inclusion(
        self, tx_hash: str, timeout: float
    ) -> Mapping[str, Any]:
        """
        Wait until the transaction is mined.

        Raises:
            TimeoutError: If no receipt appears within ``timeout`` seconds
        """
        try:
            return await self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout
            )
        except TimeExhausted as e:
            raise TimeoutError(
                f"Transaction {tx_hash} not mined within {timeout}s"
            ) from e
