"""Address, hash and email validation shared across the project."""

import re

from eth_utils import to_checksum_address
from loguru import logger
from web3 import Web3


ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_HEX_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_wallet_address(address: str | None) -> tuple[bool, str | None]:
    """
    Validate a chain address.

    Lower-case and upper-case hex are accepted as is; mixed case must carry a
    valid EIP-55 checksum.

    Args:
        address: Wallet address to validate

    Returns:
        Tuple of (is_valid, error_message)

    Examples:
        >>> validate_wallet_address("0x1234567890123456789012345678901234567890")
        (True, None)
        >>> validate_wallet_address("invalid")
        (False, 'Address must start with 0x')
    """
    if not address or not isinstance(address, str):
        return False, "Address is empty"

    address = address.strip()

    if not address:
        return False, "Address is empty"

    if not address.startswith("0x"):
        return False, "Address must start with 0x"

    if len(address) != 42:
        return False, "Address must be 42 characters"

    if not _HEX_ADDRESS_RE.match(address):
        return False, "Invalid address format"

    body = address[2:]
    if body != body.lower() and body != body.upper():
        try:
            if not Web3.is_checksum_address(address):
                return False, "Invalid address checksum"
        except (ValueError, TypeError) as e:
            logger.debug(f"Checksum validation failed for {address}: {e}")
            return False, "Invalid address checksum"

    return True, None


def is_valid_address(address: str | None) -> bool:
    """Return True if ``address`` is a syntactically valid chain address."""
    is_valid, _ = validate_wallet_address(address)
    return is_valid


def normalize_address(address: str) -> str:
    """
    Normalize an address for storage and comparison.

    Chain addresses compare case-insensitively, so the ledger stores them
    lower-cased.

    Raises:
        ValueError: If address is invalid
    """
    is_valid, error = validate_wallet_address(address)
    if not is_valid:
        raise ValueError(f"Invalid wallet address {address!r}: {error}")
    return address.strip().lower()


def to_checksum(address: str) -> str:
    """Checksummed form for signing and RPC calls."""
    return to_checksum_address(normalize_address(address))


def addresses_equal(left: str | None, right: str | None) -> bool:
    """Case-insensitive address equality; None never matches."""
    if not left or not right:
        return False
    return left.strip().lower() == right.strip().lower()


def validate_tx_hash(tx_hash: str | None) -> bool:
    """Check a transaction hash is 0x followed by 64 hex characters."""
    return bool(tx_hash) and bool(_TX_HASH_RE.match(tx_hash.strip()))


def normalize_tx_hash(tx_hash: str) -> str:
    """
    Lower-case a transaction hash so uniqueness holds across clients.

    Raises:
        ValueError: If hash is malformed
    """
    if not validate_tx_hash(tx_hash):
        raise ValueError(f"Invalid transaction hash: {tx_hash!r}")
    return tx_hash.strip().lower()


def validate_email(email: str | None) -> tuple[bool, str | None]:
    """
    Validate an email address used for one-time codes.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not email or not isinstance(email, str):
        return False, "Email is empty"

    email = email.strip()

    if "@" not in email:
        return False, "Email must contain '@'"

    if not _EMAIL_RE.match(email):
        return False, "Invalid email format"

    return True, None
