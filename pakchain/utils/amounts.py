"""
Native-asset amount codec.

Amounts are integers in the smallest unit (wei). They cross every boundary
as decimal strings and are handled as Python ``int`` in between, so values
above 2**53 never go through floating point.
"""

from decimal import Decimal, localcontext

from pakchain.config.constants import AMOUNT_TOLERANCE_DIVISOR, NATIVE_DECIMALS


WEI_PER_ETHER = 10**NATIVE_DECIMALS

# uint256 has 78 decimal digits; keep Decimal math exact across that range
_DECIMAL_PRECISION = 100


def parse_wei(value: str | int, field: str = "amount") -> int:
    """
    Parse a base-unit amount.

    Args:
        value: Decimal string of digits, or an int
        field: Field name used in error messages

    Returns:
        Amount as a non-negative int

    Raises:
        ValueError: For floats, fractions, signs, blanks or negative ints

    Examples:
        >>> parse_wei("9007199254740993")
        9007199254740993
    """
    if isinstance(value, bool):
        raise ValueError(f"{field} must be an integer amount, got bool")

    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"{field} must not be negative")
        return value

    if not isinstance(value, str):
        raise ValueError(
            f"{field} must be a decimal string, got {type(value).__name__}"
        )

    text = value.strip()
    if not text or not text.isascii() or not text.isdigit():
        raise ValueError(
            f"{field} must be a non-negative integer decimal string, got {value!r}"
        )
    return int(text)


def parse_positive_wei(value: str | int, field: str = "amount") -> int:
    """Parse a base-unit amount that must be greater than zero."""
    amount = parse_wei(value, field)
    if amount <= 0:
        raise ValueError(f"{field} must be positive")
    return amount


def to_wei_string(value: int) -> str:
    """Encode a base-unit amount for storage or transport."""
    if value < 0:
        raise ValueError("Amounts must not be negative")
    return str(value)


def format_ether(amount_wei: str | int) -> str:
    """Render a wei amount in display units without trailing zeros."""
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        value = Decimal(parse_wei(amount_wei)) / Decimal(WEI_PER_ETHER)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def tolerance_for(expected_wei: int) -> int:
    """Allowed absolute deviation from the expected amount (1%)."""
    return expected_wei // AMOUNT_TOLERANCE_DIVISOR


def within_tolerance(actual_wei: int, expected_wei: int) -> bool:
    """True if ``|actual - expected| <= expected / 100``."""
    return abs(actual_wei - expected_wei) <= tolerance_for(expected_wei)
