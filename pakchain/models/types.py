"""
Standard type definitions for database models.

Provides consistent types for monetary fields across all models.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import NUMERIC
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator

from pakchain.utils.amounts import parse_wei


# Raw on-chain amounts in wei
# Precision: 78 digits, no fractional part
# Range: full uint256
WeiNumericType = NUMERIC(78, 0)


class WeiAmount(TypeDecorator):
    """
    Base-unit amount exposed to Python as a decimal string.

    Stored as NUMERIC(78, 0) so SQL arithmetic such as
    ``current_amount + :amount`` is exact; values never pass through float.
    """

    impl = WeiNumericType
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> Decimal | None:
        if value is None:
            return None
        return Decimal(parse_wei(value))

    def process_result_value(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        return str(int(value))
