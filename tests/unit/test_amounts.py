"""Unit tests for the wei amount codec."""

from decimal import Decimal

import pytest

from pakchain.models.types import WeiAmount
from pakchain.utils.amounts import (
    format_ether,
    parse_positive_wei,
    parse_wei,
    tolerance_for,
    within_tolerance,
)


class TestParseWei:
    """Tests for parsing decimal-string amounts."""

    def test_parses_digit_string(self):
        assert parse_wei("1000000000000000000") == 10**18

    def test_beyond_float_precision_is_exact(self):
        """Values above 2**53 must not lose precision."""
        assert parse_wei("9007199254740993") == 9007199254740993

    def test_accepts_int(self):
        assert parse_wei(42) == 42

    @pytest.mark.parametrize("value", ["", " ", "-1", "1.5", "1e18", "0x10", "abc"])
    def test_rejects_non_integer_strings(self, value):
        with pytest.raises(ValueError):
            parse_wei(value)

    @pytest.mark.parametrize("value", [1.0, True, None, Decimal("1")])
    def test_rejects_other_types(self, value):
        with pytest.raises(ValueError):
            parse_wei(value)

    def test_rejects_negative_int(self):
        with pytest.raises(ValueError):
            parse_wei(-1)

    def test_positive_rejects_zero(self):
        with pytest.raises(ValueError, match="positive"):
            parse_positive_wei("0")


class TestFormatEther:
    """Tests for display-unit rendering."""

    def test_format_ether(self):
        assert format_ether("1500000000000000000") == "1.5"
        assert format_ether("2000000000000000000") == "2"
        assert format_ether("0") == "0"

    def test_format_ether_keeps_smallest_unit(self):
        assert format_ether("1") == "0.000000000000000001"
        max_uint = format_ether(str(2**256 - 1))
        assert max_uint.startswith("115792089237316195423570985008687907")
        assert max_uint.endswith(".564039457584007913129639935")


class TestTolerance:
    """Tests for the 1% amount tolerance."""

    def test_tolerance_is_integer_division(self):
        assert tolerance_for(10**18) == 10**16
        assert tolerance_for(99) == 0

    def test_exact_match(self):
        assert within_tolerance(10**18, 10**18)

    def test_one_percent_over_passes(self):
        assert within_tolerance(1_010_000_000_000_000_000, 10**18)

    def test_one_percent_under_passes(self):
        assert within_tolerance(990_000_000_000_000_000, 10**18)

    def test_just_over_one_percent_fails(self):
        assert not within_tolerance(1_011_000_000_000_000_000, 10**18)

    def test_one_wei_past_bound_fails(self):
        assert not within_tolerance(1_010_000_000_000_000_001, 10**18)


class TestWeiAmountColumn:
    """Tests for the NUMERIC(78, 0) column type."""

    def test_bind_converts_string_to_decimal(self):
        column_type = WeiAmount()
        bound = column_type.process_bind_param("9007199254740993", None)
        assert bound == Decimal("9007199254740993")

    def test_bind_rejects_fraction(self):
        with pytest.raises(ValueError):
            WeiAmount().process_bind_param("1.5", None)

    def test_result_converts_to_string(self):
        column_type = WeiAmount()
        assert column_type.process_result_value(
            Decimal("1009007199254740993"), None
        ) == "1009007199254740993"

    def test_none_passes_through(self):
        column_type = WeiAmount()
        assert column_type.process_bind_param(None, None) is None
        assert column_type.process_result_value(None, None) is None
