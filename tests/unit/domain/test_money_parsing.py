"""Unit tests for amount and currency parsing."""

from decimal import Decimal

import pytest

from finsync.domain.normalization.exceptions import RecordValidationError
from finsync.domain.shared.exceptions import ErrorCode
from finsync.domain.normalization.money import (
    minor_units,
    parse_amount,
    parse_currency,
)


class TestMinorUnits:
    @pytest.mark.parametrize(
        ("currency", "expected"),
        [("USD", 2), ("EUR", 2), ("JPY", 0), ("KRW", 0), ("KWD", 3), ("BHD", 3)],
    )
    def test_iso_4217_minor_units(self, currency, expected):
        assert minor_units(currency) == expected


class TestParseAmount:
    @pytest.mark.parametrize(
        ("value", "currency", "expected"),
        [
            ("0.125", "USD", Decimal("0.13")),
            ("-0.125", "USD", Decimal("-0.13")),
            ("1234.5", "JPY", Decimal("1235")),
            ("1.2345", "KWD", Decimal("1.235")),
            (19.99, "USD", Decimal("19.99")),
            (7, "EUR", Decimal("7.00")),
            (Decimal("3.1"), "EUR", Decimal("3.10")),
        ],
    )
    def test_rounds_half_up_to_currency_precision(self, value, currency, expected):
        amount = parse_amount(value, currency)

        assert amount == expected
        assert amount.as_tuple().exponent == -minor_units(currency)

    def test_negative_zero_loses_its_sign(self):
        amount = parse_amount("-0.001", "USD")

        assert amount == Decimal("0.00")
        assert not amount.is_signed()

    def test_float_goes_through_its_shortest_repr(self):
        # 0.1 + 0.2 is 0.30000000000000004 as a binary float
        assert parse_amount(0.1 + 0.2, "USD") == Decimal("0.30")

    def test_error_carries_the_record_id(self):
        with pytest.raises(RecordValidationError) as exc_info:
            parse_amount("12..5", "USD", external_id="tx_1")

        assert exc_info.value.external_id == "tx_1"
        assert exc_info.value.field == "amount"

    @pytest.mark.parametrize("value", ["42,50", "1,234.56", "1.234,56"])
    def test_comma_amounts_are_rejected(self, value):
        with pytest.raises(RecordValidationError) as exc_info:
            parse_amount(value, "EUR", external_id="tx_1")

        assert exc_info.value.code == ErrorCode.INVALID_AMOUNT


class TestParseCurrency:
    def test_canonicalizes_case_and_whitespace(self):
        assert parse_currency(" gbp ") == "GBP"

    @pytest.mark.parametrize("value", ["ÄÖÜ", "EU", "EURO", 978])
    def test_rejects_non_iso_codes(self, value):
        with pytest.raises(RecordValidationError):
            parse_currency(value)
