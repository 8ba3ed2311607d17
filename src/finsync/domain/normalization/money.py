"""Currency and amount parsing.

Amounts are always handled as ``Decimal`` quantized to the currency's
ISO 4217 minor unit. Binary floats are never used for arithmetic.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from finsync.domain.normalization.exceptions import RecordValidationError
from finsync.domain.shared.exceptions import ErrorCode

# Currencies whose minor unit differs from the default of 2 decimals
_MINOR_UNIT_EXCEPTIONS: dict[str, int] = {
    "BIF": 0,
    "CLP": 0,
    "DJF": 0,
    "GNF": 0,
    "ISK": 0,
    "JPY": 0,
    "KMF": 0,
    "KRW": 0,
    "PYG": 0,
    "RWF": 0,
    "UGX": 0,
    "VND": 0,
    "VUV": 0,
    "XAF": 0,
    "XOF": 0,
    "XPF": 0,
    "BHD": 3,
    "IQD": 3,
    "JOD": 3,
    "KWD": 3,
    "LYD": 3,
    "OMR": 3,
    "TND": 3,
}
DEFAULT_MINOR_UNITS = 2


def minor_units(currency: str) -> int:
    return _MINOR_UNIT_EXCEPTIONS.get(currency, DEFAULT_MINOR_UNITS)


def parse_currency(value: Any, external_id: str | None = None) -> str:
    """Validate and canonicalize an ISO 4217 currency code."""
    if not isinstance(value, str):
        msg = f"Missing or non-text currency: {value!r}"
        raise RecordValidationError(
            msg,
            ErrorCode.INVALID_CURRENCY,
            external_id=external_id,
            field="currency",
        )

    code = value.strip().upper()
    if len(code) != 3 or not code.isalpha() or not code.isascii():
        msg = f"Invalid currency code: {value!r}"
        raise RecordValidationError(
            msg,
            ErrorCode.INVALID_CURRENCY,
            external_id=external_id,
            field="currency",
        )
    return code


def parse_amount(value: Any, currency: str, external_id: str | None = None) -> Decimal:
    """Parse a provider amount into a fixed-point ``Decimal``.

    Accepts ``Decimal``, ``int`` and plain numeric strings. Strings with
    grouping or decimal commas are rejected rather than guessed at. Floats
    are converted through their shortest string representation before
    quantizing.
    """
    if value is None or isinstance(value, bool):
        msg = f"Missing or invalid amount: {value!r}"
        raise RecordValidationError(
            msg,
            ErrorCode.INVALID_AMOUNT,
            external_id=external_id,
            field="amount",
        )

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = Decimal(value.strip())
        else:
            raise InvalidOperation
    except InvalidOperation as e:
        msg = f"Unparsable amount: {value!r}"
        raise RecordValidationError(
            msg,
            ErrorCode.INVALID_AMOUNT,
            external_id=external_id,
            field="amount",
        ) from e

    if not amount.is_finite():
        msg = f"Non-finite amount: {value!r}"
        raise RecordValidationError(
            msg,
            ErrorCode.INVALID_AMOUNT,
            external_id=external_id,
            field="amount",
        )

    exponent = Decimal(1).scaleb(-minor_units(currency))
    quantized = amount.quantize(exponent, rounding=ROUND_HALF_UP)
    if quantized.is_zero():
        # Drop the sign of negative zero so equal inputs hash and compare equal
        return abs(quantized)
    return quantized


def parse_booking_date(value: Any, external_id: str | None = None) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value.strip()) >= 10:
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            pass

    msg = f"Invalid booking date: {value!r}"
    raise RecordValidationError(
        msg,
        ErrorCode.INVALID_DATE,
        external_id=external_id,
        field="booked_on",
    )
