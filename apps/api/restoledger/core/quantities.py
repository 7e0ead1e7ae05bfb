"""
Numeric coercion and rounding helpers shared by the ledger services.

All stock quantities are handled as ``Decimal`` and stored with four decimal
places, money with two (accumulators keep four to avoid drift on merges).
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from restoledger.core.config import get_settings
from restoledger.core.exceptions import ValidationError

QUANTITY_PLACES = Decimal("0.0001")
MONEY_PLACES = Decimal("0.0001")
ZERO = Decimal("0")
ONE = Decimal("1")


def quantize_qty(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Coerce ints, floats, strings and Decimals into a finite Decimal.

    Returns ``default`` for None, empty strings, garbage and non-finite values.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def validate_quantity(value: Any, field: str = "quantity") -> Decimal:
    """
    Validate a strictly positive quantity.

    Raises:
        ValidationError: non-numeric, non-finite, zero, negative or above MAX_QUANTITY
    """
    qty = to_decimal(value)
    if qty is None:
        raise ValidationError(f"{field} must be a finite number", details={"field": field, "value": str(value)})
    if qty <= 0:
        raise ValidationError(f"{field} must be positive", details={"field": field, "value": str(value)})
    if qty > get_settings().MAX_QUANTITY:
        raise ValidationError(f"{field} exceeds the maximum allowed", details={"field": field, "value": str(value)})
    return qty


def validate_non_negative(value: Any, field: str) -> Decimal:
    """Validate a zero-or-positive amount such as a counted stock or a price."""
    amount = to_decimal(value)
    if amount is None or amount < 0:
        raise ValidationError(f"{field} must be a non-negative number", details={"field": field, "value": str(value)})
    return amount


def period_id(moment: date | datetime) -> int:
    """Reporting period identifier, e.g. 202603 for March 2026."""
    return moment.year * 100 + moment.month
