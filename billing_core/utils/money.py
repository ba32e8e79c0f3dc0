"""Money Utilities

Decimal-only arithmetic helpers. Nothing here ever returns a float.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from billing_core.config import settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """
    Parse user or wire input into a Decimal.

    Args:
        value: int, float, str, Decimal or None
        default: Returned for None, blank strings, unparsable input,
            NaN and infinities

    Returns:
        Parsed Decimal; never raises
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    else:
        # Floats go through str() so 0.1 stays 0.1
        text = str(value).strip()
        if not text:
            return default
        try:
            result = Decimal(text)
        except InvalidOperation:
            return default
    if not result.is_finite():
        return default
    return result


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """``amount * percent / 100`` without intermediate rounding"""
    return amount * percent / HUNDRED


def clamp(value, low, high):
    """Bound value into [low, high]; an inverted range collapses to low."""
    if high < low:
        return low
    return max(low, min(value, high))


def non_negative(value: Decimal) -> Decimal:
    return value if value > ZERO else ZERO


def round_money(value: Decimal, places: Optional[int] = None) -> Decimal:
    """Quantize half-up to the configured number of decimal places."""
    if places is None:
        places = settings.MONEY_DECIMAL_PLACES
    exponent = Decimal(1).scaleb(-places)
    return value.quantize(exponent, rounding=ROUND_HALF_UP)


def format_currency(value: Any, currency: Optional[str] = None) -> str:
    """
    Format an amount the way the console displays it (vi-VN grouping).

    VND has no minor unit: ``1000000`` -> ``"1.000.000 ₫"``.
    Other currencies keep two decimals: ``1234.5`` -> ``"1.234,50 USD"``.
    """
    currency = (currency or settings.CURRENCY).upper()
    amount = to_decimal(value)
    places = 0 if currency == "VND" else 2
    amount = round_money(amount, places)

    sign = "-" if amount < 0 else ""
    digits = f"{abs(amount):.{places}f}"
    whole, _, fraction = digits.partition(".")
    groups = []
    while len(whole) > 3:
        groups.insert(0, whole[-3:])
        whole = whole[:-3]
    groups.insert(0, whole)
    text = ".".join(groups)
    if fraction:
        text = f"{text},{fraction}"

    symbol = "₫" if currency == "VND" else currency
    return f"{sign}{text} {symbol}"
