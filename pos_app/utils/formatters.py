"""
Formatting helpers for receipts and JSON views.
Amounts are kept at full precision internally and only rounded here.
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import datetime
from typing import Union, Optional


def _to_decimal(value: Union[int, float, Decimal, str, None]) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        num = Decimal(str(value).replace(",", ""))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not num.is_finite():
        return None
    return num


def money(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format an amount with exactly two fraction digits and thousands separators.

    Args:
        value: Amount to format

    Returns:
        Formatted string, or "-" when the value is not a number

    Examples:
        money(15) -> "15.00"
        money(Decimal('1237.5')) -> "1,237.50"
        money(Decimal('0.125')) -> "0.13"
        money(None) -> "-"
    """
    num = _to_decimal(value)
    if num is None:
        return "-"
    num = num.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    return f"{num:,.2f}"


def num(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Format a quantity without trailing zeros.

    Examples:
        num(5) -> "5"
        num(Decimal('2.50')) -> "2.5"
    """
    number = _to_decimal(value)
    if number is None:
        return "-"
    if number == number.to_integral_value():
        return f"{int(number):,}"
    return f"{number.normalize():,f}"


def datetime_short(value: Optional[datetime]) -> str:
    """YYYY-MM-DD HH:MM, or "-" if None."""
    if value is None:
        return "-"
    return value.strftime('%Y-%m-%d %H:%M')
