"""
Formatting helpers for templates and flyer pages.
Prices are shown with two decimals, dates in long English form.
"""
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Union, Optional

CENTS = Decimal('0.01')


def to_money(value: Union[int, float, Decimal, str, None]) -> Optional[Decimal]:
    """Coerce to a 2-place Decimal, or None when the value is not a number."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        return None


def money(value: Union[int, float, Decimal, str, None]) -> str:
    """
    Price without currency sign.

    Examples:
        money(39.99) -> "39.99"
        money(7) -> "7.00"
        money(None) -> "-"
    """
    amount = to_money(value)
    return f"{amount:.2f}" if amount is not None else "-"


def dollars(value: Union[int, float, Decimal, str, None]) -> str:
    """Price with a dollar sign, e.g. "$32.99"."""
    amount = to_money(value)
    return f"${amount:.2f}" if amount is not None else "-"


def savings(original: Union[Decimal, str, float], sale: Union[Decimal, str, float]) -> str:
    """Original minus sale price, two decimals ("7.00")."""
    original_amount = to_money(original) or Decimal('0')
    sale_amount = to_money(sale) or Decimal('0')
    return f"{original_amount - sale_amount:.2f}"


def ordinal(day: int) -> str:
    """1 -> 1st, 2 -> 2nd, 11 -> 11th, 22 -> 22nd."""
    if 11 <= day % 100 <= 13:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(day % 10, 'th')
    return f"{day}{suffix}"


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def long_date(value: Union[date, datetime, str, None], with_year: bool = False) -> str:
    """October 1st / October 31st, 2024."""
    if not value:
        return "-"
    day = _as_date(value)
    text = f"{day:%B} {ordinal(day.day)}"
    return f"{text}, {day.year}" if with_year else text


def date_range(start: Union[date, datetime, str], end: Union[date, datetime, str]) -> str:
    """
    Sale period as printed on the flyer header.

    Examples:
        date_range(date(2024, 10, 1), date(2024, 10, 31)) -> "October 1st - October 31st, 2024"
    """
    return f"{long_date(start)} - {long_date(end, with_year=True)}"


def slugify(name: str) -> str:
    """Lowercase, every character outside [a-z0-9] becomes an underscore."""
    return re.sub(r'[^a-z0-9]', '_', (name or '').lower())
