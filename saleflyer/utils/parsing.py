"""Parsing helpers for form/JSON input at the service boundary."""
import re
from datetime import date, datetime
from typing import Any, Optional

from saleflyer.exceptions import ValidationError

HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_required_text(value: Any, field: str, max_length: int = 200) -> str:
    """Strip and require a non-empty string."""
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def parse_optional_text(value: Any, max_length: int = 512) -> Optional[str]:
    """Blank strings become None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"Value must be at most {max_length} characters")
    return text


def parse_hex_color(value: Any, field: str) -> str:
    """
    Validate a CSS hex color.

    Examples:
        parse_hex_color('#F59E0B', 'background_color') -> '#F59E0B'
        parse_hex_color('orange', 'background_color') -> ValidationError
    """
    text = str(value or '').strip()
    if not HEX_COLOR_PATTERN.match(text):
        raise ValidationError(f"{field} must be a hex color like #F59E0B")
    return text.upper()


def parse_date(value: Any, field: str) -> date:
    """Accept date objects or ISO strings (YYYY-MM-DD, optionally with a time part)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or '').strip()
    if not text:
        raise ValidationError(f"{field} is required")
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f"{field} must be a date in YYYY-MM-DD format")


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'on', 'yes')
