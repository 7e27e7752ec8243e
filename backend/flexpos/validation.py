from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from .money import MAX_PRICE_CENTS, amount_to_cents, round_half_up

MAX_STOCK = 999_999
MAX_QUANTITY = MAX_STOCK
MAX_SEARCH_LENGTH = 100
_SEARCH_STRIP_CHARS = "<>'\""


def is_empty(value: Any) -> bool:
    """None, blank strings and empty lists all count as 'no value'."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def looks_like_date(text: str) -> bool:
    """A '/' anywhere or a '-' anywhere but the sign position reads as a date."""
    return "/" in text or "-" in text[1:]


def parse_decimal(value: Any, label: str) -> Decimal:
    """
    Strict numeric parsing shared by prices, stock and number fields.

    Rejects booleans, date-shaped strings ("12-11", "2025/11/12"),
    scientific notation and non-finite values rather than guessing.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        parsed = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{label} must be a number")
        if looks_like_date(stripped):
            raise ValidationError(f"{label} must be a number, not a date")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{label} must be a plain number (scientific notation not allowed)")
        try:
            parsed = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{label} must be a number")
    else:
        raise ValidationError(f"{label} must be a number")

    if not parsed.is_finite():
        raise ValidationError(f"{label} must be a finite number")
    return parsed


def clamp_decimal(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def parse_price_cents(value: Any, label: str) -> int:
    """Currency amount -> cents, rounded half-up to 2 decimals and clamped to [0, 999999.99]."""
    # Clamp before rounding: quantize fails past the context precision
    amount = clamp_decimal(parse_decimal(value, label), Decimal(0), Decimal(MAX_PRICE_CENTS) / 100)
    return amount_to_cents(amount)


def parse_stock(value: Any, label: str = "stock") -> int:
    """Stock is rounded to the nearest integer and clamped to [0, MAX_STOCK]."""
    return round_half_up(clamp_decimal(parse_decimal(value, label), Decimal(0), Decimal(MAX_STOCK)))


def parse_quantity(value: Any, label: str = "quantity") -> int:
    """Order quantities must be positive plain integers."""
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer")
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and value.strip().isdigit():
        qty = int(value.strip())
    else:
        raise ValidationError(f"{label} must be an integer")
    if qty <= 0:
        raise ValidationError(f"{label} must be > 0")
    if qty > MAX_QUANTITY:
        raise ValidationError(f"{label} must be <= {MAX_QUANTITY}")
    return qty


def parse_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{label} must be an integer")


def clean_text(value: Any, label: str, *, max_length: int) -> str | None:
    """Trim text input; numbers are accepted and stringified, containers are not."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise ValidationError(f"{label} must be text")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{label} exceeds max length {max_length}")
    return text


def sanitize_search_term(term: str | None) -> str:
    if not term or not isinstance(term, str):
        return ""
    cleaned = term.strip()[:MAX_SEARCH_LENGTH]
    for ch in _SEARCH_STRIP_CHARS:
        cleaned = cleaned.replace(ch, "")
    return cleaned.strip()
