from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError
from portal.time_utils import parse_iso_date


# Maximum money value: 9,999,999,999.99 fits Numeric(12, 2)
MAX_MONEY = Decimal("9999999999.99")
CENTS = Decimal("0.01")

# Largest value an INTEGER column holds on every supported backend
MAX_INT = 2_147_483_647


def clean_text(value: Any) -> str | None:
    """Strip strings; blank -> None."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        dec = Decimal(str(value))
    else:
        s = str(value).strip()
        if not s:
            return None
        try:
            dec = Decimal(s)
        except InvalidOperation:
            return None
    if not dec.is_finite():
        return None
    return dec


# ============================================================================
# Lenient parsing (catalog form input)
# ============================================================================
# Unparseable numeric input becomes None ("unset") instead of an error.

def parse_lenient_money(value: Any) -> Decimal | None:
    dec = _to_decimal(value) if value is not None else None
    if dec is None or dec < 0 or dec > MAX_MONEY:
        return None
    return dec.quantize(CENTS)


def parse_lenient_int(value: Any) -> int | None:
    dec = _to_decimal(value) if value is not None else None
    if dec is None or dec < 0 or dec > MAX_INT:
        return None
    return int(dec)


# ============================================================================
# Strict parsing (workflow input)
# ============================================================================

def require_int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().lstrip("-").isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{field} must be an integer")
    if abs(parsed) > MAX_INT:
        raise ValidationError(f"{field} is out of range")
    return parsed


def require_money(value: Any, field: str) -> Decimal:
    dec = _to_decimal(value) if value is not None else None
    if dec is None:
        raise ValidationError(f"{field} must be a number")
    if dec < 0:
        raise ValidationError(f"{field} must be >= 0")
    if dec > MAX_MONEY:
        raise ValidationError(f"{field} cannot exceed {MAX_MONEY}")
    return dec.quantize(CENTS)


def optional_money(value: Any, field: str) -> Decimal | None:
    """None / "" -> None (not provided); otherwise strict."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return require_money(value, field)


def require_date(value: Any, field: str):
    try:
        parsed = parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")
    if parsed is None:
        raise ValidationError(f"{field} is required")
    return parsed


def require_text(value: Any, field: str) -> str:
    cleaned = clean_text(value)
    if cleaned is None:
        raise ValidationError(f"{field} is required")
    return cleaned


def require_choice(value: Any, field: str, choices) -> str:
    cleaned = clean_text(value)
    if cleaned is None:
        raise ValidationError(f"{field} is required")
    for choice in choices:
        if cleaned.lower() == choice.lower():
            return choice
    raise ValidationError(f"Invalid {field} '{cleaned}'. Must be one of: {', '.join(choices)}")
