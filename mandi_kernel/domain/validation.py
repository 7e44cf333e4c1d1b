"""
Lightweight domain validation helpers.

Pure checks with no I/O.  Each helper coerces caller input into the kernel's
types and raises ValidationError naming the offending field.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from mandi_kernel.db.types import round_money, to_decimal
from mandi_kernel.exceptions import ValidationError


def require_positive_bags(value: Any, name: str = "number_of_bags") -> int:
    """Bag counts are whole, strictly positive numbers."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(name, f"must be a whole number, got {value!r}")
    if value <= 0:
        raise ValidationError(name, "must be positive")
    return value


def require_bag_count(value: Any, name: str) -> int:
    """Whole, non-negative bag count (corrections may be zero)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(name, f"must be a whole number, got {value!r}")
    if value < 0:
        raise ValidationError(name, "must not be negative")
    return value


def require_amount(value: Any, name: str, *, allow_zero: bool = False) -> Decimal:
    """Two-decimal money amount, strictly positive unless ``allow_zero``."""
    if value is None:
        raise ValidationError(name, "is required")
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(name, f"must be numeric, got {value!r}") from None
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(name, "must be positive")
    return round_money(amount)


def optional_amount(value: Any, name: str) -> Decimal | None:
    if value is None:
        return None
    return require_amount(value, name, allow_zero=True)


def signed_amount(value: Any, name: str) -> Decimal:
    """Opening balances may be negative (advance paid / received)."""
    try:
        return round_money(to_decimal(0 if value is None else value))
    except ValueError:
        raise ValidationError(name, f"must be numeric, got {value!r}") from None


def require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(name, "is required")
    return value.strip()
