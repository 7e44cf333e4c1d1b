"""
Module: mandi_kernel.db.types
Responsibility: Annotated type aliases and utility functions for money,
    percentage and weight columns.  Centralizes precision and rounding so
    that every model, domain function and selector uses identical
    definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - round_money() is the ONLY sanctioned rounding function for money and
      weight values (two places, ROUND_HALF_UP).
    - to_decimal() is the ONLY sanctioned way to coerce caller input into a
      Decimal; floats go through str() so binary noise never reaches a
      ledger column.
    CRITICAL: No floats anywhere in the kernel.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Annotated, Any

from sqlalchemy import BigInteger, Numeric, String


# Rupee amount, 12 integer digits, 2 decimal places
Money = Annotated[Decimal, Numeric(14, 2)]

# Commission percentage, e.g. 2.00
Percent = Annotated[Decimal, Numeric(5, 2)]

# Weight in kilograms
Weight = Annotated[Decimal, Numeric(14, 2)]

# Monotonic sequence number
Sequence = Annotated[int, BigInteger]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for notes
LongText = Annotated[str, String(2000)]


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the ONLY sanctioned rounding function for financial values in
    the kernel.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a caller-supplied number into a Decimal.

    Accepts Decimal, int, float and numeric strings.  Floats are converted
    through their shortest repr.

    Raises:
        ValueError: If the value is None, a bool, or not numeric.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}") from None
    else:
        raise ValueError(f"not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result
