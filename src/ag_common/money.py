"""Decimal arithmetic helpers for Agon and Stoneworks Dollar amounts.

Balances are NUMERIC(20, 6) in PostgreSQL and Decimal in Python. Never float.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from pydantic import PlainSerializer

# Storage precision of every money column
MONEY_PLACES = Decimal("0.000001")
CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: object) -> Decimal:
    """Coerce an int/str/float/Decimal to Decimal. Floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a valid amount: {value!r}") from exc


def quantize(value: Decimal) -> Decimal:
    """Round to storage precision."""
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def round_cents(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(high, value))


def is_positive_finite(value: Decimal) -> bool:
    return value.is_finite() and value > ZERO


def money_display(amount: Decimal, symbol: str = "") -> str:
    """Format for humans: Decimal('1234.5') -> '1,234.50', negatives keep the sign."""
    rounded = round_cents(amount)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{symbol}{abs(rounded):,.2f}"


def as_float(value: Decimal | None) -> float | None:
    """JSON-friendly rendering for response payloads."""
    return float(value) if value is not None else None


# Response-schema field type: Decimal in Python, a JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
