"""
Fixed-point money helpers. Scale 2, ROUND_HALF_UP.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from stocktrade.errors import InvalidArgument

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_decimal(value: Decimal | int | float | str) -> Decimal:
    """Convert to Decimal. Floats go through str() so 0.1 stays 0.1."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidArgument(f"Not a number: {value!r}")
    try:
        if isinstance(value, (int, str)):
            return Decimal(value)
        # floats and numpy scalars
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as e:
        raise InvalidArgument(f"Not a number: {value!r}") from e


def round2(value: Decimal | int | float | str) -> Decimal:
    """Round to 2 decimal places, half up."""
    amount = to_decimal(value)
    if not amount.is_finite():
        raise InvalidArgument(f"Not a finite amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def positive_money(value: Decimal | int | float | str, what: str = "Amount") -> Decimal:
    """Round to cents and require at least one cent; sub-cent amounts are rejected."""
    try:
        amount = round2(value)
    except InvalidArgument as e:
        raise InvalidArgument(f"{what} must be positive") from e
    if amount <= 0:
        raise InvalidArgument(f"{what} must be positive (at least {CENT} after rounding)")
    return amount


def positive_quantity(value: int, what: str = "Quantity") -> int:
    """Validate a strictly positive whole share count."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{what} must be a whole number of shares")
    if value <= 0:
        raise InvalidArgument(f"{what} must be positive")
    return value


def percent(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator to 4 places, x 100. Zero when denominator is zero."""
    if denominator == 0:
        return Decimal("0")
    ratio = (numerator / denominator).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)
    return ratio * 100
