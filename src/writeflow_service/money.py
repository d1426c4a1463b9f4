"""Conversion between decimal amounts at the API edge and stored integer cents."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from writeflow_service.core.exceptions import ValidationError

_CENT = Decimal("0.01")
_MAX_AMOUNT = Decimal("1000000000000")


def to_cents(value: object, field_name: str = "amount") -> int:
    """
    Parse a decimal amount (int, float, str or Decimal) into integer cents.

    At most two fractional digits are accepted. Booleans are rejected even
    though they are ints in Python.

    Raises:
        ValidationError: INVALID_AMOUNT if the value is not a finite decimal
            with at most two fractional digits.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError("INVALID_AMOUNT", f"{field_name} must be a decimal number")

    try:
        # str() first so floats like 0.1 keep their shortest repr instead of binary noise
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(
            "INVALID_AMOUNT", f"{field_name} must be a decimal number"
        ) from exc

    if not amount.is_finite():
        raise ValidationError("INVALID_AMOUNT", f"{field_name} must be finite")

    if abs(amount) > _MAX_AMOUNT:
        raise ValidationError("INVALID_AMOUNT", f"{field_name} is too large")

    if amount != amount.quantize(_CENT):
        raise ValidationError(
            "INVALID_AMOUNT",
            f"{field_name} must have at most two decimal places",
        )
    return int(amount.quantize(_CENT) * 100)


def require_min_cents(cents: int, field_name: str, minimum: int = 1) -> int:
    """Reject amounts below the minimum (default 0.01)."""
    if cents < minimum:
        raise ValidationError(
            "INVALID_AMOUNT",
            f"{field_name} must be at least {format_cents(minimum)}",
        )
    return cents


def format_cents(cents: int) -> str:
    """Render cents as a signed decimal string with two places, e.g. -12.50."""
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"
