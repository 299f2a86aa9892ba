"""
Precision helpers for billing calculations.

Money arithmetic uses `Decimal` end to end. Quantities (hours, SUs, bytes, GB,
TB) are never rounded; only the emitted ListCost/BilledCost are quantized to
the currency's minor unit with ROUND_HALF_UP.

Notes:
- `Decimal` context precision (`DECIMAL_CONTEXT_PRECISION`) is **significant digits**,
  not "decimal places".
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

# Decimal context precision (significant digits)
DECIMAL_CONTEXT_PRECISION = 28

# Currency minor unit (USD cents)
MONEY_PRECISION = 2

ZERO = Decimal("0")


def to_decimal(value: float | int | str | Decimal | None) -> Decimal:
    """Convert values to Decimal safely (float via str to avoid binary artifacts)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("booleans are not numeric quantities")
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"not a number: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return result


def quantize_decimal(value: Decimal, *, precision: int) -> Decimal:
    """Quantize a Decimal to the given number of decimal places (ROUND_HALF_UP)."""
    quantizer = Decimal(10) ** -precision
    with localcontext() as ctx:
        ctx.prec = DECIMAL_CONTEXT_PRECISION
        return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def quantize_money(value: Decimal) -> Decimal:
    """Quantize to the currency minor unit (2 decimal places)."""
    return quantize_decimal(value, precision=MONEY_PRECISION)


def format_money(value: Decimal) -> str:
    """Render a money amount with exactly two decimals, e.g. '8.00'."""
    return f"{quantize_money(value):.2f}"
