from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_currency(value: Decimal) -> str:
    """Round half away from zero to cents; display only, never fed back into math."""
    cents = value.quantize(CENT, rounding=ROUND_HALF_UP)
    if cents == 0:
        cents = abs(cents)
    return f"{cents:.2f}"
