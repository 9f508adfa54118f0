"""
Domain rounding rules (pure).

Money and prices are reported to 2 decimal places, masses to 3 (milligrams).
Half-up rounding throughout.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
MILLIGRAM = Decimal("0.001")


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_mass(value: Decimal) -> Decimal:
    return value.quantize(MILLIGRAM, rounding=ROUND_HALF_UP)


__all__ = ["CENT", "MILLIGRAM", "round_money", "round_mass"]
