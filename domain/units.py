"""
Domain: mass units (pure).

Gold is quoted per gram internally. Retail markets quote per troy ounce,
per 10 grams or per tola; this module converts between them with exact
Decimal arithmetic. Rounding is the caller's decision.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from .errors import ValidationError

GRAMS_PER_TROY_OUNCE = Decimal("31.1034768")
GRAMS_PER_TOLA = Decimal("11.6638038")


class MassUnit(str, Enum):
    GRAM = "gram"
    TROY_OUNCE = "troy-ounce"
    TEN_GRAM = "ten-gram"
    TOLA = "tola"

    @property
    def grams(self) -> Decimal:
        """Number of grams in one unit."""
        return _GRAMS_PER_UNIT[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @staticmethod
    def parse(text: str) -> "MassUnit":
        """Resolve a unit from user input, accepting common aliases."""

        key = (text or "").strip().lower()
        unit = _ALIASES.get(key)
        if unit is None:
            raise ValidationError(
                f"Unsupported unit {text!r}. Use one of: gram, troy-ounce, ten-gram, tola"
            )
        return unit


_GRAMS_PER_UNIT = {
    MassUnit.GRAM: Decimal("1"),
    MassUnit.TROY_OUNCE: GRAMS_PER_TROY_OUNCE,
    MassUnit.TEN_GRAM: Decimal("10"),
    MassUnit.TOLA: GRAMS_PER_TOLA,
}

_LABELS = {
    MassUnit.GRAM: "per gram",
    MassUnit.TROY_OUNCE: "per troy ounce",
    MassUnit.TEN_GRAM: "per 10 grams",
    MassUnit.TOLA: "per tola",
}

_ALIASES = {
    "gram": MassUnit.GRAM,
    "grams": MassUnit.GRAM,
    "g": MassUnit.GRAM,
    "troy-ounce": MassUnit.TROY_OUNCE,
    "troy_ounce": MassUnit.TROY_OUNCE,
    "ounce": MassUnit.TROY_OUNCE,
    "oz": MassUnit.TROY_OUNCE,
    "ten-gram": MassUnit.TEN_GRAM,
    "ten_gram": MassUnit.TEN_GRAM,
    "10g": MassUnit.TEN_GRAM,
    "tola": MassUnit.TOLA,
}


def to_grams(amount: Decimal, unit: MassUnit) -> Decimal:
    return amount * unit.grams


def from_grams(grams: Decimal, unit: MassUnit) -> Decimal:
    return grams / unit.grams


def price_per_unit(price_per_gram: Decimal, unit: MassUnit) -> Decimal:
    """Price of one `unit` given a per-gram price."""
    return price_per_gram * unit.grams


def price_per_gram_from_ounce(price_per_ounce: Decimal) -> Decimal:
    return price_per_ounce / GRAMS_PER_TROY_OUNCE


__all__ = [
    "GRAMS_PER_TROY_OUNCE",
    "GRAMS_PER_TOLA",
    "MassUnit",
    "to_grams",
    "from_grams",
    "price_per_unit",
    "price_per_gram_from_ounce",
]
