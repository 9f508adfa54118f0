"""
Domain: spot price snapshots and the views derived from them.

A Quote is immutable. Each successful refresh publishes a new Quote that
replaces the previous one; nothing ever mutates a published Quote.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .time import require_utc_timestamp

SOURCE_SEED = "seed"
SOURCE_SIMULATED = "simulated"
SOURCE_CACHED = "cached"


@dataclass(frozen=True, slots=True)
class Quote:
    """Spot price per gram in the base currency, with provenance."""

    price_per_gram: Decimal
    as_of: datetime
    source: str

    def __post_init__(self) -> None:
        if self.price_per_gram <= 0:
            raise ValueError("price_per_gram must be positive")
        require_utc_timestamp("as_of", self.as_of)


@dataclass(frozen=True, slots=True)
class PriceView:
    """A Quote rendered for one unit and currency, markup applied."""

    price: Decimal
    currency: str
    unit: str
    as_of: datetime
    source: str
    markup_applied_percent: Optional[Decimal] = None


@dataclass(frozen=True, slots=True)
class CostBreakdown:
    """Cost of a mass of gold. total = mass x price_per_gram."""

    mass: Decimal
    price_per_gram: Decimal
    total: Decimal
    currency: str
    as_of: datetime


@dataclass(frozen=True, slots=True)
class MassBreakdown:
    """Mass of gold a sum of money buys at the current quote."""

    money: Decimal
    mass: Decimal
    price_per_gram: Decimal
    currency: str
    as_of: datetime


@dataclass(frozen=True, slots=True)
class HistoryPoint:
    date: str
    price: Decimal
    currency: str


__all__ = [
    "SOURCE_SEED",
    "SOURCE_SIMULATED",
    "SOURCE_CACHED",
    "Quote",
    "PriceView",
    "CostBreakdown",
    "MassBreakdown",
    "HistoryPoint",
]
