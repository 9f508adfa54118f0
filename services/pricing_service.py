"""
Pricing service for gold quotes and purchase calculations.

Composes the price oracle with unit conversion, currency conversion and the
markup policy to answer "what does X cost" and "how much gold does Y buy".
Every figure returned here is derived from the oracle's current Quote at
call time; transactions lock the figure they were initiated with.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from domain.currency import CurrencyConverter
from domain.errors import ValidationError
from domain.quote import CostBreakdown, HistoryPoint, MassBreakdown, PriceView
from domain.rounding import round_mass, round_money
from domain.time import utc_now
from domain.units import MassUnit, price_per_unit
from services.price_oracle import PriceOracle

BASIS_SPOT = "spot"
BASIS_RETAIL = "retail"

MAX_HISTORY_DAYS = 365

INVESTMENT_FACTS: List[str] = [
    "Gold has been used as a form of currency and store of value for over 5,000 years.",
    "Gold is considered a safe-haven asset during economic uncertainty.",
    "Digital gold offers 24/7 liquidity and no storage concerns.",
    "Gold has historically maintained its purchasing power over long periods.",
    "Gold can provide portfolio diversification benefits.",
    "Digital gold can be purchased in small amounts, making it accessible to all investors.",
    "Gold prices are influenced by factors like inflation, currency fluctuations, and geopolitical events.",
    "Digital gold certificates are backed by physical gold stored in secure vaults.",
]

INVESTMENT_BENEFITS: List[str] = [
    "Inflation hedge",
    "Portfolio diversification",
    "Safe-haven asset",
    "No storage costs",
    "High liquidity",
    "Accessible investment",
]


def _require_positive(value: Decimal, name: str) -> None:
    if not value.is_finite() or value <= 0:
        raise ValidationError(f"{name} must be greater than 0")


class PricingEngine:
    """
    Price queries over the oracle's current Quote.

    Example:
        engine = PricingEngine(oracle, converter)
        view = engine.quote("tola", "INR", basis="retail")
        cost = engine.cost_of(Decimal("10"), "USD")
        print(f"{cost.mass} g = {cost.total} {cost.currency}")
    """

    def __init__(
        self,
        oracle: PriceOracle,
        converter: CurrencyConverter,
        *,
        retail_markup_percent: Decimal = Decimal("0"),
        min_mass: Decimal = Decimal("0.001"),
        max_mass: Decimal = Decimal("1000"),
        rng: Optional[random.Random] = None,
    ) -> None:
        self._oracle = oracle
        self._converter = converter
        self._retail_markup_percent = retail_markup_percent
        self._min_mass = min_mass
        self._max_mass = max_mass
        self._rng = rng or random.Random()

    @property
    def oracle(self) -> PriceOracle:
        return self._oracle

    @property
    def converter(self) -> CurrencyConverter:
        return self._converter

    def resolve_markup(self, basis: str = BASIS_SPOT, markup_percent: Optional[Decimal] = None) -> Decimal:
        """
        Markup policy: an explicit percentage wins; otherwise retail quotes
        carry the configured retail markup and spot quotes carry none.
        """
        basis = (basis or BASIS_SPOT).strip().lower()
        if basis not in (BASIS_SPOT, BASIS_RETAIL):
            raise ValidationError(f"basis must be '{BASIS_SPOT}' or '{BASIS_RETAIL}', got {basis!r}")
        if markup_percent is not None:
            if not markup_percent.is_finite() or markup_percent < 0:
                raise ValidationError("markup_percent must be a non-negative number")
            return markup_percent
        return self._retail_markup_percent if basis == BASIS_RETAIL else Decimal("0")

    def quote(
        self,
        unit: str | MassUnit = MassUnit.GRAM,
        currency: Optional[str] = None,
        markup_percent: Optional[Decimal] = None,
        basis: str = BASIS_SPOT,
    ) -> PriceView:
        """
        Price of one unit of gold in `currency`, markup applied, 2 dp.

        Args:
            unit: MassUnit or alias ("gram", "oz", "10g", "tola", ...)
            currency: ISO code; defaults to the configured default currency
            markup_percent: explicit markup; overrides the basis default
            basis: "spot" or "retail"

        Returns:
            PriceView; `markup_applied_percent` is None when no markup applied
        """
        mass_unit = unit if isinstance(unit, MassUnit) else MassUnit.parse(unit)
        code = self._converter.normalize(currency)
        markup = self.resolve_markup(basis, markup_percent)

        quote = self._oracle.current_quote()
        price = self._converter.convert(price_per_unit(quote.price_per_gram, mass_unit), code)
        if markup:
            price = price * (1 + markup / Decimal("100"))

        return PriceView(
            price=round_money(price),
            currency=code,
            unit=mass_unit.label,
            as_of=quote.as_of,
            source=quote.source,
            markup_applied_percent=markup if markup else None,
        )

    def _price_per_gram_in(self, currency: str) -> tuple[Decimal, datetime]:
        quote = self._oracle.current_quote()
        return round_money(self._converter.convert(quote.price_per_gram, currency)), quote.as_of

    def cost_of(self, mass: Decimal, currency: Optional[str] = None) -> CostBreakdown:
        """
        Cost of `mass` grams. total = mass x price_per_gram, both at 2 dp.

        Raises:
            ValidationError: mass is not > 0 or the currency is unsupported
        """
        _require_positive(mass, "Gold amount")
        code = self._converter.normalize(currency)
        price_per_gram, as_of = self._price_per_gram_in(code)
        return CostBreakdown(
            mass=mass,
            price_per_gram=price_per_gram,
            total=round_money(mass * price_per_gram),
            currency=code,
            as_of=as_of,
        )

    def mass_for(self, money: Decimal, currency: Optional[str] = None) -> MassBreakdown:
        """
        Grams of gold `money` buys, rounded to the milligram.

        Inverse of cost_of: mass_for(cost_of(m).total).mass ~= m.
        """
        _require_positive(money, "Money amount")
        code = self._converter.normalize(currency)
        price_per_gram, as_of = self._price_per_gram_in(code)
        return MassBreakdown(
            money=money,
            mass=round_mass(money / price_per_gram),
            price_per_gram=price_per_gram,
            currency=code,
            as_of=as_of,
        )

    def check_mass_band(self, mass: Decimal) -> Decimal:
        """Reject orders outside the configured [min, max] gram band."""

        _require_positive(mass, "Gold amount")
        if mass < self._min_mass:
            raise ValidationError(f"Minimum gold amount is {self._min_mass} grams")
        if mass > self._max_mass:
            raise ValidationError(f"Maximum gold amount is {self._max_mass} grams")
        return mass

    def calculate(
        self,
        gold_amount: Optional[Decimal] = None,
        money_amount: Optional[Decimal] = None,
        currency: Optional[str] = None,
    ) -> CostBreakdown | MassBreakdown:
        """
        Calculate either cost for a gold amount or gold for a money amount.

        Exactly one of the two amounts must be given.
        """
        if (gold_amount is None) == (money_amount is None):
            raise ValidationError("Provide exactly one of goldAmount or moneyAmount")
        if gold_amount is not None:
            self.check_mass_band(gold_amount)
            return self.cost_of(gold_amount, currency)
        return self.mass_for(money_amount, currency)

    def history(self, days: int = 30, currency: Optional[str] = None) -> List[HistoryPoint]:
        """
        Simulated daily price series around the current quote (+/- 5%).

        There is no stored price history; the series illustrates volatility only.
        """
        if days < 1 or days > MAX_HISTORY_DAYS:
            raise ValidationError(f"days must be between 1 and {MAX_HISTORY_DAYS}")
        code = self._converter.normalize(currency)
        base_price = self._oracle.current_quote().price_per_gram
        today = utc_now().date()

        points: List[HistoryPoint] = []
        for offset in range(days, -1, -1):
            variation = Decimal(str(self._rng.uniform(-0.05, 0.05)))
            price = self._converter.convert(base_price * (1 + variation), code)
            points.append(HistoryPoint(
                date=(today - timedelta(days=offset)).isoformat(),
                price=round_money(price),
                currency=code,
            ))
        return points


def investment_facts() -> dict:
    return {"facts": list(INVESTMENT_FACTS), "benefits": list(INVESTMENT_BENEFITS)}


__all__ = [
    "BASIS_SPOT",
    "BASIS_RETAIL",
    "PricingEngine",
    "investment_facts",
]
