"""
Tests for `services/pricing_service.py`.

Covers:
- Unit and currency conversion of the current quote, 2 dp.
- Markup policy: explicit wins, retail default, spot none.
- cost_of / mass_for rounding and round trip.
- Input validation (non-positive amounts, band, both/neither amounts).
- Simulated history length and bounds.
"""

from __future__ import annotations

import random
from decimal import Decimal

import pytest

from domain.currency import CurrencyConverter
from domain.errors import ValidationError
from domain.quote import CostBreakdown, MassBreakdown
from services.price_oracle import PriceOracle
from services.pricing_service import BASIS_RETAIL, PricingEngine


def _engine(markup: str = "3") -> PricingEngine:
    oracle = PriceOracle(seed_price_per_gram=Decimal("65.50"))
    converter = CurrencyConverter("USD", {"INR": Decimal("83.0")}, default_currency="USD")
    return PricingEngine(
        oracle,
        converter,
        retail_markup_percent=Decimal(markup),
        rng=random.Random(11),
    )


def test_quote_per_gram_spot() -> None:
    view = _engine().quote()

    assert view.price == Decimal("65.50")
    assert view.currency == "USD"
    assert view.unit == "per gram"
    assert view.source == "seed"
    assert view.markup_applied_percent is None


def test_quote_converts_unit_and_currency() -> None:
    view = _engine().quote("10g", "inr")

    assert view.price == Decimal("54365.00")
    assert view.currency == "INR"
    assert view.unit == "per 10 grams"


def test_retail_basis_applies_configured_markup() -> None:
    view = _engine(markup="3").quote(basis=BASIS_RETAIL)

    assert view.price == Decimal("67.47")
    assert view.markup_applied_percent == Decimal("3")


def test_explicit_markup_overrides_basis() -> None:
    engine = _engine(markup="3")

    assert engine.quote(markup_percent=Decimal("10")).price == Decimal("72.05")
    assert engine.quote(basis=BASIS_RETAIL, markup_percent=Decimal("0")).price == Decimal("65.50")


def test_negative_markup_and_unknown_basis_rejected() -> None:
    engine = _engine()

    with pytest.raises(ValidationError):
        engine.quote(markup_percent=Decimal("-1"))
    with pytest.raises(ValidationError):
        engine.quote(basis="wholesale")


def test_unknown_currency_rejected() -> None:
    with pytest.raises(ValidationError):
        _engine().quote(currency="XYZ")


def test_cost_of_ten_grams() -> None:
    cost = _engine().cost_of(Decimal("10"), "USD")

    assert cost.total == Decimal("655.00")
    assert cost.price_per_gram == Decimal("65.50")


def test_mass_for_rounds_to_milligram() -> None:
    result = _engine().mass_for(Decimal("100"), "USD")

    assert result.mass == Decimal("1.527")


def test_cost_and_mass_round_trip() -> None:
    engine = _engine()
    for grams in ("0.5", "1", "7.25", "10", "123.456"):
        mass = Decimal(grams)
        total = engine.cost_of(mass).total
        back = engine.mass_for(total).mass
        assert abs(back - mass) <= Decimal("0.001")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
def test_non_positive_amounts_rejected(amount: Decimal) -> None:
    engine = _engine()

    with pytest.raises(ValidationError):
        engine.cost_of(amount)
    with pytest.raises(ValidationError):
        engine.mass_for(amount)


def test_calculate_requires_exactly_one_amount() -> None:
    engine = _engine()

    with pytest.raises(ValidationError):
        engine.calculate()
    with pytest.raises(ValidationError):
        engine.calculate(gold_amount=Decimal("1"), money_amount=Decimal("10"))

    assert isinstance(engine.calculate(gold_amount=Decimal("1")), CostBreakdown)
    assert isinstance(engine.calculate(money_amount=Decimal("10")), MassBreakdown)


def test_mass_band_enforced() -> None:
    engine = _engine()

    with pytest.raises(ValidationError, match="Minimum"):
        engine.check_mass_band(Decimal("0.0001"))
    with pytest.raises(ValidationError, match="Maximum"):
        engine.check_mass_band(Decimal("1000.5"))
    assert engine.check_mass_band(Decimal("1000")) == Decimal("1000")


def test_history_has_one_point_per_day_within_five_percent() -> None:
    points = _engine().history(7)

    assert len(points) == 8
    for point in points:
        assert Decimal("62.22") <= point.price <= Decimal("68.78")


def test_history_rejects_out_of_range_days() -> None:
    with pytest.raises(ValidationError):
        _engine().history(0)
    with pytest.raises(ValidationError):
        _engine().history(366)
