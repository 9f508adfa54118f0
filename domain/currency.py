"""
Domain: fixed exchange-rate conversion (pure).

Rates are "units of currency per 1 base currency". Provider prices and the
cached Quote are always in the base currency; conversion happens at the edge.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping, Optional

from .errors import ValidationError


@dataclass(frozen=True, slots=True)
class CurrencyConverter:
    base_currency: str
    rates: Mapping[str, Decimal] = field(default_factory=dict)
    default_currency: Optional[str] = None

    def __post_init__(self) -> None:
        for code, rate in self.rates.items():
            if rate <= 0:
                raise ValueError(f"Exchange rate for {code} must be positive")

    def normalize(self, currency: Optional[str]) -> str:
        """Upper-case a currency code, falling back to the default; reject unknown codes."""

        code = (currency or self.default_currency or self.base_currency).strip().upper()
        if code != self.base_currency and code not in self.rates:
            supported = sorted({self.base_currency, *self.rates})
            raise ValidationError(
                f"Unsupported currency {currency!r}. Supported: {', '.join(supported)}"
            )
        return code

    def rate_for(self, currency: str) -> Decimal:
        code = self.normalize(currency)
        if code == self.base_currency:
            return Decimal("1")
        return self.rates[code]

    def convert(self, amount: Decimal, to_currency: str) -> Decimal:
        """Convert a base-currency amount into `to_currency`."""
        return amount * self.rate_for(to_currency)

    def to_base(self, amount: Decimal, from_currency: str) -> Decimal:
        """Convert an amount in `from_currency` back into the base currency."""
        return amount / self.rate_for(from_currency)

    @property
    def supported(self) -> list[str]:
        return sorted({self.base_currency, *self.rates})


__all__ = ["CurrencyConverter"]
