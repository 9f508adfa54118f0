"""
Live gold price providers.

Each provider answers one question: the spot price of gold in USD per troy
ounce (XAU/USD). Provider identities, endpoints and keys are configuration;
the oracle only sees an ordered list of `PriceProvider`s.

Providers raise on any transport or payload problem. The oracle's fallback
chain turns those errors into a logged, non-fatal failure.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, List, Mapping, Optional

import httpx

from config.settings import Settings

logger = logging.getLogger(__name__)


class ProviderResponseError(ValueError):
    """The provider answered, but not with a usable price."""


def _positive_decimal(value: Any, field_name: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ProviderResponseError(f"{field_name} is not a number: {value!r}") from exc
    if not number.is_finite() or number <= 0:
        raise ProviderResponseError(f"{field_name} must be positive, got {value!r}")
    return number


class PriceProvider(ABC):
    """A remote source of the XAU/USD spot price."""

    name: str = "provider"

    def __init__(self, http_client: Optional[httpx.Client] = None) -> None:
        self._http_client = http_client or httpx.Client()

    @abstractmethod
    def fetch_usd_per_ounce(self, timeout: float) -> Decimal:
        """Return USD per troy ounce or raise."""

    def close(self) -> None:
        self._http_client.close()

    def _get_json(self, url: str, *, timeout: float, params: Optional[Mapping[str, str]] = None,
                  headers: Optional[Mapping[str, str]] = None) -> Mapping[str, Any]:
        response = self._http_client.get(url, params=params, headers=headers, timeout=timeout)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ProviderResponseError(f"{self.name}: expected a JSON object")
        return data


class GoldApiProvider(PriceProvider):
    """goldapi.io: `price` is USD per troy ounce."""

    name = "goldapi"
    url = "https://www.goldapi.io/api/XAU/USD"

    def __init__(self, api_key: str, http_client: Optional[httpx.Client] = None) -> None:
        super().__init__(http_client)
        self._api_key = api_key

    def fetch_usd_per_ounce(self, timeout: float) -> Decimal:
        data = self._get_json(
            self.url,
            timeout=timeout,
            headers={"x-access-token": self._api_key, "Content-Type": "application/json"},
        )
        return _positive_decimal(data.get("price"), "price")


class _RatesProvider(PriceProvider):
    """
    Providers that quote `rates.XAU` as ounces of gold per 1 USD.

    The price is the inverse: USD per ounce.
    """

    url: str = ""
    key_param: str = "access_key"
    symbols_param: str = "symbols"

    def __init__(self, api_key: str, http_client: Optional[httpx.Client] = None) -> None:
        super().__init__(http_client)
        self._api_key = api_key

    def fetch_usd_per_ounce(self, timeout: float) -> Decimal:
        data = self._get_json(
            self.url,
            timeout=timeout,
            params={self.key_param: self._api_key, "base": "USD", self.symbols_param: "XAU"},
        )
        rates = data.get("rates")
        if not isinstance(rates, dict):
            raise ProviderResponseError(f"{self.name}: response has no rates")
        xau_per_usd = _positive_decimal(rates.get("XAU"), "rates.XAU")
        return Decimal("1") / xau_per_usd


class MetalsApiProvider(_RatesProvider):
    name = "metalsapi"
    url = "https://metals-api.com/api/latest"


class MetalPriceApiProvider(_RatesProvider):
    name = "metalpriceapi"
    url = "https://api.metalpriceapi.com/v1/latest"
    key_param = "api_key"
    symbols_param = "currencies"


def build_providers(settings: Settings, http_client: Optional[httpx.Client] = None) -> List[PriceProvider]:
    """
    Build the ordered provider list from GOLD_PRICE_PROVIDERS.

    Providers without a key and unknown names are skipped with a warning.
    """
    client = http_client or httpx.Client()
    keys = {
        GoldApiProvider.name: (GoldApiProvider, settings.goldapi_key),
        MetalsApiProvider.name: (MetalsApiProvider, settings.metals_api_key),
        MetalPriceApiProvider.name: (MetalPriceApiProvider, settings.metalprice_api_key),
    }

    providers: List[PriceProvider] = []
    for name in settings.price_providers:
        entry = keys.get(name)
        if entry is None:
            logger.warning(f"Unknown gold price provider '{name}' ignored", extra={"provider": name})
            continue
        provider_cls, api_key = entry
        if not api_key:
            logger.warning(f"Gold price provider '{name}' has no API key configured; skipped",
                           extra={"provider": name})
            continue
        providers.append(provider_cls(api_key, http_client=client))
    return providers


__all__ = [
    "PriceProvider",
    "ProviderResponseError",
    "GoldApiProvider",
    "MetalsApiProvider",
    "MetalPriceApiProvider",
    "build_providers",
]
