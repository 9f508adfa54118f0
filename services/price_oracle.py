"""
Price oracle: owns the current best-known gold spot price.

Reads are lock-free: `current_quote()` returns whatever Quote was last
published. `refresh()` resolves a new Quote through a fallback chain of live
providers and publishes it with a single reference swap, so a reader sees
either the old Quote or the new one, never a mix. Refreshes are serialized
so two concurrent refreshes cannot both derive from the same previous Quote.

Fallback order on refresh:
1. Configured providers, in order, first success wins.
2. Simulated drift of the previous price (bounded percentage), when enabled.
3. RefreshError; the previous Quote stays published.
"""

from __future__ import annotations

import logging
import random
import threading
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal
from typing import Callable, List, Optional, Sequence

from domain.errors import RefreshError, UpstreamUnavailable
from domain.quote import SOURCE_SEED, SOURCE_SIMULATED, Quote
from domain.rounding import CENT, round_money
from domain.time import utc_now
from domain.units import price_per_gram_from_ounce
from services.fallback import Attempt, FallbackChain
from services.price_providers import PriceProvider

logger = logging.getLogger(__name__)


class PriceOracle:
    def __init__(
        self,
        providers: Sequence[PriceProvider] = (),
        *,
        seed_price_per_gram: Decimal = Decimal("65.50"),
        provider_timeout: float = 5.0,
        refresh_deadline: Optional[float] = 12.0,
        simulation_enabled: bool = True,
        max_drift_percent: Decimal = Decimal("2"),
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._providers: List[PriceProvider] = list(providers)
        self._provider_timeout = provider_timeout
        self._refresh_deadline = refresh_deadline
        self._simulation_enabled = simulation_enabled
        self._max_drift = max_drift_percent / Decimal("100")
        self._rng = rng or random.Random()
        self._clock = clock
        self._refresh_lock = threading.Lock()
        self._quote = Quote(price_per_gram=round_money(seed_price_per_gram), as_of=clock(), source=SOURCE_SEED)

    @property
    def provider_names(self) -> List[str]:
        return [provider.name for provider in self._providers]

    def close(self) -> None:
        """Release the providers' HTTP connections."""
        for provider in self._providers:
            provider.close()

    def current_quote(self) -> Quote:
        """Last published Quote. Never fails, never blocks."""
        return self._quote

    def refresh(self, prefer_live: bool = True, deadline: Optional[float] = None) -> Quote:
        """
        Resolve and publish a new Quote.

        Args:
            prefer_live: try the live providers first. False applies only the
                simulated drift.
            deadline: seconds allowed for the whole provider chain; defaults to
                the configured refresh deadline.

        Returns:
            The newly published Quote.

        Raises:
            RefreshError: no provider succeeded and simulation is disabled.
                The previously published Quote is left untouched.
        """
        with self._refresh_lock:
            previous = self._quote
            attempts = [self._attempt_for(provider) for provider in self._providers] if prefer_live else []
            fallback = (
                Attempt(SOURCE_SIMULATED, lambda _timeout: self._simulate(previous))
                if self._simulation_enabled
                else None
            )
            chain: FallbackChain[Quote] = FallbackChain(
                attempts,
                fallback=fallback,
                attempt_timeout=self._provider_timeout,
                deadline=deadline if deadline is not None else self._refresh_deadline,
                label="price-refresh",
            )
            try:
                resolution = chain.resolve()
            except UpstreamUnavailable as exc:
                logger.error(
                    f"Gold price refresh failed; keeping quote from {previous.source}",
                    extra={"previous_source": previous.source, "previous_price": str(previous.price_per_gram)},
                )
                raise RefreshError(str(exc)) from exc

            self._quote = resolution.value
            logger.info(
                f"Published gold quote {resolution.value.price_per_gram}/g from {resolution.source}",
                extra={
                    "source": resolution.source,
                    "price_per_gram": str(resolution.value.price_per_gram),
                    "failed_attempts": len(resolution.failures),
                },
            )
            return resolution.value

    def _attempt_for(self, provider: PriceProvider) -> Attempt[Quote]:
        def fetch(timeout: float) -> Quote:
            per_ounce = provider.fetch_usd_per_ounce(timeout)
            per_gram = round_money(price_per_gram_from_ounce(per_ounce))
            return Quote(price_per_gram=per_gram, as_of=self._clock(), source=provider.name)

        return Attempt(provider.name, fetch)

    def _simulate(self, previous: Quote) -> Quote:
        """Perturb the previous price by at most +/- max drift, bounds kept after rounding."""

        variation = Decimal(str(self._rng.uniform(-1.0, 1.0))) * self._max_drift
        price = round_money(previous.price_per_gram * (1 + variation))

        lower = (previous.price_per_gram * (1 - self._max_drift)).quantize(CENT, rounding=ROUND_CEILING)
        upper = (previous.price_per_gram * (1 + self._max_drift)).quantize(CENT, rounding=ROUND_FLOOR)
        price = min(max(price, lower), upper)
        if price <= 0:
            price = previous.price_per_gram

        return Quote(price_per_gram=price, as_of=self._clock(), source=SOURCE_SIMULATED)


__all__ = ["PriceOracle"]
