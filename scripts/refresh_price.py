#!/usr/bin/env python3
"""
Gold Price Refresh Script

Refreshes the gold price once through the configured providers and prints
which source answered, which ones failed, and the resulting price in every
configured currency. Useful for checking provider keys.

Usage:
    python scripts/refresh_price.py
    python scripts/refresh_price.py --simulate-only
    python scripts/refresh_price.py --no-simulation --deadline 5
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import get_settings
from domain.currency import CurrencyConverter
from domain.errors import RefreshError
from domain.rounding import round_money
from services.price_oracle import PriceOracle
from services.price_providers import build_providers


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Refresh the gold price from the configured providers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Try providers in GOLD_PRICE_PROVIDERS order
  python scripts/refresh_price.py

  # Fail instead of simulating when every provider is down
  python scripts/refresh_price.py --no-simulation
        """
    )
    parser.add_argument(
        "--simulate-only",
        action="store_true",
        help="Skip live providers and apply simulated drift only"
    )
    parser.add_argument(
        "--no-simulation",
        action="store_true",
        help="Disable the simulated fallback"
    )
    parser.add_argument(
        "--deadline",
        type=float,
        default=None,
        help="Seconds allowed for the whole provider chain"
    )
    args = parser.parse_args()

    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    providers = build_providers(settings)
    print(f"Providers: {', '.join(p.name for p in providers) or '(none configured)'}")

    oracle = PriceOracle(
        providers,
        seed_price_per_gram=settings.gold_price_per_gram_usd,
        provider_timeout=settings.price_provider_timeout,
        refresh_deadline=settings.price_refresh_deadline,
        simulation_enabled=settings.price_simulation_enabled and not args.no_simulation,
        max_drift_percent=settings.price_simulation_max_drift_percent,
    )

    try:
        quote = oracle.refresh(prefer_live=not args.simulate_only, deadline=args.deadline)
    except RefreshError as e:
        print(f"Refresh failed: {e}")
        return 1

    print(f"Source: {quote.source}")
    print(f"As of:  {quote.as_of.isoformat()}")

    converter = CurrencyConverter(settings.base_currency, settings.exchange_rates, settings.default_currency)
    for code in converter.supported:
        price = round_money(converter.convert(quote.price_per_gram, code))
        print(f"  {price:>12} {code} per gram")
    return 0


if __name__ == "__main__":
    sys.exit(main())
