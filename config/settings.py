"""
Settings resolved from the environment with sane defaults.

Values are read once from the process environment (and a `.env` file at the
project root, when present) into a frozen `Settings` instance. Services
receive the instance explicitly; nothing reads `os.environ` after start-up.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_GOLD_PRICE_PER_GRAM_USD = Decimal("65.50")
DEFAULT_BASE_CURRENCY = "USD"
DEFAULT_CURRENCY = "USD"
DEFAULT_EXCHANGE_RATE_USD_INR = Decimal("83.0")
DEFAULT_MIN_GOLD_GRAMS = Decimal("0.001")  # 1 milligram
DEFAULT_MAX_GOLD_GRAMS = Decimal("1000")  # 1 kilogram
DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_AI_MODEL = "anthropic/claude-3.5-sonnet"


def _get_env_str(env_name: str, default: str) -> str:
    raw = os.getenv(env_name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


def _parse_env_list(env_name: str) -> Tuple[str, ...]:
    raw = os.getenv(env_name)
    if not raw:
        return ()
    return tuple(token.strip().lower() for token in raw.split(",") if token.strip())


def _parse_env_float(env_name: str, default: float) -> float:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _parse_env_int(env_name: str, default: int) -> int:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _parse_env_decimal(env_name: str, default: Decimal) -> Decimal:
    raw = os.getenv(env_name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        return default


def _parse_env_bool(env_name: str, default: bool) -> bool:
    raw = os.getenv(env_name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_exchange_rates() -> Dict[str, Decimal]:
    """
    Build the fixed rate table (units of currency per 1 base currency).

    EXCHANGE_RATE_USD_INR is kept for compatibility; EXCHANGE_RATES accepts
    additional pairs as "EUR=0.92,GBP=0.79".
    """
    base = _get_env_str("BASE_CURRENCY", DEFAULT_BASE_CURRENCY).upper()
    rates: Dict[str, Decimal] = {
        base: Decimal("1"),
        "INR": _parse_env_decimal("EXCHANGE_RATE_USD_INR", DEFAULT_EXCHANGE_RATE_USD_INR),
    }
    raw = os.getenv("EXCHANGE_RATES")
    if not raw:
        return rates
    for entry in raw.split(","):
        pair = entry.strip().split("=")
        if len(pair) != 2:
            continue
        code, value = pair
        try:
            rate = Decimal(value.strip())
        except InvalidOperation:
            continue
        if rate > 0:
            rates[code.strip().upper()] = rate
    return rates


@dataclass(frozen=True)
class Settings:
    gold_price_per_gram_usd: Decimal = DEFAULT_GOLD_PRICE_PER_GRAM_USD
    base_currency: str = DEFAULT_BASE_CURRENCY
    default_currency: str = DEFAULT_CURRENCY
    exchange_rates: Dict[str, Decimal] = field(
        default_factory=lambda: {"USD": Decimal("1"), "INR": DEFAULT_EXCHANGE_RATE_USD_INR}
    )
    price_markup_percent: Decimal = Decimal("0")

    # Live price providers, tried in order
    price_providers: Tuple[str, ...] = ()
    goldapi_key: str = ""
    metals_api_key: str = ""
    metalprice_api_key: str = ""
    price_provider_timeout: float = 5.0
    price_refresh_deadline: float = 12.0
    price_simulation_enabled: bool = True
    price_simulation_max_drift_percent: Decimal = Decimal("2")

    # Purchase workflow
    min_gold_grams: Decimal = DEFAULT_MIN_GOLD_GRAMS
    max_gold_grams: Decimal = DEFAULT_MAX_GOLD_GRAMS
    certificate_validity_days: int = 365
    payment_success_rate: float = 0.95
    payment_delay_seconds: float = 1.0
    payment_timeout: float = 30.0

    # Remote inference
    openrouter_api_key: str = ""
    openrouter_base_url: str = DEFAULT_OPENROUTER_BASE_URL
    ai_default_model: str = DEFAULT_AI_MODEL
    ai_timeout: float = 10.0
    ai_deadline: float = 20.0

    # Persistence
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    log_level: str = "INFO"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gold_price_per_gram_usd=_parse_env_decimal(
                "GOLD_PRICE_PER_GRAM_USD", DEFAULT_GOLD_PRICE_PER_GRAM_USD
            ),
            base_currency=_get_env_str("BASE_CURRENCY", DEFAULT_BASE_CURRENCY).upper(),
            default_currency=_get_env_str("DEFAULT_CURRENCY", DEFAULT_CURRENCY).upper(),
            exchange_rates=_parse_exchange_rates(),
            price_markup_percent=_parse_env_decimal("PRICE_MARKUP_PERCENT", Decimal("0")),
            price_providers=_parse_env_list("GOLD_PRICE_PROVIDERS"),
            goldapi_key=_get_env_str("GOLDAPI_KEY", ""),
            metals_api_key=_get_env_str("METALS_API_KEY", ""),
            metalprice_api_key=_get_env_str("METALPRICE_API_KEY", ""),
            price_provider_timeout=_parse_env_float("PRICE_PROVIDER_TIMEOUT", 5.0),
            price_refresh_deadline=_parse_env_float("PRICE_REFRESH_DEADLINE", 12.0),
            price_simulation_enabled=_parse_env_bool("PRICE_SIMULATION_ENABLED", True),
            price_simulation_max_drift_percent=_parse_env_decimal(
                "PRICE_SIMULATION_MAX_DRIFT_PERCENT", Decimal("2")
            ),
            min_gold_grams=_parse_env_decimal("MIN_GOLD_GRAMS", DEFAULT_MIN_GOLD_GRAMS),
            max_gold_grams=_parse_env_decimal("MAX_GOLD_GRAMS", DEFAULT_MAX_GOLD_GRAMS),
            certificate_validity_days=_parse_env_int("CERTIFICATE_VALIDITY_DAYS", 365),
            payment_success_rate=_parse_env_float("PAYMENT_SUCCESS_RATE", 0.95),
            payment_delay_seconds=_parse_env_float("PAYMENT_DELAY_SECONDS", 1.0),
            payment_timeout=_parse_env_float("PAYMENT_TIMEOUT", 30.0),
            openrouter_api_key=_get_env_str("OPENROUTER_API_KEY", ""),
            openrouter_base_url=_get_env_str("OPENROUTER_BASE_URL", DEFAULT_OPENROUTER_BASE_URL),
            ai_default_model=_get_env_str("AI_DEFAULT_MODEL", DEFAULT_AI_MODEL),
            ai_timeout=_parse_env_float("AI_TIMEOUT", 10.0),
            ai_deadline=_parse_env_float("AI_DEADLINE", 20.0),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_KEY") or None,
            log_level=_get_env_str("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load `.env` (if any) and resolve settings once per process."""
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)
    return Settings.from_env()


__all__ = ["Settings", "get_settings"]
