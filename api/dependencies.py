"""
Service wiring for the API.

Each factory is cached so the process shares one oracle, one set of
repositories and one workflow. Tests replace them through
`app.dependency_overrides`.

Supabase repositories are used when SUPABASE_URL and SUPABASE_KEY are set;
otherwise the process falls back to in-memory repositories and says so.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from config.settings import get_settings
from domain.currency import CurrencyConverter
from repositories.account_repository import (
    AccountRepository,
    InMemoryAccountRepository,
    SupabaseAccountRepository,
)
from repositories.classification_log_repository import (
    ClassificationLogRepository,
    InMemoryClassificationLogRepository,
    SupabaseClassificationLogRepository,
)
from repositories.client import get_supabase
from repositories.transaction_repository import (
    InMemoryTransactionRepository,
    SupabaseTransactionRepository,
    TransactionRepository,
)
from services.classifier import Classifier
from services.inference_client import InferenceClient
from services.payment_processor import SimulatedPaymentProcessor
from services.price_oracle import PriceOracle
from services.price_providers import build_providers
from services.pricing_service import PricingEngine
from services.purchase_service import PurchaseWorkflow
from services.question_service import QuestionService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _use_supabase() -> bool:
    if get_settings().supabase_configured:
        return True
    logger.warning("SUPABASE_URL/SUPABASE_KEY not set; using in-memory repositories (data is not persisted)")
    return False


@lru_cache(maxsize=1)
def get_transaction_repository() -> TransactionRepository:
    if _use_supabase():
        return SupabaseTransactionRepository(get_supabase())
    return InMemoryTransactionRepository()


@lru_cache(maxsize=1)
def get_account_repository() -> AccountRepository:
    if _use_supabase():
        return SupabaseAccountRepository(get_supabase())
    return InMemoryAccountRepository()


@lru_cache(maxsize=1)
def get_classification_log_repository() -> ClassificationLogRepository:
    if _use_supabase():
        return SupabaseClassificationLogRepository(get_supabase())
    return InMemoryClassificationLogRepository()


@lru_cache(maxsize=1)
def get_price_oracle() -> PriceOracle:
    settings = get_settings()
    return PriceOracle(
        build_providers(settings),
        seed_price_per_gram=settings.gold_price_per_gram_usd,
        provider_timeout=settings.price_provider_timeout,
        refresh_deadline=settings.price_refresh_deadline,
        simulation_enabled=settings.price_simulation_enabled,
        max_drift_percent=settings.price_simulation_max_drift_percent,
    )


@lru_cache(maxsize=1)
def get_pricing_engine() -> PricingEngine:
    settings = get_settings()
    converter = CurrencyConverter(
        settings.base_currency,
        settings.exchange_rates,
        default_currency=settings.default_currency,
    )
    return PricingEngine(
        get_price_oracle(),
        converter,
        retail_markup_percent=settings.price_markup_percent,
        min_mass=settings.min_gold_grams,
        max_mass=settings.max_gold_grams,
    )


@lru_cache(maxsize=1)
def get_inference_client() -> InferenceClient:
    settings = get_settings()
    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY not set; questions are classified by keyword heuristic only")
    return InferenceClient(settings.openrouter_api_key, settings.openrouter_base_url)


@lru_cache(maxsize=1)
def get_classifier() -> Classifier:
    settings = get_settings()
    return Classifier(
        get_inference_client(),
        default_model=settings.ai_default_model,
        timeout=settings.ai_timeout,
        deadline=settings.ai_deadline,
    )


@lru_cache(maxsize=1)
def get_question_service() -> QuestionService:
    return QuestionService(
        get_classifier(),
        get_inference_client(),
        get_pricing_engine(),
        get_classification_log_repository(),
        response_timeout=get_settings().ai_timeout,
    )


@lru_cache(maxsize=1)
def get_purchase_workflow() -> PurchaseWorkflow:
    settings = get_settings()
    return PurchaseWorkflow(
        get_pricing_engine(),
        get_transaction_repository(),
        get_account_repository(),
        SimulatedPaymentProcessor(
            success_rate=settings.payment_success_rate,
            delay_seconds=settings.payment_delay_seconds,
        ),
        payment_timeout=settings.payment_timeout,
        certificate_validity_days=settings.certificate_validity_days,
    )


def close_http_clients() -> None:
    """
    Close the outbound HTTP clients created by the factories above.

    Called on application shutdown. Factories that were never used are
    skipped, and the caches are cleared so a restarted app builds new clients.
    """
    if get_price_oracle.cache_info().currsize:
        get_price_oracle().close()
    if get_inference_client.cache_info().currsize:
        get_inference_client().close()
    for factory in (
        get_purchase_workflow,
        get_question_service,
        get_classifier,
        get_inference_client,
        get_pricing_engine,
        get_price_oracle,
    ):
        factory.cache_clear()
    logger.info("Outbound HTTP clients closed")


__all__ = [
    "close_http_clients",
    "get_account_repository",
    "get_classification_log_repository",
    "get_classifier",
    "get_inference_client",
    "get_price_oracle",
    "get_pricing_engine",
    "get_purchase_workflow",
    "get_question_service",
    "get_transaction_repository",
]
