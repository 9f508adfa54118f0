#!/usr/bin/env python3
"""
Demo script for the complete gold purchase flow.

Demonstrates:
1. Price lookup in several units and currencies
2. Question classification (heuristic when no inference key is set)
3. Three-step purchase: initiate, pay, complete
4. Idempotent payment re-submission
5. One-shot purchase and account holdings

Runs entirely on in-memory repositories; nothing is written to Supabase.

Usage:
    python scripts/demo_purchase_flow.py
    python scripts/demo_purchase_flow.py --grams 2.5 --currency INR
"""

from __future__ import annotations

import argparse
import sys
from decimal import Decimal
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import get_settings
from domain.currency import CurrencyConverter
from domain.errors import ConflictError, PaymentDeclined
from repositories.account_repository import InMemoryAccountRepository
from repositories.classification_log_repository import InMemoryClassificationLogRepository
from repositories.transaction_repository import InMemoryTransactionRepository
from services.classifier import Classifier
from services.inference_client import InferenceClient
from services.payment_processor import SimulatedPaymentProcessor
from services.price_oracle import PriceOracle
from services.price_providers import build_providers
from services.pricing_service import BASIS_RETAIL, PricingEngine
from services.purchase_service import PurchaseWorkflow
from services.question_service import QuestionService


def print_section(title: str) -> None:
    """Print a section header."""
    print()
    print("=" * 80)
    print(title)
    print("=" * 80)


def main() -> int:
    parser = argparse.ArgumentParser(description="Walk through the gold purchase flow in memory")
    parser.add_argument("--grams", type=Decimal, default=Decimal("10"), help="Grams of gold to buy")
    parser.add_argument("--currency", default=None, help="Currency to pay in")
    parser.add_argument("--buyer", default="demo@example.com", help="Buyer reference")
    args = parser.parse_args()

    settings = get_settings()
    oracle = PriceOracle(
        build_providers(settings),
        seed_price_per_gram=settings.gold_price_per_gram_usd,
        provider_timeout=settings.price_provider_timeout,
        refresh_deadline=settings.price_refresh_deadline,
        simulation_enabled=settings.price_simulation_enabled,
        max_drift_percent=settings.price_simulation_max_drift_percent,
    )
    pricing = PricingEngine(
        oracle,
        CurrencyConverter(settings.base_currency, settings.exchange_rates, settings.default_currency),
        retail_markup_percent=settings.price_markup_percent,
        min_mass=settings.min_gold_grams,
        max_mass=settings.max_gold_grams,
    )
    inference = InferenceClient(settings.openrouter_api_key, settings.openrouter_base_url)
    questions = QuestionService(
        Classifier(inference, default_model=settings.ai_default_model, timeout=settings.ai_timeout),
        inference,
        pricing,
        InMemoryClassificationLogRepository(),
    )
    accounts = InMemoryAccountRepository()
    workflow = PurchaseWorkflow(
        pricing,
        InMemoryTransactionRepository(),
        accounts,
        SimulatedPaymentProcessor(success_rate=1.0, delay_seconds=0.2),
        payment_timeout=settings.payment_timeout,
        certificate_validity_days=settings.certificate_validity_days,
    )

    print_section("1. Gold prices")
    for unit in ("gram", "troy-ounce", "ten-gram", "tola"):
        view = pricing.quote(unit, args.currency)
        print(f"   {view.price} {view.currency} {view.unit} (source: {view.source})")
    retail = pricing.quote("gram", args.currency, basis=BASIS_RETAIL)
    print(f"   Retail: {retail.price} {retail.currency} {retail.unit}")

    print_section("2. Question classification")
    for question in ("Is gold a good hedge against inflation?", "What's the best pizza in Naples?"):
        analysis = questions.analyze(question)
        record = analysis.record
        print(f"   Q: {question}")
        print(f"      gold-related: {record.is_in_domain} "
              f"(confidence {record.confidence:.2f}, source {record.decision_source.value})")
        print(f"      action: {record.recommended_action.value}")

    print_section("3. Three-step purchase")
    tx = workflow.initiate(args.grams, args.currency, buyer_ref=args.buyer, payment_method="UPI")
    print(f"   Initiated {tx.transaction_id}")
    print(f"   {tx.requested_mass} g at {tx.locked_price_per_gram}/g = {tx.locked_total} {tx.currency}")

    try:
        tx = workflow.process_payment(tx.transaction_id, {"vpa": "demo@upi"})
    except PaymentDeclined as e:
        print(f"   Payment declined: {e}")
        return 1
    print(f"   Certificate: {tx.certificate.certificate_id} (expires {tx.certificate.expires_at:%Y-%m-%d})")

    print_section("4. Re-submitting payment")
    try:
        workflow.process_payment(tx.transaction_id)
    except ConflictError as e:
        print(f"   Rejected: {e}")
        print(f"   Existing certificate: {e.transaction.certificate.certificate_id}")

    tx = workflow.complete(tx.transaction_id)
    print(f"   Completed: {tx.workflow_state.value}")

    print_section("5. One-shot purchase and holdings")
    second = workflow.purchase(Decimal("1"), args.currency, buyer_ref=args.buyer)
    print(f"   Purchased 1 g, certificate {second.certificate.certificate_id}")
    account = accounts.find(args.buyer)
    print(f"   {args.buyer} now holds {account.total_gold_purchased} g")

    history, total = workflow.list_for_account(args.buyer)
    print(f"   {total} transaction(s) on record:")
    for item in history:
        print(f"     {item.created_at:%H:%M:%S} {item.requested_mass} g {item.workflow_state.value}")

    print("\n" + "=" * 80)
    print("DEMO COMPLETE")
    print("=" * 80)
    return 0


if __name__ == "__main__":
    sys.exit(main())
