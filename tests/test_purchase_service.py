"""
Tests for `services/purchase_service.py`.

Covers contract rules:
- Price lock: the total is fixed at initiation.
- 10 g at 65.50/g: total 655.00, certificate valid 365 days, second completion conflicts.
- Payment is processed at most once; re-submission returns the stored certificate.
- Concurrent payment attempts: exactly one reaches the processor.
- Decline, timeout and unexpected processor errors leave a consistent state.
- A processor timeout never allows a second charge; the late answer is recorded.
- Holdings are credited once per completed transaction, and a failed credit
  can be retried through complete().
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional
from uuid import UUID, uuid4

import pytest

from domain.account import Account
from domain.currency import CurrencyConverter
from domain.errors import (
    ConflictError,
    NotFoundError,
    PaymentDeclined,
    UpstreamUnavailable,
    ValidationError,
)
from domain.transaction import PaymentMethod, PaymentState, Transaction, WorkflowState
from repositories.account_repository import InMemoryAccountRepository
from repositories.transaction_repository import InMemoryTransactionRepository
from services.payment_processor import PaymentProcessor
from services.price_oracle import PriceOracle
from services.pricing_service import PricingEngine
from services.purchase_service import PurchaseWorkflow

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TickingClock:
    """Each reading is one second after the previous one."""

    def __init__(self) -> None:
        self._now = T0

    def __call__(self) -> datetime:
        self._now = self._now + timedelta(seconds=1)
        return self._now


class RecordingProcessor(PaymentProcessor):
    def __init__(self, approve: bool = True) -> None:
        self.approve = approve
        self.error: Optional[Exception] = None
        self.entered = threading.Event()
        self.release: Optional[threading.Event] = None
        self.calls: List[UUID] = []

    def process(self, transaction: Transaction, details: Mapping[str, Any]) -> bool:
        self.calls.append(transaction.transaction_id)
        self.entered.set()
        if self.release is not None:
            self.release.wait(2.0)
        if self.error is not None:
            raise self.error
        return self.approve


class StaleReadRepository(InMemoryTransactionRepository):
    """Hands out one stale snapshot to simulate a concurrent writer."""

    def __init__(self) -> None:
        super().__init__()
        self.stale: Optional[Transaction] = None

    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        if self.stale is not None:
            stale, self.stale = self.stale, None
            return stale
        return super().get(transaction_id)


class FlakyAccountRepository(InMemoryAccountRepository):
    """Fails the first `failures` holdings credits."""

    def __init__(self, failures: int = 1) -> None:
        super().__init__()
        self.failures = failures

    def increment_holdings(self, account_id: UUID, mass: Decimal, *, transaction_id: UUID) -> Account:
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("account store unavailable")
        return super().increment_holdings(account_id, mass, transaction_id=transaction_id)


def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def _workflow(
    processor: Optional[RecordingProcessor] = None,
    transactions: Optional[InMemoryTransactionRepository] = None,
    payment_timeout: float = 2.0,
    accounts: Optional[InMemoryAccountRepository] = None,
) -> tuple[PurchaseWorkflow, InMemoryTransactionRepository, InMemoryAccountRepository, RecordingProcessor]:
    processor = processor or RecordingProcessor()
    transactions = transactions or InMemoryTransactionRepository()
    accounts = accounts or InMemoryAccountRepository()
    pricing = PricingEngine(
        PriceOracle(seed_price_per_gram=Decimal("65.50")),
        CurrencyConverter("USD", {"INR": Decimal("83.0")}, default_currency="USD"),
    )
    workflow = PurchaseWorkflow(
        pricing,
        transactions,
        accounts,
        processor,
        payment_timeout=payment_timeout,
        certificate_validity_days=365,
        clock=TickingClock(),
    )
    return workflow, transactions, accounts, processor


def test_ten_grams_at_seed_price_end_to_end() -> None:
    workflow, transactions, _, _ = _workflow()

    tx = workflow.initiate(Decimal("10"), "USD", payment_method="credit_card")
    assert tx.locked_total == Decimal("655.00")
    assert tx.locked_price_per_gram == Decimal("65.50")
    assert tx.payment_method is PaymentMethod.CREDIT_CARD

    paid = workflow.process_payment(tx.transaction_id, {"card": "tok_visa"})
    assert paid.payment_state is PaymentState.COMPLETED
    assert paid.certificate is not None
    assert paid.certificate.expires_at == paid.certificate.issued_at + timedelta(days=365)

    done = workflow.complete(tx.transaction_id)
    assert done.workflow_state is WorkflowState.COMPLETED

    with pytest.raises(ConflictError):
        workflow.complete(tx.transaction_id)
    assert transactions.get(tx.transaction_id) == done


def test_price_is_locked_at_initiation() -> None:
    workflow, _, _, _ = _workflow()
    tx = workflow.initiate(Decimal("10"))

    workflow.pricing.oracle.refresh(prefer_live=False)
    paid = workflow.process_payment(tx.transaction_id)

    assert paid.locked_total == Decimal("655.00")
    assert paid.locked_price_per_gram == Decimal("65.50")


def test_total_in_requested_currency() -> None:
    workflow, _, _, _ = _workflow()

    tx = workflow.initiate(Decimal("1"), "inr")

    assert tx.currency == "INR"
    assert tx.locked_total == Decimal("5436.50")


def test_second_payment_returns_existing_certificate() -> None:
    workflow, _, _, processor = _workflow()
    tx = workflow.initiate(Decimal("2"))
    paid = workflow.process_payment(tx.transaction_id)

    with pytest.raises(ConflictError) as excinfo:
        workflow.process_payment(tx.transaction_id)

    assert excinfo.value.transaction is not None
    assert excinfo.value.transaction.certificate == paid.certificate
    assert len(processor.calls) == 1


def test_concurrent_payment_reaches_processor_once() -> None:
    processor = RecordingProcessor()
    processor.release = threading.Event()
    workflow, transactions, _, _ = _workflow(processor)
    tx = workflow.initiate(Decimal("1"))

    results: List[Transaction] = []
    worker = threading.Thread(target=lambda: results.append(workflow.process_payment(tx.transaction_id)))
    worker.start()
    assert processor.entered.wait(2.0)

    with pytest.raises(ConflictError, match="already being processed"):
        workflow.process_payment(tx.transaction_id)

    processor.release.set()
    worker.join()

    assert len(processor.calls) == 1
    assert results[0].payment_state is PaymentState.COMPLETED
    assert transactions.get(tx.transaction_id) == results[0]


def test_lost_conditional_update_is_a_conflict() -> None:
    transactions = StaleReadRepository()
    workflow, _, _, processor = _workflow(transactions=transactions)
    tx = workflow.initiate(Decimal("1"))
    snapshot = transactions.get(tx.transaction_id)
    workflow.cancel(tx.transaction_id)

    transactions.stale = snapshot
    with pytest.raises(ConflictError) as excinfo:
        workflow.process_payment(tx.transaction_id)

    assert excinfo.value.transaction.workflow_state is WorkflowState.CANCELLED
    assert processor.calls == []


def test_declined_payment_fails_transaction() -> None:
    workflow, transactions, _, _ = _workflow(RecordingProcessor(approve=False))
    tx = workflow.initiate(Decimal("1"))

    with pytest.raises(PaymentDeclined) as excinfo:
        workflow.process_payment(tx.transaction_id)

    failed = excinfo.value.transaction
    assert failed.payment_state is PaymentState.FAILED
    assert failed.workflow_state is WorkflowState.FAILED
    assert failed.certificate is None
    assert transactions.get(tx.transaction_id) == failed

    with pytest.raises(ConflictError):
        workflow.process_payment(tx.transaction_id)
    with pytest.raises(ConflictError):
        workflow.complete(tx.transaction_id)


def test_processor_timeout_keeps_claim_until_late_answer_is_recorded() -> None:
    processor = RecordingProcessor()
    processor.release = threading.Event()
    workflow, transactions, _, _ = _workflow(processor, payment_timeout=0.05)
    tx = workflow.initiate(Decimal("1"))

    with pytest.raises(UpstreamUnavailable, match="pending"):
        workflow.process_payment(tx.transaction_id)

    stored = transactions.get(tx.transaction_id)
    assert stored.workflow_state is WorkflowState.PROCESSING
    assert stored.payment_state is PaymentState.PENDING

    with pytest.raises(ConflictError, match="already being processed"):
        workflow.process_payment(tx.transaction_id)

    processor.release.set()
    assert _wait_for(lambda: transactions.get(tx.transaction_id).payment_state is PaymentState.COMPLETED)

    paid = transactions.get(tx.transaction_id)
    assert paid.certificate is not None
    with pytest.raises(ConflictError) as excinfo:
        workflow.process_payment(tx.transaction_id)
    assert excinfo.value.transaction.certificate == paid.certificate
    assert len(processor.calls) == 1

    assert workflow.complete(tx.transaction_id).workflow_state is WorkflowState.COMPLETED


def test_late_decline_after_timeout_fails_transaction() -> None:
    processor = RecordingProcessor(approve=False)
    processor.release = threading.Event()
    workflow, transactions, _, _ = _workflow(processor, payment_timeout=0.05)
    tx = workflow.initiate(Decimal("1"))

    with pytest.raises(UpstreamUnavailable):
        workflow.process_payment(tx.transaction_id)
    processor.release.set()

    assert _wait_for(lambda: transactions.get(tx.transaction_id).workflow_state is WorkflowState.FAILED)
    stored = transactions.get(tx.transaction_id)
    assert stored.payment_state is PaymentState.FAILED
    assert stored.certificate is None
    assert len(processor.calls) == 1


def test_late_processor_error_after_timeout_releases_claim() -> None:
    processor = RecordingProcessor()
    processor.release = threading.Event()
    processor.error = RuntimeError("gateway rejected the request")
    workflow, transactions, _, _ = _workflow(processor, payment_timeout=0.05)
    tx = workflow.initiate(Decimal("1"))

    with pytest.raises(UpstreamUnavailable):
        workflow.process_payment(tx.transaction_id)
    processor.release.set()

    assert _wait_for(lambda: transactions.get(tx.transaction_id).workflow_state is WorkflowState.INITIATED)

    processor.error = None
    processor.release = None
    assert workflow.process_payment(tx.transaction_id).payment_state is PaymentState.COMPLETED
    assert len(processor.calls) == 2


def test_unexpected_processor_error_releases_claim() -> None:
    processor = RecordingProcessor()
    processor.error = RuntimeError("gateway exploded")
    workflow, transactions, _, _ = _workflow(processor)
    tx = workflow.initiate(Decimal("1"))

    with pytest.raises(RuntimeError):
        workflow.process_payment(tx.transaction_id)

    assert transactions.get(tx.transaction_id).workflow_state is WorkflowState.INITIATED


def test_complete_requires_payment() -> None:
    workflow, _, _, _ = _workflow()
    tx = workflow.initiate(Decimal("1"))

    with pytest.raises(ConflictError, match="Payment must be completed"):
        workflow.complete(tx.transaction_id)


def test_cancel_only_before_payment() -> None:
    workflow, _, _, _ = _workflow()
    tx = workflow.initiate(Decimal("1"))
    assert workflow.cancel(tx.transaction_id).workflow_state is WorkflowState.CANCELLED

    with pytest.raises(ConflictError):
        workflow.process_payment(tx.transaction_id)

    paid = workflow.initiate(Decimal("1"))
    workflow.process_payment(paid.transaction_id)
    with pytest.raises(ConflictError):
        workflow.cancel(paid.transaction_id)


def test_one_shot_purchase_credits_holdings_once() -> None:
    workflow, _, accounts, processor = _workflow()

    done = workflow.purchase(Decimal("10"), "USD", buyer_ref="buyer@example.com")

    assert done.workflow_state is WorkflowState.COMPLETED
    assert done.certificate is not None
    assert len(processor.calls) == 1

    account = accounts.find("buyer@example.com")
    assert account is not None
    assert account.email == "buyer@example.com"
    assert done.buyer_ref == str(account.account_id)
    assert account.total_gold_purchased == Decimal("10")
    assert done.holdings_credited is True

    with pytest.raises(ConflictError):
        workflow.complete(done.transaction_id)
    assert accounts.find("buyer@example.com").total_gold_purchased == Decimal("10")


def test_failed_holdings_credit_is_retried_by_complete() -> None:
    accounts = FlakyAccountRepository(failures=1)
    workflow, transactions, _, _ = _workflow(accounts=accounts)
    tx = workflow.initiate(Decimal("10"), buyer_ref="buyer@example.com")
    workflow.process_payment(tx.transaction_id)

    with pytest.raises(RuntimeError, match="account store unavailable"):
        workflow.complete(tx.transaction_id)

    stored = transactions.get(tx.transaction_id)
    assert stored.workflow_state is WorkflowState.COMPLETED
    assert stored.holdings_credited is False
    assert stored.awaits_holdings_credit
    assert accounts.find("buyer@example.com").total_gold_purchased == Decimal("0")

    retried = workflow.complete(tx.transaction_id)

    assert retried.workflow_state is WorkflowState.COMPLETED
    assert retried.holdings_credited is True
    assert transactions.get(tx.transaction_id) == retried
    assert accounts.find("buyer@example.com").total_gold_purchased == Decimal("10")

    with pytest.raises(ConflictError, match="already completed"):
        workflow.complete(tx.transaction_id)
    assert accounts.find("buyer@example.com").total_gold_purchased == Decimal("10")


def test_holdings_credit_counts_each_transaction_once() -> None:
    accounts = InMemoryAccountRepository()
    account = accounts.create("buyer-7")
    transaction_id = uuid4()

    accounts.increment_holdings(account.account_id, Decimal("2.5"), transaction_id=transaction_id)
    again = accounts.increment_holdings(account.account_id, Decimal("2.5"), transaction_id=transaction_id)
    other = accounts.increment_holdings(account.account_id, Decimal("1"), transaction_id=uuid4())

    assert again.total_gold_purchased == Decimal("2.5")
    assert other.total_gold_purchased == Decimal("3.5")


def test_one_shot_purchase_stops_on_decline() -> None:
    workflow, transactions, accounts, _ = _workflow(RecordingProcessor(approve=False))

    with pytest.raises(PaymentDeclined):
        workflow.purchase(Decimal("5"), buyer_ref="buyer-42")

    records, total = transactions.list()
    assert total == 1
    assert records[0].workflow_state is WorkflowState.FAILED
    assert accounts.find("buyer-42").total_gold_purchased == Decimal("0")


def test_guest_purchase_has_no_account() -> None:
    workflow, _, _, _ = _workflow()

    done = workflow.purchase(Decimal("1"))

    assert done.buyer_ref is None


@pytest.mark.parametrize("mass", [Decimal("0"), Decimal("-1"), Decimal("0.0001"), Decimal("1000.001")])
def test_out_of_band_mass_rejected_without_side_effects(mass: Decimal) -> None:
    workflow, transactions, _, _ = _workflow()

    with pytest.raises(ValidationError):
        workflow.initiate(mass, buyer_ref="buyer-1")

    assert transactions.list()[1] == 0


def test_unknown_payment_method_rejected() -> None:
    workflow, _, _, _ = _workflow()

    with pytest.raises(ValidationError):
        workflow.initiate(Decimal("1"), payment_method="CASH")


def test_unknown_transaction_not_found() -> None:
    workflow, _, _, _ = _workflow()

    with pytest.raises(NotFoundError):
        workflow.get(uuid4())
    with pytest.raises(NotFoundError):
        workflow.process_payment(uuid4())


def test_list_for_account_newest_first() -> None:
    workflow, _, _, _ = _workflow()
    first = workflow.initiate(Decimal("1"), buyer_ref="buyer-1")
    second = workflow.initiate(Decimal("2"), buyer_ref="buyer-1")
    workflow.initiate(Decimal("3"), buyer_ref="buyer-2")

    page, total = workflow.list_for_account("buyer-1")

    assert total == 2
    assert [tx.transaction_id for tx in page] == [second.transaction_id, first.transaction_id]

    page, total = workflow.list_for_account("buyer-1", skip=1, limit=1)
    assert total == 2
    assert [tx.transaction_id for tx in page] == [first.transaction_id]

    with pytest.raises(NotFoundError):
        workflow.list_for_account("nobody")
