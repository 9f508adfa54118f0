"""
Tests for `domain/transaction.py`.

Covers contract rules:
- locked_total is mass x price at 2 dp and is checked at construction.
- A certificate is present iff payment is COMPLETED.
- Only legal transitions succeed; illegal ones raise ConflictError carrying the transaction.
- Transitions never mutate the original instance.
- The holdings credit is recorded once, only for a completed purchase with a buyer.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from domain.errors import ConflictError
from domain.transaction import (
    Certificate,
    PaymentState,
    Transaction,
    WorkflowState,
    lock_total,
)

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(seconds=5)


def _open(mass: str = "10", price: str = "65.50") -> Transaction:
    return Transaction.open(
        requested_mass=Decimal(mass),
        locked_price_per_gram=Decimal(price),
        currency="USD",
        created_at=T0,
    )


def test_open_locks_total_and_starts_initiated() -> None:
    tx = _open()

    assert tx.locked_total == Decimal("655.00")
    assert tx.workflow_state is WorkflowState.INITIATED
    assert tx.payment_state is PaymentState.PENDING
    assert tx.certificate is None
    assert tx.notes == "Digital gold purchase of 10 grams"


def test_lock_total_rounds_half_up() -> None:
    assert lock_total(Decimal("0.333"), Decimal("65.50")) == Decimal("21.81")


def test_inconsistent_total_is_rejected() -> None:
    tx = _open()
    with pytest.raises(ValueError):
        replace(tx, locked_total=Decimal("600.00"))


def test_timestamps_must_be_utc() -> None:
    with pytest.raises(ValueError):
        Transaction.open(
            requested_mass=Decimal("1"),
            locked_price_per_gram=Decimal("65.50"),
            currency="USD",
            created_at=datetime(2025, 1, 1, 12, 0, 0),
        )


def test_transaction_is_immutable() -> None:
    tx = _open()
    with pytest.raises(FrozenInstanceError):
        tx.workflow_state = WorkflowState.COMPLETED  # type: ignore[misc]


def test_certificate_requires_completed_payment() -> None:
    tx = _open()
    with pytest.raises(ValueError):
        replace(tx, certificate=Certificate.issue(T1))
    with pytest.raises(ValueError):
        replace(tx, payment_state=PaymentState.COMPLETED)


def test_certificate_expires_after_validity_window() -> None:
    certificate = Certificate.issue(T1, validity_days=365)

    assert certificate.expires_at == T1 + timedelta(days=365)
    assert certificate.certificate_id.startswith("DGC-")
    assert len(certificate.certificate_id) == 24


def test_happy_path_transitions() -> None:
    tx = _open()

    claimed = tx.begin_payment(T1)
    assert claimed.workflow_state is WorkflowState.PROCESSING
    assert tx.workflow_state is WorkflowState.INITIATED

    paid = claimed.payment_succeeded(Certificate.issue(T1), T1)
    assert paid.payment_state is PaymentState.COMPLETED
    assert paid.workflow_state is WorkflowState.PROCESSING
    assert paid.certificate is not None

    done = paid.finalize(T1)
    assert done.workflow_state is WorkflowState.COMPLETED
    assert done.is_terminal
    assert done.locked_total == tx.locked_total


def test_payment_failure_marks_both_states_failed() -> None:
    failed = _open().begin_payment(T1).payment_failed(T1)

    assert failed.payment_state is PaymentState.FAILED
    assert failed.workflow_state is WorkflowState.FAILED
    assert failed.certificate is None


def test_second_payment_conflicts_with_existing_certificate() -> None:
    paid = _open().begin_payment(T1).payment_succeeded(Certificate.issue(T1), T1)

    with pytest.raises(ConflictError) as excinfo:
        paid.begin_payment(T1)

    assert excinfo.value.transaction is paid
    assert excinfo.value.transaction.certificate == paid.certificate


def test_finalize_requires_completed_payment() -> None:
    with pytest.raises(ConflictError):
        _open().finalize(T1)
    with pytest.raises(ConflictError):
        _open().begin_payment(T1).finalize(T1)


def test_completed_transaction_cannot_complete_again() -> None:
    done = _open().begin_payment(T1).payment_succeeded(Certificate.issue(T1), T1).finalize(T1)

    with pytest.raises(ConflictError, match="already completed"):
        done.finalize(T1)


def test_cancel_only_from_initiated() -> None:
    cancelled = _open().cancel(T1)
    assert cancelled.workflow_state is WorkflowState.CANCELLED

    with pytest.raises(ConflictError):
        cancelled.cancel(T1)
    with pytest.raises(ConflictError):
        _open().begin_payment(T1).cancel(T1)


def test_release_claim_returns_to_initiated() -> None:
    released = _open().begin_payment(T1).release_claim(T1)

    assert released.workflow_state is WorkflowState.INITIATED
    assert released.payment_state is PaymentState.PENDING


def test_holdings_credit_recorded_once_for_completed_buyer_purchase() -> None:
    paid = replace(_open(), buyer_ref="acct-1").begin_payment(T1).payment_succeeded(Certificate.issue(T1), T1)
    assert not paid.awaits_holdings_credit

    done = paid.finalize(T1)
    assert done.awaits_holdings_credit

    credited = done.record_holdings_credit(T1)
    assert credited.holdings_credited is True
    assert not credited.awaits_holdings_credit
    with pytest.raises(ConflictError):
        credited.record_holdings_credit(T1)


def test_guest_purchase_never_awaits_holdings_credit() -> None:
    done = _open().begin_payment(T1).payment_succeeded(Certificate.issue(T1), T1).finalize(T1)

    assert not done.awaits_holdings_credit
    with pytest.raises(ConflictError):
        done.record_holdings_credit(T1)
    with pytest.raises(ValueError):
        replace(done, holdings_credited=True)
