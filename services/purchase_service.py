"""
Purchase service: the digital gold purchase workflow.

Handles:
- Price lock at initiation (the total never follows later market moves)
- Payment through an external processor, at most once per transaction
- Certificate issuance in the same write as the payment success
- Finalization and the buyer's holdings credit, once per transaction
- A one-shot purchase path with the same guarantees

Every state change is a conditional update keyed by the state the step read.
Two concurrent callers on one transaction cannot both win: the loser gets a
ConflictError and the stored transaction reflects exactly one outcome.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Tuple
from uuid import UUID

from domain.errors import (
    ConflictError,
    NotFoundError,
    PaymentDeclined,
    UpstreamUnavailable,
    ValidationError,
)
from domain.time import utc_now
from domain.transaction import Certificate, PaymentMethod, PaymentState, Transaction
from repositories.account_repository import AccountRepository
from repositories.transaction_repository import TransactionRepository
from services.fallback import submit_call
from services.payment_processor import PaymentProcessor
from services.pricing_service import PricingEngine

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500


def _parse_payment_method(value: str | PaymentMethod) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(method.value for method in PaymentMethod)
        raise ValidationError(f"Unsupported payment method {value!r}. Use one of: {allowed}") from None


class PurchaseWorkflow:
    """
    Transaction state machine over a repository with conditional updates.

    Example:
        tx = workflow.initiate(Decimal("10"), "USD", buyer_ref="buyer@example.com")
        tx = workflow.process_payment(tx.transaction_id, {"card": "tok_visa"})
        tx = workflow.complete(tx.transaction_id)
        print(tx.certificate.certificate_id)
    """

    def __init__(
        self,
        pricing: PricingEngine,
        transactions: TransactionRepository,
        accounts: AccountRepository,
        processor: PaymentProcessor,
        *,
        payment_timeout: float = 30.0,
        certificate_validity_days: int = 365,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._pricing = pricing
        self._transactions = transactions
        self._accounts = accounts
        self._processor = processor
        self._payment_timeout = payment_timeout
        self._certificate_validity_days = certificate_validity_days
        self._clock = clock

    @property
    def pricing(self) -> PricingEngine:
        return self._pricing

    def initiate(
        self,
        mass: Decimal,
        currency: Optional[str] = None,
        *,
        buyer_ref: Optional[str] = None,
        payment_method: str | PaymentMethod = PaymentMethod.WALLET,
        notes: Optional[str] = None,
    ) -> Transaction:
        """
        Open a purchase and lock its price.

        Args:
            mass: grams of gold, within the configured band
            currency: currency the buyer pays in
            buyer_ref: opaque account reference; None for a guest purchase
            payment_method: one of PaymentMethod
            notes: free text stored with the transaction

        Returns:
            The new transaction (INITIATED / PENDING)

        Raises:
            ValidationError: out-of-band mass, unknown currency or payment method
        """
        self._pricing.check_mass_band(mass)
        method = _parse_payment_method(payment_method)
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")

        cost = self._pricing.cost_of(mass, currency)

        account_ref: Optional[str] = None
        if buyer_ref is not None and buyer_ref.strip():
            account = self._accounts.find_or_create(buyer_ref.strip())
            account_ref = str(account.account_id)

        transaction = Transaction.open(
            requested_mass=mass,
            locked_price_per_gram=cost.price_per_gram,
            currency=cost.currency,
            created_at=self._clock(),
            buyer_ref=account_ref,
            payment_method=method,
            notes=notes,
        )
        self._transactions.create(transaction)

        logger.info(
            f"Purchase initiated: {transaction.requested_mass} g for {transaction.locked_total} {transaction.currency}",
            extra={
                "transaction_id": str(transaction.transaction_id),
                "buyer_ref": account_ref,
                "locked_price_per_gram": str(transaction.locked_price_per_gram),
                "quote_as_of": cost.as_of.isoformat(),
            },
        )
        return transaction

    def process_payment(
        self,
        transaction_id: UUID,
        payment_details: Optional[Mapping[str, Any]] = None,
    ) -> Transaction:
        """
        Charge the locked total and issue the certificate.

        Process:
        1. Reject if payment already completed (ConflictError carries the
           stored transaction and its certificate) or the workflow is not INITIATED
        2. Claim the transaction: INITIATED -> PROCESSING, conditionally
        3. Call the processor, bounded by the payment timeout
        4. Success: payment COMPLETED and certificate attached in one update
           Decline: both states FAILED, PaymentDeclined raised
           Processor raised: claim released, error raised
           Timeout: the transaction stays PROCESSING/PENDING and the
           processor's answer is recorded when it arrives; until then every
           retry is a ConflictError, so the buyer is never charged twice

        Raises:
            NotFoundError, ConflictError, PaymentDeclined, UpstreamUnavailable
        """
        current = self._require(transaction_id)
        claimed = current.begin_payment(self._clock())
        self._store(claimed, previous=current)

        future = submit_call(lambda: self._processor.process(claimed, dict(payment_details or {})))
        try:
            approved = future.result(timeout=self._payment_timeout)
        except FutureTimeoutError:
            logger.warning(
                "Payment processor did not answer in time; outcome pending",
                extra={"transaction_id": str(transaction_id), "timeout": self._payment_timeout},
            )
            future.add_done_callback(lambda done: self._record_late_outcome(claimed, done))
            raise UpstreamUnavailable(
                f"Payment processor did not answer within {self._payment_timeout:.0f}s; "
                "the payment outcome is pending"
            ) from None
        except Exception:
            logger.exception(
                "Payment processor raised; releasing claim",
                extra={"transaction_id": str(transaction_id)},
            )
            self._release(claimed)
            raise

        outcome = self._apply_outcome(claimed, approved)
        if outcome.payment_state is PaymentState.FAILED:
            raise PaymentDeclined("Payment processing failed", outcome)
        return outcome

    def complete(self, transaction_id: UUID) -> Transaction:
        """
        Finalize a paid transaction and credit the buyer's holdings.

        A COMPLETED transaction whose holdings credit did not go through is
        completed again by crediting only. The account store keys each credit
        by transaction id, so a repeated credit adds nothing.

        Raises:
            NotFoundError: unknown transaction
            ConflictError: payment not completed, or already completed and credited
        """
        current = self._require(transaction_id)
        if current.awaits_holdings_credit:
            logger.info(
                "Retrying holdings credit for a completed purchase",
                extra={"transaction_id": str(transaction_id), "buyer_ref": current.buyer_ref},
            )
            return self._credit_holdings(current)

        completed = current.finalize(self._clock())
        self._store(completed, previous=current)

        logger.info(
            "Purchase completed",
            extra={"transaction_id": str(transaction_id), "buyer_ref": completed.buyer_ref},
        )
        if completed.buyer_ref is None:
            return completed
        return self._credit_holdings(completed)

    def cancel(self, transaction_id: UUID) -> Transaction:
        """Cancel an INITIATED transaction. Any later state is a ConflictError."""

        current = self._require(transaction_id)
        cancelled = current.cancel(self._clock())
        self._store(cancelled, previous=current)
        logger.info("Purchase cancelled", extra={"transaction_id": str(transaction_id)})
        return cancelled

    def purchase(
        self,
        mass: Decimal,
        currency: Optional[str] = None,
        *,
        buyer_ref: Optional[str] = None,
        payment_method: str | PaymentMethod = PaymentMethod.WALLET,
        notes: Optional[str] = None,
        payment_details: Optional[Mapping[str, Any]] = None,
    ) -> Transaction:
        """
        One-shot purchase: initiate, pay and complete.

        Each step goes through the same guards as the three-step path, so the
        certificate and the holdings credit happen exactly once.
        """
        transaction = self.initiate(
            mass,
            currency,
            buyer_ref=buyer_ref,
            payment_method=payment_method,
            notes=notes,
        )
        self.process_payment(transaction.transaction_id, payment_details)
        return self.complete(transaction.transaction_id)

    def get(self, transaction_id: UUID) -> Transaction:
        return self._require(transaction_id)

    def list_for_account(
        self,
        buyer_ref: Optional[str] = None,
        *,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Transaction], int]:
        """
        Page of transactions, newest first. `buyer_ref` None lists all.

        Raises:
            NotFoundError: `buyer_ref` does not resolve to an account
        """
        if skip < 0 or limit < 1:
            raise ValidationError("skip must be >= 0 and limit must be >= 1")

        account_ref: Optional[str] = None
        if buyer_ref is not None:
            account = self._accounts.find(buyer_ref)
            if account is None:
                raise NotFoundError(f"Account not found: {buyer_ref}")
            account_ref = str(account.account_id)

        return self._transactions.list(buyer_ref=account_ref, skip=skip, limit=limit)

    def _require(self, transaction_id: UUID) -> Transaction:
        transaction = self._transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction

    def _store(self, updated: Transaction, *, previous: Transaction) -> None:
        """Write `updated` only if the stored row is still `previous`'s state."""

        stored = self._transactions.update_if(
            updated,
            expected_workflow_state=previous.workflow_state,
            expected_payment_state=previous.payment_state,
        )
        if not stored:
            latest = self._transactions.get(updated.transaction_id)
            raise ConflictError("Transaction was modified concurrently; reload and retry", transaction=latest)

    def _release(self, claimed: Transaction) -> None:
        released = claimed.release_claim(self._clock())
        self._store(released, previous=claimed)

    def _apply_outcome(self, claimed: Transaction, approved: bool) -> Transaction:
        """Store the processor's answer on a claimed transaction."""

        now = self._clock()
        if not approved:
            failed = claimed.payment_failed(now)
            self._store(failed, previous=claimed)
            logger.warning(
                "Payment declined",
                extra={"transaction_id": str(claimed.transaction_id), "amount": str(failed.locked_total)},
            )
            return failed

        certificate = Certificate.issue(now, self._certificate_validity_days)
        paid = claimed.payment_succeeded(certificate, now)
        self._store(paid, previous=claimed)

        logger.info(
            f"Payment completed, certificate {certificate.certificate_id} issued",
            extra={
                "transaction_id": str(claimed.transaction_id),
                "certificate_id": certificate.certificate_id,
                "expires_at": certificate.expires_at.isoformat(),
            },
        )
        return paid

    def _record_late_outcome(self, claimed: Transaction, future: Future[bool]) -> None:
        """Done-callback for a processor call that outlived the payment timeout."""

        transaction_id = str(claimed.transaction_id)
        try:
            error = future.exception()
            if error is not None:
                logger.warning(
                    f"Late payment processor error ({type(error).__name__}: {error}); releasing claim",
                    extra={"transaction_id": transaction_id},
                )
                self._release(claimed)
                return
            outcome = self._apply_outcome(claimed, future.result())
            logger.info(
                "Late payment outcome recorded",
                extra={"transaction_id": transaction_id, "payment_state": outcome.payment_state.value},
            )
        except Exception:
            # Runs on the processor's worker thread; nothing upstream can receive it.
            logger.exception(
                "Failed to record late payment outcome; transaction needs reconciliation",
                extra={"transaction_id": transaction_id},
            )

    def _credit_holdings(self, completed: Transaction) -> Transaction:
        """Credit the buyer once, then mark the transaction as credited."""

        try:
            self._accounts.increment_holdings(
                UUID(completed.buyer_ref),
                completed.requested_mass,
                transaction_id=completed.transaction_id,
            )
        except Exception:
            logger.exception(
                "Holdings credit failed for a completed purchase; complete() can be retried",
                extra={
                    "transaction_id": str(completed.transaction_id),
                    "buyer_ref": completed.buyer_ref,
                    "mass": str(completed.requested_mass),
                },
            )
            raise

        credited = completed.record_holdings_credit(self._clock())
        self._store(credited, previous=completed)
        return credited


__all__ = [
    "PurchaseWorkflow",
]
