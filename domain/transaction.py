"""
Domain: gold purchase transactions.

A Transaction is the only entity with durable identity and a lifecycle:

    INITIATED --(payment requested)--> PROCESSING
    PROCESSING --(payment succeeds)--> COMPLETED   (certificate issued with the payment)
    PROCESSING --(payment fails)-->    FAILED
    INITIATED --(explicit cancel)-->   CANCELLED

Invariants enforced at construction:
- locked_total = requested_mass x locked_price_per_gram (2 dp), fixed at creation.
- A certificate is present iff payment_state is COMPLETED.
- workflow_state COMPLETED requires payment_state COMPLETED.
- holdings_credited only on a COMPLETED transaction with a buyer.

Transitions return new instances; the original is never mutated. Whether the
new instance becomes the stored state is decided by a conditional update in
the repository.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from .errors import ConflictError
from .rounding import round_money
from .time import require_utc_timestamp


class PaymentState(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class WorkflowState(str, Enum):
    INITIATED = "INITIATED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    WALLET = "WALLET"
    CREDIT_CARD = "CREDIT_CARD"
    DEBIT_CARD = "DEBIT_CARD"
    UPI = "UPI"
    BANK_TRANSFER = "BANK_TRANSFER"


@dataclass(frozen=True, slots=True)
class Certificate:
    """Proof of ownership for a paid purchase."""

    certificate_id: str
    issued_at: datetime
    expires_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("issued_at", self.issued_at)
        require_utc_timestamp("expires_at", self.expires_at)
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be after issued_at")

    @staticmethod
    def issue(issued_at: datetime, validity_days: int = 365) -> "Certificate":
        require_utc_timestamp("issued_at", issued_at)
        return Certificate(
            certificate_id=f"DGC-{uuid4().hex[:20].upper()}",
            issued_at=issued_at,
            expires_at=issued_at + timedelta(days=validity_days),
        )


def lock_total(requested_mass: Decimal, locked_price_per_gram: Decimal) -> Decimal:
    return round_money(requested_mass * locked_price_per_gram)


@dataclass(frozen=True, slots=True)
class Transaction:
    transaction_id: UUID
    buyer_ref: Optional[str]
    requested_mass: Decimal
    locked_price_per_gram: Decimal
    locked_total: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_state: PaymentState
    workflow_state: WorkflowState
    created_at: datetime
    updated_at: datetime
    certificate: Optional[Certificate] = None
    notes: Optional[str] = None
    holdings_credited: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        require_utc_timestamp("updated_at", self.updated_at)
        if self.requested_mass <= 0:
            raise ValueError("requested_mass must be > 0")
        if self.locked_price_per_gram <= 0:
            raise ValueError("locked_price_per_gram must be > 0")
        if self.locked_total != lock_total(self.requested_mass, self.locked_price_per_gram):
            raise ValueError("locked_total must equal requested_mass x locked_price_per_gram")
        if (self.certificate is not None) != (self.payment_state is PaymentState.COMPLETED):
            raise ValueError("certificate must be present iff payment_state is COMPLETED")
        if self.workflow_state is WorkflowState.COMPLETED and self.payment_state is not PaymentState.COMPLETED:
            raise ValueError("a COMPLETED workflow requires a COMPLETED payment")
        if self.holdings_credited and (self.workflow_state is not WorkflowState.COMPLETED or self.buyer_ref is None):
            raise ValueError("holdings can only be credited for a completed purchase with a buyer")

    @staticmethod
    def open(
        *,
        requested_mass: Decimal,
        locked_price_per_gram: Decimal,
        currency: str,
        created_at: datetime,
        buyer_ref: Optional[str] = None,
        payment_method: PaymentMethod = PaymentMethod.WALLET,
        notes: Optional[str] = None,
    ) -> "Transaction":
        """Create a new INITIATED transaction with its price locked."""

        return Transaction(
            transaction_id=uuid4(),
            buyer_ref=buyer_ref,
            requested_mass=requested_mass,
            locked_price_per_gram=locked_price_per_gram,
            locked_total=lock_total(requested_mass, locked_price_per_gram),
            currency=currency,
            payment_method=payment_method,
            payment_state=PaymentState.PENDING,
            workflow_state=WorkflowState.INITIATED,
            created_at=created_at,
            updated_at=created_at,
            notes=notes or f"Digital gold purchase of {requested_mass} grams",
        )

    @property
    def is_terminal(self) -> bool:
        return self.workflow_state in (
            WorkflowState.COMPLETED,
            WorkflowState.FAILED,
            WorkflowState.CANCELLED,
        )

    @property
    def awaits_holdings_credit(self) -> bool:
        """Completed for a buyer whose holdings have not been credited yet."""
        return (
            self.workflow_state is WorkflowState.COMPLETED
            and self.buyer_ref is not None
            and not self.holdings_credited
        )

    def _conflict(self, message: str) -> ConflictError:
        return ConflictError(message, transaction=self)

    def begin_payment(self, now: datetime) -> "Transaction":
        """INITIATED/PENDING -> PROCESSING/PENDING (payment requested)."""

        if self.payment_state is PaymentState.COMPLETED:
            raise self._conflict("Payment already completed for this transaction")
        if self.workflow_state is WorkflowState.PROCESSING:
            raise self._conflict("Payment is already being processed for this transaction")
        if self.workflow_state is not WorkflowState.INITIATED:
            raise self._conflict(
                f"Cannot process payment for a transaction in state {self.workflow_state.value}"
            )
        return replace(self, workflow_state=WorkflowState.PROCESSING, updated_at=now)

    def payment_succeeded(self, certificate: Certificate, now: datetime) -> "Transaction":
        """Record a successful payment; the certificate is attached in the same step."""

        self._require_claimed()
        return replace(
            self,
            payment_state=PaymentState.COMPLETED,
            certificate=certificate,
            updated_at=now,
        )

    def payment_failed(self, now: datetime) -> "Transaction":
        self._require_claimed()
        return replace(
            self,
            payment_state=PaymentState.FAILED,
            workflow_state=WorkflowState.FAILED,
            updated_at=now,
        )

    def release_claim(self, now: datetime) -> "Transaction":
        """Undo `begin_payment` when the processor call ended without an outcome."""

        self._require_claimed()
        return replace(self, workflow_state=WorkflowState.INITIATED, updated_at=now)

    def record_holdings_credit(self, now: datetime) -> "Transaction":
        if not self.awaits_holdings_credit:
            raise self._conflict("Holdings already credited or nothing to credit for this transaction")
        return replace(self, holdings_credited=True, updated_at=now)

    def finalize(self, now: datetime) -> "Transaction":
        """PROCESSING -> COMPLETED. Requires a completed payment."""

        if self.workflow_state is WorkflowState.COMPLETED:
            raise self._conflict("Transaction already completed")
        if self.payment_state is not PaymentState.COMPLETED:
            raise self._conflict("Payment must be completed before finalizing purchase")
        if self.workflow_state is not WorkflowState.PROCESSING:
            raise self._conflict(
                f"Cannot complete a transaction in state {self.workflow_state.value}"
            )
        return replace(self, workflow_state=WorkflowState.COMPLETED, updated_at=now)

    def cancel(self, now: datetime) -> "Transaction":
        if self.workflow_state is not WorkflowState.INITIATED:
            raise self._conflict(
                f"Only INITIATED transactions can be cancelled (state: {self.workflow_state.value})"
            )
        return replace(self, workflow_state=WorkflowState.CANCELLED, updated_at=now)

    def _require_claimed(self) -> None:
        if self.workflow_state is not WorkflowState.PROCESSING or self.payment_state is not PaymentState.PENDING:
            raise self._conflict(
                "Transaction is not awaiting a payment outcome "
                f"(workflow: {self.workflow_state.value}, payment: {self.payment_state.value})"
            )


__all__ = [
    "PaymentState",
    "WorkflowState",
    "PaymentMethod",
    "Certificate",
    "Transaction",
    "lock_total",
]
