"""
Transaction repository (persistence).

This module provides *only* persistence operations for the Transaction
domain entity. It does not decide which transitions are legal; it offers a
conditional update so that the workflow can apply a transition only if the
stored state is still the one it read ("compare-and-swap on state").

Two implementations share the contract:
- SupabaseTransactionRepository: `gold_transactions` table in Supabase.
- InMemoryTransactionRepository: process-local, for tests and demos.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from supabase import Client  # type: ignore[import-not-found]

from domain.transaction import (
    Certificate,
    PaymentMethod,
    PaymentState,
    Transaction,
    WorkflowState,
)
from repositories.timestamps import parse_utc_datetime, to_iso_utc

# Supabase table name for purchase transactions.
# Keep this aligned with sql/schema.sql.
_TRANSACTIONS_TABLE: str = "gold_transactions"


class TransactionRepository(ABC):
    @abstractmethod
    def create(self, transaction: Transaction) -> Transaction:
        """Insert a new transaction. Ids are unique; inserting twice is an error."""

    @abstractmethod
    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        """Fetch a transaction by id, or None."""

    @abstractmethod
    def update_if(
        self,
        transaction: Transaction,
        *,
        expected_workflow_state: WorkflowState,
        expected_payment_state: PaymentState,
    ) -> bool:
        """
        Store `transaction` only if the stored row is still in the expected states.

        Returns:
            True if the row was updated, False if another writer got there first.
        """

    @abstractmethod
    def list(
        self,
        *,
        buyer_ref: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Transaction], int]:
        """Page of transactions, newest first, plus the total matching count."""


class InMemoryTransactionRepository(TransactionRepository):
    """Thread-safe in-process store. A single lock makes update_if atomic."""

    def __init__(self) -> None:
        self._rows: Dict[UUID, Transaction] = {}
        self._lock = threading.Lock()

    def create(self, transaction: Transaction) -> Transaction:
        with self._lock:
            if transaction.transaction_id in self._rows:
                raise RuntimeError(f"Transaction {transaction.transaction_id} already exists")
            self._rows[transaction.transaction_id] = transaction
        return transaction

    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        with self._lock:
            return self._rows.get(transaction_id)

    def update_if(
        self,
        transaction: Transaction,
        *,
        expected_workflow_state: WorkflowState,
        expected_payment_state: PaymentState,
    ) -> bool:
        with self._lock:
            current = self._rows.get(transaction.transaction_id)
            if current is None:
                return False
            if current.workflow_state is not expected_workflow_state:
                return False
            if current.payment_state is not expected_payment_state:
                return False
            self._rows[transaction.transaction_id] = transaction
            return True

    def list(
        self,
        *,
        buyer_ref: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Transaction], int]:
        with self._lock:
            rows = [
                row for row in self._rows.values()
                if buyer_ref is None or row.buyer_ref == buyer_ref
            ]
        rows.sort(key=lambda row: row.created_at, reverse=True)
        return rows[skip:skip + limit], len(rows)


def _transaction_to_row(transaction: Transaction) -> dict[str, Any]:
    certificate = transaction.certificate
    return {
        "transaction_id": str(transaction.transaction_id),
        "buyer_ref": transaction.buyer_ref,
        "requested_mass": str(transaction.requested_mass),
        "locked_price_per_gram": str(transaction.locked_price_per_gram),
        "locked_total": str(transaction.locked_total),
        "currency": transaction.currency,
        "payment_method": transaction.payment_method.value,
        "payment_state": transaction.payment_state.value,
        "workflow_state": transaction.workflow_state.value,
        "certificate_id": certificate.certificate_id if certificate else None,
        "certificate_issued_at_utc": (
            to_iso_utc(certificate.issued_at, name="issued_at") if certificate else None
        ),
        "certificate_expires_at_utc": (
            to_iso_utc(certificate.expires_at, name="expires_at") if certificate else None
        ),
        "notes": transaction.notes,
        "holdings_credited": transaction.holdings_credited,
        "created_at_utc": to_iso_utc(transaction.created_at, name="created_at"),
        "updated_at_utc": to_iso_utc(transaction.updated_at, name="updated_at"),
    }


def _row_to_transaction(row: Mapping[str, Any]) -> Transaction:
    """Convert a Supabase row into a Transaction."""

    certificate = None
    if row.get("certificate_id"):
        certificate = Certificate(
            certificate_id=str(row["certificate_id"]),
            issued_at=parse_utc_datetime(row["certificate_issued_at_utc"]),
            expires_at=parse_utc_datetime(row["certificate_expires_at_utc"]),
        )

    return Transaction(
        transaction_id=UUID(str(row["transaction_id"])),
        buyer_ref=row.get("buyer_ref"),
        requested_mass=Decimal(str(row["requested_mass"])),
        locked_price_per_gram=Decimal(str(row["locked_price_per_gram"])),
        locked_total=Decimal(str(row["locked_total"])),
        currency=str(row.get("currency", "USD")),
        payment_method=PaymentMethod(str(row.get("payment_method", PaymentMethod.WALLET.value))),
        payment_state=PaymentState(str(row["payment_state"])),
        workflow_state=WorkflowState(str(row["workflow_state"])),
        certificate=certificate,
        notes=row.get("notes"),
        holdings_credited=bool(row.get("holdings_credited", False)),
        created_at=parse_utc_datetime(row["created_at_utc"]),
        updated_at=parse_utc_datetime(row["updated_at_utc"]),
    )


class SupabaseTransactionRepository(TransactionRepository):
    def __init__(self, client: Client) -> None:
        self._client = client

    def create(self, transaction: Transaction) -> Transaction:
        response = self._client.table(_TRANSACTIONS_TABLE).insert(_transaction_to_row(transaction)).execute()
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to create transaction: {error}")
        return transaction

    def get(self, transaction_id: UUID) -> Optional[Transaction]:
        response = (
            self._client.table(_TRANSACTIONS_TABLE)
            .select("*")
            .eq("transaction_id", str(transaction_id))
            .limit(1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to get transaction: {error}")

        rows = getattr(response, "data", None) or []

        if not rows:
            return None

        return _row_to_transaction(rows[0])

    def update_if(
        self,
        transaction: Transaction,
        *,
        expected_workflow_state: WorkflowState,
        expected_payment_state: PaymentState,
    ) -> bool:
        payload = _transaction_to_row(transaction)
        # Immutable columns are never rewritten
        for column in ("transaction_id", "requested_mass", "locked_price_per_gram", "locked_total", "created_at_utc"):
            payload.pop(column)

        # PostgREST applies the filters and the update in one statement,
        # so a concurrent writer that already moved the state matches no row.
        response = (
            self._client.table(_TRANSACTIONS_TABLE)
            .update(payload)
            .eq("transaction_id", str(transaction.transaction_id))
            .eq("workflow_state", expected_workflow_state.value)
            .eq("payment_state", expected_payment_state.value)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to update transaction: {error}")

        rows = getattr(response, "data", None) or []
        return len(rows) == 1

    def list(
        self,
        *,
        buyer_ref: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Transaction], int]:
        query = self._client.table(_TRANSACTIONS_TABLE).select("*", count="exact")
        if buyer_ref is not None:
            query = query.eq("buyer_ref", buyer_ref)
        response = (
            query.order("created_at_utc", desc=True)
            .range(skip, skip + limit - 1)
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to list transactions: {error}")

        rows = getattr(response, "data", None) or []
        total = getattr(response, "count", None)
        return [_row_to_transaction(row) for row in rows], int(total if total is not None else len(rows))


__all__ = [
    "TransactionRepository",
    "InMemoryTransactionRepository",
    "SupabaseTransactionRepository",
]
