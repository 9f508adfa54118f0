"""
Account repository for buyer accounts and their gold holdings.

Accounts are resolved by an opaque reference: an account id (UUID), an
email address, or any external user identifier. Unknown references create
a new account (find-or-create), mirroring guest-to-account checkout.

Holdings are only ever incremented, never written directly, so concurrent
completions cannot lose an update. Each credit is keyed by its transaction
id: crediting the same transaction twice adds the mass once.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Optional, Set
from uuid import UUID, uuid4

from supabase import Client  # type: ignore[import-not-found]

from domain.account import Account
from domain.time import utc_now
from repositories.timestamps import parse_optional_datetime

_ACCOUNTS_TABLE: str = "accounts"


def _as_uuid(reference: str) -> Optional[UUID]:
    try:
        return UUID(str(reference))
    except ValueError:
        return None


class AccountRepository(ABC):
    @abstractmethod
    def get(self, account_id: UUID) -> Optional[Account]:
        """Account by id, or None."""

    @abstractmethod
    def find(self, reference: str) -> Optional[Account]:
        """Account by id, reference or email, or None."""

    @abstractmethod
    def create(self, reference: str, *, email: Optional[str] = None, name: Optional[str] = None) -> Account:
        """Create an account for `reference`."""

    @abstractmethod
    def increment_holdings(self, account_id: UUID, mass: Decimal, *, transaction_id: UUID) -> Account:
        """
        Atomically add `mass` grams to the account's total_gold_purchased.

        Idempotent per `transaction_id`: a repeated credit for the same
        transaction returns the account unchanged.
        """

    def find_or_create(self, reference: str) -> Account:
        """
        Resolve a buyer reference, creating an account the first time it is seen.

        Example:
            account = accounts.find_or_create("buyer@example.com")
        """
        account = self.find(reference)
        if account is not None:
            return account
        email = reference if "@" in reference else None
        return self.create(reference, email=email)


class InMemoryAccountRepository(AccountRepository):
    def __init__(self) -> None:
        self._rows: Dict[UUID, Account] = {}
        self._credited: Set[UUID] = set()
        self._lock = threading.Lock()

    def get(self, account_id: UUID) -> Optional[Account]:
        with self._lock:
            return self._rows.get(account_id)

    def find(self, reference: str) -> Optional[Account]:
        account_id = _as_uuid(reference)
        with self._lock:
            if account_id is not None and account_id in self._rows:
                return self._rows[account_id]
            for account in self._rows.values():
                if account.reference == reference or (account.email and account.email == reference):
                    return account
        return None

    def create(self, reference: str, *, email: Optional[str] = None, name: Optional[str] = None) -> Account:
        now = utc_now()
        with self._lock:
            for account in self._rows.values():
                if account.reference == reference:
                    return account
            account = Account(
                account_id=uuid4(),
                reference=reference,
                email=email,
                name=name,
                created_at=now,
                updated_at=now,
            )
            self._rows[account.account_id] = account
            return account

    def increment_holdings(self, account_id: UUID, mass: Decimal, *, transaction_id: UUID) -> Account:
        if mass <= 0:
            raise ValueError("mass must be > 0")
        with self._lock:
            account = self._rows.get(account_id)
            if account is None:
                raise KeyError(f"Account {account_id} not found")
            if transaction_id in self._credited:
                return account
            self._credited.add(transaction_id)
            updated = replace(
                account,
                total_gold_purchased=account.total_gold_purchased + mass,
                updated_at=utc_now(),
            )
            self._rows[account_id] = updated
            return updated


def _row_to_account(row: dict) -> Account:
    return Account(
        account_id=UUID(str(row["account_id"])),
        reference=str(row["reference"]),
        email=row.get("email"),
        name=row.get("name"),
        total_gold_purchased=Decimal(str(row.get("total_gold_purchased") or "0")),
        created_at=parse_optional_datetime(row.get("created_at_utc")),
        updated_at=parse_optional_datetime(row.get("updated_at_utc")),
    )


class SupabaseAccountRepository(AccountRepository):
    def __init__(self, client: Client) -> None:
        self._client = client

    def _select_one(self, column: str, value: str) -> Optional[Account]:
        response = (
            self._client.table(_ACCOUNTS_TABLE)
            .select("*")
            .eq(column, value)
            .limit(1)
            .execute()
        )

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to fetch account: {error}")

        rows = getattr(response, "data", None) or []

        if not rows:
            return None

        return _row_to_account(rows[0])

    def get(self, account_id: UUID) -> Optional[Account]:
        return self._select_one("account_id", str(account_id))

    def find(self, reference: str) -> Optional[Account]:
        account_id = _as_uuid(reference)
        if account_id is not None:
            account = self.get(account_id)
            if account is not None:
                return account
        return self._select_one("reference", reference) or self._select_one("email", reference)

    def create(self, reference: str, *, email: Optional[str] = None, name: Optional[str] = None) -> Account:
        account_id = uuid4()
        now = utc_now()

        payload = {
            "account_id": str(account_id),
            "reference": reference,
            "email": email,
            "name": name,
            "total_gold_purchased": "0",
            "created_at_utc": now.isoformat(),
            "updated_at_utc": now.isoformat(),
        }

        response = self._client.table(_ACCOUNTS_TABLE).insert(payload).execute()

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to create account: {error}")

        return Account(
            account_id=account_id,
            reference=reference,
            email=email,
            name=name,
            created_at=now,
            updated_at=now,
        )

    def increment_holdings(self, account_id: UUID, mass: Decimal, *, transaction_id: UUID) -> Account:
        # credit_gold_holdings() records the transaction in holdings_credits and
        # adds p_mass in the same statement; a repeated transaction adds nothing.
        response = self._client.rpc(
            "credit_gold_holdings",
            {
                "p_account_id": str(account_id),
                "p_transaction_id": str(transaction_id),
                "p_mass": str(mass),
            },
        ).execute()

        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to increment holdings: {error}")

        data = getattr(response, "data", None)
        row = data[0] if isinstance(data, list) and data else data
        if not row:
            raise RuntimeError(f"Account {account_id} not found while incrementing holdings")
        return _row_to_account(row)


__all__ = [
    "AccountRepository",
    "InMemoryAccountRepository",
    "SupabaseAccountRepository",
]
