"""
Domain: buyer accounts.

Accounts are owned by the surrounding identity system; the platform only
resolves them by an opaque reference and keeps a running total of the gold
each buyer has purchased.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class Account:
    """
    Buyer account with cumulative holdings.

    `reference` is the opaque identifier the caller knows the buyer by
    (an external user id or an email address).
    """

    account_id: UUID
    reference: str
    email: Optional[str] = None
    name: Optional[str] = None
    total_gold_purchased: Decimal = Decimal("0")

    # Timestamps
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate timestamps are UTC-aware and holdings are non-negative."""
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.updated_at is not None:
            require_utc_timestamp("updated_at", self.updated_at)
        if self.total_gold_purchased < 0:
            raise ValueError("total_gold_purchased must be >= 0")
