"""
Domain: error taxonomy.

Every failure a caller can observe is one of these. Routers map them to
HTTP status codes; services never leak raw transport errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .transaction import Transaction


class GoldPlatformError(Exception):
    """Base class for all domain errors."""


class ValidationError(GoldPlatformError):
    """Malformed or out-of-range input. Raised before any side effect."""


class NotFoundError(GoldPlatformError):
    """Unknown transaction or account id."""


class ConflictError(GoldPlatformError):
    """
    Illegal state transition or a lost conditional update.

    `transaction` is the current stored state when known, so an idempotent
    re-submission can still hand back the existing certificate.
    """

    def __init__(self, message: str, transaction: Optional["Transaction"] = None) -> None:
        super().__init__(message)
        self.transaction = transaction


class UpstreamUnavailable(GoldPlatformError):
    """Every remote attempt failed and there was no fallback."""


class RefreshError(UpstreamUnavailable):
    """Price refresh exhausted all providers with the simulated fallback disabled."""


class PaymentDeclined(GoldPlatformError):
    """The payment processor reported failure. The transaction is now FAILED."""

    def __init__(self, message: str, transaction: "Transaction") -> None:
        super().__init__(message)
        self.transaction = transaction


__all__ = [
    "GoldPlatformError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "UpstreamUnavailable",
    "RefreshError",
    "PaymentDeclined",
]
