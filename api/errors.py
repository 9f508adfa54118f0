"""
Domain error to HTTP translation.

Routers catch `GoldPlatformError` and re-raise the result of
`to_http_exception()`; anything else becomes a 500 in the router itself.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import HTTPException

from api.models import TransactionResponse
from domain.errors import (
    ConflictError,
    GoldPlatformError,
    NotFoundError,
    PaymentDeclined,
    UpstreamUnavailable,
    ValidationError,
)


def _status_for(error: GoldPlatformError) -> int:
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    if isinstance(error, PaymentDeclined):
        return 402
    if isinstance(error, UpstreamUnavailable):
        return 503
    return 500


def to_http_exception(error: GoldPlatformError) -> HTTPException:
    """
    Map a domain error to an HTTPException.

    Conflicts and declines carry the stored transaction, so a client that
    re-submits a paid transaction still receives its certificate.

    Example:
        try:
            ...
        except GoldPlatformError as e:
            raise to_http_exception(e)
    """
    transaction = getattr(error, "transaction", None)
    if transaction is None:
        return HTTPException(status_code=_status_for(error), detail=str(error))

    detail: Dict[str, Any] = {
        "message": str(error),
        "transaction": TransactionResponse.from_domain(transaction).model_dump(mode="json"),
    }
    return HTTPException(status_code=_status_for(error), detail=detail)


__all__ = ["to_http_exception"]
