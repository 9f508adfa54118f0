"""
Payment processing collaborator.

The workflow treats the processor as an opaque, possibly slow, possibly
failing black box: `process()` answers success or failure. Real settlement
is out of scope; `SimulatedPaymentProcessor` stands in for a gateway.
"""

from __future__ import annotations

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from domain.transaction import Transaction

logger = logging.getLogger(__name__)


class PaymentProcessor(ABC):
    @abstractmethod
    def process(self, transaction: Transaction, details: Mapping[str, Any]) -> bool:
        """
        Charge `transaction.locked_total`. True on success, False on decline.

        Raising means nothing was charged. A call that has not returned has
        an unknown outcome until it does.
        """


class SimulatedPaymentProcessor(PaymentProcessor):
    """
    Simulated gateway: fixed delay, configurable success rate.

    The transaction id is the idempotency key a real gateway would receive.
    """

    def __init__(
        self,
        success_rate: float = 0.95,
        delay_seconds: float = 1.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be within [0, 1]")
        self._success_rate = success_rate
        self._delay_seconds = delay_seconds
        self._rng = rng or random.Random()

    def process(self, transaction: Transaction, details: Mapping[str, Any]) -> bool:
        if self._delay_seconds > 0:
            time.sleep(self._delay_seconds)
        approved = self._rng.random() < self._success_rate
        logger.info(
            f"Simulated payment {'approved' if approved else 'declined'}",
            extra={
                "transaction_id": str(transaction.transaction_id),
                "amount": str(transaction.locked_total),
                "currency": transaction.currency,
                "payment_method": transaction.payment_method.value,
            },
        )
        return approved


__all__ = ["PaymentProcessor", "SimulatedPaymentProcessor"]
