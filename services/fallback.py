"""
Fallback chain: primary remote calls with a deterministic local floor.

Both price resolution and question classification have the same shape:
try an ordered list of remote calls, each bounded by a timeout, accept the
first that succeeds, and if none does, fall back to a local answer that
cannot fail. This module implements that shape once.

Timing rules:
- Each attempt gets min(attempt_timeout, time left before the deadline).
- The deadline covers the whole chain, so N slow attempts cannot add up to
  an unbounded wait. Attempts that would start after the deadline are skipped.
- An attempt signals failure by raising or by returning None. A value that
  fails `accept` also counts as a failure.

Attempt failures are logged and recorded on the Resolution, never raised.
Only an exhausted chain without a fallback raises UpstreamUnavailable.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from domain.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Remote calls run on worker threads so a hung call can be abandoned at its
# timeout. Threads are shared process-wide.
_EXECUTOR = ThreadPoolExecutor(max_workers=16, thread_name_prefix="fallback-attempt")


@dataclass(frozen=True, slots=True)
class Attempt(Generic[T]):
    """A named remote call. `call` receives its timeout in seconds."""

    name: str
    call: Callable[[float], Optional[T]]


@dataclass(frozen=True, slots=True)
class AttemptFailure:
    name: str
    reason: str
    elapsed: float


@dataclass(frozen=True, slots=True)
class Resolution(Generic[T]):
    value: T
    source: str
    used_fallback: bool
    failures: List[AttemptFailure] = field(default_factory=list)


def submit_call(fn: Callable[[], T]) -> Future[T]:
    """Start `fn` on a worker thread. The caller decides how long to wait."""
    return _EXECUTOR.submit(fn)


def call_with_timeout(fn: Callable[[], T], timeout: float) -> T:
    """
    Run `fn` on a worker thread and wait at most `timeout` seconds.

    Raises concurrent.futures.TimeoutError when the call overruns; the worker
    keeps running until the call returns on its own.
    """
    future = submit_call(fn)
    try:
        return future.result(timeout=max(timeout, 0.0))
    except FutureTimeoutError:
        future.cancel()
        raise


class FallbackChain(Generic[T]):
    """
    Ordered attempts, first success wins, optional terminal fallback.

    Example:
        chain = FallbackChain(
            [Attempt("goldapi", fetch_goldapi), Attempt("metalsapi", fetch_metals)],
            fallback=Attempt("simulated", lambda _: simulate()),
            attempt_timeout=5.0,
            deadline=12.0,
        )
        resolution = chain.resolve()
    """

    def __init__(
        self,
        attempts: Sequence[Attempt[T]],
        *,
        fallback: Optional[Attempt[T]] = None,
        attempt_timeout: float = 5.0,
        deadline: Optional[float] = None,
        accept: Optional[Callable[[T], bool]] = None,
        label: str = "fallback-chain",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if attempt_timeout <= 0:
            raise ValueError("attempt_timeout must be positive")
        self._attempts = list(attempts)
        self._fallback = fallback
        self._attempt_timeout = attempt_timeout
        self._deadline = deadline
        self._accept = accept
        self._label = label
        self._clock = clock

    def resolve(self, deadline: Optional[float] = None) -> Resolution[T]:
        """
        Walk the chain. `deadline` (seconds from now) overrides the configured one.

        Raises:
            UpstreamUnavailable: every attempt failed and there is no fallback.
        """
        budget = deadline if deadline is not None else self._deadline
        started = self._clock()
        failures: List[AttemptFailure] = []

        for attempt in self._attempts:
            remaining = None if budget is None else budget - (self._clock() - started)
            if remaining is not None and remaining <= 0:
                failures.append(AttemptFailure(attempt.name, "deadline exceeded before attempt", 0.0))
                logger.warning(
                    f"{self._label}: skipping '{attempt.name}', deadline exhausted",
                    extra={"chain": self._label, "attempt": attempt.name},
                )
                continue

            timeout = self._attempt_timeout if remaining is None else min(self._attempt_timeout, remaining)
            attempt_started = self._clock()
            try:
                value = call_with_timeout(lambda a=attempt, t=timeout: a.call(t), timeout)
            except FutureTimeoutError:
                reason = f"timed out after {timeout:.2f}s"
                value = None
            except Exception as exc:  # provider errors are non-fatal here
                reason = f"{type(exc).__name__}: {exc}"
                value = None
            else:
                reason = "returned no value"
                if value is not None and self._accept is not None and not self._accept(value):
                    reason = f"rejected value {value!r}"
                    value = None

            elapsed = self._clock() - attempt_started
            if value is not None:
                logger.info(
                    f"{self._label}: '{attempt.name}' succeeded in {elapsed:.3f}s",
                    extra={"chain": self._label, "attempt": attempt.name, "elapsed": elapsed},
                )
                return Resolution(value=value, source=attempt.name, used_fallback=False, failures=failures)

            failures.append(AttemptFailure(attempt.name, reason, elapsed))
            logger.warning(
                f"{self._label}: '{attempt.name}' failed ({reason})",
                extra={"chain": self._label, "attempt": attempt.name, "elapsed": elapsed, "reason": reason},
            )

        if self._fallback is None:
            tried = ", ".join(f"{f.name}: {f.reason}" for f in failures) or "no attempts configured"
            raise UpstreamUnavailable(f"{self._label}: all attempts failed ({tried})")

        value = self._fallback.call(0.0)
        if value is None:
            raise UpstreamUnavailable(f"{self._label}: fallback '{self._fallback.name}' produced no value")
        logger.info(
            f"{self._label}: using fallback '{self._fallback.name}' after {len(failures)} failed attempt(s)",
            extra={"chain": self._label, "attempt": self._fallback.name, "failures": len(failures)},
        )
        return Resolution(value=value, source=self._fallback.name, used_fallback=True, failures=failures)


__all__ = [
    "Attempt",
    "AttemptFailure",
    "Resolution",
    "FallbackChain",
    "call_with_timeout",
    "submit_call",
]
