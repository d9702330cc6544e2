"""
ledger_services.pacing -- Request pacing and write retry.

Responsibility:
    ``PacingGate`` enforces a global minimum interval between calls to the
    backing store.  ``RetryPolicy`` retries a write on transient store
    unavailability with exponential backoff.

Architecture position:
    Services -- owned by ``PacedRecordStore``.  One gate per store
    instance, shared by every kind in a run.

Invariants enforced:
    - At most one call is in flight through a gate at a time.
    - Two consecutive calls are at least ``min_interval`` apart on the
      injected clock.
    - Only ``StoreUnavailableError`` is retried; every other error
      propagates on the first attempt.

Failure modes:
    - ``WriteFailureError`` -- retries exhausted; carries the attempt count
      and the last cause.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import TypeVar

from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import StoreUnavailableError, WriteFailureError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.pacing")

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[None]]


class PacingGate:
    """
    Serialises store calls and spaces them ``min_interval`` seconds apart.

    Contract:
        ``sleep`` is awaited for the remaining interval; tests inject a
        sleeper that advances a DeterministicClock.
    """

    def __init__(
        self,
        min_interval: Decimal | float,
        clock: Clock,
        sleep: Sleeper = asyncio.sleep,
    ):
        self._min_interval = float(min_interval)
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None
        self._waits = 0

    @property
    def wait_count(self) -> int:
        """Number of times a caller had to wait for the interval to elapse."""
        return self._waits

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            if self._last_call is not None:
                remaining = self._min_interval - (self._clock.monotonic() - self._last_call)
                if remaining > 0:
                    self._waits += 1
                    await self._sleep(remaining)
            try:
                return await operation()
            finally:
                self._last_call = self._clock.monotonic()


class RetryPolicy:
    """
    Exponential backoff for writes.

    Contract:
        Attempt ``n`` (1-based) that fails with ``StoreUnavailableError`` is
        followed by a pause of ``backoff_base ** n`` seconds, unless it was
        the last attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_base: Decimal | float = 2,
        sleep: Sleeper = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.backoff_base = float(backoff_base)
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return self.backoff_base ** attempt

    async def run(
        self,
        operation_name: str,
        key: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except StoreUnavailableError as exc:
                if attempt == self.max_attempts:
                    logger.error("write_retries_exhausted", extra={
                        "operation": operation_name,
                        "key": key,
                        "attempts": attempt,
                        "cause": exc.cause,
                    })
                    raise WriteFailureError(operation_name, key, attempt, exc.cause) from exc
                delay = self.delay_for(attempt)
                logger.warning("write_retry_scheduled", extra={
                    "operation": operation_name,
                    "key": key,
                    "attempt": attempt,
                    "delay_seconds": delay,
                })
                await self._sleep(delay)
        raise AssertionError("unreachable")
