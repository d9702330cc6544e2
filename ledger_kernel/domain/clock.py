"""
Clock -- Injectable time source.

Responsibility:
    Provides wall-clock time for record timestamps and monotonic time for
    request pacing, so that services never call ``datetime.now()`` or
    ``time.monotonic()`` directly.

Architecture position:
    Kernel > Domain -- pure, except SystemClock which is the one sanctioned
    boundary for reading real time.

Failure modes:
    - DeterministicClock.advance rejects negative steps with ValueError.
"""

import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services receive a Clock through their constructor.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
        - ``monotonic()`` never decreases between calls.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds from an arbitrary origin, for measuring intervals."""
        ...


class SystemClock(Clock):
    """Production clock backed by the operating system."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` and ``monotonic()`` only move when ``advance()`` or
          ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2025, 10, 1, 12, 0, 0, tzinfo=UTC)
        self._elapsed = 0.0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._elapsed)

    def monotonic(self) -> float:
        return self._elapsed

    def set_time(self, value: datetime) -> None:
        self._fixed_time = value
        self._elapsed = 0.0

    def advance(self, seconds: float = 1.0) -> None:
        if seconds < 0:
            raise ValueError("DeterministicClock cannot move backwards")
        self._elapsed += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1.0)
        return self.now()
