"""
Tests for PacingGate, RetryPolicy and the PacedRecordStore wrapper.

Time is driven by a DeterministicClock; the injected sleeper advances it
instead of blocking.
"""

import asyncio
from decimal import Decimal

import pytest

from ledger_config.schema import PacingDef
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.records import ExpenseDraft, ExpenseKind
from ledger_kernel.exceptions import (
    LookupFailureError,
    StoreUnavailableError,
    ValidationSkip,
    WriteFailureError,
)
from ledger_services.adapters.memory_store import InMemoryRecordStore
from ledger_services.adapters.paced_store import PacedRecordStore
from ledger_services.pacing import PacingGate, RetryPolicy


@pytest.fixture
def sleeps(clock):
    """Sleeper that records requested delays and advances the clock."""
    calls: list[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)
        clock.advance(seconds)

    _sleep.calls = calls
    return _sleep


class TestPacingGate:
    def test_consecutive_calls_spaced(self, clock, sleeps):
        gate = PacingGate(Decimal("0.25"), clock, sleeps)
        stamps: list[float] = []

        async def call():
            stamps.append(clock.monotonic())
            return len(stamps)

        async def run_three():
            return [await gate.run(call) for _ in range(3)]

        assert asyncio.run(run_three()) == [1, 2, 3]
        assert stamps == [0.0, 0.25, 0.5]
        assert gate.wait_count == 2

    def test_no_wait_when_interval_elapsed(self, clock, sleeps):
        gate = PacingGate(Decimal("0.25"), clock, sleeps)

        async def call():
            return None

        async def run_two():
            await gate.run(call)
            clock.advance(1.0)
            await gate.run(call)

        asyncio.run(run_two())
        assert gate.wait_count == 0
        assert sleeps.calls == []

    def test_concurrent_callers_serialised(self, clock, sleeps):
        gate = PacingGate(Decimal("0.25"), clock, sleeps)
        in_flight = 0
        peak = 0

        async def call():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1

        async def run_many():
            await asyncio.gather(*(gate.run(call) for _ in range(5)))

        asyncio.run(run_many())
        assert peak == 1
        assert gate.wait_count == 4


class TestRetryPolicy:
    def test_backoff_then_success(self, sleeps, captured_logs):
        attempts = 0

        async def flaky():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise StoreUnavailableError("create_expense", "429")
            return "ok"

        policy = RetryPolicy(max_attempts=3, backoff_base=2, sleep=sleeps)
        assert asyncio.run(policy.run("create_expense", "k", flaky)) == "ok"
        assert sleeps.calls == [2.0, 4.0]
        scheduled = [r for r in captured_logs() if r["message"] == "write_retry_scheduled"]
        assert [r["attempt"] for r in scheduled] == [1, 2]

    def test_exhausted(self, sleeps):
        async def down():
            raise StoreUnavailableError("update_expense", "503")

        policy = RetryPolicy(max_attempts=3, backoff_base=2, sleep=sleeps)
        with pytest.raises(WriteFailureError) as exc_info:
            asyncio.run(policy.run("update_expense", "rec-1", down))
        assert exc_info.value.attempts == 3
        assert exc_info.value.code == "WRITE_FAILURE"
        assert sleeps.calls == [2.0, 4.0]

    def test_other_errors_not_retried(self, sleeps):
        async def broken():
            raise ValidationSkip("x", "bad")

        policy = RetryPolicy(max_attempts=3, sleep=sleeps)
        with pytest.raises(ValidationSkip):
            asyncio.run(policy.run("create_expense", "k", broken))
        assert sleeps.calls == []

    def test_invalid_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class FlakyStore(InMemoryRecordStore):
    """Fails the first ``failures`` create calls and every sales read."""

    def __init__(self, clock, failures: int):
        super().__init__(clock)
        self.failures = failures

    async def create_expense(self, draft):
        if self.failures > 0:
            self.failures -= 1
            raise StoreUnavailableError("create_expense", "429")
        return await super().create_expense(draft)

    async def fetch_sales_for_period(self, period):
        raise StoreUnavailableError("fetch_sales_for_period", "timeout")


class TestPacedRecordStore:
    def _draft(self, period) -> ExpenseDraft:
        return ExpenseDraft(
            natural_key="stripe_CODCOM_Octombrie_2025",
            kind=ExpenseKind.PAYMENT_FEE,
            project="CODCOM",
            category=ExpenseCategory.PAYMENT_PROCESSING,
            amount=Decimal("71.40"),
            period=period,
            description="Comision procesare plati Stripe - CODCOM",
            vat_included=True,
        )

    def _paced(self, inner, clock, sleeps) -> PacedRecordStore:
        return PacedRecordStore.from_config(inner, PacingDef(), clock, sleeps)

    def test_write_retried_through_gate(self, clock, sleeps, period):
        inner = FlakyStore(clock, failures=2)
        paced = self._paced(inner, clock, sleeps)

        created = asyncio.run(paced.create_expense(self._draft(period)))

        assert created.amount == Decimal("71.40")
        assert inner.write_log == ["create_expense"]
        assert 2.0 in sleeps.calls and 4.0 in sleeps.calls

    def test_write_retries_exhausted(self, clock, sleeps, period):
        paced = self._paced(FlakyStore(clock, failures=5), clock, sleeps)
        with pytest.raises(WriteFailureError):
            asyncio.run(paced.create_expense(self._draft(period)))

    def test_read_failure_becomes_lookup_failure(self, clock, sleeps, period):
        paced = self._paced(FlakyStore(clock, failures=0), clock, sleeps)
        with pytest.raises(LookupFailureError) as exc_info:
            asyncio.run(paced.fetch_sales_for_period(period))
        assert exc_info.value.cause == "timeout"

    def test_reads_delegate(self, clock, sleeps, store, payees):
        paced = self._paced(store, clock, sleeps)
        found = asyncio.run(paced.fetch_payee_by_name("george coapsi"))
        assert found.id == "p-george"
