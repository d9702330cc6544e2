"""
Pytest fixtures for the commission ledger test suite.

Provides:
- Structured logging configured once per session, plus a ``captured_logs``
  fixture returning the parsed JSON records of a test
- A DeterministicClock and an InMemoryRecordStore wired to it
- The default configuration set, loaded without environment overrides
- Builders for sales, payees and monthly commission records
"""

import itertools
import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from ledger_config import get_active_config
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import MonthlyCommissionRecord, Payee, Role, Sale
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_services.adapters.memory_store import InMemoryRecordStore


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, store):
            ...
            logs = captured_logs()
            assert any(r["message"] == "expense_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def store(clock) -> InMemoryRecordStore:
    return InMemoryRecordStore(clock)


@pytest.fixture
def config():
    """Default configuration set, isolated from the process environment."""
    return get_active_config(env={})


@pytest.fixture
def period() -> PeriodKey:
    return PeriodKey.parse("Octombrie 2025")


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_sale(period):
    """Build a Sale with sequential ids ``sale-001``, ``sale-002``, ..."""
    counter = itertools.count(1)

    def _make(
        project: str | None = "CODCOM",
        excl: str | None = "1000",
        incl: str | None = None,
        *,
        sale_id: str | None = None,
        payment_method: str | None = None,
        campaign_tag: str | None = None,
        commission: str | None = None,
        sale_period: PeriodKey | None = None,
    ) -> Sale:
        if incl is None and excl is not None:
            incl = str(Decimal(excl) * Decimal("1.19"))
        return Sale(
            id=sale_id or f"sale-{next(counter):03d}",
            period=sale_period or period,
            project=project,
            amount_excl_vat=None if excl is None else Decimal(excl),
            amount_incl_vat=None if incl is None else Decimal(incl),
            payment_method=payment_method,
            campaign_tag=campaign_tag,
            commission_amount=None if commission is None else Decimal(commission),
        )

    return _make


@pytest.fixture
def make_commission(period):
    """Build a MonthlyCommissionRecord with sequential ids ``mc-001``, ..."""
    counter = itertools.count(1)

    def _make(
        payee: Payee,
        amount: str,
        sales=(),
        *,
        role: Role | None = None,
        record_period: PeriodKey | None = None,
        setter_caller: str | None = None,
        name: str = "",
        record_id: str | None = None,
    ) -> MonthlyCommissionRecord:
        when = record_period or period
        return MonthlyCommissionRecord(
            id=record_id or f"mc-{next(counter):03d}",
            payee_ref=payee.id,
            payee_name=payee.name,
            period=when,
            role=role or payee.role,
            final_commission=Decimal(amount),
            linked_sale_ids=frozenset(s.id if isinstance(s, Sale) else s for s in sales),
            setter_caller_commission=None if setter_caller is None else Decimal(setter_caller),
            name=name or f"{payee.name} - {when.label}",
        )

    return _make


@pytest.fixture
def payees(store) -> dict[str, Payee]:
    """A small directory: two reps, a setter, a caller, both team leaders, a copywriter."""
    directory = {
        "ana": Payee("p-ana", "Ana Ionescu", Role.SALES),
        "mihai": Payee("p-mihai", "Mihai Pop", Role.SALES),
        "setter": Payee("p-setter", "Ioana Setter", Role.SETTER),
        "caller": Payee("p-caller", "Vlad Caller", Role.CALLER),
        "george": Payee("p-george", "George Coapsi", Role.TEAM_LEADER),
        "alexandru": Payee("p-alex", "Alexandru Prisiceanu", Role.TEAM_LEADER),
        "diana": Payee("p-diana", "Diana Nastase", Role.COPYWRITER),
    }
    for payee in directory.values():
        store.add_payee(payee)
    return directory
