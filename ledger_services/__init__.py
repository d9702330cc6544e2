"""
ledger_services -- Package init and public API.

Responsibility:
    Orchestration over the pure engines: the allocation kinds, record
    reconciliation, the P&L service, maintenance and the period runner,
    plus the store adapters they run against.  This is the only layer that
    talks to a record store or sleeps.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundary.py):
        ledger_services/ -> ledger_engines/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_services/ -> ledger_config/   (allowed)
        ledger_engines/  -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("services")

from ledger_services.maintenance import MaintenanceReport, MaintenanceService  # noqa: E402
from ledger_services.pacing import PacingGate, RetryPolicy  # noqa: E402
from ledger_services.period_runner import (  # noqa: E402
    PeriodAllocationResult,
    PeriodRunner,
    RunSummary,
    parse_periods,
)
from ledger_services.pnl_service import PnLResult, PnLService  # noqa: E402
from ledger_services.reconciler import KindResult, ReconcileOutcome, RecordReconciler  # noqa: E402

__all__ = [
    "KindResult",
    "MaintenanceReport",
    "MaintenanceService",
    "PacingGate",
    "PeriodAllocationResult",
    "PeriodRunner",
    "PnLResult",
    "PnLService",
    "ReconcileOutcome",
    "RecordReconciler",
    "RetryPolicy",
    "RunSummary",
    "parse_periods",
]
