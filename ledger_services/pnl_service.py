"""
ledger_services.pnl_service -- Per-project P&L for one period.

Responsibility:
    Fetches the period's sales and automatic expenses, folds each project
    through ``PnLCalculator`` and reconciles the resulting lines.

Architecture position:
    Services -- runs after the allocation kinds of the same period, so
    that the expenses it reads are current.

Invariants enforced:
    - The project set is the union of projects with sales and projects
      with automatic expenses in the period.
    - Revenue and totals are recomputed from scratch on every run.
    - Every line is reconciled by (project, period, category, label).

Failure modes:
    - Lookup and write failures are counted per line as errors; remaining
      lines and projects are still processed.
"""

from __future__ import annotations

from dataclasses import dataclass

from ledger_engines.pnl import PnLCalculator
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import SourceTag, sale_project
from ledger_kernel.domain.values import ExchangeRate
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_services.reconciler import ReconcileOutcome, RecordReconciler

logger = get_logger("services.pnl")


@dataclass
class PnLResult:
    """Counts for one P&L pass; ``processed`` is the number of projects."""

    period: PeriodKey | None = None
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, outcome: ReconcileOutcome) -> None:
        match outcome:
            case ReconcileOutcome.CREATED:
                self.created += 1
            case ReconcileOutcome.UPDATED:
                self.updated += 1
            case ReconcileOutcome.UNCHANGED | ReconcileOutcome.SKIPPED_MANUAL:
                self.skipped += 1
            case ReconcileOutcome.FAILED:
                self.errors += 1


class PnLService:
    """
    Contract:
        ``display_rate`` is the EUR/RON rate used for the EUR columns.

    Non-goals:
        - Does not delete lines of projects that no longer appear.
    """

    def __init__(self, store, reconciler: RecordReconciler, display_rate: ExchangeRate):
        self._store = store
        self._reconciler = reconciler
        self._calculator = PnLCalculator(display_rate)

    async def run_pnl_for_period(self, period: PeriodKey) -> PnLResult:
        result = PnLResult(period=period)
        with LogContext.bind(kind="pnl"):
            sales = await self._store.fetch_sales_for_period(period)
            expenses = await self._store.list_expenses(period, SourceTag.AUTOMATIC)

            projects: dict[str, None] = {}
            for sale in sales:
                project = sale_project(sale)
                if project is not None:
                    projects.setdefault(project, None)
            for expense in expenses:
                if expense.project:
                    projects.setdefault(expense.project, None)

            logger.info("pnl_started", extra={
                "period": period.label,
                "projects": list(projects),
                "sales": len(sales),
                "expenses": len(expenses),
            })

            for project in projects:
                with LogContext.bind(project=project):
                    pnl = self._calculator.summarize(
                        project=project, period=period, sales=sales, expenses=expenses,
                    )
                    for draft in self._calculator.to_drafts(pnl):
                        result.record(await self._reconciler.reconcile_pnl_line(draft))
                    result.processed += 1
                    logger.info("pnl_project_completed", extra={
                        "project": project,
                        "revenue": str(pnl.revenue.amount),
                        "total_expense": str(pnl.total_expense.amount),
                        "profit": str(pnl.profit.amount),
                        "margin_percent": str(pnl.margin_percent),
                    })

            logger.info("pnl_completed", extra={
                "processed": result.processed,
                "created_count": result.created,
                "updated": result.updated,
                "errors": result.errors,
            })
        return result
