"""
ledger_services.period_runner -- Runs allocation and P&L over periods.

Responsibility:
    Wires a record store and a LedgerConfig into the allocation kinds and
    the P&L service, and runs them for one or more periods in order.

Architecture position:
    Services -- the outermost orchestration layer; the CLI scripts and
    tests call into ``PeriodRunner``.

Invariants enforced:
    - Kinds run in a fixed order: sales rep, setter/caller, team leader,
      payment fee, ad spend, copywriting.  Disabled kinds are skipped.
    - Each kind is isolated: a ``LedgerError`` escaping one kind is recorded
      against that kind only and the next kind still runs.
    - Periods are processed sequentially in chronological order; P&L for a
      period runs after its allocation.
    - Counters live on the result objects of one run; nothing is global.

Failure modes:
    - ``InvalidPeriodKeyError`` for malformed period text, raised before any
      work starts.
    - ``run_all_periods`` propagates the store error when the list of sale
      periods itself cannot be read; nothing has run at that point.
    - Programming errors (TypeError, AttributeError, ...) propagate.

Audit relevance:
    Each run gets a ``run_id`` bound into the log context, so every record
    written during the run can be traced to it.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from uuid import uuid4

from ledger_config.schema import LedgerConfig
from ledger_engines.allocation import AllocationEngine, RoundingPolicy
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.values import ExchangeRate
from ledger_kernel.exceptions import LedgerError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_services.kinds import KIND_ORDER, KindContext
from ledger_services.payees import PayeeResolver
from ledger_services.pnl_service import PnLResult, PnLService
from ledger_services.ports import AdSpendSource
from ledger_services.reconciler import KindResult, RecordReconciler

logger = get_logger("services.period_runner")


@dataclass
class PeriodAllocationResult:
    period: PeriodKey
    kinds: list[KindResult] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(k.created for k in self.kinds)

    @property
    def updated(self) -> int:
        return sum(k.updated for k in self.kinds)

    @property
    def skipped(self) -> int:
        return sum(k.skipped for k in self.kinds)

    @property
    def errors(self) -> int:
        return sum(k.errors for k in self.kinds)

    def for_kind(self, kind: str) -> KindResult:
        for result in self.kinds:
            if result.kind == kind:
                return result
        raise KeyError(kind)


@dataclass
class RunSummary:
    """Totals of one ``run_periods`` call, across every period it covered."""

    run_id: str
    periods: list[PeriodKey] = field(default_factory=list)
    allocations: list[PeriodAllocationResult] = field(default_factory=list)
    pnl: list[PnLResult] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(a.created for a in self.allocations) + sum(p.created for p in self.pnl)

    @property
    def updated(self) -> int:
        return sum(a.updated for a in self.allocations) + sum(p.updated for p in self.pnl)

    @property
    def skipped(self) -> int:
        return sum(a.skipped for a in self.allocations) + sum(p.skipped for p in self.pnl)

    @property
    def errors(self) -> int:
        return sum(a.errors for a in self.allocations) + sum(p.errors for p in self.pnl)

    @property
    def ok(self) -> bool:
        return self.errors == 0

    def as_dict(self) -> dict[str, object]:
        return {
            "run_id": self.run_id,
            "periods": [p.label for p in self.periods],
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }


class PeriodRunner:
    """
    Allocation and P&L over periods against one record store.

    Contract:
        ``store`` implements ``ledger_services.ports.RecordStore``.
        ``ad_spend`` may be None; the ad-spend kind then aborts with a
        configuration error for every period while the others proceed.
    """

    def __init__(
        self,
        store,
        config: LedgerConfig,
        ad_spend: AdSpendSource | None = None,
    ):
        self._store = store
        self._config = config
        self._reconciler = RecordReconciler(store)
        self._context = KindContext(
            store=store,
            config=config,
            engine=AllocationEngine(RoundingPolicy(config.rounding_policy)),
            reconciler=self._reconciler,
            payees=PayeeResolver(store, config.similarity_threshold),
            ad_spend=ad_spend,
        )
        self._pnl = PnLService(
            store,
            self._reconciler,
            ExchangeRate.of("EUR", config.currency, config.display_eur_ron_rate),
        )

    @property
    def config(self) -> LedgerConfig:
        return self._config

    async def run_allocation_for_period(self, period: PeriodKey) -> PeriodAllocationResult:
        result = PeriodAllocationResult(period=period)
        with LogContext.bind(period=period.label):
            for kind_cls in KIND_ORDER:
                if kind_cls.name not in self._config.enabled_kinds:
                    logger.debug("kind_disabled", extra={"kind": kind_cls.name})
                    continue
                kind = kind_cls(self._context)
                try:
                    kind_result = await kind.run(period)
                except LedgerError as exc:
                    logger.error("kind_failed", extra={
                        "kind": kind_cls.name,
                        "error_code": exc.code,
                        "error": str(exc),
                    })
                    kind_result = KindResult(kind=kind_cls.name, period=period)
                    kind_result.fail(f"{exc.code}: {exc}")
                result.kinds.append(kind_result)
        return result

    async def run_pnl_for_period(self, period: PeriodKey) -> PnLResult:
        with LogContext.bind(period=period.label):
            try:
                return await self._pnl.run_pnl_for_period(period)
            except LedgerError as exc:
                logger.error("pnl_failed", extra={"error_code": exc.code, "error": str(exc)})
                failed = PnLResult(period=period)
                failed.errors += 1
                return failed

    async def run_periods(
        self,
        periods: Iterable[PeriodKey | str],
        *,
        allocate: bool = True,
        pnl: bool = True,
    ) -> RunSummary:
        keys = sorted({p if isinstance(p, PeriodKey) else PeriodKey.parse(p) for p in periods})
        summary = RunSummary(run_id=str(uuid4()), periods=keys)
        with LogContext.bind(run_id=summary.run_id):
            logger.info("run_started", extra={
                "periods": [p.label for p in keys],
                "allocate": allocate,
                "pnl": pnl,
                "config_checksum": self._config.checksum,
            })
            for period in keys:
                if allocate:
                    summary.allocations.append(await self.run_allocation_for_period(period))
                if pnl:
                    summary.pnl.append(await self.run_pnl_for_period(period))
            logger.info("run_completed", extra={
                "periods": [p.label for p in summary.periods],
                "created_count": summary.created,
                "updated": summary.updated,
                "skipped": summary.skipped,
                "errors": summary.errors,
            })
        return summary

    async def run_all_periods(self, *, allocate: bool = True, pnl: bool = True) -> RunSummary:
        """Run every period that holds at least one sale, oldest first."""
        periods = await self._store.fetch_sale_periods()
        logger.info("sale_periods_found", extra={"periods": [p.label for p in periods]})
        return await self.run_periods(periods, allocate=allocate, pnl=pnl)


def parse_periods(values: Sequence[str]) -> list[PeriodKey]:
    """Parse period texts from an external trigger."""
    return [PeriodKey.parse(v) for v in values]
