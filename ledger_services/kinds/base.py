"""
ledger_services.kinds.base -- Shared machinery for allocation kinds.

Responsibility:
    Defines ``KindContext`` (the dependencies every kind receives) and the
    ``AllocationKind`` base class that binds log context, owns the per-run
    ``KindResult`` and turns configuration failures into an aborted kind.

Architecture position:
    Services -- each kind computes ``ExpenseDraft`` values with the pure
    engines and hands them to ``RecordReconciler``.

Invariants enforced:
    - A kind never writes outside the reconciler.
    - ``CredentialOrConfigError`` aborts only the current kind for the
      current period.
    - Allocated shares that round to zero are not written.

Failure modes:
    - ``NoAllocatableBasisError`` during a group allocation skips that
      group; it never reaches the period runner.
    - A store error while processing one payee, leader or copywriter is
      counted as an error for that item; its siblings still run.
    - A store error outside any item (the initial listing) ends the kind
      with the counts gathered so far.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ledger_config.schema import LedgerConfig
from ledger_engines.allocation import AllocationEngine
from ledger_engines.matching import WeightedGroup
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import ExpenseDraft
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import (
    CredentialOrConfigError,
    NoAllocatableBasisError,
    StoreError,
    ValidationSkip,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_services.payees import PayeeResolver
from ledger_services.ports import AdSpendSource
from ledger_services.reconciler import KindResult, RecordReconciler

logger = get_logger("services.kinds")

LEDGER_CURRENCY = "RON"
_UNIT = Decimal(1)


@dataclass(frozen=True)
class KindContext:
    """Dependencies shared by every allocation kind in one run."""

    store: Any
    config: LedgerConfig
    engine: AllocationEngine
    reconciler: RecordReconciler
    payees: PayeeResolver
    ad_spend: AdSpendSource | None = None


def ron(amount: Decimal) -> Money:
    return Money.of(amount, LEDGER_CURRENCY)


def format_amount(amount: Decimal) -> str:
    """Whole units with thousands separators: ``125184.4`` -> ``"125,184"``."""
    return f"{amount.quantize(_UNIT, rounding=ROUND_HALF_UP):,}"


class AllocationKind(ABC):
    """
    One category of derived expense.

    Contract:
        Subclasses set ``name`` (one of ``ledger_config.ALL_KINDS``) and
        implement ``_run``.  ``run`` is the only public entry point.

    Non-goals:
        - Does not retry; retries belong to the store adapter.
    """

    name: str = ""

    def __init__(self, context: KindContext):
        self.context = context

    @property
    def config(self) -> LedgerConfig:
        return self.context.config

    @property
    def store(self) -> Any:
        return self.context.store

    async def run(self, period: PeriodKey) -> KindResult:
        result = KindResult(kind=self.name, period=period)
        with LogContext.bind(kind=self.name):
            logger.info("allocation_started", extra={"kind": self.name, "period": period.label})
            try:
                await self._run(period, result)
            except CredentialOrConfigError as exc:
                logger.error("allocation_aborted", extra={
                    "kind": self.name,
                    "component": exc.component,
                    "detail": exc.detail,
                })
                result.abort(str(exc))
            except StoreError as exc:
                logger.error("kind_failed", extra={
                    "kind": self.name,
                    "error_code": exc.code,
                    "error": str(exc),
                })
                result.fail(f"{exc.code}: {exc}")
            logger.info("allocation_completed", extra={
                "kind": self.name,
                "created_count": result.created,
                "updated": result.updated,
                "skipped": result.skipped,
                "errors": result.errors,
                "side_writes": result.side_writes,
            })
        return result

    @abstractmethod
    async def _run(self, period: PeriodKey, result: KindResult) -> None:
        ...

    async def isolate(self, result: KindResult, item_ref: str, step: Awaitable[None]) -> None:
        """Await one per-item step; a skip or a store failure stays with that item."""
        try:
            await step
        except ValidationSkip as skip:
            logger.warning("item_skipped", extra={
                "kind": self.name, "item_ref": skip.item_ref, "reason": skip.reason,
            })
            result.skip()
        except StoreError as exc:
            logger.error("item_failed", extra={
                "kind": self.name,
                "item_ref": item_ref,
                "error_code": exc.code,
                "error": str(exc),
            })
            result.fail(f"{exc.code}: {item_ref}: {exc}")

    async def allocate_groups(
        self,
        result: KindResult,
        amount: Money,
        groups: Mapping[str, WeightedGroup],
        make_draft: Callable[[str, Money, WeightedGroup], ExpenseDraft],
        subject: str,
    ) -> None:
        """Split ``amount`` over project ``groups`` and reconcile one draft each."""
        weights = {project: group.weight for project, group in groups.items()}
        try:
            allocation = self.context.engine.allocate_by_weights(amount, weights)
        except NoAllocatableBasisError:
            logger.warning("allocation_skipped_no_basis", extra={
                "subject": subject,
                "amount": str(amount.amount),
            })
            result.skip()
            return

        for line in allocation.lines:
            if not line.allocated.is_positive:
                result.skip()
                continue
            draft = make_draft(line.target_id, line.allocated, groups[line.target_id])
            result.record(await self.context.reconciler.reconcile_expense(draft))
