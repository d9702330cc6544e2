"""
ledger_services.adapters.paced_store -- Pacing and retry around a store.

Responsibility:
    Wraps any ``RecordStore`` so that every call, read or write, passes
    through one ``PacingGate`` and every write is retried by a
    ``RetryPolicy`` on transient unavailability.

Architecture position:
    Services > Adapters.  The period runner is handed the wrapper, never
    the raw store, when the backing store is remote.

Invariants enforced:
    - Calls are serialised; no two overlap, and consecutive calls are at
      least the configured interval apart.
    - Each retry attempt of a write waits its turn at the gate.
    - Reads are not retried; a transient read failure surfaces as
      ``LookupFailureError`` so the caller skips the item without writing.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection, Mapping
from decimal import Decimal
from typing import Any, TypeVar

from ledger_config.schema import PacingDef
from ledger_kernel.domain.categories import PnLCategory
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import (
    DebtSettlement,
    DerivedExpense,
    ExpenseDraft,
    MonthlyCommissionRecord,
    Payee,
    PnLLine,
    PnLLineDraft,
    Role,
    Sale,
    SourceTag,
)
from ledger_kernel.exceptions import LookupFailureError, StoreUnavailableError
from ledger_services.pacing import PacingGate, RetryPolicy, Sleeper

T = TypeVar("T")


class PacedRecordStore:
    """
    Contract:
        Same interface as the wrapped store.  ``gate`` and ``retry`` are
        injected so tests can drive them with a DeterministicClock.
    """

    def __init__(self, inner, gate: PacingGate, retry: RetryPolicy):
        self._inner = inner
        self._gate = gate
        self._retry = retry

    @classmethod
    def from_config(
        cls,
        inner,
        pacing: PacingDef,
        clock: Clock,
        sleep: Sleeper = asyncio.sleep,
    ) -> PacedRecordStore:
        return cls(
            inner,
            PacingGate(pacing.min_interval_seconds, clock, sleep),
            RetryPolicy(pacing.max_attempts, pacing.backoff_base_seconds, sleep),
        )

    @property
    def gate(self) -> PacingGate:
        return self._gate

    async def _read(self, operation: str, key: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await self._gate.run(call)
        except StoreUnavailableError as exc:
            raise LookupFailureError(operation, key, exc.cause) from exc

    async def _write(self, operation: str, key: str, call: Callable[[], Awaitable[T]]) -> T:
        return await self._retry.run(operation, key, lambda: self._gate.run(call))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_sales_for_period(self, period: PeriodKey) -> list[Sale]:
        return await self._read(
            "fetch_sales_for_period", period.label,
            lambda: self._inner.fetch_sales_for_period(period),
        )

    async def fetch_sales_by_ids(self, sale_ids: Collection[str]) -> list[Sale]:
        return await self._read(
            "fetch_sales_by_ids", f"{len(sale_ids)} ids",
            lambda: self._inner.fetch_sales_by_ids(sale_ids),
        )

    async def fetch_sale_periods(self) -> list[PeriodKey]:
        return await self._read(
            "fetch_sale_periods", "all", self._inner.fetch_sale_periods,
        )

    async def fetch_monthly_commissions(
        self, period: PeriodKey, roles: Collection[Role],
    ) -> list[MonthlyCommissionRecord]:
        return await self._read(
            "fetch_monthly_commissions", period.label,
            lambda: self._inner.fetch_monthly_commissions(period, roles),
        )

    async def fetch_negative_commissions(self, payee_ref: str) -> list[MonthlyCommissionRecord]:
        return await self._read(
            "fetch_negative_commissions", payee_ref,
            lambda: self._inner.fetch_negative_commissions(payee_ref),
        )

    async def find_monthly_commission(
        self, payee_ref: str, period: PeriodKey, role: Role,
    ) -> MonthlyCommissionRecord | None:
        return await self._read(
            "find_monthly_commission", f"{payee_ref}|{period.label}",
            lambda: self._inner.find_monthly_commission(payee_ref, period, role),
        )

    async def fetch_payee_by_name(self, name: str) -> Payee | None:
        return await self._read(
            "fetch_payee_by_name", name,
            lambda: self._inner.fetch_payee_by_name(name),
        )

    async def list_payees(self, roles: Collection[Role] | None = None) -> list[Payee]:
        return await self._read(
            "list_payees", "payees",
            lambda: self._inner.list_payees(roles),
        )

    async def find_expense_by_key(self, natural_key: str) -> DerivedExpense | None:
        return await self._read(
            "find_expense_by_key", natural_key,
            lambda: self._inner.find_expense_by_key(natural_key),
        )

    async def list_expenses(
        self, period: PeriodKey, source: SourceTag | None = None,
    ) -> list[DerivedExpense]:
        return await self._read(
            "list_expenses", period.label,
            lambda: self._inner.list_expenses(period, source),
        )

    async def list_all_expenses(self) -> list[DerivedExpense]:
        return await self._read("list_all_expenses", "expenses", self._inner.list_all_expenses)

    async def find_pnl_line(
        self, project: str, period: PeriodKey, category: PnLCategory, label: str,
    ) -> PnLLine | None:
        return await self._read(
            "find_pnl_line", f"{project}|{period.label}|{label}",
            lambda: self._inner.find_pnl_line(project, period, category, label),
        )

    async def list_pnl_lines(self, period: PeriodKey) -> list[PnLLine]:
        return await self._read(
            "list_pnl_lines", period.label,
            lambda: self._inner.list_pnl_lines(period),
        )

    async def fetch_debt_settlements(self, payee_ref: str) -> list[DebtSettlement]:
        return await self._read(
            "fetch_debt_settlements", payee_ref,
            lambda: self._inner.fetch_debt_settlements(payee_ref),
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_monthly_commission(
        self,
        *,
        payee_ref: str,
        payee_name: str,
        period: PeriodKey,
        role: Role,
        final_commission: Decimal,
        linked_sale_ids: Collection[str],
        name: str,
    ) -> MonthlyCommissionRecord:
        return await self._write(
            "create_monthly_commission", f"{payee_ref}|{period.label}",
            lambda: self._inner.create_monthly_commission(
                payee_ref=payee_ref,
                payee_name=payee_name,
                period=period,
                role=role,
                final_commission=final_commission,
                linked_sale_ids=linked_sale_ids,
                name=name,
            ),
        )

    async def update_monthly_commission(
        self,
        record_id: str,
        *,
        final_commission: Decimal,
        linked_sale_ids: Collection[str],
        name: str,
    ) -> MonthlyCommissionRecord:
        return await self._write(
            "update_monthly_commission", record_id,
            lambda: self._inner.update_monthly_commission(
                record_id,
                final_commission=final_commission,
                linked_sale_ids=linked_sale_ids,
                name=name,
            ),
        )

    async def create_expense(self, draft: ExpenseDraft) -> DerivedExpense:
        return await self._write(
            "create_expense", draft.natural_key,
            lambda: self._inner.create_expense(draft),
        )

    async def update_expense(self, record_id: str, changes: Mapping[str, Any]) -> DerivedExpense:
        return await self._write(
            "update_expense", record_id,
            lambda: self._inner.update_expense(record_id, changes),
        )

    async def delete_expense(self, record_id: str) -> None:
        await self._write(
            "delete_expense", record_id,
            lambda: self._inner.delete_expense(record_id),
        )

    async def create_pnl_line(self, draft: PnLLineDraft) -> PnLLine:
        return await self._write(
            "create_pnl_line", f"{draft.project}|{draft.period.label}|{draft.label}",
            lambda: self._inner.create_pnl_line(draft),
        )

    async def update_pnl_line(self, record_id: str, changes: Mapping[str, Any]) -> PnLLine:
        return await self._write(
            "update_pnl_line", record_id,
            lambda: self._inner.update_pnl_line(record_id, changes),
        )

    async def upsert_debt_settlement(self, key: str, settlement: DebtSettlement) -> None:
        await self._write(
            "upsert_debt_settlement", key,
            lambda: self._inner.upsert_debt_settlement(key, settlement),
        )
