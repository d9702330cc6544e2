"""
ledger_services.ports -- Record store and data source protocols.

Responsibility:
    Declares the async interfaces the allocation kinds, P&L service and
    maintenance routines depend on.  Adapters in ``ledger_services.adapters``
    implement them; services never see raw rows.

Architecture position:
    Services -- the seam between orchestration and storage.  Every method
    is awaited, and every awaited call in a run is serialised through the
    adapter's pacing gate (see ``PacedRecordStore``).

Failure modes:
    - ``LookupFailureError`` -- a read could not be completed.
    - ``WriteFailureError`` -- a write failed after the adapter's retries.
    - ``StoreUnavailableError`` -- transient; raised by raw adapters and
      retried by the paced wrapper.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable

from ledger_kernel.domain.categories import PnLCategory
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import (
    AdSpendReport,
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

# Fields of a stored expense that ``update_expense`` may change.
EXPENSE_MUTABLE_FIELDS: frozenset[str] = frozenset({
    "amount",
    "description",
    "associated_sale_ids",
    "category",
    "display_name",
    "vat_included",
})

PNL_MUTABLE_FIELDS: frozenset[str] = frozenset({"description", "amount_ron", "amount_eur"})


class SalesSource(Protocol):
    async def fetch_sales_for_period(self, period: PeriodKey) -> list[Sale]: ...

    async def fetch_sales_by_ids(self, sale_ids: Collection[str]) -> list[Sale]: ...

    async def fetch_sale_periods(self) -> list[PeriodKey]:
        """Every period holding at least one sale, oldest first."""
        ...


class CommissionSource(Protocol):
    async def fetch_monthly_commissions(
        self, period: PeriodKey, roles: Collection[Role],
    ) -> list[MonthlyCommissionRecord]: ...

    async def fetch_negative_commissions(self, payee_ref: str) -> list[MonthlyCommissionRecord]:
        """All records of the payee with a negative final commission, any period."""
        ...

    async def find_monthly_commission(
        self, payee_ref: str, period: PeriodKey, role: Role,
    ) -> MonthlyCommissionRecord | None: ...

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
    ) -> MonthlyCommissionRecord: ...

    async def update_monthly_commission(
        self,
        record_id: str,
        *,
        final_commission: Decimal,
        linked_sale_ids: Collection[str],
        name: str,
    ) -> MonthlyCommissionRecord: ...


class PayeeDirectory(Protocol):
    async def fetch_payee_by_name(self, name: str) -> Payee | None:
        """Exact, case-insensitive lookup."""
        ...

    async def list_payees(self, roles: Collection[Role] | None = None) -> list[Payee]: ...


class ExpenseStore(Protocol):
    async def find_expense_by_key(self, natural_key: str) -> DerivedExpense | None: ...

    async def create_expense(self, draft: ExpenseDraft) -> DerivedExpense: ...

    async def update_expense(self, record_id: str, changes: Mapping[str, Any]) -> DerivedExpense:
        """Apply ``changes`` (keys from ``EXPENSE_MUTABLE_FIELDS``) to one record."""
        ...

    async def list_expenses(
        self, period: PeriodKey, source: SourceTag | None = None,
    ) -> list[DerivedExpense]: ...

    async def list_all_expenses(self) -> list[DerivedExpense]: ...

    async def delete_expense(self, record_id: str) -> None: ...


class PnLStore(Protocol):
    async def find_pnl_line(
        self, project: str, period: PeriodKey, category: PnLCategory, label: str,
    ) -> PnLLine | None: ...

    async def create_pnl_line(self, draft: PnLLineDraft) -> PnLLine: ...

    async def update_pnl_line(self, record_id: str, changes: Mapping[str, Any]) -> PnLLine: ...

    async def list_pnl_lines(self, period: PeriodKey) -> list[PnLLine]: ...


class SettlementStore(Protocol):
    async def fetch_debt_settlements(self, payee_ref: str) -> list[DebtSettlement]: ...

    async def upsert_debt_settlement(self, key: str, settlement: DebtSettlement) -> None: ...


class AdSpendSource(Protocol):
    async def fetch_ad_spend(self, period: PeriodKey) -> AdSpendReport: ...


@runtime_checkable
class RecordStore(
    SalesSource,
    CommissionSource,
    PayeeDirectory,
    ExpenseStore,
    PnLStore,
    SettlementStore,
    Protocol,
):
    """Everything a period run reads from and writes to one backing store."""


def check_changes(changes: Mapping[str, Any], allowed: frozenset[str]) -> None:
    """Reject updates touching fields outside ``allowed``."""
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Fields not updatable: {sorted(unknown)}")


__all__ = [
    "EXPENSE_MUTABLE_FIELDS",
    "PNL_MUTABLE_FIELDS",
    "AdSpendSource",
    "CommissionSource",
    "ExpenseStore",
    "PayeeDirectory",
    "PnLStore",
    "RecordStore",
    "SalesSource",
    "SettlementStore",
    "check_changes",
]
