"""
In-memory record store.

Dict-backed implementation of every store port, used by tests and dry
runs.  Rows are kept as the frozen domain records themselves; updates
replace them with ``dataclasses.replace``.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import uuid4

from ledger_kernel.domain.categories import ExpenseCategory, PnLCategory
from ledger_kernel.domain.clock import Clock, SystemClock
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
from ledger_kernel.exceptions import LookupFailureError
from ledger_services.ports import EXPENSE_MUTABLE_FIELDS, PNL_MUTABLE_FIELDS, check_changes


class InMemoryRecordStore:
    """
    Contract:
        Implements ``ledger_services.ports.RecordStore``.  ``write_log``
        records the operation name of every write, in order.

    Non-goals:
        - No pacing, no retries, no persistence.
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or SystemClock()
        self.payees: dict[str, Payee] = {}
        self.sales: dict[str, Sale] = {}
        self.commissions: dict[str, MonthlyCommissionRecord] = {}
        self.expenses: dict[str, DerivedExpense] = {}
        self.pnl_lines: dict[str, PnLLine] = {}
        self.settlements: dict[str, DebtSettlement] = {}
        self._payee_roles: dict[str, frozenset[Role]] = {}
        self.write_log: list[str] = []

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def add_payee(self, payee: Payee, extra_roles: Iterable[Role] = ()) -> Payee:
        self.payees[payee.id] = payee
        roles = set(extra_roles)
        if payee.role is not None:
            roles.add(payee.role)
        self._payee_roles[payee.id] = frozenset(roles)
        return payee

    def add_sales(self, *sales: Sale) -> None:
        for sale in sales:
            self.sales[sale.id] = sale

    def add_commission(self, record: MonthlyCommissionRecord) -> MonthlyCommissionRecord:
        self.commissions[record.id] = record
        return record

    def add_expense(self, expense: DerivedExpense) -> DerivedExpense:
        self.expenses[expense.record_id] = expense
        return expense

    # ------------------------------------------------------------------
    # SalesSource
    # ------------------------------------------------------------------

    async def fetch_sales_for_period(self, period: PeriodKey) -> list[Sale]:
        return [s for s in self.sales.values() if s.period == period]

    async def fetch_sales_by_ids(self, sale_ids: Collection[str]) -> list[Sale]:
        return [self.sales[i] for i in sorted(sale_ids) if i in self.sales]

    async def fetch_sale_periods(self) -> list[PeriodKey]:
        return sorted({s.period for s in self.sales.values()})

    # ------------------------------------------------------------------
    # CommissionSource
    # ------------------------------------------------------------------

    async def fetch_monthly_commissions(
        self, period: PeriodKey, roles: Collection[Role],
    ) -> list[MonthlyCommissionRecord]:
        wanted = set(roles)
        return [
            r for r in self.commissions.values()
            if r.period == period and r.role in wanted
        ]

    async def fetch_negative_commissions(self, payee_ref: str) -> list[MonthlyCommissionRecord]:
        return [
            r for r in self.commissions.values()
            if r.payee_ref == payee_ref and r.final_commission < 0
        ]

    async def find_monthly_commission(
        self, payee_ref: str, period: PeriodKey, role: Role,
    ) -> MonthlyCommissionRecord | None:
        for record in self.commissions.values():
            if record.payee_ref == payee_ref and record.period == period and record.role is role:
                return record
        return None

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
        record = MonthlyCommissionRecord(
            id=str(uuid4()),
            payee_ref=payee_ref,
            payee_name=payee_name,
            period=period,
            role=role,
            final_commission=final_commission,
            linked_sale_ids=frozenset(linked_sale_ids),
            name=name,
        )
        self.commissions[record.id] = record
        self.write_log.append("create_monthly_commission")
        return record

    async def update_monthly_commission(
        self,
        record_id: str,
        *,
        final_commission: Decimal,
        linked_sale_ids: Collection[str],
        name: str,
    ) -> MonthlyCommissionRecord:
        record = replace(
            self._get(self.commissions, record_id, "update_monthly_commission"),
            final_commission=final_commission,
            linked_sale_ids=frozenset(linked_sale_ids),
            name=name,
        )
        self.commissions[record_id] = record
        self.write_log.append("update_monthly_commission")
        return record

    # ------------------------------------------------------------------
    # PayeeDirectory
    # ------------------------------------------------------------------

    async def fetch_payee_by_name(self, name: str) -> Payee | None:
        wanted = name.strip().casefold()
        for payee in self.payees.values():
            if payee.name.strip().casefold() == wanted:
                return payee
        return None

    async def list_payees(self, roles: Collection[Role] | None = None) -> list[Payee]:
        if roles is None:
            return list(self.payees.values())
        wanted = set(roles)
        return [p for p in self.payees.values() if self._payee_roles.get(p.id, frozenset()) & wanted]

    # ------------------------------------------------------------------
    # ExpenseStore
    # ------------------------------------------------------------------

    async def find_expense_by_key(self, natural_key: str) -> DerivedExpense | None:
        for expense in self.expenses.values():
            if expense.natural_key == natural_key:
                return expense
        return None

    async def create_expense(self, draft: ExpenseDraft) -> DerivedExpense:
        expense = DerivedExpense(
            record_id=str(uuid4()),
            natural_key=draft.natural_key,
            project=draft.project,
            category=draft.category,
            amount=draft.amount,
            period=draft.period,
            description=draft.description,
            source=draft.source,
            kind=draft.kind,
            vat_included=draft.vat_included,
            display_name=draft.display_name,
            associated_sale_ids=draft.associated_sale_ids,
            updated_at=self._clock.now(),
        )
        self.expenses[expense.record_id] = expense
        self.write_log.append("create_expense")
        return expense

    async def update_expense(self, record_id: str, changes: Mapping[str, Any]) -> DerivedExpense:
        check_changes(changes, EXPENSE_MUTABLE_FIELDS)
        fields = dict(changes)
        if "category" in fields:
            category = ExpenseCategory(fields["category"])
            fields["category"] = category
            fields["category_label"] = category.value
        if "associated_sale_ids" in fields:
            fields["associated_sale_ids"] = frozenset(fields["associated_sale_ids"])
        expense = replace(
            self._get(self.expenses, record_id, "update_expense"),
            updated_at=self._clock.now(),
            **fields,
        )
        self.expenses[record_id] = expense
        self.write_log.append("update_expense")
        return expense

    async def list_expenses(
        self, period: PeriodKey, source: SourceTag | None = None,
    ) -> list[DerivedExpense]:
        return [
            e for e in self.expenses.values()
            if e.period == period and (source is None or e.source is source)
        ]

    async def list_all_expenses(self) -> list[DerivedExpense]:
        return list(self.expenses.values())

    async def delete_expense(self, record_id: str) -> None:
        self._get(self.expenses, record_id, "delete_expense")
        del self.expenses[record_id]
        self.write_log.append("delete_expense")

    # ------------------------------------------------------------------
    # PnLStore
    # ------------------------------------------------------------------

    async def find_pnl_line(
        self, project: str, period: PeriodKey, category: PnLCategory, label: str,
    ) -> PnLLine | None:
        for line in self.pnl_lines.values():
            if line.lookup_key == (project, period, category, label):
                return line
        return None

    async def create_pnl_line(self, draft: PnLLineDraft) -> PnLLine:
        line = PnLLine(
            record_id=str(uuid4()),
            project=draft.project,
            period=draft.period,
            category=draft.category,
            label=draft.label,
            description=draft.description,
            amount_ron=draft.amount_ron,
            amount_eur=draft.amount_eur,
            source=draft.source,
            updated_at=self._clock.now(),
        )
        self.pnl_lines[line.record_id] = line
        self.write_log.append("create_pnl_line")
        return line

    async def update_pnl_line(self, record_id: str, changes: Mapping[str, Any]) -> PnLLine:
        check_changes(changes, PNL_MUTABLE_FIELDS)
        line = replace(
            self._get(self.pnl_lines, record_id, "update_pnl_line"),
            updated_at=self._clock.now(),
            **changes,
        )
        self.pnl_lines[record_id] = line
        self.write_log.append("update_pnl_line")
        return line

    async def list_pnl_lines(self, period: PeriodKey) -> list[PnLLine]:
        return [line for line in self.pnl_lines.values() if line.period == period]

    # ------------------------------------------------------------------
    # SettlementStore
    # ------------------------------------------------------------------

    async def fetch_debt_settlements(self, payee_ref: str) -> list[DebtSettlement]:
        return [s for s in self.settlements.values() if s.payee_ref == payee_ref]

    async def upsert_debt_settlement(self, key: str, settlement: DebtSettlement) -> None:
        self.settlements[key] = settlement
        self.write_log.append("upsert_debt_settlement")

    # ------------------------------------------------------------------

    @staticmethod
    def _get(table: dict[str, Any], record_id: str, operation: str) -> Any:
        try:
            return table[record_id]
        except KeyError:
            raise LookupFailureError(operation, record_id, "record not found") from None
