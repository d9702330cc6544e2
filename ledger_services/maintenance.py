"""
ledger_services.maintenance -- Explicit cleanup of stored expenses.

Responsibility:
    One-off repairs of expense data written by earlier versions or by hand:
    missing display names, legacy category labels and duplicate automatic
    expenses describing the same payee, project, period and category.

Architecture position:
    Services -- invoked only from ``scripts/run_maintenance.py`` or tests,
    never from a period run.

Invariants enforced:
    - Manual expenses are never merged or deleted.
    - A merge keeps the record with the largest amount; the kept record
      receives the group's summed amount and the union of linked sales.
    - ``dry_run`` computes the full report and performs no write.

Failure modes:
    - Store errors propagate; maintenance is re-runnable, so a partial run
      is repaired by running it again.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.matching import normalize_text
from ledger_kernel.domain.categories import ExpenseCategory, is_legacy_label
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import DerivedExpense, SourceTag
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.maintenance")

_LEADER_PREFIX = re.compile(r"^\s*(?:TM\s+(?:Callers|Setters)|Teamleader\s+(?:Caller|Setter))\s*:\s*",
                            re.IGNORECASE)
_SALES_COUNT_SUFFIX = re.compile(r"\s*\(\d+\s+vanzari\)\s*$", re.IGNORECASE)


def display_name_from_description(description: str) -> str:
    return description.split(" - ", 1)[0].strip()


def expense_identity(expense: DerivedExpense) -> str:
    """Payee identity of an expense, independent of label decorations."""
    text = expense.display_name or display_name_from_description(expense.description)
    text = _LEADER_PREFIX.sub("", text)
    text = _SALES_COUNT_SUFFIX.sub("", text)
    return normalize_text(text)


@dataclass
class MaintenanceReport:
    dry_run: bool = False
    display_names_backfilled: int = 0
    categories_normalized: int = 0
    duplicate_groups: int = 0
    duplicates_deleted: int = 0

    @property
    def total_changes(self) -> int:
        return self.display_names_backfilled + self.categories_normalized + self.duplicates_deleted


@dataclass(frozen=True)
class DuplicateGroup:
    keep: DerivedExpense
    remove: tuple[DerivedExpense, ...]

    @property
    def total_amount(self) -> Decimal:
        return self.keep.amount + sum((e.amount for e in self.remove), Decimal(0))

    @property
    def sale_ids(self) -> frozenset[str]:
        ids = set(self.keep.associated_sale_ids)
        for expense in self.remove:
            ids |= expense.associated_sale_ids
        return frozenset(ids)


def find_duplicate_groups(expenses: Iterable[DerivedExpense]) -> list[DuplicateGroup]:
    buckets: dict[tuple[str, str, PeriodKey, ExpenseCategory], list[DerivedExpense]] = {}
    for expense in expenses:
        if expense.source is not SourceTag.AUTOMATIC:
            continue
        identity = expense_identity(expense)
        if not identity:
            continue
        key = (identity, expense.project, expense.period, expense.category)
        buckets.setdefault(key, []).append(expense)

    groups = []
    for members in buckets.values():
        if len(members) < 2:
            continue
        ordered = sorted(members, key=lambda e: (-e.amount, e.record_id))
        groups.append(DuplicateGroup(keep=ordered[0], remove=tuple(ordered[1:])))
    return groups


class MaintenanceService:
    """
    Contract:
        Each step lists the current expenses itself, so steps can run in
        any order; ``run_all`` runs them in the order backfill, normalize,
        merge.
    """

    def __init__(self, store, *, dry_run: bool = False):
        self._store = store
        self._dry_run = dry_run

    async def backfill_display_names(self, report: MaintenanceReport) -> None:
        for expense in await self._store.list_all_expenses():
            if expense.display_name.strip():
                continue
            name = display_name_from_description(expense.description)
            if not name:
                continue
            report.display_names_backfilled += 1
            logger.info("display_name_backfilled", extra={
                "record_id": expense.record_id, "display_name": name, "dry_run": self._dry_run,
            })
            if not self._dry_run:
                await self._store.update_expense(expense.record_id, {"display_name": name})

    async def normalize_categories(self, report: MaintenanceReport) -> None:
        for expense in await self._store.list_all_expenses():
            if not is_legacy_label(expense.category_label):
                continue
            category = ExpenseCategory.parse(expense.category_label)
            report.categories_normalized += 1
            logger.info("category_normalized", extra={
                "record_id": expense.record_id,
                "from_label": expense.category_label,
                "to_label": category.value,
                "dry_run": self._dry_run,
            })
            if not self._dry_run:
                await self._store.update_expense(expense.record_id, {"category": category})

    async def merge_duplicates(self, report: MaintenanceReport) -> None:
        groups = find_duplicate_groups(await self._store.list_all_expenses())
        for group in groups:
            report.duplicate_groups += 1
            report.duplicates_deleted += len(group.remove)
            logger.info("duplicates_merged", extra={
                "kept_record_id": group.keep.record_id,
                "removed_record_ids": [e.record_id for e in group.remove],
                "total_amount": str(group.total_amount),
                "dry_run": self._dry_run,
            })
            if self._dry_run:
                continue
            await self._store.update_expense(group.keep.record_id, {
                "amount": group.total_amount,
                "associated_sale_ids": group.sale_ids,
            })
            for expense in group.remove:
                await self._store.delete_expense(expense.record_id)

    async def run_all(self) -> MaintenanceReport:
        report = MaintenanceReport(dry_run=self._dry_run)
        await self.backfill_display_names(report)
        await self.normalize_categories(report)
        await self.merge_duplicates(report)
        logger.info("maintenance_completed", extra={
            "dry_run": self._dry_run,
            "display_names_backfilled": report.display_names_backfilled,
            "categories_normalized": report.categories_normalized,
            "duplicate_groups": report.duplicate_groups,
            "duplicates_deleted": report.duplicates_deleted,
        })
        return report
