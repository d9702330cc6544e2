"""
ledger_services.reconciler -- Idempotent create-or-update of derived records.

Responsibility:
    Brings one computed record (expense, P&L line, monthly commission,
    debt settlement) into the store.  A lookup by natural key precedes
    every write; existing records are updated field-by-field only where
    they differ.

Architecture position:
    Services -- called by every allocation kind, the P&L service and the
    team-leader / copywriting monthly upserts.  Holds no counters; each
    call returns a ``ReconcileOutcome`` that the caller folds into its own
    ``KindResult``.

Invariants enforced:
    - Re-running with unchanged inputs creates nothing and updates nothing.
    - Changed inputs produce exactly one update per affected key.
    - Manual-sourced records are never modified.
    - A failed lookup is treated as "record exists": no write is attempted,
      so a transient read error can never create a duplicate.

Failure modes:
    - ``LookupFailureError``, ``WriteFailureError`` and an unretried
      ``StoreUnavailableError`` on either side are logged and converted to
      ``ReconcileOutcome.FAILED``; they do not propagate.
    - Anything else (programming errors) propagates.

Audit relevance:
    Every create and update is logged with its key and the changed field
    names.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

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
    SourceTag,
)
from ledger_kernel.exceptions import LookupFailureError, StoreUnavailableError, WriteFailureError
from ledger_kernel.logging_config import get_logger
from ledger_services.ports import CommissionSource, ExpenseStore, PnLStore, SettlementStore

logger = get_logger("services.reconciler")

_LOOKUP_ERRORS = (LookupFailureError, StoreUnavailableError)
_WRITE_ERRORS = (WriteFailureError, StoreUnavailableError)


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED_MANUAL = "skipped_manual"
    FAILED = "failed"


@dataclass
class KindResult:
    """
    Counts for one allocation kind (or the P&L pass) over one period.

    ``skipped`` covers unchanged records, manual records left alone and
    input items rejected by validation.  ``side_writes`` counts debt
    settlements and monthly commission records written alongside the
    expenses.  ``aborted`` is set when the whole
    kind stopped early (configuration or credential problem).
    """

    kind: str
    period: PeriodKey | None = None
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    side_writes: int = 0
    aborted: bool = False
    abort_reason: str = ""
    error_messages: list[str] = field(default_factory=list)

    def record(self, outcome: ReconcileOutcome) -> ReconcileOutcome:
        match outcome:
            case ReconcileOutcome.CREATED:
                self.created += 1
            case ReconcileOutcome.UPDATED:
                self.updated += 1
            case ReconcileOutcome.UNCHANGED | ReconcileOutcome.SKIPPED_MANUAL:
                self.skipped += 1
            case ReconcileOutcome.FAILED:
                self.errors += 1
        return outcome

    def record_side(self, outcome: ReconcileOutcome) -> ReconcileOutcome:
        """Fold the outcome of a settlement or monthly-record upsert."""
        match outcome:
            case ReconcileOutcome.CREATED | ReconcileOutcome.UPDATED:
                self.side_writes += 1
            case ReconcileOutcome.FAILED:
                self.errors += 1
        return outcome

    def skip(self, count: int = 1) -> None:
        self.skipped += count

    def fail(self, message: str) -> None:
        self.errors += 1
        self.error_messages.append(message)

    def abort(self, reason: str) -> None:
        self.aborted = True
        self.abort_reason = reason
        self.fail(reason)


def expense_changes(existing: DerivedExpense, draft: ExpenseDraft) -> dict[str, Any]:
    """Fields of ``existing`` that differ from ``draft``."""
    changes: dict[str, Any] = {}
    if existing.amount != draft.amount:
        changes["amount"] = draft.amount
    if existing.description != draft.description:
        changes["description"] = draft.description
    if existing.associated_sale_ids != draft.associated_sale_ids:
        changes["associated_sale_ids"] = draft.associated_sale_ids
    if existing.category is not draft.category or existing.category_label != draft.category.value:
        changes["category"] = draft.category
    if existing.display_name != draft.display_name:
        changes["display_name"] = draft.display_name
    if existing.vat_included != draft.vat_included:
        changes["vat_included"] = draft.vat_included
    return changes


def pnl_line_changes(existing: PnLLine, draft: PnLLineDraft) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    if existing.description != draft.description:
        changes["description"] = draft.description
    if existing.amount_ron != draft.amount_ron:
        changes["amount_ron"] = draft.amount_ron
    if existing.amount_eur != draft.amount_eur:
        changes["amount_eur"] = draft.amount_eur
    return changes


class RecordReconciler:
    """
    Lookup-then-write against a record store.

    Contract:
        Each ``reconcile_*`` method performs at most one lookup and at most
        one write, and returns the outcome.

    Non-goals:
        - Does not delete records that are no longer derived.
        - Does not batch writes.
    """

    def __init__(self, store: Any):
        self._store = store

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    async def reconcile_expense(self, draft: ExpenseDraft) -> ReconcileOutcome:
        store: ExpenseStore = self._store
        key = draft.natural_key
        try:
            existing = await store.find_expense_by_key(key)
        except _LOOKUP_ERRORS as exc:
            logger.error("expense_lookup_failed", extra={"natural_key": key, "cause": exc.cause})
            return ReconcileOutcome.FAILED

        if existing is None:
            try:
                created = await store.create_expense(draft)
            except _WRITE_ERRORS as exc:
                logger.error("expense_write_failed", extra={
                    "natural_key": key, "operation": "create", "error": str(exc),
                })
                return ReconcileOutcome.FAILED
            logger.info("expense_created", extra={
                "natural_key": key,
                "record_id": created.record_id,
                "project": draft.project,
                "category": draft.category.value,
                "amount": str(draft.amount),
            })
            return ReconcileOutcome.CREATED

        if existing.source is SourceTag.MANUAL:
            logger.info("expense_manual_skipped", extra={
                "natural_key": key, "record_id": existing.record_id,
            })
            return ReconcileOutcome.SKIPPED_MANUAL

        changes = expense_changes(existing, draft)
        if not changes:
            logger.debug("expense_unchanged", extra={"natural_key": key})
            return ReconcileOutcome.UNCHANGED

        try:
            await store.update_expense(existing.record_id, changes)
        except _WRITE_ERRORS as exc:
            logger.error("expense_write_failed", extra={
                "natural_key": key, "operation": "update", "error": str(exc),
            })
            return ReconcileOutcome.FAILED
        logger.info("expense_updated", extra={
            "natural_key": key,
            "record_id": existing.record_id,
            "changed_fields": sorted(changes),
            "old_amount": str(existing.amount),
            "new_amount": str(draft.amount),
        })
        return ReconcileOutcome.UPDATED

    # ------------------------------------------------------------------
    # P&L lines
    # ------------------------------------------------------------------

    async def reconcile_pnl_line(self, draft: PnLLineDraft) -> ReconcileOutcome:
        store: PnLStore = self._store
        key = "|".join((draft.project, draft.period.label, draft.category.value, draft.label))
        try:
            existing = await store.find_pnl_line(
                draft.project, draft.period, draft.category, draft.label
            )
        except _LOOKUP_ERRORS as exc:
            logger.error("pnl_line_lookup_failed", extra={"lookup_key": key, "cause": exc.cause})
            return ReconcileOutcome.FAILED

        if existing is None:
            try:
                await store.create_pnl_line(draft)
            except _WRITE_ERRORS as exc:
                logger.error("pnl_line_write_failed", extra={
                    "lookup_key": key, "operation": "create", "error": str(exc),
                })
                return ReconcileOutcome.FAILED
            logger.info("pnl_line_created", extra={
                "lookup_key": key,
                "amount_ron": None if draft.amount_ron is None else str(draft.amount_ron),
            })
            return ReconcileOutcome.CREATED

        if existing.source is SourceTag.MANUAL:
            return ReconcileOutcome.SKIPPED_MANUAL

        changes = pnl_line_changes(existing, draft)
        if not changes:
            return ReconcileOutcome.UNCHANGED
        try:
            await store.update_pnl_line(existing.record_id, changes)
        except _WRITE_ERRORS as exc:
            logger.error("pnl_line_write_failed", extra={
                "lookup_key": key, "operation": "update", "error": str(exc),
            })
            return ReconcileOutcome.FAILED
        logger.info("pnl_line_updated", extra={
            "lookup_key": key, "changed_fields": sorted(changes),
        })
        return ReconcileOutcome.UPDATED

    # ------------------------------------------------------------------
    # Monthly commission records (team leaders, copywriters)
    # ------------------------------------------------------------------

    async def reconcile_monthly_commission(
        self,
        *,
        payee: Payee,
        period: PeriodKey,
        role: Role,
        linked_sale_ids: Collection[str],
        amount: Decimal,
        name: str = "",
    ) -> ReconcileOutcome:
        store: CommissionSource = self._store
        key = f"{payee.id}|{period.label}|{role.value}"
        linked = frozenset(linked_sale_ids)
        name = name or f"{payee.name} - {period.label}"
        try:
            existing = await store.find_monthly_commission(payee.id, period, role)
        except _LOOKUP_ERRORS as exc:
            logger.error("monthly_commission_lookup_failed", extra={
                "key": key, "cause": exc.cause,
            })
            return ReconcileOutcome.FAILED

        try:
            if existing is None:
                await store.create_monthly_commission(
                    payee_ref=payee.id,
                    payee_name=payee.name,
                    period=period,
                    role=role,
                    final_commission=amount,
                    linked_sale_ids=linked,
                    name=name,
                )
                outcome = ReconcileOutcome.CREATED
            elif _commission_matches(existing, amount, linked, name):
                return ReconcileOutcome.UNCHANGED
            else:
                await store.update_monthly_commission(
                    existing.id,
                    final_commission=amount,
                    linked_sale_ids=linked,
                    name=name,
                )
                outcome = ReconcileOutcome.UPDATED
        except _WRITE_ERRORS as exc:
            logger.error("monthly_commission_write_failed", extra={
                "key": key, "error": str(exc),
            })
            return ReconcileOutcome.FAILED

        logger.info("monthly_commission_reconciled", extra={
            "key": key,
            "outcome": outcome.value,
            "amount": str(amount),
            "linked_sales": len(linked),
        })
        return outcome

    # ------------------------------------------------------------------
    # Debt settlements
    # ------------------------------------------------------------------

    async def reconcile_settlement(self, key: str, settlement: DebtSettlement) -> ReconcileOutcome:
        store: SettlementStore = self._store
        try:
            existing = await store.fetch_debt_settlements(settlement.payee_ref)
        except _LOOKUP_ERRORS as exc:
            logger.error("settlement_lookup_failed", extra={"key": key, "cause": exc.cause})
            return ReconcileOutcome.FAILED

        current = next(
            (
                s for s in existing
                if s.debt_record_id == settlement.debt_record_id
                and s.settling_period == settlement.settling_period
            ),
            None,
        )
        if current is not None and current.amount == settlement.amount:
            return ReconcileOutcome.UNCHANGED
        if current is None and settlement.amount == 0:
            return ReconcileOutcome.UNCHANGED

        try:
            await store.upsert_debt_settlement(key, settlement)
        except _WRITE_ERRORS as exc:
            logger.error("settlement_write_failed", extra={"key": key, "error": str(exc)})
            return ReconcileOutcome.FAILED
        logger.info("settlement_recorded", extra={
            "key": key,
            "debt_record_id": settlement.debt_record_id,
            "amount": str(settlement.amount),
        })
        return ReconcileOutcome.CREATED if current is None else ReconcileOutcome.UPDATED


def _commission_matches(
    record: MonthlyCommissionRecord,
    amount: Decimal,
    linked: frozenset[str],
    name: str,
) -> bool:
    return (
        record.final_commission == amount
        and record.linked_sale_ids == linked
        and record.name == name
    )
