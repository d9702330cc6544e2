"""Setter and caller commissions, split by the per-sale commission of the linked sales."""

from __future__ import annotations

from ledger_engines.matching import WeightedGroup, group_weights
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.keys import setter_caller_key
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import (
    ExpenseDraft,
    ExpenseKind,
    MonthlyCommissionRecord,
    Role,
    sale_project,
)
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import ValidationSkip
from ledger_kernel.logging_config import get_logger
from ledger_services.kinds.base import AllocationKind, ron
from ledger_services.reconciler import KindResult

logger = get_logger("services.kinds.setter_caller")

_CATEGORY_BY_ROLE = {
    Role.SETTER: ExpenseCategory.SETTER,
    Role.CALLER: ExpenseCategory.CALLER,
}


class SetterCallerKind(AllocationKind):
    name = "setter_caller"

    async def _run(self, period: PeriodKey, result: KindResult) -> None:
        records = await self.store.fetch_monthly_commissions(period, [Role.SETTER, Role.CALLER])
        logger.info("setter_caller_records_fetched", extra={"count": len(records)})
        for record in records:
            await self.isolate(result, record.id, self._process_record(record, period, result))

    async def _process_record(
        self, record: MonthlyCommissionRecord, period: PeriodKey, result: KindResult,
    ) -> None:
        category = _CATEGORY_BY_ROLE.get(record.role)
        if category is None:
            raise ValidationSkip(record.id, f"role is {record.role}")

        commission = record.setter_caller_commission
        if commission is None:
            commission = record.final_commission
        if commission <= 0:
            raise ValidationSkip(record.id, "setter/caller commission is not positive")
        if not record.linked_sale_ids:
            raise ValidationSkip(record.id, "no linked sales")

        sales = await self.store.fetch_sales_by_ids(record.linked_sale_ids)
        groups = group_weights(
            sales,
            key=sale_project,
            weight=lambda s: s.commission_amount,
            item_id=lambda s: s.id,
        )
        if not groups:
            raise ValidationSkip(record.id, "no linked sale with a project and a positive commission")

        payee_name = record.payee_name or record.name.split(" - ")[0]
        description = record.name or f"{payee_name} - {period.label}"

        def make_draft(project: str, amount: Money, group: WeightedGroup) -> ExpenseDraft:
            return ExpenseDraft(
                natural_key=setter_caller_key(record.role, payee_name, project, period),
                kind=ExpenseKind.SETTER_CALLER,
                project=project,
                category=category,
                amount=amount.amount,
                period=period,
                description=description,
                vat_included=False,
                display_name=payee_name,
                associated_sale_ids=frozenset(group.member_ids),
            )

        await self.allocate_groups(result, ron(commission), groups, make_draft, record.id)
