"""
Sales representative commissions.

Each positive monthly commission of a Sales payee is reduced by the payee's
outstanding debt and the net is spread over the projects of the linked
sales, weighted by their amount excluding VAT.
"""

from __future__ import annotations

from ledger_engines.debt import DebtAssessment, DebtLedger
from ledger_engines.matching import WeightedGroup, group_weights
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.keys import debt_settlement_key, sales_rep_key
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
from ledger_services.kinds.base import AllocationKind, format_amount, ron
from ledger_services.reconciler import KindResult

logger = get_logger("services.kinds.sales_rep")


def sales_rep_description(payee_name: str, period: PeriodKey, assessment: DebtAssessment) -> str:
    description = f"{payee_name} - {period.label}"
    if assessment.has_debt:
        description += (
            f" (Comision: {assessment.gross.amount:.2f} RON"
            f" - Datorie: {assessment.total_debt.amount:.2f} RON"
            f" = Net: {assessment.net.amount:.2f} RON)"
        )
    return description


class SalesRepKind(AllocationKind):
    name = "sales_rep"

    def __init__(self, context, debt_ledger: DebtLedger | None = None):
        super().__init__(context)
        self._debt_ledger = debt_ledger or DebtLedger()

    async def _run(self, period: PeriodKey, result: KindResult) -> None:
        records = await self.store.fetch_monthly_commissions(period, [Role.SALES])
        logger.info("sales_rep_records_fetched", extra={"count": len(records)})
        for record in records:
            await self.isolate(result, record.id, self._process_record(record, period, result))

    async def _process_record(
        self, record: MonthlyCommissionRecord, period: PeriodKey, result: KindResult,
    ) -> None:
        if record.role is not Role.SALES:
            raise ValidationSkip(record.id, f"role is {record.role}")
        if record.final_commission <= 0:
            raise ValidationSkip(record.id, "final commission is not positive")

        payee_name = record.payee_name or record.name.split(" - ")[0]
        prior = await self.store.fetch_negative_commissions(record.payee_ref)
        settlements = await self.store.fetch_debt_settlements(record.payee_ref)
        assessment = self._debt_ledger.assess(
            payee_ref=record.payee_ref,
            period=period,
            gross=ron(record.final_commission),
            prior_records=prior,
            settlements=settlements,
        )
        for settlement in assessment.settlements:
            key = debt_settlement_key(settlement.debt_record_id, period)
            result.record_side(await self.context.reconciler.reconcile_settlement(key, settlement))

        if not assessment.is_payable:
            raise ValidationSkip(
                record.id,
                f"debt {assessment.total_debt.amount} covers commission {assessment.gross.amount}",
            )
        if not record.linked_sale_ids:
            raise ValidationSkip(record.id, "no linked sales")

        sales = await self.store.fetch_sales_by_ids(record.linked_sale_ids)
        groups = group_weights(
            sales,
            key=sale_project,
            weight=lambda s: s.amount_excl_vat,
            item_id=lambda s: s.id,
        )
        ignored = len(sales) - sum(g.count for g in groups.values())
        if ignored:
            logger.info("sales_ignored", extra={"record_id": record.id, "count": ignored})
        if not groups:
            raise ValidationSkip(record.id, "no linked sale with a project and a positive amount")

        description = sales_rep_description(payee_name, period, assessment)

        def make_draft(project: str, amount: Money, group: WeightedGroup) -> ExpenseDraft:
            return ExpenseDraft(
                natural_key=sales_rep_key(record.id, project),
                kind=ExpenseKind.SALES_REP,
                project=project,
                category=ExpenseCategory.REPRESENTATIVES,
                amount=amount.amount,
                period=period,
                description=description,
                vat_included=False,
                display_name=payee_name,
                associated_sale_ids=frozenset(group.member_ids),
            )

        logger.info("sales_rep_allocating", extra={
            "record_id": record.id,
            "net": format_amount(assessment.net.amount),
            "projects": list(groups),
        })
        await self.allocate_groups(result, assessment.net, groups, make_draft, record.id)
