"""Payment processor fees on sales paid through a payment link."""

from __future__ import annotations

from ledger_engines.matching import group_weights
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.keys import payment_fee_key
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import ExpenseDraft, ExpenseKind, Sale, sale_project
from ledger_kernel.logging_config import get_logger
from ledger_services.kinds.base import AllocationKind, format_amount, ron
from ledger_services.reconciler import KindResult

logger = get_logger("services.kinds.payment_fee")


def is_link_payment(sale: Sale, marker: str) -> bool:
    method = (sale.payment_method or "").strip().casefold()
    return marker.casefold() in method


class PaymentFeeKind(AllocationKind):
    name = "payment_fee"

    async def _run(self, period: PeriodKey, result: KindResult) -> None:
        fee_config = self.config.payment_fee
        sales = await self.store.fetch_sales_for_period(period)
        payments = [s for s in sales if is_link_payment(s, fee_config.method_marker)]
        invalid = [
            s for s in payments
            if sale_project(s) is None or s.amount_incl_vat is None or s.amount_incl_vat <= 0
        ]
        if invalid:
            logger.info("payments_skipped", extra={"count": len(invalid)})
            result.skip(len(invalid))

        groups = group_weights(
            payments,
            key=sale_project,
            weight=lambda s: s.amount_incl_vat,
            item_id=lambda s: s.id,
        )
        logger.info("payment_fee_groups", extra={
            "payments": len(payments),
            "projects": list(groups),
        })

        for project, group in groups.items():
            fee = ron(group.weight * fee_config.rate).round()
            if not fee.is_positive:
                result.skip()
                continue
            draft = ExpenseDraft(
                natural_key=payment_fee_key(project, period),
                kind=ExpenseKind.PAYMENT_FEE,
                project=project,
                category=ExpenseCategory.PAYMENT_PROCESSING,
                amount=fee.amount,
                period=period,
                description=(
                    f"Comision procesare plati {fee_config.provider_label} - {project} "
                    f"({group.count} tranzactii, {format_amount(group.weight)} RON procesate)"
                ),
                vat_included=True,
                display_name=fee_config.provider_label,
                associated_sale_ids=frozenset(group.member_ids),
            )
            result.record(await self.context.reconciler.reconcile_expense(draft))
