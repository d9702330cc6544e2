"""
Copywriting commissions.

Sales are attributed to a copywriter through their campaign tag, either by
a configured campaign identifier or by a name extracted from the tag and
resolved against the copywriters in the payee directory.  Each copywriter
earns one progressive commission over the combined basis of the period,
which is then spread over projects by basis share.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_config.schema import CopywritingDef
from ledger_engines.matching import WeightedGroup, compact_text, extract_candidate_name, group_weights
from ledger_engines.progressive import CommissionTier, ProgressiveCommissionCalculator
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.keys import copywriting_key
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import ExpenseDraft, ExpenseKind, Payee, Role, Sale, sale_project
from ledger_kernel.domain.values import ExchangeRate, Money
from ledger_kernel.exceptions import StoreError
from ledger_kernel.logging_config import get_logger
from ledger_services.kinds.base import AllocationKind, LEDGER_CURRENCY, ron
from ledger_services.reconciler import KindResult

logger = get_logger("services.kinds.copywriting")


def build_calculator(config: CopywritingDef) -> ProgressiveCommissionCalculator:
    tiers = [CommissionTier(upper_bound=t.upper_bound_eur, rate=t.rate) for t in config.tiers]
    return ProgressiveCommissionCalculator(
        tiers, ExchangeRate.of("EUR", LEDGER_CURRENCY, config.eur_ron_rate)
    )


@dataclass
class CopywriterSales:
    name: str
    payee: Payee | None = None
    sales: list[Sale] = field(default_factory=list)


class CopywritingKind(AllocationKind):
    name = "copywriting"

    async def _run(self, period: PeriodKey, result: KindResult) -> None:
        copywriting = self.config.copywriting
        calculator = build_calculator(copywriting)
        sales = await self.store.fetch_sales_for_period(period)

        attributed: dict[str, CopywriterSales] = {}
        for sale in sales:
            if not sale.campaign_tag:
                continue
            try:
                owner = await self._attribute(sale.campaign_tag)
            except StoreError as exc:
                logger.error("copywriter_attribution_failed", extra={
                    "sale_id": sale.id, "error_code": exc.code, "error": str(exc),
                })
                result.fail(f"{exc.code}: {sale.id}: {exc}")
                continue
            if owner is None:
                continue
            name, payee = owner
            bucket = attributed.setdefault(name, CopywriterSales(name))
            bucket.payee = bucket.payee or payee
            bucket.sales.append(sale)

        for bucket in attributed.values():
            await self.isolate(
                result, bucket.name, self._process_copywriter(bucket, period, calculator, result),
            )

    async def _attribute(self, tag: str) -> tuple[str, Payee | None] | None:
        compact_tag = compact_text(tag)
        for copywriter in self.config.copywriting.copywriters:
            for identifier in copywriter.campaign_identifiers:
                needle = compact_text(identifier)
                if needle and needle in compact_tag:
                    return copywriter.name, None

        candidate = extract_candidate_name(tag)
        if candidate is None:
            return None
        payee = await self.context.payees.resolve_fuzzy(candidate, [Role.COPYWRITER])
        if payee is None:
            return None
        return payee.name, payee

    async def _process_copywriter(
        self,
        bucket: CopywriterSales,
        period: PeriodKey,
        calculator: ProgressiveCommissionCalculator,
        result: KindResult,
    ) -> None:
        groups = group_weights(
            bucket.sales,
            key=sale_project,
            weight=lambda s: s.amount_excl_vat,
            item_id=lambda s: s.id,
        )
        ignored = len(bucket.sales) - sum(g.count for g in groups.values())
        if ignored:
            logger.info("copywriting_sales_ignored", extra={
                "copywriter": bucket.name, "count": ignored,
            })
            result.skip(ignored)
        if not groups:
            return

        basis = ron(sum((g.weight for g in groups.values()), Decimal(0)))
        progressive = calculator.calculate(basis=basis)
        commission = progressive.commission.round()
        logger.info("copywriting_commission_computed", extra={
            "copywriter": bucket.name,
            "basis": str(basis.amount),
            "basis_eur": str(progressive.basis_foreign.round().amount),
            "commission": str(commission.amount),
            "tiers_used": len(progressive.contributions),
        })
        if not commission.is_positive:
            result.skip()
            return

        def make_draft(project: str, amount: Money, group: WeightedGroup) -> ExpenseDraft:
            return ExpenseDraft(
                natural_key=copywriting_key(bucket.name, project, period),
                kind=ExpenseKind.COPYWRITING,
                project=project,
                category=ExpenseCategory.COPYWRITING,
                amount=amount.amount,
                period=period,
                description=f"Copywriter: {bucket.name}",
                vat_included=False,
                display_name=bucket.name,
                associated_sale_ids=frozenset(group.member_ids),
            )

        await self.allocate_groups(result, commission, groups, make_draft, bucket.name)

        payee = bucket.payee or await self.store.fetch_payee_by_name(bucket.name)
        if payee is None:
            logger.warning("copywriter_not_in_directory", extra={"copywriter": bucket.name})
            return
        linked = {sale_id for g in groups.values() for sale_id in g.member_ids}
        result.record_side(
            await self.context.reconciler.reconcile_monthly_commission(
                payee=payee,
                period=period,
                role=Role.COPYWRITER,
                linked_sale_ids=linked,
                amount=commission.amount,
            )
        )
