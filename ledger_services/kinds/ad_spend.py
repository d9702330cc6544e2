"""Advertising spend, mapped from campaign names onto projects."""

from __future__ import annotations

from ledger_engines.matching import ProjectMatcher, group_weights
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.keys import ad_spend_key
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import ExpenseDraft, ExpenseKind
from ledger_kernel.exceptions import CredentialOrConfigError
from ledger_kernel.logging_config import get_logger
from ledger_services.kinds.base import AllocationKind, format_amount, ron
from ledger_services.reconciler import KindResult

logger = get_logger("services.kinds.ad_spend")


class AdSpendKind(AllocationKind):
    name = "ad_spend"

    async def _run(self, period: PeriodKey, result: KindResult) -> None:
        source = self.context.ad_spend
        if source is None:
            raise CredentialOrConfigError("ad_spend", "no ad spend source configured")

        report = await source.fetch_ad_spend(period)
        expected = self.config.ad_spend.account_currency
        if report.account_currency != expected:
            raise CredentialOrConfigError(
                "ad_spend",
                f"ad account currency is {report.account_currency}, expected {expected}",
            )

        matcher = ProjectMatcher(
            self.config.projects.names, self.config.projects.shared_bucket
        )
        groups = group_weights(
            report.rows,
            key=lambda row: matcher.match_campaign(row.campaign_name),
            weight=lambda row: row.amount,
            item_id=lambda row: row.campaign_name,
        )
        ignored = len(report.rows) - sum(g.count for g in groups.values())
        if ignored:
            result.skip(ignored)
        logger.info("ad_spend_grouped", extra={
            "campaigns": len(report.rows),
            "projects": {p: str(g.weight) for p, g in groups.items()},
        })

        for project, group in groups.items():
            amount = ron(group.weight).round()
            if not amount.is_positive:
                result.skip()
                continue
            draft = ExpenseDraft(
                natural_key=ad_spend_key(project, period),
                kind=ExpenseKind.AD_SPEND,
                project=project,
                category=ExpenseCategory.ADVERTISING,
                amount=amount.amount,
                period=period,
                description=(
                    f"Facebook Ads - {project} "
                    f"({group.count} campanii, {format_amount(group.weight)} RON)"
                ),
                vat_included=False,
                display_name="Facebook Ads",
            )
            result.record(await self.context.reconciler.reconcile_expense(draft))
