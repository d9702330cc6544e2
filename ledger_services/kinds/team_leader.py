"""
Team leader commissions.

Every sale linked to a setter (caller) monthly record of the period earns
the setter (caller) team leader a configured share of its amount excluding
VAT.  Refunds are included with their negative amount and reduce the
commission, but are not counted as sales in the description.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_config.schema import TeamLeaderDef
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.keys import team_leader_key
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import ExpenseDraft, ExpenseKind, Role, Sale, sale_project
from ledger_kernel.logging_config import get_logger
from ledger_services.kinds.base import AllocationKind, ron
from ledger_services.reconciler import KindResult

logger = get_logger("services.kinds.team_leader")


@dataclass
class LeaderProjectTotal:
    project: str
    commission: Decimal = Decimal(0)
    sales_count: int = 0
    sale_ids: list[str] = field(default_factory=list)

    def add(self, sale: Sale, rate: Decimal) -> None:
        amount = sale.amount_excl_vat
        self.commission += amount * rate
        if amount >= 0:
            self.sales_count += 1
        self.sale_ids.append(sale.id)


def team_leader_description(leader: TeamLeaderDef, sales_count: int) -> str:
    return f"Teamleader {leader.leads}: {leader.name} ({sales_count} vanzari)"


class TeamLeaderKind(AllocationKind):
    name = "team_leader"

    async def _run(self, period: PeriodKey, result: KindResult) -> None:
        for leader in self.config.team_leaders:
            await self.isolate(result, leader.name, self._process_leader(leader, period, result))

    async def _process_leader(
        self, leader: TeamLeaderDef, period: PeriodKey, result: KindResult,
    ) -> None:
        led_role = Role(leader.leads)
        records = await self.store.fetch_monthly_commissions(period, [led_role])
        sale_ids: set[str] = set()
        for record in records:
            if record.role is led_role:
                sale_ids.update(record.linked_sale_ids)
        if not sale_ids:
            logger.info("team_leader_no_sales", extra={"leader": leader.name})
            return

        sales = await self.store.fetch_sales_by_ids(sale_ids)
        totals: dict[str, LeaderProjectTotal] = {}
        for sale in sorted(sales, key=lambda s: s.id):
            project = sale_project(sale)
            if project is None or sale.amount_excl_vat is None:
                logger.debug("sale_skipped", extra={"sale_id": sale.id, "leader": leader.name})
                result.skip()
                continue
            totals.setdefault(project, LeaderProjectTotal(project)).add(sale, leader.rate)

        for total in totals.values():
            amount = ron(total.commission).round()
            if not amount.is_positive:
                logger.warning("team_leader_amount_not_positive", extra={
                    "leader": leader.name,
                    "project": total.project,
                    "amount": str(amount.amount),
                })
                result.skip()
                continue
            draft = ExpenseDraft(
                natural_key=team_leader_key(led_role, total.project, period),
                kind=ExpenseKind.TEAM_LEADER,
                project=total.project,
                category=ExpenseCategory.TEAM_LEADER,
                amount=amount.amount,
                period=period,
                description=team_leader_description(leader, total.sales_count),
                vat_included=False,
                display_name=leader.name,
                associated_sale_ids=frozenset(total.sale_ids),
            )
            result.record(await self.context.reconciler.reconcile_expense(draft))

        await self._upsert_monthly_record(leader, period, totals, result)

    async def _upsert_monthly_record(
        self,
        leader: TeamLeaderDef,
        period: PeriodKey,
        totals: dict[str, LeaderProjectTotal],
        result: KindResult,
    ) -> None:
        payee = await self.store.fetch_payee_by_name(leader.name)
        if payee is None:
            logger.warning("team_leader_not_in_directory", extra={"leader": leader.name})
            return
        linked = {sale_id for t in totals.values() for sale_id in t.sale_ids}
        amount = ron(sum((t.commission for t in totals.values()), Decimal(0))).round()
        result.record_side(
            await self.context.reconciler.reconcile_monthly_commission(
                payee=payee,
                period=period,
                role=Role.TEAM_LEADER,
                linked_sale_ids=linked,
                amount=amount.amount,
            )
        )
