"""
Module: ledger_engines.pnl
Responsibility:
    Fold one project's sales and automatic expenses for one period into
    P&L lines: revenue, one line per expense label, total expense, profit
    and margin.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  PnLService fetches the
    inputs and reconciles the returned drafts.

Invariants enforced:
    - revenue = sum of the sales' amounts including VAT, recomputed from
      scratch.
    - total_expense = sum of expense amounts; profit = revenue - total_expense.
    - margin = profit / revenue * 100, or 0 when revenue <= 0.
    - Only AUTOMATIC expenses are aggregated.
    - Expenses that share a (bucket, label) are summed into one line so the
      line lookup key stays unique.

Failure modes:
    - None raised for empty inputs; a project with neither sales nor
      expenses still yields the summary lines with zero amounts.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.categories import (
    ExpenseCategory,
    PnLCategory,
    SummaryLabel,
    pnl_category_for,
)
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import (
    DerivedExpense,
    PnLLineDraft,
    Sale,
    SourceTag,
    sale_project,
)
from ledger_kernel.domain.values import ExchangeRate, Money
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.pnl")

_CENT = Decimal("0.01")
_TEAM_LEADER_PREFIXES = ("TM ", "Teamleader ")


def expense_label(expense: DerivedExpense) -> str:
    """Human label an expense is listed under in the P&L."""
    name = (expense.display_name or "").strip()
    description = (expense.description or "").strip()
    match expense.category:
        case ExpenseCategory.PAYMENT_PROCESSING:
            return "Stripe"
        case ExpenseCategory.ADVERTISING:
            return "Facebook Ads"
        case ExpenseCategory.TEAM_LEADER:
            if description.startswith(_TEAM_LEADER_PREFIXES):
                return description.split(" (", 1)[0]
            return name or description
        case ExpenseCategory.COPYWRITING:
            if name:
                return name
            return description.removeprefix("Copywriter:").strip() or description
        case _:
            label = name or description.split(" - ", 1)[0]
            return label.removeprefix("Comision ").strip() or expense.project


@dataclass(frozen=True)
class ExpenseLine:
    category: PnLCategory
    label: str
    amount: Money
    expense_count: int


@dataclass(frozen=True)
class ProjectPnL:
    """
    Guarantees:
        - ``total_expense`` is the sum of ``expense_lines`` amounts.
        - ``profit == revenue - total_expense``.
    """

    project: str
    period: PeriodKey
    revenue: Money
    sale_count: int
    expense_lines: tuple[ExpenseLine, ...]
    total_expense: Money
    profit: Money
    margin_percent: Decimal


class PnLCalculator:
    """
    Per-project P&L computation.

    Contract:
        ``display_rate`` converts EUR to RON (e.g. 5.08); EUR columns are
        ``amount_ron / rate`` rounded half-up to cents.
    """

    def __init__(self, display_rate: ExchangeRate):
        self._rate = display_rate

    @traced_engine("pnl", "1.0", fingerprint_fields=("project", "period"))
    def summarize(
        self,
        *,
        project: str,
        period: PeriodKey,
        sales: Sequence[Sale],
        expenses: Sequence[DerivedExpense],
    ) -> ProjectPnL:
        currency = self._rate.to_currency
        zero = Money.zero(currency)

        counted = [
            s for s in sales
            if sale_project(s) == project and s.period == period and s.amount_incl_vat is not None
        ]
        revenue = sum((Money.of(s.amount_incl_vat, currency) for s in counted), zero)

        buckets: dict[tuple[PnLCategory, str], tuple[Money, int]] = {}
        for expense in expenses:
            if expense.source is not SourceTag.AUTOMATIC:
                continue
            if expense.project != project or expense.period != period:
                continue
            key = (pnl_category_for(expense.category), expense_label(expense))
            amount, count = buckets.get(key, (zero, 0))
            buckets[key] = (amount + Money.of(expense.amount, currency), count + 1)

        lines = tuple(
            ExpenseLine(category=cat, label=label, amount=amount, expense_count=count)
            for (cat, label), (amount, count) in buckets.items()
        )
        total_expense = sum((line.amount for line in lines), zero)
        profit = revenue - total_expense
        if revenue.is_positive:
            margin = (profit.amount / revenue.amount * 100).quantize(_CENT, rounding=ROUND_HALF_UP)
        else:
            margin = Decimal("0.00")

        logger.debug("pnl_summarized", extra={
            "project": project,
            "revenue": str(revenue.amount),
            "total_expense": str(total_expense.amount),
            "line_count": len(lines),
        })
        return ProjectPnL(
            project=project,
            period=period,
            revenue=revenue,
            sale_count=len(counted),
            expense_lines=lines,
            total_expense=total_expense,
            profit=profit,
            margin_percent=margin,
        )

    def to_eur(self, amount: Money) -> Decimal:
        return (amount.amount / self._rate.rate).quantize(_CENT, rounding=ROUND_HALF_UP)

    def to_drafts(self, pnl: ProjectPnL) -> list[PnLLineDraft]:
        """Revenue line, one line per expense label, then the three summaries."""
        project, period = pnl.project, pnl.period

        def line(category: PnLCategory, label: str, description: str,
                 amount: Money | None) -> PnLLineDraft:
            return PnLLineDraft(
                project=project,
                period=period,
                category=category,
                label=label,
                description=description,
                amount_ron=None if amount is None else amount.round().amount,
                amount_eur=None if amount is None else self.to_eur(amount),
            )

        drafts = [
            line(
                PnLCategory.SUMMARY,
                SummaryLabel.REVENUE.value,
                f"{pnl.sale_count} vânzări verificate",
                pnl.revenue,
            )
        ]
        for expense in pnl.expense_lines:
            drafts.append(
                line(
                    expense.category,
                    expense.label,
                    f"{expense.label} - {period.label}",
                    expense.amount,
                )
            )
        drafts.append(line(
            PnLCategory.SUMMARY,
            SummaryLabel.TOTAL_EXPENSE.value,
            f"Total cheltuieli pentru {project}",
            pnl.total_expense,
        ))
        drafts.append(line(
            PnLCategory.SUMMARY,
            SummaryLabel.TOTAL_PROFIT.value,
            f"Profit pentru {project}",
            pnl.profit,
        ))
        drafts.append(line(
            PnLCategory.SUMMARY,
            SummaryLabel.PROFIT_MARGIN.value,
            f"Marjă profit {pnl.margin_percent:.2f}% pentru {project}",
            None,
        ))
        return drafts
