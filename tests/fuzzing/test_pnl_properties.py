"""
Property-based tests for per-project P&L aggregation.

Properties:
- total expense equals the sum of the expense lines.
- profit equals revenue minus total expense.
- margin is 0.00 whenever revenue is not positive.
- manual expenses never change the result.
"""

from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_engines.pnl import PnLCalculator
from ledger_kernel.domain.categories import ExpenseCategory
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import DerivedExpense, Sale, SourceTag
from ledger_kernel.domain.values import ExchangeRate, Money

OCT = PeriodKey(10, 2025)

money_amounts = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100000"), places=2,
    allow_nan=False, allow_infinity=False,
)
categories = st.sampled_from([
    ExpenseCategory.REPRESENTATIVES,
    ExpenseCategory.SETTER,
    ExpenseCategory.CALLER,
    ExpenseCategory.PAYMENT_PROCESSING,
    ExpenseCategory.ADVERTISING,
])


@st.composite
def expense_lists(draw, source=SourceTag.AUTOMATIC):
    items = draw(st.lists(st.tuples(categories, money_amounts), max_size=10))
    return [
        DerivedExpense(
            record_id=f"e{i}",
            natural_key=None,
            project="CODCOM",
            category=category,
            amount=amount,
            period=OCT,
            description=f"Comision Payee{i % 3} - CODCOM",
            source=source,
            display_name=f"Payee{i % 3}",
        )
        for i, (category, amount) in enumerate(items)
    ]


@st.composite
def sale_lists(draw):
    amounts = draw(st.lists(money_amounts, max_size=10))
    return [
        Sale(id=f"s{i}", period=OCT, project="CODCOM", amount_incl_vat=amount)
        for i, amount in enumerate(amounts)
    ]


def _calculator() -> PnLCalculator:
    return PnLCalculator(ExchangeRate.of("EUR", "RON", "5.08"))


class TestPnLProperties:
    @settings(max_examples=150, deadline=None)
    @given(sales=sale_lists(), expenses=expense_lists())
    def test_totals_and_profit(self, sales, expenses):
        pnl = _calculator().summarize(project="CODCOM", period=OCT, sales=sales, expenses=expenses)

        assert pnl.total_expense == sum(
            (line.amount for line in pnl.expense_lines), Money.zero("RON"),
        )
        assert pnl.total_expense.amount == sum((e.amount for e in expenses), Decimal(0))
        assert pnl.profit == pnl.revenue - pnl.total_expense
        if not pnl.revenue.is_positive:
            assert pnl.margin_percent == Decimal("0.00")

    @settings(max_examples=100, deadline=None)
    @given(
        sales=sale_lists(),
        expenses=expense_lists(),
        manual=expense_lists(source=SourceTag.MANUAL),
    )
    def test_manual_expenses_ignored(self, sales, expenses, manual):
        calc = _calculator()
        base = calc.summarize(project="CODCOM", period=OCT, sales=sales, expenses=expenses)
        mixed = calc.summarize(
            project="CODCOM", period=OCT, sales=sales, expenses=expenses + manual,
        )
        assert mixed.total_expense == base.total_expense
        assert mixed.profit == base.profit
        assert mixed.margin_percent == base.margin_percent
