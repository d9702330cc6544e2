"""
Pure domain layer.

Value objects, period keys, categories, records and natural keys with NO
dependencies on the ORM, the database, the clock implementation or I/O.
All domain objects are immutable.
"""

from ledger_kernel.domain.categories import (
    ExpenseCategory,
    PnLCategory,
    SummaryLabel,
    pnl_category_for,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from ledger_kernel.domain.periods import MONTH_NAMES, PeriodKey
from ledger_kernel.domain.records import (
    AdSpendReport,
    AdSpendRow,
    DebtRecord,
    DebtSettlement,
    DerivedExpense,
    ExpenseDraft,
    ExpenseKind,
    MonthlyCommissionRecord,
    Payee,
    PnLLine,
    PnLLineDraft,
    Role,
    Sale,
    SourceTag,
    normalize_role,
)
from ledger_kernel.domain.values import Currency, ExchangeRate, Money

__all__ = [
    # Values
    "Currency",
    "Money",
    "ExchangeRate",
    "CurrencyInfo",
    "CurrencyRegistry",
    # Time
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "PeriodKey",
    "MONTH_NAMES",
    # Categories
    "ExpenseCategory",
    "PnLCategory",
    "SummaryLabel",
    "pnl_category_for",
    # Records
    "Role",
    "normalize_role",
    "SourceTag",
    "ExpenseKind",
    "Sale",
    "MonthlyCommissionRecord",
    "Payee",
    "AdSpendRow",
    "AdSpendReport",
    "ExpenseDraft",
    "DerivedExpense",
    "PnLLineDraft",
    "PnLLine",
    "DebtRecord",
    "DebtSettlement",
]
