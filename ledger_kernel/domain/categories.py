"""
Categories -- closed enums for expense and P&L buckets.

Responsibility:
    Defines the expense categories the allocation kinds produce, the smaller
    set of P&L buckets they collapse into, and the exhaustive mapping
    between the two.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - ``pnl_category_for`` is a total function over ExpenseCategory.  The
      ``match`` ends in ``assert_never`` for type checkers, and
      ``_verify_category_map`` runs at import time so a newly added
      category without a bucket fails loudly instead of aggregating into
      nothing.

Failure modes:
    - ValueError from ``ExpenseCategory.parse`` for unknown labels.
    - RuntimeError at import if the mapping is not total.
"""

from __future__ import annotations

from enum import Enum
from typing import assert_never


class ExpenseCategory(str, Enum):
    """Category stored on a derived expense (record-store labels)."""

    REPRESENTATIVES = "Reprezentanți"
    SETTER = "Setter"
    CALLER = "Caller"
    TEAM_LEADER = "Team Leader"
    PAYMENT_PROCESSING = "Stripe"
    ADVERTISING = "Reclame Facebook"
    COPYWRITING = "Copywriting"

    @classmethod
    def parse(cls, label: str) -> ExpenseCategory:
        """Resolve a stored label, including legacy spellings."""
        text = label.strip()
        legacy = _LEGACY_LABELS.get(text)
        if legacy is not None:
            return legacy
        return cls(text)


_LEGACY_LABELS: dict[str, ExpenseCategory] = {
    "TeamLeaders": ExpenseCategory.TEAM_LEADER,
    "Reprezentanti": ExpenseCategory.REPRESENTATIVES,
}


def is_legacy_label(label: str) -> bool:
    return label.strip() in _LEGACY_LABELS


class PnLCategory(str, Enum):
    """Bucket a P&L line is filed under."""

    SUMMARY = "P&L"
    MARKETING = "Marketing"
    REPRESENTATIVES = "Reprezentanti"
    CALLERS = "Calleri"
    SETTERS = "Setteri"
    TEAM_LEADERS = "Team Leader"
    TAXES = "Taxe & Impozite"
    SALARIES = "Salarii"


class SummaryLabel(str, Enum):
    """Reserved synthetic labels of the per-project summary lines."""

    REVENUE = "Incasari"
    TOTAL_EXPENSE = "TOTAL CHELTUIELI"
    TOTAL_PROFIT = "TOTAL PROFIT"
    PROFIT_MARGIN = "MARJĂ PROFIT"


def pnl_category_for(category: ExpenseCategory) -> PnLCategory:
    """Map an expense category onto its P&L bucket."""
    match category:
        case ExpenseCategory.REPRESENTATIVES:
            return PnLCategory.REPRESENTATIVES
        case ExpenseCategory.SETTER:
            return PnLCategory.SETTERS
        case ExpenseCategory.CALLER:
            return PnLCategory.CALLERS
        case ExpenseCategory.TEAM_LEADER:
            return PnLCategory.TEAM_LEADERS
        case ExpenseCategory.PAYMENT_PROCESSING:
            return PnLCategory.TAXES
        case ExpenseCategory.ADVERTISING:
            return PnLCategory.MARKETING
        case ExpenseCategory.COPYWRITING:
            return PnLCategory.SALARIES
        case _:
            assert_never(category)


def _verify_category_map() -> None:
    for category in ExpenseCategory:
        bucket = pnl_category_for(category)
        if not isinstance(bucket, PnLCategory) or bucket is PnLCategory.SUMMARY:
            raise RuntimeError(f"Expense category {category!r} has no P&L bucket")


_verify_category_map()
