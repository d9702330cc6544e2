"""
Records -- typed views of store rows the ledger reads and writes.

Responsibility:
    Defines the inputs (Sale, MonthlyCommissionRecord, Payee, AdSpendReport)
    and outputs (ExpenseDraft/DerivedExpense, PnLLineDraft/PnLLine,
    DebtSettlement) of the allocation and aggregation engine, plus the
    closed Role, SourceTag and ExpenseKind enums.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Store adapters translate raw rows
    into these types; nothing above the adapters sees raw shapes.

Invariants enforced:
    - Roles are normalized once, at the adapter boundary, through
      ``normalize_role``.
    - Linked / associated sale id collections are frozensets (order is
      irrelevant, duplicates impossible).
    - Amounts are Decimal in RON unless the field name says otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable

from ledger_kernel.domain.categories import ExpenseCategory, PnLCategory
from ledger_kernel.domain.periods import PeriodKey


class Role(str, Enum):
    SALES = "Sales"
    SETTER = "Setter"
    CALLER = "Caller"
    TEAM_LEADER = "Team Leader"
    COPYWRITER = "Copywriter"


_ROLE_ALIASES: dict[str, Role] = {
    "sales": Role.SALES,
    "setter": Role.SETTER,
    "caller": Role.CALLER,
    "team leader": Role.TEAM_LEADER,
    "teamleader": Role.TEAM_LEADER,
    "team_leader": Role.TEAM_LEADER,
    "copywriter": Role.COPYWRITER,
}

# A record tagged "Sales" and "Setter" is paid as a setter, never as a rep.
_ROLE_PRECEDENCE: tuple[Role, ...] = (
    Role.CALLER,
    Role.SETTER,
    Role.TEAM_LEADER,
    Role.COPYWRITER,
    Role.SALES,
)


def normalize_role(raw: str | Iterable[str] | None) -> Role | None:
    """Collapse a raw role field (string, list of strings, or empty) into one Role."""
    if raw is None:
        return None
    labels = [raw] if isinstance(raw, str) else list(raw)
    found: set[Role] = set()
    for label in labels:
        if not isinstance(label, str):
            continue
        role = _ROLE_ALIASES.get(label.strip().casefold())
        if role is not None:
            found.add(role)
    for role in _ROLE_PRECEDENCE:
        if role in found:
            return role
    return None


class SourceTag(str, Enum):
    AUTOMATIC = "Automat"
    MANUAL = "Manual"


class ExpenseKind(str, Enum):
    """Allocation kind that produced an expense; also the natural-key prefix."""

    SALES_REP = "commission"
    SETTER_CALLER = "setter_caller"
    TEAM_LEADER = "team_leader"
    PAYMENT_FEE = "stripe"
    AD_SPEND = "facebook_ads"
    COPYWRITING = "copywriting"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Sale:
    """A verified sale.  Read-only for the ledger."""

    id: str
    period: PeriodKey
    project: str | None = None
    amount_excl_vat: Decimal | None = None
    amount_incl_vat: Decimal | None = None
    payment_method: str | None = None
    campaign_tag: str | None = None
    commission_amount: Decimal | None = None


def sale_project(sale: Sale) -> str | None:
    """Project key of a sale: surrounding whitespace stripped, blank is None."""
    project = (sale.project or "").strip()
    return project or None


@dataclass(frozen=True)
class MonthlyCommissionRecord:
    """Aggregate commission of one payee for one period."""

    id: str
    payee_ref: str
    payee_name: str
    period: PeriodKey
    role: Role | None
    final_commission: Decimal
    linked_sale_ids: frozenset[str] = field(default_factory=frozenset)
    setter_caller_commission: Decimal | None = None
    name: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.linked_sale_ids, frozenset):
            object.__setattr__(self, "linked_sale_ids", frozenset(self.linked_sale_ids))


@dataclass(frozen=True)
class Payee:
    id: str
    name: str
    role: Role | None = None


@dataclass(frozen=True)
class AdSpendRow:
    campaign_name: str
    amount: Decimal


@dataclass(frozen=True)
class AdSpendReport:
    """Spend per campaign for one period, as reported by the ad account."""

    account_currency: str
    rows: tuple[AdSpendRow, ...] = ()


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpenseDraft:
    """Computed expense, ready to be reconciled against the store."""

    natural_key: str
    kind: ExpenseKind
    project: str
    category: ExpenseCategory
    amount: Decimal
    period: PeriodKey
    description: str
    vat_included: bool = False
    display_name: str = ""
    associated_sale_ids: frozenset[str] = field(default_factory=frozenset)
    source: SourceTag = SourceTag.AUTOMATIC

    def __post_init__(self) -> None:
        if not isinstance(self.associated_sale_ids, frozenset):
            object.__setattr__(
                self, "associated_sale_ids", frozenset(self.associated_sale_ids)
            )


@dataclass(frozen=True)
class DerivedExpense:
    """Expense as stored.  ``category_label`` is the raw stored label."""

    record_id: str
    natural_key: str | None
    project: str
    category: ExpenseCategory
    amount: Decimal
    period: PeriodKey
    description: str
    source: SourceTag
    kind: ExpenseKind | None = None
    vat_included: bool = False
    display_name: str = ""
    associated_sale_ids: frozenset[str] = field(default_factory=frozenset)
    category_label: str = ""
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.associated_sale_ids, frozenset):
            object.__setattr__(
                self, "associated_sale_ids", frozenset(self.associated_sale_ids)
            )
        if not self.category_label:
            object.__setattr__(self, "category_label", self.category.value)


@dataclass(frozen=True)
class PnLLineDraft:
    project: str
    period: PeriodKey
    category: PnLCategory
    label: str
    description: str
    amount_ron: Decimal | None = None
    amount_eur: Decimal | None = None
    source: SourceTag = SourceTag.AUTOMATIC

    @property
    def lookup_key(self) -> tuple[str, PeriodKey, PnLCategory, str]:
        return (self.project, self.period, self.category, self.label)


@dataclass(frozen=True)
class PnLLine:
    record_id: str
    project: str
    period: PeriodKey
    category: PnLCategory
    label: str
    description: str
    amount_ron: Decimal | None = None
    amount_eur: Decimal | None = None
    source: SourceTag = SourceTag.AUTOMATIC
    updated_at: datetime | None = None

    @property
    def lookup_key(self) -> tuple[str, PeriodKey, PnLCategory, str]:
        return (self.project, self.period, self.category, self.label)


@dataclass(frozen=True)
class DebtRecord:
    """A prior-period monthly record with a negative final commission."""

    record_id: str
    payee_ref: str
    period: PeriodKey
    amount: Decimal

    @classmethod
    def from_commission(cls, record: MonthlyCommissionRecord) -> DebtRecord:
        return cls(
            record_id=record.id,
            payee_ref=record.payee_ref,
            period=record.period,
            amount=record.final_commission,
        )


@dataclass(frozen=True)
class DebtSettlement:
    """Portion of a debt consumed by the commission of ``settling_period``."""

    debt_record_id: str
    payee_ref: str
    settling_period: PeriodKey
    amount: Decimal
