"""
Module: ledger_kernel.models.expense
Responsibility: ORM persistence for derived (and manually entered) expenses.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one expense per natural key (uq_expense_natural_key).
      Manual expenses have no natural key.

``category`` stores the raw record-store label; legacy labels survive
until the maintenance pass normalizes them.  ``associated_sale_ids`` is a
JSON list of sale id strings.
"""

from decimal import Decimal

from sqlalchemy import JSON, Boolean, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class ExpenseModel(TrackedBase):
    __tablename__ = "expenses"

    __table_args__ = (
        UniqueConstraint("natural_key", name="uq_expense_natural_key"),
        Index("idx_expense_period", "period_year", "period_month"),
    )

    natural_key: Mapped[str | None] = mapped_column(String(400), nullable=True)
    kind: Mapped[str | None] = mapped_column(String(40), nullable=True)
    project: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    vat_included: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    display_name: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    associated_sale_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Expense {self.natural_key or self.id} {self.amount}>"
