"""
Module: ledger_kernel.models.pnl_line
Responsibility: ORM persistence for P&L ledger rows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (project, period, category, label) (uq_pnl_line).
    - Margin rows carry no amounts; the percentage lives in the description.
"""

from decimal import Decimal

from sqlalchemy import Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class PnLLineModel(TrackedBase):
    __tablename__ = "pnl_lines"

    __table_args__ = (
        UniqueConstraint(
            "project", "period_year", "period_month", "category", "label",
            name="uq_pnl_line",
        ),
    )

    project: Mapped[str] = mapped_column(String(200), nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount_ron: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_eur: Mapped[Decimal | None] = mapped_column(nullable=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<PnLLine {self.project} {self.category}/{self.label}>"
