"""
Module: ledger_kernel.models.debt_settlement
Responsibility: ORM persistence for debt settlements -- how much of a
    negative monthly commission a later period's commission consumed.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (debt record, settling period) (uq_settlement_key), so a
      re-run of a period replaces its own settlements.
"""

from decimal import Decimal

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class DebtSettlementModel(TrackedBase):
    __tablename__ = "debt_settlements"

    __table_args__ = (
        UniqueConstraint("settlement_key", name="uq_settlement_key"),
        Index("idx_settlement_payee", "payee_ref"),
    )

    settlement_key: Mapped[str] = mapped_column(String(300), nullable=False)
    debt_record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    payee_ref: Mapped[str] = mapped_column(String(64), nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
