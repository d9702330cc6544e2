"""
Module: ledger_kernel.models.sale
Responsibility: ORM persistence for verified sales.
Architecture position: Kernel > Models.  May import from db/base.py only.

Sales are facts created upstream and never mutated by the ledger.  Period
columns hold the month number and year of the sale's processing period.
"""

from decimal import Decimal

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class SaleModel(Base):
    __tablename__ = "sales"

    __table_args__ = (Index("idx_sale_period", "period_year", "period_month"),)

    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    project: Mapped[str | None] = mapped_column(String(200), nullable=True)
    amount_excl_vat: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount_incl_vat: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    campaign_tag: Mapped[str | None] = mapped_column(String(500), nullable=True)
    commission_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Sale {self.id} {self.project} {self.period_month}/{self.period_year}>"
