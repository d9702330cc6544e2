"""
Module: ledger_kernel.models.commission
Responsibility: ORM persistence for monthly commission records and their
    links to sales.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One link row per (commission, sale) pair (uq_commission_sale).

Sales-rep, setter and caller records are created upstream.  Team-leader
and copywriter records are upserted by the ledger itself, which is why the
table is tracked.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UUIDString


class MonthlyCommissionModel(TrackedBase):
    __tablename__ = "monthly_commissions"

    __table_args__ = (
        Index("idx_commission_payee", "payee_id"),
        Index("idx_commission_period", "period_year", "period_month"),
    )

    payee_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("payees.id"), nullable=False
    )
    payee_name: Mapped[str] = mapped_column(String(200), nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    roles: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    final_commission: Mapped[Decimal] = mapped_column(nullable=False)
    setter_caller_commission: Mapped[Decimal | None] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False, default="")

    links: Mapped[list["CommissionSaleLink"]] = relationship(
        back_populates="commission",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def linked_sale_ids(self) -> frozenset[str]:
        return frozenset(str(link.sale_id) for link in self.links)

    def __repr__(self) -> str:
        return f"<MonthlyCommission {self.payee_name} {self.period_month}/{self.period_year}>"


class CommissionSaleLink(Base):
    __tablename__ = "commission_sale_links"

    __table_args__ = (
        UniqueConstraint("commission_id", "sale_id", name="uq_commission_sale"),
    )

    commission_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("monthly_commissions.id"), nullable=False
    )
    sale_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("sales.id"), nullable=False
    )

    commission: Mapped[MonthlyCommissionModel] = relationship(back_populates="links")
