"""
Module: ledger_kernel.models.payee
Responsibility: ORM persistence for the payee directory (sales reps, setters,
    callers, team leaders, copywriters).
Architecture position: Kernel > Models.  May import from db/base.py only.

The ledger only reads this table; rows are maintained upstream.  ``roles``
holds the raw role labels exactly as the source delivers them (one label
or several, comma separated); the store adapter normalizes them.
"""

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base


class PayeeModel(Base):
    __tablename__ = "payees"

    __table_args__ = (Index("idx_payee_name", "name"),)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    roles: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Payee {self.name} [{self.roles}]>"
