"""ORM models for the commission ledger."""

from ledger_kernel.models.commission import CommissionSaleLink, MonthlyCommissionModel
from ledger_kernel.models.debt_settlement import DebtSettlementModel
from ledger_kernel.models.expense import ExpenseModel
from ledger_kernel.models.payee import PayeeModel
from ledger_kernel.models.pnl_line import PnLLineModel
from ledger_kernel.models.sale import SaleModel

__all__ = [
    "PayeeModel",
    "SaleModel",
    "MonthlyCommissionModel",
    "CommissionSaleLink",
    "ExpenseModel",
    "PnLLineModel",
    "DebtSettlementModel",
]
