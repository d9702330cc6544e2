"""
Allocation kinds, in the order a period run executes them.

Each kind turns one slice of the period's inputs into derived expenses:
sales-rep, setter/caller, team-leader and copywriting commissions,
payment processor fees and advertising spend.
"""

from ledger_services.kinds.ad_spend import AdSpendKind
from ledger_services.kinds.base import AllocationKind, KindContext
from ledger_services.kinds.copywriting import CopywritingKind
from ledger_services.kinds.payment_fee import PaymentFeeKind
from ledger_services.kinds.sales_rep import SalesRepKind
from ledger_services.kinds.setter_caller import SetterCallerKind
from ledger_services.kinds.team_leader import TeamLeaderKind

KIND_ORDER: tuple[type[AllocationKind], ...] = (
    SalesRepKind,
    SetterCallerKind,
    TeamLeaderKind,
    PaymentFeeKind,
    AdSpendKind,
    CopywritingKind,
)

__all__ = [
    "KIND_ORDER",
    "AdSpendKind",
    "AllocationKind",
    "CopywritingKind",
    "KindContext",
    "PaymentFeeKind",
    "SalesRepKind",
    "SetterCallerKind",
    "TeamLeaderKind",
]
