"""
Natural keys -- deterministic identifiers for derived records.

Every derived expense is looked up by a key computed only from stable
inputs (payee, project, period, kind).  The one exception is the sales-rep
key, which embeds the upstream monthly commission record id; that record
is itself unique per payee and period.
"""

from __future__ import annotations

import re

from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import ExpenseKind, Role

_WHITESPACE = re.compile(r"\s+")


def _part(value: str) -> str:
    return _WHITESPACE.sub("_", value.strip())


def _join(*parts: str) -> str:
    return "_".join(_part(p) for p in parts)


def sales_rep_key(commission_record_id: str, project: str) -> str:
    return _join(ExpenseKind.SALES_REP.value, commission_record_id, project)


def setter_caller_key(role: Role, payee_name: str, project: str, period: PeriodKey) -> str:
    return _join(
        ExpenseKind.SETTER_CALLER.value, role.name.lower(), payee_name, project, period.slug
    )


def team_leader_key(led_role: Role, project: str, period: PeriodKey) -> str:
    return _join(ExpenseKind.TEAM_LEADER.value, led_role.name.lower(), project, period.slug)


def payment_fee_key(project: str, period: PeriodKey) -> str:
    return _join(ExpenseKind.PAYMENT_FEE.value, project, period.slug)


def ad_spend_key(project: str, period: PeriodKey) -> str:
    return _join(ExpenseKind.AD_SPEND.value, project, period.slug)


def copywriting_key(payee_name: str, project: str, period: PeriodKey) -> str:
    return _join(ExpenseKind.COPYWRITING.value, payee_name.replace(" ", ""), project, period.slug)


def debt_settlement_key(debt_record_id: str, period: PeriodKey) -> str:
    return _join("debt_settlement", debt_record_id, period.slug)
