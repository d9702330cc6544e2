"""
Module: ledger_engines.debt
Responsibility:
    Compute the net payable commission of one payee for one period by
    subtracting the outstanding balance of earlier negative monthly
    commissions, and record how much of each debt this period consumes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The sales-rep kind
    fetches prior records and settlements, calls ``DebtLedger.assess``,
    and writes the returned settlements through the reconciler.

Invariants enforced:
    - Only records from strictly earlier periods with a negative final
      commission are debts.
    - Outstanding = |amount| - settlements recorded by periods strictly
      earlier than the one being assessed.  Settlements of the assessed
      period itself are ignored, so re-assessing a period is idempotent.
    - net = gross - total outstanding.  With no settlements on file this
      is exactly gross - sum(|negative prior records|).
    - A positive gross is consumed against debts oldest first; the
      consumed portion never exceeds a debt's outstanding balance.

Failure modes:
    - CurrencyMismatchError if gross is not RON.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import DebtRecord, DebtSettlement, MonthlyCommissionRecord
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import CurrencyMismatchError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.debt")

LEDGER_CURRENCY = "RON"


@dataclass(frozen=True)
class OutstandingDebt:
    record: DebtRecord
    original: Money
    settled_before: Money
    outstanding: Money


@dataclass(frozen=True)
class DebtAssessment:
    """
    Net commission of one payee for one period.

    Guarantees:
        - ``net == gross - total_debt``.
        - ``settlements`` has one entry per outstanding debt (amount may be 0)
          and the amounts sum to ``min(max(gross, 0), total_debt)``.
    """

    payee_ref: str
    period: PeriodKey
    gross: Money
    total_debt: Money
    net: Money
    debts: tuple[OutstandingDebt, ...]
    settlements: tuple[DebtSettlement, ...]

    @property
    def is_payable(self) -> bool:
        return self.net.is_positive

    @property
    def has_debt(self) -> bool:
        return self.total_debt.is_positive


def debts_from_records(
    records: Iterable[MonthlyCommissionRecord],
    payee_ref: str,
    period: PeriodKey,
) -> list[DebtRecord]:
    """Derived debt view: the payee's earlier records with negative commission."""
    debts = [
        DebtRecord.from_commission(r)
        for r in records
        if r.payee_ref == payee_ref and r.period < period and r.final_commission < 0
    ]
    debts.sort(key=lambda d: (d.period, d.record_id))
    return debts


class DebtLedger:
    """
    Debt carry-forward with explicit settlement tracking.

    Non-goals:
        - Does not fetch or persist anything.
        - Does not pay interest or expire old debts.
    """

    @traced_engine("debt_ledger", "1.0", fingerprint_fields=("payee_ref", "period", "gross"))
    def assess(
        self,
        *,
        payee_ref: str,
        period: PeriodKey,
        gross: Money,
        prior_records: Sequence[MonthlyCommissionRecord],
        settlements: Sequence[DebtSettlement] = (),
    ) -> DebtAssessment:
        zero = Money.zero(LEDGER_CURRENCY)
        if gross.currency != zero.currency:
            raise CurrencyMismatchError(gross.currency.code, LEDGER_CURRENCY)

        settled: dict[str, Decimal] = {}
        for s in settlements:
            if s.settling_period < period:
                settled[s.debt_record_id] = settled.get(s.debt_record_id, Decimal(0)) + s.amount

        outstanding_debts: list[OutstandingDebt] = []
        for debt in debts_from_records(prior_records, payee_ref, period):
            original = abs(debt.amount)
            before = settled.get(debt.record_id, Decimal(0))
            remaining = original - before
            if remaining <= 0:
                continue
            outstanding_debts.append(
                OutstandingDebt(
                    record=debt,
                    original=Money.of(original, LEDGER_CURRENCY),
                    settled_before=Money.of(before, LEDGER_CURRENCY),
                    outstanding=Money.of(remaining, LEDGER_CURRENCY),
                )
            )

        total_debt = sum((d.outstanding for d in outstanding_debts), zero)
        net = gross - total_debt

        available = gross.amount if gross.is_positive else Decimal(0)
        new_settlements: list[DebtSettlement] = []
        for debt in outstanding_debts:
            consumed = min(available, debt.outstanding.amount)
            available -= consumed
            new_settlements.append(
                DebtSettlement(
                    debt_record_id=debt.record.record_id,
                    payee_ref=payee_ref,
                    settling_period=period,
                    amount=consumed,
                )
            )

        if outstanding_debts:
            logger.info("debt_assessed", extra={
                "payee_ref": payee_ref,
                "gross": str(gross.amount),
                "total_debt": str(total_debt.amount),
                "net": str(net.amount),
                "debt_count": len(outstanding_debts),
            })

        return DebtAssessment(
            payee_ref=payee_ref,
            period=period,
            gross=gross,
            total_debt=total_debt,
            net=net,
            debts=tuple(outstanding_debts),
            settlements=tuple(new_settlements),
        )
