"""
Module: ledger_engines.progressive
Responsibility:
    Bracket-style (marginal) commission over a cumulative sales basis.
    The basis arrives in RON, thresholds are in EUR, and the commission is
    returned in RON.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Tiers are strictly ascending and the last one is unbounded.
    - Each tier taxes only the slice of the basis between its lower and
      upper bound: ``min(remaining, width) * rate``.
    - Intermediate values keep full Decimal precision; rounding to cents
      happens when the total is allocated per project.

Failure modes:
    - ValueError on empty, unordered or bounded-last tier lists, negative
      rates, or a negative basis.
    - CurrencyMismatchError when the basis is not in the rate's source
      currency.

Usage:
    calc = ProgressiveCommissionCalculator(tiers, ExchangeRate.of("EUR", "RON", "5.0"))
    result = calc.calculate(basis=Money.of("150000", "RON"))
    result.commission          # Money("10625.000", RON)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import ExchangeRate, Money
from ledger_kernel.exceptions import CurrencyMismatchError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.progressive")


@dataclass(frozen=True)
class CommissionTier:
    """Rate applied to the basis slice up to ``upper_bound`` (EUR); None = unbounded."""

    upper_bound: Decimal | None
    rate: Decimal

    def __post_init__(self) -> None:
        if self.rate < 0:
            raise ValueError(f"Tier rate cannot be negative: {self.rate}")
        if self.upper_bound is not None and self.upper_bound <= 0:
            raise ValueError(f"Tier bound must be positive: {self.upper_bound}")


@dataclass(frozen=True)
class TierContribution:
    tier_index: int
    lower_bound: Decimal
    upper_bound: Decimal | None
    rate: Decimal
    slice_amount: Money
    commission: Money


@dataclass(frozen=True)
class ProgressiveCommissionResult:
    """
    Guarantees:
        - ``commission_foreign`` equals the sum of contribution commissions.
        - ``commission`` is ``commission_foreign`` converted back, unrounded.
    """

    basis: Money
    basis_foreign: Money
    contributions: tuple[TierContribution, ...]
    commission_foreign: Money
    commission: Money


def validate_tiers(tiers: Sequence[CommissionTier]) -> tuple[CommissionTier, ...]:
    """Check ordering and termination of a tier list."""
    if not tiers:
        raise ValueError("At least one commission tier is required")
    previous: Decimal = Decimal(0)
    for i, tier in enumerate(tiers):
        is_last = i == len(tiers) - 1
        if tier.upper_bound is None:
            if not is_last:
                raise ValueError("Only the last tier may be unbounded")
            continue
        if is_last:
            raise ValueError("The last tier must be unbounded")
        if tier.upper_bound <= previous:
            raise ValueError(
                f"Tier bounds must be strictly ascending: {tier.upper_bound} <= {previous}"
            )
        previous = tier.upper_bound
    return tuple(tiers)


class ProgressiveCommissionCalculator:
    """
    Marginal-rate commission over EUR tiers.

    Contract:
        ``rate`` converts one unit of the tier currency (EUR) into the
        basis currency (RON), e.g. ``ExchangeRate.of("EUR", "RON", "5.0")``.

    Non-goals:
        - Does not split the commission per project; the copywriting kind
          feeds the total into AllocationEngine keyed by basis share.
    """

    def __init__(self, tiers: Sequence[CommissionTier], rate: ExchangeRate):
        self._tiers = validate_tiers(tiers)
        self._rate = rate

    @property
    def tiers(self) -> tuple[CommissionTier, ...]:
        return self._tiers

    @traced_engine("progressive_commission", "1.0", fingerprint_fields=("basis",))
    def calculate(self, *, basis: Money) -> ProgressiveCommissionResult:
        if basis.currency != self._rate.to_currency:
            raise CurrencyMismatchError(basis.currency.code, self._rate.to_currency.code)
        if basis.is_negative:
            raise ValueError(f"Commission basis cannot be negative: {basis}")

        foreign = self._rate.from_currency
        basis_foreign = Money.of(basis.amount / self._rate.rate, foreign)

        contributions: list[TierContribution] = []
        remaining = basis_foreign.amount
        lower = Decimal(0)
        total = Decimal(0)
        for i, tier in enumerate(self._tiers):
            if remaining <= 0:
                break
            width = None if tier.upper_bound is None else tier.upper_bound - lower
            slice_amount = remaining if width is None else min(remaining, width)
            commission = slice_amount * tier.rate
            contributions.append(
                TierContribution(
                    tier_index=i,
                    lower_bound=lower,
                    upper_bound=tier.upper_bound,
                    rate=tier.rate,
                    slice_amount=Money.of(slice_amount, foreign),
                    commission=Money.of(commission, foreign),
                )
            )
            total += commission
            remaining -= slice_amount
            if tier.upper_bound is not None:
                lower = tier.upper_bound

        commission_foreign = Money.of(total, foreign)
        commission = self._rate.convert(commission_foreign)

        logger.debug("progressive_commission_computed", extra={
            "basis": str(basis.amount),
            "basis_foreign": str(basis_foreign.amount),
            "tiers_used": len(contributions),
            "commission": str(commission.amount),
        })
        return ProgressiveCommissionResult(
            basis=basis,
            basis_foreign=basis_foreign,
            contributions=tuple(contributions),
            commission_foreign=commission_foreign,
            commission=commission,
        )
