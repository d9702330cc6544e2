"""
Module: ledger_engines.allocation
Responsibility:
    Distribute an aggregate amount (a net commission, a progressive
    commission total) across projects in proportion to non-negative
    weights, with explicit, deterministic rounding.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel.domain and ledger_kernel.exceptions.

Invariants enforced:
    - Every allocated share is >= 0; a zero-weight target receives exactly 0.
    - ``RoundingPolicy.LARGEST_REMAINDER``: shares are floored to the
      currency's minor unit and the leftover units go to the largest
      fractional remainders (ties broken by input order), so the rounded
      shares sum exactly to the rounded source amount.
    - ``RoundingPolicy.INDEPENDENT``: each share is rounded half-up on its
      own; the total may drift from the source by at most one minor unit
      per target beyond the first.
    - Purity: no clock access, no I/O.

Failure modes:
    - NoAllocatableBasisError when there are no targets or the weights sum
      to zero.  Callers skip the payee/period and log it.
    - ValueError on negative amounts, negative weights or duplicate ids.

Usage:
    engine = AllocationEngine()
    result = engine.allocate(
        amount=Money.of("1000.00", "RON"),
        targets=[
            AllocationTarget("CODCOM", Decimal("300")),
            AllocationTarget("Artok Academy", Decimal("700")),
        ],
    )
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from enum import Enum

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.values import Money
from ledger_kernel.exceptions import NoAllocatableBasisError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")


class RoundingPolicy(str, Enum):
    """How per-target shares are rounded to the currency's minor unit."""

    INDEPENDENT = "independent"
    LARGEST_REMAINDER = "largest_remainder"


@dataclass(frozen=True)
class AllocationTarget:
    """
    One recipient of a proportional share.

    Guarantees:
        - ``weight`` is a non-negative Decimal.
    """

    target_id: str
    weight: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.weight, Decimal):
            if isinstance(self.weight, float):
                raise TypeError("weight must be Decimal, str or int, not float")
            object.__setattr__(self, "weight", Decimal(str(self.weight)))
        if self.weight < 0:
            raise ValueError(f"Weight cannot be negative: {self.target_id}={self.weight}")


@dataclass(frozen=True)
class AllocationLine:
    target_id: str
    weight: Decimal
    ratio: Decimal
    allocated: Money


@dataclass(frozen=True)
class AllocationResult:
    """
    Complete allocation result.

    Guarantees:
        - ``lines`` are in input order, one per target.
        - ``drift == source_amount.round() - total_allocated``; zero under
          LARGEST_REMAINDER.
    """

    source_amount: Money
    policy: RoundingPolicy
    lines: tuple[AllocationLine, ...]
    total_allocated: Money

    @property
    def drift(self) -> Money:
        return self.source_amount.round() - self.total_allocated

    def allocated_for(self, target_id: str) -> Money:
        for line in self.lines:
            if line.target_id == target_id:
                return line.allocated
        raise KeyError(target_id)

    def as_dict(self) -> dict[str, Money]:
        return {line.target_id: line.allocated for line in self.lines}


class AllocationEngine:
    """
    Proportional allocation with an explicit rounding policy.

    Contract:
        ``allocated_i = amount * w_i / sum(w)`` before rounding.

    Non-goals:
        - Does not decide which weights to use; callers group the sales.
        - Does not perform I/O or persist results.
    """

    def __init__(self, rounding_policy: RoundingPolicy = RoundingPolicy.LARGEST_REMAINDER):
        self._default_policy = rounding_policy

    @property
    def rounding_policy(self) -> RoundingPolicy:
        return self._default_policy

    @traced_engine("allocation", "2.0", fingerprint_fields=("amount", "targets", "policy"))
    def allocate(
        self,
        *,
        amount: Money,
        targets: Sequence[AllocationTarget],
        policy: RoundingPolicy | None = None,
    ) -> AllocationResult:
        """
        Allocate ``amount`` across ``targets`` proportionally to their weights.

        Raises:
            NoAllocatableBasisError: no targets, or all weights are zero.
            ValueError: negative amount or duplicate target ids.
        """
        policy = policy or self._default_policy
        if amount.is_negative:
            raise ValueError(f"Cannot allocate a negative amount: {amount}")

        ids = [t.target_id for t in targets]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate allocation targets: {ids}")

        total_weight = sum((t.weight for t in targets), Decimal(0))
        logger.debug("allocation_started", extra={
            "amount": str(amount.amount),
            "currency": amount.currency.code,
            "policy": policy.value,
            "target_count": len(targets),
            "total_weight": str(total_weight),
        })

        if not targets or total_weight == 0:
            logger.warning("allocation_no_basis", extra={
                "amount": str(amount.amount),
                "target_count": len(targets),
            })
            raise NoAllocatableBasisError(str(amount), len(targets))

        ratios = [t.weight / total_weight for t in targets]
        exact = [amount.amount * r for r in ratios]

        match policy:
            case RoundingPolicy.INDEPENDENT:
                rounded = self._round_independently(exact, amount)
            case RoundingPolicy.LARGEST_REMAINDER:
                rounded = self._round_largest_remainder(exact, amount)
            case _:
                raise ValueError(f"Unknown rounding policy: {policy}")

        currency = amount.currency
        lines = tuple(
            AllocationLine(
                target_id=t.target_id,
                weight=t.weight,
                ratio=ratio,
                allocated=Money.of(value, currency),
            )
            for t, ratio, value in zip(targets, ratios, rounded)
        )
        total = Money.of(sum(rounded, Decimal(0)), currency)
        result = AllocationResult(
            source_amount=amount,
            policy=policy,
            lines=lines,
            total_allocated=total,
        )

        logger.debug("allocation_completed", extra={
            "total_allocated": str(total.amount),
            "drift": str(result.drift.amount),
            "line_count": len(lines),
        })
        return result

    def allocate_by_weights(
        self,
        amount: Money,
        weights: Mapping[str, Decimal],
        policy: RoundingPolicy | None = None,
    ) -> AllocationResult:
        """Convenience wrapper taking ``{target_id: weight}`` in insertion order."""
        targets = [AllocationTarget(target_id=k, weight=w) for k, w in weights.items()]
        return self.allocate(amount=amount, targets=targets, policy=policy)

    @staticmethod
    def _round_independently(exact: list[Decimal], amount: Money) -> list[Decimal]:
        quantum = amount.currency.quantum
        return [value.quantize(quantum, rounding=ROUND_HALF_UP) for value in exact]

    @staticmethod
    def _round_largest_remainder(exact: list[Decimal], amount: Money) -> list[Decimal]:
        quantum = amount.currency.quantum
        floors = [value.quantize(quantum, rounding=ROUND_DOWN) for value in exact]
        target_total = amount.amount.quantize(quantum, rounding=ROUND_HALF_UP)
        leftover_units = int((target_total - sum(floors, Decimal(0))) / quantum)

        # Largest fractional remainder first; input order breaks ties.
        order = sorted(
            range(len(exact)),
            key=lambda i: (-(exact[i] - floors[i]), i),
        )
        result = list(floors)
        for i in order[:leftover_units]:
            result[i] += quantum
        return result
