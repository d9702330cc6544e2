"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines: proportional allocation, progressive tiers, debt
    carry-forward, name/project matching and per-project P&L.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel (domain, exceptions, logging).
    MUST NOT import ledger_services or ledger_config.

Invariants enforced:
    - Purity: engines never read the clock or the record store; every
      input is an explicit parameter.
    - Decimal-only arithmetic; floats are rejected at the value-object
      boundary.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` and emit
    LEDGER_ENGINE_TRACE records with an input fingerprint.
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines")

from ledger_engines.allocation import (  # noqa: E402
    AllocationEngine,
    AllocationLine,
    AllocationResult,
    AllocationTarget,
    RoundingPolicy,
)
from ledger_engines.debt import DebtAssessment, DebtLedger, OutstandingDebt, debts_from_records  # noqa: E402
from ledger_engines.matching import (  # noqa: E402
    MatchStep,
    NameResolution,
    ProjectMatcher,
    WeightedGroup,
    compact_text,
    extract_candidate_name,
    group_weights,
    normalize_text,
    resolve_name,
    similarity,
)
from ledger_engines.pnl import ExpenseLine, PnLCalculator, ProjectPnL, expense_label  # noqa: E402
from ledger_engines.progressive import (  # noqa: E402
    CommissionTier,
    ProgressiveCommissionCalculator,
    ProgressiveCommissionResult,
    TierContribution,
    validate_tiers,
)
from ledger_engines.tracer import compute_input_fingerprint, traced_engine  # noqa: E402

__all__ = [
    # Allocation
    "AllocationEngine",
    "AllocationLine",
    "AllocationResult",
    "AllocationTarget",
    "RoundingPolicy",
    # Progressive
    "CommissionTier",
    "ProgressiveCommissionCalculator",
    "ProgressiveCommissionResult",
    "TierContribution",
    "validate_tiers",
    # Debt
    "DebtAssessment",
    "DebtLedger",
    "OutstandingDebt",
    "debts_from_records",
    # Matching
    "MatchStep",
    "NameResolution",
    "ProjectMatcher",
    "WeightedGroup",
    "compact_text",
    "extract_candidate_name",
    "group_weights",
    "normalize_text",
    "resolve_name",
    "similarity",
    # P&L
    "ExpenseLine",
    "PnLCalculator",
    "ProjectPnL",
    "expense_label",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]

logger.debug("ledger_engines_loaded", extra={"engine_count": 5})
