"""
LedgerConfig schema.

Defines the human-authored configuration of the commission ledger: rates,
tiers, team leaders, copywriters, projects and pacing.  YAML is parsed into
these frozen types by the loader; services receive a LedgerConfig and never
read files or environment variables themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

ALL_KINDS: tuple[str, ...] = (
    "sales_rep",
    "setter_caller",
    "team_leader",
    "payment_fee",
    "ad_spend",
    "copywriting",
)

ROUNDING_POLICIES: frozenset[str] = frozenset({"independent", "largest_remainder"})


# ---------------------------------------------------------------------------
# Commission rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TierDef:
    """One progressive tier; ``upper_bound_eur`` None means unbounded."""

    upper_bound_eur: Decimal | None
    rate: Decimal


@dataclass(frozen=True)
class TeamLeaderDef:
    """A team leader earning ``rate`` of the sales of the role they lead."""

    name: str
    leads: str  # "Setter" or "Caller"
    rate: Decimal


@dataclass(frozen=True)
class CopywriterDef:
    name: str
    campaign_identifiers: tuple[str, ...] = ()


@dataclass(frozen=True)
class CopywritingDef:
    eur_ron_rate: Decimal
    tiers: tuple[TierDef, ...]
    copywriters: tuple[CopywriterDef, ...] = ()


@dataclass(frozen=True)
class PaymentFeeDef:
    method_marker: str = "link"
    rate: Decimal = Decimal("0.02")
    provider_label: str = "Stripe"


@dataclass(frozen=True)
class AdSpendDef:
    account_currency: str = "RON"
    source_file: str | None = None


@dataclass(frozen=True)
class ProjectsDef:
    names: tuple[str, ...]
    shared_bucket: str


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PacingDef:
    """Global pacing and write-retry settings for the store adapter."""

    min_interval_seconds: Decimal = Decimal("0.25")
    max_attempts: int = 3
    backoff_base_seconds: Decimal = Decimal("2")


@dataclass(frozen=True)
class LedgerConfig:
    """
    Complete runtime configuration.

    Guarantees:
        - ``checksum`` is the SHA-256 of the canonical source document and
          changes whenever any setting changes.
    """

    config_id: str
    version: int
    currency: str
    display_eur_ron_rate: Decimal
    rounding_policy: str
    similarity_threshold: Decimal
    projects: ProjectsDef
    team_leaders: tuple[TeamLeaderDef, ...]
    payment_fee: PaymentFeeDef
    ad_spend: AdSpendDef
    copywriting: CopywritingDef
    pacing: PacingDef
    enabled_kinds: tuple[str, ...] = ALL_KINDS
    database_url: str | None = None
    checksum: str = field(default="", compare=False)
