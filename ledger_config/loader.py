"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses of
``ledger_config.schema``.  Runtime callers go through
``ledger_config.get_active_config()``; this module is its tooling.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* Monetary rates are parsed as Decimal from their text form, never float.
* ``compute_checksum`` is a deterministic SHA-256 over the canonical JSON
  form of the source document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values (unsorted tiers, unknown kind, bad rate)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    ALL_KINDS,
    ROUNDING_POLICIES,
    AdSpendDef,
    CopywriterDef,
    CopywritingDef,
    LedgerConfig,
    PacingDef,
    PaymentFeeDef,
    ProjectsDef,
    TeamLeaderDef,
    TierDef,
)

_LED_ROLES = frozenset({"Setter", "Caller"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, field_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"{field_name}: invalid number {value!r}") from e


def parse_rate(value: Any, field_name: str) -> Decimal:
    rate = parse_decimal(value, field_name)
    if rate < 0 or rate > 1:
        raise ValueError(f"{field_name}: rate must be within [0, 1], got {rate}")
    return rate


def parse_tier(data: dict[str, Any]) -> TierDef:
    bound = data.get("upper_bound_eur")
    return TierDef(
        upper_bound_eur=None if bound is None else parse_decimal(bound, "upper_bound_eur"),
        rate=parse_rate(data["rate"], "tier.rate"),
    )


def parse_tiers(items: list[dict[str, Any]]) -> tuple[TierDef, ...]:
    tiers = tuple(parse_tier(item) for item in items)
    if not tiers:
        raise ValueError("copywriting.tiers must not be empty")
    bounds = [t.upper_bound_eur for t in tiers]
    if bounds[-1] is not None or any(b is None for b in bounds[:-1]):
        raise ValueError("copywriting.tiers: only the last tier may be unbounded")
    finite = [b for b in bounds if b is not None]
    if finite != sorted(set(finite)):
        raise ValueError("copywriting.tiers: bounds must be strictly ascending")
    return tiers


def parse_team_leader(data: dict[str, Any]) -> TeamLeaderDef:
    leads = data["leads"]
    if leads not in _LED_ROLES:
        raise ValueError(f"team_leaders.leads must be one of {sorted(_LED_ROLES)}, got {leads!r}")
    return TeamLeaderDef(
        name=data["name"],
        leads=leads,
        rate=parse_rate(data["rate"], "team_leaders.rate"),
    )


def parse_copywriting(data: dict[str, Any]) -> CopywritingDef:
    return CopywritingDef(
        eur_ron_rate=parse_decimal(data["eur_ron_rate"], "copywriting.eur_ron_rate"),
        tiers=parse_tiers(data["tiers"]),
        copywriters=tuple(
            CopywriterDef(
                name=c["name"],
                campaign_identifiers=tuple(c.get("campaign_identifiers", ())),
            )
            for c in data.get("copywriters", [])
        ),
    )


def parse_pacing(data: dict[str, Any]) -> PacingDef:
    pacing = PacingDef(
        min_interval_seconds=parse_decimal(
            data.get("min_interval_seconds", "0.25"), "pacing.min_interval_seconds"
        ),
        max_attempts=int(data.get("max_attempts", 3)),
        backoff_base_seconds=parse_decimal(
            data.get("backoff_base_seconds", "2"), "pacing.backoff_base_seconds"
        ),
    )
    if pacing.max_attempts < 1:
        raise ValueError("pacing.max_attempts must be >= 1")
    if pacing.min_interval_seconds < 0:
        raise ValueError("pacing.min_interval_seconds must be >= 0")
    return pacing


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """
    Parse a full configuration document.

    Raises:
        KeyError: if required keys are missing.
        ValueError: if a value is out of range or inconsistent.
    """
    rounding = data.get("rounding_policy", "largest_remainder")
    if rounding not in ROUNDING_POLICIES:
        raise ValueError(f"rounding_policy must be one of {sorted(ROUNDING_POLICIES)}")

    kinds = tuple(data.get("enabled_kinds", ALL_KINDS))
    unknown = [k for k in kinds if k not in ALL_KINDS]
    if unknown:
        raise ValueError(f"Unknown allocation kinds: {unknown}")

    projects_data = data["projects"]
    fee = data.get("payment_fee", {})
    ads = data.get("ad_spend", {})

    display_rate = parse_decimal(data["display_eur_ron_rate"], "display_eur_ron_rate")
    if display_rate <= 0:
        raise ValueError("display_eur_ron_rate must be positive")

    return LedgerConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        currency=data.get("currency", "RON"),
        display_eur_ron_rate=display_rate,
        rounding_policy=rounding,
        similarity_threshold=parse_rate(
            data.get("similarity_threshold", "0.85"), "similarity_threshold"
        ),
        projects=ProjectsDef(
            names=tuple(projects_data["names"]),
            shared_bucket=projects_data["shared_bucket"],
        ),
        team_leaders=tuple(parse_team_leader(t) for t in data.get("team_leaders", [])),
        payment_fee=PaymentFeeDef(
            method_marker=fee.get("method_marker", "link"),
            rate=parse_rate(fee.get("rate", "0.02"), "payment_fee.rate"),
            provider_label=fee.get("provider_label", "Stripe"),
        ),
        ad_spend=AdSpendDef(
            account_currency=ads.get("account_currency", "RON"),
            source_file=ads.get("source_file"),
        ),
        copywriting=parse_copywriting(data["copywriting"]),
        pacing=parse_pacing(data.get("pacing", {})),
        enabled_kinds=kinds,
        database_url=data.get("database_url"),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str, ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def apply_env_overrides(config: LedgerConfig, env: Mapping[str, str]) -> LedgerConfig:
    """Apply ``LEDGER_*`` environment overrides on top of a parsed config."""
    changes: dict[str, Any] = {}
    if rate := env.get("LEDGER_DISPLAY_EUR_RON_RATE"):
        changes["display_eur_ron_rate"] = parse_decimal(rate, "LEDGER_DISPLAY_EUR_RON_RATE")
    if url := env.get("LEDGER_DATABASE_URL"):
        changes["database_url"] = url
    if path := env.get("LEDGER_AD_SPEND_FILE"):
        changes["ad_spend"] = replace(config.ad_spend, source_file=path)
    if policy := env.get("LEDGER_ROUNDING_POLICY"):
        if policy not in ROUNDING_POLICIES:
            raise ValueError(f"LEDGER_ROUNDING_POLICY must be one of {sorted(ROUNDING_POLICIES)}")
        changes["rounding_policy"] = policy
    if not changes:
        return config
    overridden = replace(config, **changes)
    marker = json.dumps({k: str(v) for k, v in sorted(changes.items())}, sort_keys=True)
    checksum = hashlib.sha256((config.checksum + marker).encode("utf-8")).hexdigest()
    return replace(overridden, checksum=checksum)
