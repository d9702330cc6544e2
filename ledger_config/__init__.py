"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or ``LEDGER_*`` environment variables directly.

Architecture position:
    Configuration -- sits above ``ledger_kernel`` and below
    ``ledger_services``.  The kernel and engines never import from
    ``ledger_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Environment overrides are applied after YAML parsing and change the
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set does not exist.
    - ``ValueError`` / ``KeyError`` -- schema or range validation failures.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` record with the
    config id, version, checksum and enabled kinds, tying each run's
    output to the configuration that produced it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from ledger_config.loader import apply_env_overrides, load_yaml_file, parse_config
from ledger_config.schema import (
    ALL_KINDS,
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
from ledger_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    config_dir: Path | None = None,
    set_name: str = "default",
    env: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_dir: Directory holding configuration sets.  Defaults to
            ``ledger_config/sets/``.
        set_name: Subdirectory whose ``root.yaml`` is loaded.
        env: Environment mapping for overrides.  Defaults to ``os.environ``.

    Raises:
        FileNotFoundError: If the set has no root.yaml.
        ValueError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    root_file = sets_dir / set_name / "root.yaml"
    if not root_file.is_file():
        raise FileNotFoundError(f"Configuration set not found: {root_file}")

    config = parse_config(load_yaml_file(root_file))
    config = apply_env_overrides(config, os.environ if env is None else env)

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "enabled_kinds": list(config.enabled_kinds),
            "rounding_policy": config.rounding_policy,
        },
    )
    return config


__all__ = [
    "get_active_config",
    "ALL_KINDS",
    "LedgerConfig",
    "TierDef",
    "TeamLeaderDef",
    "CopywriterDef",
    "CopywritingDef",
    "PaymentFeeDef",
    "AdSpendDef",
    "ProjectsDef",
    "PacingDef",
]
