"""
File-backed ad spend source.

Reads an exported ad-account report: a YAML (or JSON) document with the
account currency and, per period label, the spend of each campaign::

    currency: RON
    periods:
      Octombrie 2025:
        - {campaign: "Sales Dezvoltare Personala - Oct", spend: "1520.40"}

Spend values are parsed as Decimal from their text form.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ledger_config.loader import load_yaml_file, parse_decimal
from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.domain.records import AdSpendReport, AdSpendRow
from ledger_kernel.exceptions import CredentialOrConfigError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.ad_spend_file")


class FileAdSpendSource:
    """
    Contract:
        Implements ``ledger_services.ports.AdSpendSource``.  The file is
        read on every fetch so a re-exported report is picked up by the
        next run.  A period absent from the file has no spend.

    Failure modes:
        - Missing or unreadable file, or a malformed document, raises
          ``CredentialOrConfigError``; the ad-spend kind aborts and the
          other kinds still run.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def fetch_ad_spend(self, period: PeriodKey) -> AdSpendReport:
        data = self._load()
        currency = data.get("currency")
        if not isinstance(currency, str) or not currency.strip():
            raise CredentialOrConfigError("ad_spend", f"{self._path}: missing account currency")

        periods = data.get("periods") or {}
        if not isinstance(periods, dict):
            raise CredentialOrConfigError("ad_spend", f"{self._path}: 'periods' must be a mapping")

        rows = []
        for label, entries in periods.items():
            if PeriodKey.parse(str(label)) != period:
                continue
            for entry in entries or ():
                rows.append(self._parse_row(entry))

        logger.info("ad_spend_loaded", extra={
            "path": str(self._path),
            "period": period.label,
            "campaigns": len(rows),
        })
        return AdSpendReport(account_currency=currency.strip().upper(), rows=tuple(rows))

    def _load(self) -> dict[str, Any]:
        try:
            data = load_yaml_file(self._path)
        except OSError as exc:
            raise CredentialOrConfigError("ad_spend", f"cannot read {self._path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise CredentialOrConfigError("ad_spend", f"malformed report {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise CredentialOrConfigError("ad_spend", f"{self._path}: expected a mapping")
        return data

    def _parse_row(self, entry: Any) -> AdSpendRow:
        if not isinstance(entry, dict) or "campaign" not in entry:
            raise CredentialOrConfigError("ad_spend", f"{self._path}: malformed campaign entry {entry!r}")
        try:
            amount = parse_decimal(entry.get("spend"), "spend")
        except ValueError as exc:
            raise CredentialOrConfigError("ad_spend", f"{self._path}: {exc}") from exc
        return AdSpendRow(campaign_name=str(entry["campaign"]), amount=amount)
