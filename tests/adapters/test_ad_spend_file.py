"""
Tests for FileAdSpendSource: reading an exported ad spend report.
"""

import asyncio
import json
from decimal import Decimal

import pytest

from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.exceptions import CredentialOrConfigError
from ledger_services.adapters.ad_spend_file import FileAdSpendSource

OCT = PeriodKey(10, 2025)


def write(tmp_path, text: str, name: str = "report.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return FileAdSpendSource(path)


class TestFetchAdSpend:
    def test_rows_of_requested_period(self, tmp_path):
        source = write(tmp_path, (
            "currency: ron\n"
            "periods:\n"
            "  Septembrie 2025:\n"
            "    - {campaign: old, spend: '5'}\n"
            "  Octombrie 2025:\n"
            "    - {campaign: 'Leads CODCOM', spend: '1520.40'}\n"
            "    - {campaign: 'Brand', spend: 300}\n"
        ))
        report = asyncio.run(source.fetch_ad_spend(OCT))

        assert report.account_currency == "RON"
        assert [(r.campaign_name, r.amount) for r in report.rows] == [
            ("Leads CODCOM", Decimal("1520.40")),
            ("Brand", Decimal("300")),
        ]

    def test_json_export(self, tmp_path):
        source = write(tmp_path, json.dumps({
            "currency": "RON",
            "periods": {"Octombrie 2025": [{"campaign": "CODCOM", "spend": "10.5"}]},
        }), name="report.json")
        report = asyncio.run(source.fetch_ad_spend(OCT))
        assert report.rows[0].amount == Decimal("10.5")

    def test_period_absent(self, tmp_path):
        source = write(tmp_path, "currency: RON\nperiods: {}\n")
        report = asyncio.run(source.fetch_ad_spend(OCT))
        assert report.rows == ()

    @pytest.mark.parametrize("text", [
        "periods: {}\n",
        "currency: RON\nperiods: [1, 2]\n",
        "currency: RON\nperiods:\n  Octombrie 2025:\n    - {spend: '1'}\n",
        "currency: RON\nperiods:\n  Octombrie 2025:\n    - {campaign: x, spend: abc}\n",
        "- just\n- a list\n",
        "currency: [unclosed\n",
    ])
    def test_malformed_report(self, tmp_path, text):
        source = write(tmp_path, text)
        with pytest.raises(CredentialOrConfigError):
            asyncio.run(source.fetch_ad_spend(OCT))

    def test_missing_file(self, tmp_path):
        source = FileAdSpendSource(tmp_path / "nope.yaml")
        with pytest.raises(CredentialOrConfigError) as exc_info:
            asyncio.run(source.fetch_ad_spend(OCT))
        assert exc_info.value.component == "ad_spend"
