"""Unit tests for PeriodKey parsing, formatting and ordering."""

import pytest

from ledger_kernel.domain.periods import PeriodKey
from ledger_kernel.exceptions import InvalidPeriodKeyError


class TestParse:
    def test_round_trip(self):
        key = PeriodKey.parse("Octombrie 2025")
        assert key == PeriodKey(10, 2025)
        assert key.label == "Octombrie 2025"
        assert str(key) == "Octombrie 2025"

    def test_slug_has_no_whitespace(self):
        assert PeriodKey(1, 2026).slug == "Ianuarie_2026"

    @pytest.mark.parametrize("text", [
        "October 2025",
        "Octombrie",
        "Octombrie 25",
        "Octombrie 2025 extra",
        "octombrie 2025",
        "",
    ])
    def test_rejects_malformed(self, text):
        with pytest.raises(InvalidPeriodKeyError):
            PeriodKey.parse(text)

    def test_rejects_non_string(self):
        with pytest.raises(InvalidPeriodKeyError):
            PeriodKey.parse(202510)

    def test_month_out_of_range(self):
        with pytest.raises(InvalidPeriodKeyError):
            PeriodKey(13, 2025)


class TestOrdering:
    def test_chronological(self):
        assert PeriodKey(12, 2024) < PeriodKey(1, 2025) < PeriodKey(2, 2025)

    def test_next_crosses_year(self):
        assert PeriodKey(12, 2025).next() == PeriodKey(1, 2026)

    def test_range_inclusive(self):
        keys = list(PeriodKey.range(PeriodKey(11, 2024), PeriodKey(2, 2025)))
        assert [k.label for k in keys] == [
            "Noiembrie 2024",
            "Decembrie 2024",
            "Ianuarie 2025",
            "Februarie 2025",
        ]

    def test_range_empty_when_reversed(self):
        assert list(PeriodKey.range(PeriodKey(3, 2025), PeriodKey(2, 2025))) == []

    def test_hashable(self):
        assert len({PeriodKey(10, 2025), PeriodKey.parse("Octombrie 2025")}) == 1
