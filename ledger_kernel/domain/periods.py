"""
Periods -- the month+year key that scopes every allocation and P&L run.

Responsibility:
    Parses, validates and formats period keys of the form
    ``"<MonthName> <Year>"`` using Romanian month names, e.g.
    ``"Octombrie 2025"``.  The text form is the primary external identifier
    of a processing period.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Invariants enforced:
    - Parsing is strict: unknown month names, extra tokens and non-numeric
      years are rejected with InvalidPeriodKeyError.
    - Keys order chronologically; "prior period" means strictly earlier.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import Iterator

from ledger_kernel.exceptions import InvalidPeriodKeyError

MONTH_NAMES: tuple[str, ...] = (
    "Ianuarie",
    "Februarie",
    "Martie",
    "Aprilie",
    "Mai",
    "Iunie",
    "Iulie",
    "August",
    "Septembrie",
    "Octombrie",
    "Noiembrie",
    "Decembrie",
)

_MONTH_INDEX: dict[str, int] = {name: i + 1 for i, name in enumerate(MONTH_NAMES)}
_YEAR_RE = re.compile(r"^\d{4}$")


@total_ordering
@dataclass(frozen=True, slots=True)
class PeriodKey:
    """
    One calendar month.

    Contract:
        ``month`` is 1..12 and ``year`` is a four-digit year.

    Guarantees:
        - Hashable and totally ordered by (year, month).
        - ``PeriodKey.parse(key.label) == key`` for every valid key.
    """

    month: int
    year: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise InvalidPeriodKeyError(f"{self.month}/{self.year}", "month out of range")
        if not 1000 <= self.year <= 9999:
            raise InvalidPeriodKeyError(f"{self.month}/{self.year}", "year must have four digits")

    @classmethod
    def parse(cls, text: str) -> PeriodKey:
        """Parse ``"Octombrie 2025"``; raises InvalidPeriodKeyError otherwise."""
        if not isinstance(text, str):
            raise InvalidPeriodKeyError(repr(text), "period key must be a string")
        parts = text.split()
        if len(parts) != 2:
            raise InvalidPeriodKeyError(text, "expected '<MonthName> <Year>'")
        month_name, year_text = parts
        month = _MONTH_INDEX.get(month_name)
        if month is None:
            raise InvalidPeriodKeyError(text, f"unknown month name {month_name!r}")
        if not _YEAR_RE.match(year_text):
            raise InvalidPeriodKeyError(text, f"invalid year {year_text!r}")
        return cls(month=month, year=int(year_text))

    @property
    def month_name(self) -> str:
        return MONTH_NAMES[self.month - 1]

    @property
    def label(self) -> str:
        return f"{self.month_name} {self.year}"

    @property
    def slug(self) -> str:
        """Whitespace-free form used inside natural keys."""
        return f"{self.month_name}_{self.year}"

    def next(self) -> PeriodKey:
        if self.month == 12:
            return PeriodKey(1, self.year + 1)
        return PeriodKey(self.month + 1, self.year)

    @staticmethod
    def range(start: PeriodKey, end: PeriodKey) -> Iterator[PeriodKey]:
        """Inclusive chronological sequence from ``start`` to ``end``."""
        current = start
        while current <= end:
            yield current
            current = current.next()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PeriodKey):
            return NotImplemented
        return (self.year, self.month) < (other.year, other.month)

    def __str__(self) -> str:
        return self.label
