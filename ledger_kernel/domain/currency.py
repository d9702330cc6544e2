"""Currency -- registry of the currencies the ledger handles and their precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantum(self) -> Decimal:
        """Smallest representable unit, for Decimal.quantize()."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of supported ISO 4217 currencies.

    Sales, commissions and fees are booked in RON; EUR appears only in
    tier thresholds and P&L display columns; USD is what ad accounts are
    most often misconfigured to.
    """

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "RON": CurrencyInfo("RON", 2, "Romanian Leu"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
    }

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return code in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        return cls._CURRENCIES.get(code)

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls._CURRENCIES.get(code)
        return info.decimal_places if info else 2

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
