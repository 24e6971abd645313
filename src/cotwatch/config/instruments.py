"""Instrument registry: the fixed universe of instruments tracked from COT reports.

Each instrument has a stable internal code, the CFTC contract market code it
is published under, the display name used to recognise it in the report's
free-text market column, and a category. The registry is an immutable object
built once at process start and passed explicitly to every component that
needs it (mapper, pipeline, aggregator, CLI).

Matching order is significant: the mapper walks the registry in table order
and the first display name contained in a report row's market name wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class Category(str, Enum):
    """Instrument categories."""

    CURRENCY = "currency"
    COMMODITY = "commodity"
    GRAIN = "grain"
    INDEX = "index"


@dataclass(frozen=True)
class Instrument:
    """Immutable definition of a single tracked instrument.

    Attributes
    ----------
    code : str
        Internal symbol used throughout the system (e.g., "EURUSD").
    source_id : str
        CFTC contract market code (zero-padded string, e.g., "099741").
    display_name : str
        Human-readable name, matched case-insensitively against the report's
        market-and-exchange name column.
    category : Category
        Instrument category.
    """

    code: str
    source_id: str
    display_name: str
    category: Category

    def matches(self, market_name: str) -> bool:
        """True if ``display_name`` occurs in ``market_name`` (case-insensitive)."""
        return self.display_name.casefold() in market_name.casefold()


INSTRUMENTS: tuple[Instrument, ...] = (
    # Currencies
    Instrument("EURUSD", "099741", "Euro FX", Category.CURRENCY),
    Instrument("GBPUSD", "096742", "British Pound", Category.CURRENCY),
    Instrument("USDJPY", "097741", "Japanese Yen", Category.CURRENCY),
    Instrument("AUDUSD", "232741", "Australian Dollar", Category.CURRENCY),
    Instrument("USDCAD", "090741", "Canadian Dollar", Category.CURRENCY),
    Instrument("USDCHF", "092741", "Swiss Franc", Category.CURRENCY),
    Instrument("NZDUSD", "112741", "New Zealand Dollar", Category.CURRENCY),
    # Commodities
    Instrument("GC", "088691", "Gold", Category.COMMODITY),
    Instrument("SI", "084691", "Silver", Category.COMMODITY),
    Instrument("CL", "067651", "Crude Oil, Light Sweet", Category.COMMODITY),
    Instrument("NG", "023651", "Natural Gas", Category.COMMODITY),
    Instrument("HG", "085692", "Copper", Category.COMMODITY),
    # Grains (soybean products before "Soybeans")
    Instrument("ZL", "007601", "Soybean Oil", Category.GRAIN),
    Instrument("ZM", "026603", "Soybean Meal", Category.GRAIN),
    Instrument("ZS", "005602", "Soybeans", Category.GRAIN),
    Instrument("ZW", "001612", "Wheat", Category.GRAIN),
    Instrument("ZC", "002602", "Corn", Category.GRAIN),
    # Indices
    Instrument("ES", "138741", "E-mini S&P 500", Category.INDEX),
    Instrument("NQ", "209742", "E-mini Nasdaq 100", Category.INDEX),
    Instrument("YM", "124603", "E-mini Dow Jones", Category.INDEX),
    Instrument("VIX", "1170E1", "VIX", Category.INDEX),
)


class InstrumentRegistry:
    """Ordered, immutable collection of instruments.

    Parameters
    ----------
    instruments : iterable of Instrument
        Instruments in matching order. Codes must be unique.
    """

    def __init__(self, instruments) -> None:
        ordered = tuple(instruments)
        codes = [i.code for i in ordered]
        duplicates = sorted({c for c in codes if codes.count(c) > 1})
        if duplicates:
            raise ValueError(f"Duplicate instrument codes: {duplicates}")
        self._instruments = ordered
        self._by_code = {i.code: i for i in ordered}

    def __iter__(self) -> Iterator[Instrument]:
        return iter(self._instruments)

    def __len__(self) -> int:
        return len(self._instruments)

    def __contains__(self, code: object) -> bool:
        return code in self._by_code

    @property
    def codes(self) -> list[str]:
        return [i.code for i in self._instruments]

    def get(self, code: str) -> Instrument | None:
        """Look up an instrument by code (exact match), or None."""
        return self._by_code.get(code)

    def require(self, code: str) -> Instrument:
        """Look up an instrument by code, raising ``KeyError`` if unknown."""
        try:
            return self._by_code[code]
        except KeyError:
            raise KeyError(f"Unknown instrument code: {code!r}") from None

    def match(self, market_name: str) -> Instrument | None:
        """Return the first instrument whose display name occurs in ``market_name``.

        Parameters
        ----------
        market_name : str
            Free-text market/exchange name from a report row.

        Returns
        -------
        Instrument | None
            First match in registry order, or None when nothing matches.
        """
        for instrument in self._instruments:
            if instrument.matches(market_name):
                return instrument
        return None

    def by_category(self, category: Category | str) -> list[Instrument]:
        """Return instruments of one category, in registry order."""
        category = Category(category)
        return [i for i in self._instruments if i.category == category]


def default_registry() -> InstrumentRegistry:
    """Build the registry from the static ``INSTRUMENTS`` table."""
    return InstrumentRegistry(INSTRUMENTS)
