from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, NamedTuple


def normalize_filter_values(values: Iterable[str] | None) -> frozenset[str]:
    """Trim and lower-case filter values; empty entries are ignored."""
    if values is None:
        return frozenset()
    return frozenset(value.strip().lower() for value in values if value.strip())


class GainKey(NamedTuple):
    year: int
    wallet_id: str
    commodity: str


@dataclass
class GainRecord:
    short_term: Decimal = Decimal("0")
    long_term: Decimal = Decimal("0")
    income: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.short_term + self.long_term + self.income


@dataclass(frozen=True)
class GainFilter:
    """Read-time projection over gain buckets.

    Empty wallet/commodity sets match everything; membership is exact after
    trimming and lower-casing.
    """

    year: int | None = None
    wallets: frozenset[str] = frozenset()
    commodities: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        *,
        year: int | None = None,
        wallets: Iterable[str] | None = None,
        commodities: Iterable[str] | None = None,
    ) -> GainFilter:
        return cls(
            year=year or None,
            wallets=normalize_filter_values(wallets),
            commodities=normalize_filter_values(commodities),
        )

    def matches(self, key: GainKey) -> bool:
        if self.year is not None and key.year != self.year:
            return False
        if self.wallets and key.wallet_id.strip().lower() not in self.wallets:
            return False
        if self.commodities and key.commodity.strip().lower() not in self.commodities:
            return False
        return True


class GainAccumulator:
    """Additive buckets of realized gains and income per (year, wallet, commodity)."""

    def __init__(self) -> None:
        self._records: dict[GainKey, GainRecord] = {}

    def add_short(self, year: int, wallet_id: str, commodity: str, amount: Decimal) -> None:
        self._slot(year, wallet_id, commodity).short_term += amount

    def add_long(self, year: int, wallet_id: str, commodity: str, amount: Decimal) -> None:
        self._slot(year, wallet_id, commodity).long_term += amount

    def add_income(self, year: int, wallet_id: str, commodity: str, amount: Decimal) -> None:
        self._slot(year, wallet_id, commodity).income += amount

    def get(self, year: int, wallet_id: str, commodity: str) -> GainRecord | None:
        record = self._records.get(GainKey(year, wallet_id, commodity))
        if record is None:
            return None
        return replace(record)

    def records(self, gain_filter: GainFilter | None = None) -> list[tuple[GainKey, GainRecord]]:
        gain_filter = gain_filter or GainFilter()
        return [
            (key, replace(record))
            for key, record in sorted(self._records.items(), key=lambda item: item[0])
            if gain_filter.matches(key)
        ]

    def totals(self, gain_filter: GainFilter | None = None) -> GainRecord:
        total = GainRecord()
        for _, record in self.records(gain_filter):
            total.short_term += record.short_term
            total.long_term += record.long_term
            total.income += record.income
        return total

    def years(self) -> list[int]:
        return sorted({key.year for key in self._records})

    def __len__(self) -> int:
        return len(self._records)

    def _slot(self, year: int, wallet_id: str, commodity: str) -> GainRecord:
        key = GainKey(year, wallet_id, commodity)
        record = self._records.get(key)
        if record is None:
            record = GainRecord()
            self._records[key] = record
        return record
