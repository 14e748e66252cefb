from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Sequence

from .records import EventGroup, EventKind, RawRecord

logger = logging.getLogger(__name__)

DEFAULT_FIAT_CURRENCIES = frozenset({"EUR", "USD", "GBP", "CHF", "CAD", "AUD", "JPY"})

INCOME_MARKERS = ("earn", "reward", "staking")
ALLOCATION_MARKERS = ("allocation", "autoallocation")
# Exact row types that mean income in generic exports.
INCOME_TYPES = frozenset({"income", "deposit"})


def classify_records(records: Sequence[RawRecord]) -> EventKind:
    """Derive the economic nature of a group from its type/subtype fields.

    Income markers win over allocation markers, so a Kraken ``earn`` row with
    an ``autoallocation`` subtype is income, not a basis-preserving transfer.
    Explicit ``income``/``deposit`` row types count only when no allocation
    subtype is present.
    """
    for record in records:
        if _has_marker(record.type, INCOME_MARKERS) or _has_marker(record.subtype, INCOME_MARKERS):
            return EventKind.INCOME
    if any(_has_marker(record.subtype, ALLOCATION_MARKERS) for record in records):
        return EventKind.TRANSFER
    if any(record.type.strip().lower() in INCOME_TYPES for record in records):
        return EventKind.INCOME
    return EventKind.TRADE


def _has_marker(value: str, markers: tuple[str, ...]) -> bool:
    lowered = value.lower()
    return any(marker in lowered for marker in markers)


class EventGrouper:
    """Partition raw records into correlated, classified event groups."""

    def __init__(self, *, fiat_currencies: Iterable[str] = DEFAULT_FIAT_CURRENCIES) -> None:
        self._fiat_currencies = frozenset(code.strip().upper() for code in fiat_currencies if code.strip())

    def is_fiat(self, asset: str) -> bool:
        code = asset.strip().upper()
        if not code:
            return False
        return code in self._fiat_currencies

    def group(self, records: Iterable[RawRecord]) -> list[EventGroup]:
        """Group records by (source, correlation key), keeping first-appearance order."""
        grouped: dict[tuple[str, str], list[RawRecord]] = defaultdict(list)
        for record in records:
            grouped[(record.source, record.correlation_key)].append(record)

        groups = [self._build_group(key, source, members) for (source, key), members in grouped.items()]
        logger.debug("Grouped records into %d events", len(groups))
        return groups

    def _build_group(self, key: str, source: str, records: list[RawRecord]) -> EventGroup:
        if not records:
            raise ValueError(f"Empty record group cannot be classified (key={key})")

        fiat_legs = tuple(record for record in records if self.is_fiat(record.asset))
        commodity_legs = tuple(record for record in records if not self.is_fiat(record.asset))

        consideration = sum((abs(leg.quantity) for leg in fiat_legs), start=Decimal(0))
        fee = sum((abs(leg.fee) for leg in fiat_legs), start=Decimal(0))
        denominator = sum((abs(leg.quantity) for leg in commodity_legs), start=Decimal(0))

        return EventGroup(
            key=key,
            source=source,
            kind=classify_records(records),
            records=tuple(records),
            fiat_legs=fiat_legs,
            commodity_legs=commodity_legs,
            fiat_asset=fiat_legs[0].asset.strip().upper() if fiat_legs else None,
            consideration=consideration,
            fee=fee,
            denominator=denominator,
        )
