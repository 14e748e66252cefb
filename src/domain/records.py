from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class RawRecord(BaseModel):
    """Typed view of one input row.

    The ingestion layer resolves column names and coerces values; the core only
    reads the typed attributes. ``fields`` keeps the original lower-cased row.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    index: int
    timestamp: datetime
    asset: str
    quantity: Decimal
    fee: Decimal = Decimal("0")
    cost: Decimal = Decimal("0")
    type: str = ""
    subtype: str = ""
    wallet: str | None = None
    reference_id: str | None = None
    fields: dict[str, str] = Field(default_factory=dict)

    @property
    def correlation_key(self) -> str:
        if self.reference_id and self.reference_id.strip():
            return self.reference_id.strip()
        return f"ridx-{self.index}"


class EventKind(StrEnum):
    TRADE = "TRADE"
    INCOME = "INCOME"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class EventGroup:
    """Records of one source sharing a correlation key, with settlement totals.

    ``consideration`` and ``fee`` are summed over fiat legs; ``denominator`` is
    the absolute quantity summed over non-fiat legs and drives proportional
    allocation.
    """

    key: str
    source: str
    kind: EventKind
    records: tuple[RawRecord, ...]
    fiat_legs: tuple[RawRecord, ...]
    commodity_legs: tuple[RawRecord, ...]
    fiat_asset: str | None
    consideration: Decimal
    fee: Decimal
    denominator: Decimal

    @property
    def has_fiat_settlement(self) -> bool:
        return self.fiat_asset is not None and self.denominator != 0
