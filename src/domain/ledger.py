from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import NewType
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

WalletId = NewType("WalletId", str)
CommodityId = NewType("CommodityId", str)
DisposalId = NewType("DisposalId", UUID)


class TransactionType(StrEnum):
    BUY = "BUY"
    SELL = "SELL"
    INCOME = "INCOME"
    TRANSFER = "TRANSFER"
    CONVERT = "CONVERT"


class HoldingTerm(StrEnum):
    SHORT = "SHORT"
    LONG = "LONG"


class NormalizedTransaction(BaseModel):
    """One asset movement ready for the FIFO ledger.

    Quantity sign convention:
    - Positive quantity indicates an asset/position increase.
    - Negative quantity indicates an asset/position decrease.

    ``consideration`` is the sign-agnostic total value exchanged (zero when
    unknown); ``fee`` is always non-negative.
    """

    model_config = ConfigDict(frozen=True)

    wallet_id: WalletId
    commodity: CommodityId
    timestamp: datetime
    type: TransactionType
    quantity: Decimal
    consideration: Decimal = Decimal("0")
    fee: Decimal = Decimal("0")
    correlation_id: str
    source: str
    source_wallet_id: WalletId | None = None

    @model_validator(mode="after")
    def _validate_fields(self) -> NormalizedTransaction:
        # Zero-quantity movements never reach the ledger.
        if self.quantity == 0:
            raise ValueError("NormalizedTransaction.quantity must be non-zero")
        if self.fee < 0:
            raise ValueError("NormalizedTransaction.fee must be >= 0")
        if self.source_wallet_id is not None and self.type != TransactionType.TRANSFER:
            raise ValueError("source_wallet_id is only valid for TRANSFER transactions")
        return self

    @property
    def unit_consideration(self) -> Decimal:
        """Per-unit value for display; FIFO math uses ``consideration``."""
        return abs(self.consideration) / abs(self.quantity)


@dataclass
class Lot:
    acquired_timestamp: datetime
    quantity: Decimal
    unit_cost: Decimal
    sources: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError(f"Lot.quantity must be > 0, got {self.quantity}")

    @property
    def total_cost(self) -> Decimal:
        return self.quantity * self.unit_cost


class OpenLotSnapshot(BaseModel):
    wallet_id: WalletId
    commodity: CommodityId
    acquired_timestamp: datetime
    quantity: Decimal
    unit_cost: Decimal

    @property
    def total_cost(self) -> Decimal:
        return self.quantity * self.unit_cost


class DisposalSlice(BaseModel):
    """Portion of a sale matched against a single lot."""

    id: DisposalId = DisposalId(Field(default_factory=uuid4))
    wallet_id: WalletId
    commodity: CommodityId
    disposed_timestamp: datetime
    acquired_timestamp: datetime
    quantity_used: Decimal
    cost_basis: Decimal
    proceeds: Decimal
    term: HoldingTerm
    correlation_id: str = ""

    @model_validator(mode="after")
    def _validate(self) -> DisposalSlice:
        if self.quantity_used <= 0:
            raise ValueError("quantity_used must be > 0")
        return self

    @property
    def gain(self) -> Decimal:
        return self.proceeds - self.cost_basis
