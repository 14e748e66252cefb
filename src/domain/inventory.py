from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import StrEnum
from typing import Iterable, NamedTuple

from pydantic import BaseModel

from .gains import GainAccumulator
from .ledger import (
    CommodityId,
    DisposalSlice,
    HoldingTerm,
    Lot,
    NormalizedTransaction,
    OpenLotSnapshot,
    TransactionType,
    WalletId,
)

logger = logging.getLogger(__name__)

DEFAULT_LONG_TERM_DAYS = 365
DEFAULT_LOT_EPSILON = Decimal("1e-12")
DEFAULT_SHORTFALL_EPSILON = Decimal("1e-9")


class WarningKind(StrEnum):
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    INCOMPLETE_TRANSFER = "INCOMPLETE_TRANSFER"


class LedgerWarning(BaseModel):
    kind: WarningKind
    wallet_id: str
    commodity: str
    requested: Decimal
    matched: Decimal
    timestamp: datetime
    correlation_id: str = ""
    message: str = ""

    @property
    def shortfall(self) -> Decimal:
        return self.requested - self.matched


class LedgerResult(BaseModel):
    open_inventory: list[OpenLotSnapshot]
    disposals: list[DisposalSlice]
    warnings: list[LedgerWarning]


class BucketKey(NamedTuple):
    wallet_id: str
    commodity: str


@dataclass(frozen=True)
class _ConsumedSlice:
    acquired_timestamp: datetime
    unit_cost: Decimal
    quantity: Decimal
    sources: tuple[str, ...]


@dataclass
class LedgerBucket:
    """Open lots of one (wallet, commodity), oldest acquisition first."""

    lots: deque[Lot] = field(default_factory=deque)

    @property
    def quantity(self) -> Decimal:
        return sum((lot.quantity for lot in self.lots), start=Decimal(0))

    def insert(self, lot: Lot) -> None:
        insert_at = None
        for idx, existing in enumerate(self.lots):
            if existing.acquired_timestamp > lot.acquired_timestamp:
                insert_at = idx
                break

        if insert_at is None:
            self.lots.append(lot)
        else:
            self.lots.insert(insert_at, lot)

    def consume(self, quantity: Decimal, *, epsilon: Decimal) -> list[_ConsumedSlice]:
        consumed: list[_ConsumedSlice] = []
        remaining = quantity
        while remaining > 0 and self.lots:
            lot = self.lots[0]
            take_quantity = min(remaining, lot.quantity)
            lot.quantity -= take_quantity
            remaining -= take_quantity
            if lot.quantity <= epsilon:
                self.lots.popleft()
            consumed.append(
                _ConsumedSlice(
                    acquired_timestamp=lot.acquired_timestamp,
                    unit_cost=lot.unit_cost,
                    quantity=take_quantity,
                    sources=lot.sources,
                )
            )
        return consumed


class FifoLedger:
    """Apply normalized transactions to per-(wallet, commodity) FIFO lots.

    Data-quality problems (overselling, transfers without a source) never raise;
    they are logged, recorded as warnings and processed as far as inventory allows.
    Caller must provide transactions in chronological order.
    """

    def __init__(
        self,
        *,
        accumulator: GainAccumulator | None = None,
        long_term_days: int = DEFAULT_LONG_TERM_DAYS,
        lot_epsilon: Decimal = DEFAULT_LOT_EPSILON,
        shortfall_epsilon: Decimal = DEFAULT_SHORTFALL_EPSILON,
    ) -> None:
        self._accumulator = accumulator if accumulator is not None else GainAccumulator()
        self._long_term = timedelta(days=long_term_days)
        self._lot_epsilon = lot_epsilon
        self._shortfall_epsilon = shortfall_epsilon
        self._buckets: dict[BucketKey, LedgerBucket] = {}
        self._disposals: list[DisposalSlice] = []
        self._warnings: list[LedgerWarning] = []

    @property
    def accumulator(self) -> GainAccumulator:
        return self._accumulator

    @property
    def disposals(self) -> list[DisposalSlice]:
        return list(self._disposals)

    @property
    def warnings(self) -> list[LedgerWarning]:
        return list(self._warnings)

    def process(self, transactions: Iterable[NormalizedTransaction]) -> LedgerResult:
        for tx in transactions:
            self.apply(tx)
        return LedgerResult(
            open_inventory=self.open_lots(),
            disposals=self.disposals,
            warnings=self.warnings,
        )

    def apply(self, tx: NormalizedTransaction) -> None:
        logger.debug(
            "Processing %s %s %s %s wallet=%s consideration=%s fee=%s src=%s ref=%s",
            tx.timestamp.isoformat(),
            tx.type,
            tx.quantity,
            tx.commodity,
            tx.wallet_id,
            tx.consideration,
            tx.fee,
            tx.source,
            tx.correlation_id,
        )
        match tx.type:
            case TransactionType.BUY | TransactionType.SELL | TransactionType.CONVERT:
                if tx.quantity > 0:
                    self.apply_buy(
                        wallet_id=tx.wallet_id,
                        commodity=tx.commodity,
                        quantity=tx.quantity,
                        total_cost=tx.consideration,
                        fee=tx.fee,
                        timestamp=tx.timestamp,
                        source=tx.source,
                    )
                else:
                    self.apply_sell(
                        wallet_id=tx.wallet_id,
                        commodity=tx.commodity,
                        quantity=abs(tx.quantity),
                        total_proceeds=tx.consideration,
                        fee=tx.fee,
                        timestamp=tx.timestamp,
                        correlation_id=tx.correlation_id,
                    )
            case TransactionType.INCOME:
                self.apply_income(
                    wallet_id=tx.wallet_id,
                    commodity=tx.commodity,
                    quantity=abs(tx.quantity),
                    value=tx.consideration,
                    timestamp=tx.timestamp,
                    source=tx.source,
                )
            case TransactionType.TRANSFER:
                self.apply_transfer(
                    source_wallet_id=tx.source_wallet_id,
                    destination_wallet_id=tx.wallet_id,
                    commodity=tx.commodity,
                    quantity=abs(tx.quantity),
                    timestamp=tx.timestamp,
                    correlation_id=tx.correlation_id,
                )

    def apply_buy(
        self,
        *,
        wallet_id: str,
        commodity: str,
        quantity: Decimal,
        total_cost: Decimal,
        fee: Decimal,
        timestamp: datetime,
        source: str = "",
    ) -> None:
        _require_positive(quantity)
        unit_cost = (total_cost + fee) / quantity
        lot = Lot(acquired_timestamp=timestamp, quantity=quantity, unit_cost=unit_cost, sources=(source,))
        self._bucket(wallet_id, commodity).insert(lot)
        logger.debug(
            "BUY wallet=%s commodity=%s quantity=%s unit_cost=%s total=%s",
            wallet_id,
            commodity,
            quantity,
            unit_cost,
            lot.total_cost,
        )

    def apply_income(
        self,
        *,
        wallet_id: str,
        commodity: str,
        quantity: Decimal,
        value: Decimal,
        timestamp: datetime,
        source: str = "",
    ) -> None:
        _require_positive(quantity)
        unit_cost = value / quantity if value != 0 else Decimal("0")
        lot = Lot(acquired_timestamp=timestamp, quantity=quantity, unit_cost=unit_cost, sources=(source,))
        self._bucket(wallet_id, commodity).insert(lot)
        self._accumulator.add_income(timestamp.year, wallet_id, commodity, value)
        logger.debug(
            "INCOME wallet=%s commodity=%s quantity=%s value=%s year=%d",
            wallet_id,
            commodity,
            quantity,
            value,
            timestamp.year,
        )

    def apply_sell(
        self,
        *,
        wallet_id: str,
        commodity: str,
        quantity: Decimal,
        total_proceeds: Decimal,
        fee: Decimal,
        timestamp: datetime,
        correlation_id: str = "",
    ) -> None:
        _require_positive(quantity)
        net_proceeds = total_proceeds - fee
        logger.debug(
            "SELL wallet=%s commodity=%s quantity=%s proceeds=%s fee=%s",
            wallet_id,
            commodity,
            quantity,
            net_proceeds,
            fee,
        )

        consumed = self._bucket(wallet_id, commodity).consume(quantity, epsilon=self._lot_epsilon)
        matched = Decimal(0)
        for piece in consumed:
            cost_basis = piece.quantity * piece.unit_cost
            # Proceeds follow the sale's average price, not the lot's own price.
            proceeds = net_proceeds * piece.quantity / quantity
            gain = proceeds - cost_basis
            term = HoldingTerm.LONG if timestamp - piece.acquired_timestamp >= self._long_term else HoldingTerm.SHORT
            if term == HoldingTerm.LONG:
                self._accumulator.add_long(timestamp.year, wallet_id, commodity, gain)
            else:
                self._accumulator.add_short(timestamp.year, wallet_id, commodity, gain)

            self._disposals.append(
                DisposalSlice(
                    wallet_id=WalletId(wallet_id),
                    commodity=CommodityId(commodity),
                    disposed_timestamp=timestamp,
                    acquired_timestamp=piece.acquired_timestamp,
                    quantity_used=piece.quantity,
                    cost_basis=cost_basis,
                    proceeds=proceeds,
                    term=term,
                    correlation_id=correlation_id,
                )
            )
            matched += piece.quantity
            logger.debug(
                "  consumed lot acquired=%s use=%s unit_cost=%s cost=%s proceeds=%s gain=%s -> %s",
                piece.acquired_timestamp.date().isoformat(),
                piece.quantity,
                piece.unit_cost,
                cost_basis,
                proceeds,
                gain,
                term,
            )

        if quantity - matched > self._shortfall_epsilon:
            self._warn(
                WarningKind.INSUFFICIENT_INVENTORY,
                wallet_id=wallet_id,
                commodity=commodity,
                requested=quantity,
                matched=matched,
                timestamp=timestamp,
                correlation_id=correlation_id,
                message=(
                    f"Selling {quantity} {commodity} from wallet={wallet_id} but only {matched} available; "
                    f"proceeds for the remaining {quantity - matched} are not recognized"
                ),
            )

    def apply_transfer(
        self,
        *,
        source_wallet_id: str | None,
        destination_wallet_id: str,
        commodity: str,
        quantity: Decimal,
        timestamp: datetime,
        correlation_id: str = "",
    ) -> None:
        _require_positive(quantity)
        if source_wallet_id is None or not source_wallet_id.strip():
            self._warn(
                WarningKind.INCOMPLETE_TRANSFER,
                wallet_id=destination_wallet_id,
                commodity=commodity,
                requested=quantity,
                matched=Decimal(0),
                timestamp=timestamp,
                correlation_id=correlation_id,
                message=f"Transfer of {quantity} {commodity} to wallet={destination_wallet_id} has no source wallet",
            )
            return
        if source_wallet_id == destination_wallet_id:
            logger.debug("TRANSFER within wallet=%s commodity=%s ignored", source_wallet_id, commodity)
            return

        consumed = self._bucket(source_wallet_id, commodity).consume(quantity, epsilon=self._lot_epsilon)
        destination = self._bucket(destination_wallet_id, commodity)
        moved = Decimal(0)
        for piece in consumed:
            destination.insert(
                Lot(
                    acquired_timestamp=piece.acquired_timestamp,
                    quantity=piece.quantity,
                    unit_cost=piece.unit_cost,
                    sources=piece.sources,
                )
            )
            moved += piece.quantity

        logger.debug(
            "TRANSFER commodity=%s quantity=%s from=%s to=%s moved=%s",
            commodity,
            quantity,
            source_wallet_id,
            destination_wallet_id,
            moved,
        )
        if quantity - moved > self._shortfall_epsilon:
            self._warn(
                WarningKind.INCOMPLETE_TRANSFER,
                wallet_id=source_wallet_id,
                commodity=commodity,
                requested=quantity,
                matched=moved,
                timestamp=timestamp,
                correlation_id=correlation_id,
                message=(
                    f"Moved {moved} of requested {quantity} {commodity} "
                    f"from wallet={source_wallet_id} to wallet={destination_wallet_id}"
                ),
            )

    def holdings(self, wallet_id: str, commodity: str) -> Decimal:
        bucket = self._buckets.get(BucketKey(wallet_id, commodity))
        if bucket is None:
            return Decimal(0)
        return bucket.quantity

    def open_lots(self, wallet_id: str | None = None, commodity: str | None = None) -> list[OpenLotSnapshot]:
        snapshots = [
            OpenLotSnapshot(
                wallet_id=WalletId(key.wallet_id),
                commodity=CommodityId(key.commodity),
                acquired_timestamp=lot.acquired_timestamp,
                quantity=lot.quantity,
                unit_cost=lot.unit_cost,
            )
            for key, bucket in self._buckets.items()
            if (wallet_id is None or key.wallet_id == wallet_id) and (commodity is None or key.commodity == commodity)
            for lot in bucket.lots
        ]
        snapshots.sort(key=lambda snap: (snap.wallet_id, snap.commodity, snap.acquired_timestamp))
        return snapshots

    def _bucket(self, wallet_id: str, commodity: str) -> LedgerBucket:
        key = BucketKey(wallet_id, commodity)
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = LedgerBucket()
            self._buckets[key] = bucket
        return bucket

    def _warn(self, kind: WarningKind, *, message: str, **details: object) -> None:
        warning = LedgerWarning.model_validate({"kind": kind, "message": message, **details})
        self._warnings.append(warning)
        logger.warning("%s: %s", kind, message)


def _require_positive(quantity: Decimal) -> None:
    if quantity <= 0:
        raise ValueError(f"Ledger operations take a positive quantity, got {quantity}")
