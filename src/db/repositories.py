from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session

from db import models
from domain.gains import GainFilter, GainKey, GainRecord
from domain.ledger import (
    CommodityId,
    DisposalId,
    DisposalSlice,
    HoldingTerm,
    NormalizedTransaction,
    OpenLotSnapshot,
    TransactionType,
    WalletId,
)


def _as_utc(timestamp: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp


class NormalizedTransactionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, transactions: list[NormalizedTransaction]) -> list[NormalizedTransaction]:
        orm_transactions = [
            models.NormalizedTransactionOrm(
                position=position,
                wallet_id=tx.wallet_id,
                commodity=tx.commodity,
                timestamp=tx.timestamp,
                type=tx.type.value,
                quantity=tx.quantity,
                consideration=tx.consideration,
                fee=tx.fee,
                correlation_id=tx.correlation_id,
                source=tx.source,
                source_wallet_id=tx.source_wallet_id,
            )
            for position, tx in enumerate(transactions)
        ]
        self._session.add_all(orm_transactions)
        self._session.commit()
        return transactions

    def list(self) -> list[NormalizedTransaction]:
        orm_transactions = (
            self._session.query(models.NormalizedTransactionOrm)
            .order_by(models.NormalizedTransactionOrm.position.asc())
            .all()
        )
        return [
            NormalizedTransaction(
                wallet_id=WalletId(tx.wallet_id),
                commodity=CommodityId(tx.commodity),
                timestamp=_as_utc(tx.timestamp),
                type=TransactionType(tx.type),
                quantity=tx.quantity,
                consideration=tx.consideration,
                fee=tx.fee,
                correlation_id=tx.correlation_id,
                source=tx.source,
                source_wallet_id=WalletId(tx.source_wallet_id) if tx.source_wallet_id is not None else None,
            )
            for tx in orm_transactions
        ]


class DisposalSliceRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, disposals: list[DisposalSlice]) -> list[DisposalSlice]:
        orm_disposals = [
            models.DisposalSliceOrm(
                id=disposal.id,
                wallet_id=disposal.wallet_id,
                commodity=disposal.commodity,
                disposed_timestamp=disposal.disposed_timestamp,
                acquired_timestamp=disposal.acquired_timestamp,
                quantity_used=disposal.quantity_used,
                cost_basis=disposal.cost_basis,
                proceeds=disposal.proceeds,
                term=disposal.term.value,
                correlation_id=disposal.correlation_id,
            )
            for disposal in disposals
        ]
        self._session.add_all(orm_disposals)
        self._session.commit()
        return disposals

    def list(self) -> list[DisposalSlice]:
        orm_disposals = (
            self._session.query(models.DisposalSliceOrm)
            .order_by(models.DisposalSliceOrm.disposed_timestamp.asc())
            .all()
        )
        return [
            DisposalSlice(
                id=DisposalId(disposal.id),
                wallet_id=WalletId(disposal.wallet_id),
                commodity=CommodityId(disposal.commodity),
                disposed_timestamp=_as_utc(disposal.disposed_timestamp),
                acquired_timestamp=_as_utc(disposal.acquired_timestamp),
                quantity_used=disposal.quantity_used,
                cost_basis=disposal.cost_basis,
                proceeds=disposal.proceeds,
                term=HoldingTerm(disposal.term),
                correlation_id=disposal.correlation_id,
            )
            for disposal in orm_disposals
        ]


class OpenLotRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, lots: list[OpenLotSnapshot]) -> list[OpenLotSnapshot]:
        orm_lots = [
            models.OpenLotOrm(
                wallet_id=lot.wallet_id,
                commodity=lot.commodity,
                acquired_timestamp=lot.acquired_timestamp,
                quantity=lot.quantity,
                unit_cost=lot.unit_cost,
            )
            for lot in lots
        ]
        self._session.add_all(orm_lots)
        self._session.commit()
        return lots

    def list(self) -> list[OpenLotSnapshot]:
        orm_lots = self._session.query(models.OpenLotOrm).order_by(models.OpenLotOrm.id.asc()).all()
        return [
            OpenLotSnapshot(
                wallet_id=WalletId(lot.wallet_id),
                commodity=CommodityId(lot.commodity),
                acquired_timestamp=_as_utc(lot.acquired_timestamp),
                quantity=lot.quantity,
                unit_cost=lot.unit_cost,
            )
            for lot in orm_lots
        ]


class GainRecordRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, records: list[tuple[GainKey, GainRecord]]) -> list[tuple[GainKey, GainRecord]]:
        orm_records = [
            models.GainRecordOrm(
                year=key.year,
                wallet_id=key.wallet_id,
                commodity=key.commodity,
                short_term=record.short_term,
                long_term=record.long_term,
                income=record.income,
            )
            for key, record in records
        ]
        self._session.add_all(orm_records)
        self._session.commit()
        return records

    def list(self, gain_filter: GainFilter | None = None) -> list[tuple[GainKey, GainRecord]]:
        gain_filter = gain_filter or GainFilter()
        orm_records = (
            self._session.query(models.GainRecordOrm)
            .order_by(
                models.GainRecordOrm.year.asc(),
                models.GainRecordOrm.wallet_id.asc(),
                models.GainRecordOrm.commodity.asc(),
            )
            .all()
        )
        persisted: list[tuple[GainKey, GainRecord]] = []
        for orm_record in orm_records:
            key = GainKey(orm_record.year, orm_record.wallet_id, orm_record.commodity)
            if not gain_filter.matches(key):
                continue
            persisted.append(
                (
                    key,
                    GainRecord(
                        short_term=orm_record.short_term,
                        long_term=orm_record.long_term,
                        income=orm_record.income,
                    ),
                )
            )
        return persisted
