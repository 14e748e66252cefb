from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Integer, String, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class NormalizedTransactionOrm(Base):
    __tablename__ = "normalized_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    wallet_id: Mapped[str] = mapped_column(String, nullable=False)
    commodity: Mapped[str] = mapped_column(String, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    consideration: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    fee: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    correlation_id: Mapped[str] = mapped_column(String, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    source_wallet_id: Mapped[str | None] = mapped_column(String, nullable=True)


class DisposalSliceOrm(Base):
    __tablename__ = "disposal_slices"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    wallet_id: Mapped[str] = mapped_column(String, nullable=False)
    commodity: Mapped[str] = mapped_column(String, nullable=False)
    disposed_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    acquired_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    quantity_used: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    cost_basis: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    proceeds: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    term: Mapped[str] = mapped_column(String, nullable=False)
    correlation_id: Mapped[str] = mapped_column(String, nullable=False, default="")


class OpenLotOrm(Base):
    __tablename__ = "open_lots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    wallet_id: Mapped[str] = mapped_column(String, nullable=False)
    commodity: Mapped[str] = mapped_column(String, nullable=False)
    acquired_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)


class GainRecordOrm(Base):
    __tablename__ = "gain_records"

    year: Mapped[int] = mapped_column(Integer, primary_key=True)
    wallet_id: Mapped[str] = mapped_column(String, primary_key=True)
    commodity: Mapped[str] = mapped_column(String, primary_key=True)
    short_term: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    long_term: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    income: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
