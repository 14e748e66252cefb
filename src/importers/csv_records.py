from __future__ import annotations

import csv
import logging
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from pathlib import Path
from typing import Sequence

from pydantic import BaseModel, ValidationError, field_validator

from domain.records import RawRecord

from .parsing import first_non_empty, parse_decimal, parse_timestamp

logger = logging.getLogger(__name__)

ASSET_ALIASES = {
    "XXBT": "BTC",
    "XBT": "BTC",
    "XETH": "ETH",
    "ZEUR": "EUR",
    "ZUSD": "USD",
    "ZGBP": "GBP",
    "ZCAD": "CAD",
    "ZJPY": "JPY",
    "DOT28.S": "DOT",
    "DOT.S": "DOT",
    "KAVA21.S": "KAVA",
    "KAVA.S": "KAVA",
    "USDC.M": "USDC",
    "ETH2": "ETH",
    "ETH2.S": "ETH",
}


class RecordFormat(StrEnum):
    KRAKEN = "kraken"
    GENERIC = "generic"


_TIME_COLUMNS = ("time", "date", "datetime")

# Candidate columns per typed field, first non-empty wins.
COLUMN_CANDIDATES: dict[RecordFormat, dict[str, tuple[str, ...]]] = {
    RecordFormat.KRAKEN: {
        "time": _TIME_COLUMNS,
        "type": ("type", "tx_type"),
        "subtype": ("subtype",),
        "asset": ("asset", "pair", "symbol"),
        "quantity": ("vol", "amount", "qty"),
        "fee": ("fee",),
        "cost": ("cost", "value"),
        "price": ("price",),
        "wallet": ("wallet", "account"),
        "reference_id": ("refid", "txid"),
    },
    RecordFormat.GENERIC: {
        "time": _TIME_COLUMNS,
        "type": ("type", "tx_type", "category"),
        "subtype": ("subtype",),
        "asset": ("asset", "symbol", "commodity", "pair"),
        "quantity": ("amount", "qty", "vol"),
        "fee": ("fee",),
        "cost": ("cost", "value", "proceeds"),
        "price": ("price",),
        "wallet": ("wallet", "account"),
        "reference_id": ("id", "txid", "refid"),
    },
}


class RecordImportError(Exception):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Cannot import {path}: {reason}")
        self.path = path
        self.reason = reason


class CsvRow(BaseModel):
    time: datetime
    asset: str
    quantity: Decimal
    fee: Decimal = Decimal("0")
    cost: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    type: str = ""
    subtype: str = ""
    wallet: str | None = None
    reference_id: str | None = None

    @field_validator("time", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: str | datetime) -> datetime:
        return parse_timestamp(value)

    @field_validator("quantity", "fee", "cost", "price", mode="before")
    @classmethod
    def _parse_decimal(cls, value: str | Decimal) -> Decimal:
        if isinstance(value, Decimal):
            return value
        return parse_decimal(value)

    @field_validator("asset", mode="before")
    @classmethod
    def _normalize_asset(cls, value: str) -> str:
        code = normalize_asset(value)
        if not code:
            raise ValueError("missing asset")
        return code

    @field_validator("type", "subtype", mode="before")
    @classmethod
    def _lower(cls, value: str | None) -> str:
        return (value or "").strip().lower()

    @field_validator("wallet", "reference_id", mode="before")
    @classmethod
    def _empty_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


def normalize_asset(asset: str) -> str:
    code = asset.strip().upper()
    return ASSET_ALIASES.get(code, code)


def detect_format(header: Sequence[str]) -> RecordFormat:
    columns = set(header)
    if {"txid", "time", "type"} <= columns:
        return RecordFormat.KRAKEN
    return RecordFormat.GENERIC


def lookup_wallet(record: RawRecord, default_wallets: Sequence[str], source: str) -> str:
    """Explicit wallet column, else the first caller default, else the source tag."""
    if record.wallet:
        return record.wallet
    if default_wallets and default_wallets[0].strip():
        return default_wallets[0].strip()
    return source


class CsvRecordReader:
    def __init__(self, source_path: str | Path) -> None:
        self._source_path = Path(source_path)

    @property
    def source(self) -> str:
        return self._source_path.name

    def load_records(self) -> list[RawRecord]:
        header, rows = self._read_rows()
        record_format = detect_format(header)
        records: list[RawRecord] = []
        for index, row in enumerate(rows):
            record = self._to_record(row, index, record_format)
            if record is not None:
                records.append(record)

        logger.info(
            "Loaded %d of %d rows from %s (format=%s)",
            len(records),
            len(rows),
            self._source_path,
            record_format,
        )
        return records

    def _read_rows(self) -> tuple[list[str], list[dict[str, str]]]:
        try:
            handle = self._source_path.open(encoding="utf-8-sig", newline="")
        except OSError as err:
            raise RecordImportError(self._source_path, str(err)) from err

        with handle:
            reader = csv.reader(handle)
            header_row = next(reader, None)
            if header_row is None:
                raise RecordImportError(self._source_path, "file is empty or missing headers")
            header = [column.strip().lower() for column in header_row]

            rows: list[dict[str, str]] = []
            for raw_row in reader:
                if not any(cell.strip() for cell in raw_row):
                    continue
                rows.append({column: raw_row[idx] if idx < len(raw_row) else "" for idx, column in enumerate(header)})
        return header, rows

    def _to_record(self, row: dict[str, str], index: int, record_format: RecordFormat) -> RawRecord | None:
        values = {
            name: first_non_empty(row, *candidates) for name, candidates in COLUMN_CANDIDATES[record_format].items()
        }
        try:
            parsed = CsvRow.model_validate(values)
        except ValidationError as err:
            logger.debug("Skipping row %d of %s: %s", index, self._source_path.name, err)
            return None

        cost = parsed.cost
        if cost == 0 and parsed.price != 0:
            cost = parsed.price * abs(parsed.quantity)

        return RawRecord(
            source=self.source,
            index=index,
            timestamp=parsed.time,
            asset=parsed.asset,
            quantity=parsed.quantity,
            fee=parsed.fee,
            cost=cost,
            type=parsed.type,
            subtype=parsed.subtype,
            wallet=parsed.wallet,
            reference_id=parsed.reference_id,
            fields=row,
        )
