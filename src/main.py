from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from config import AppSettings, config
from db.db import init_db
from db.repositories import (
    DisposalSliceRepository,
    GainRecordRepository,
    NormalizedTransactionRepository,
    OpenLotRepository,
)
from domain.gains import GainAccumulator, GainFilter
from domain.grouping import EventGrouper
from domain.inventory import FifoLedger, LedgerResult
from domain.ledger import NormalizedTransaction
from domain.normalizer import TransactionNormalizer, filter_transactions, merge_transactions
from importers.csv_records import CsvRecordReader, RecordImportError, lookup_wallet
from utils.gain_summary import compute_gain_summary, render_gain_summary, render_warning_summary
from utils.inventory_summary import compute_inventory_summary, render_inventory_summary

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    transactions: list[NormalizedTransaction]
    ledger_result: LedgerResult
    accumulator: GainAccumulator


def load_transactions(
    paths: Sequence[Path],
    *,
    grouper: EventGrouper,
    normalizer: TransactionNormalizer,
) -> list[NormalizedTransaction]:
    chunks: list[list[NormalizedTransaction]] = []
    for path in paths:
        records = CsvRecordReader(path).load_records()
        groups = grouper.group(records)
        transactions = normalizer.normalize(groups)
        logger.info("Parsed %d transactions from %d event groups in %s", len(transactions), len(groups), path)
        chunks.append(transactions)
    return merge_transactions(chunks)


def compute_gains(
    paths: Sequence[Path],
    *,
    settings: AppSettings,
    wallets: Sequence[str] = (),
    commodities: Sequence[str] = (),
) -> RunResult:
    grouper = EventGrouper(fiat_currencies=settings.fiat_currencies)
    normalizer = TransactionNormalizer(wallet_lookup=lookup_wallet, default_wallets=wallets)

    transactions = load_transactions(paths, grouper=grouper, normalizer=normalizer)
    transactions = filter_transactions(transactions, wallets=wallets, commodities=commodities)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Transactions matching filters:")
        for tx in transactions:
            logger.debug(
                "  %s  wallet=%s  type=%s  amt=%s %s  cost=%s fee=%s src=%s ref=%s",
                tx.timestamp.isoformat(),
                tx.wallet_id,
                tx.type,
                tx.quantity,
                tx.commodity,
                tx.consideration,
                tx.fee,
                tx.source,
                tx.correlation_id,
            )

    accumulator = GainAccumulator()
    ledger = FifoLedger(
        accumulator=accumulator,
        long_term_days=settings.long_term_days,
        lot_epsilon=settings.lot_epsilon,
        shortfall_epsilon=settings.shortfall_epsilon,
    )
    ledger_result = ledger.process(transactions)
    return RunResult(transactions=transactions, ledger_result=ledger_result, accumulator=accumulator)


def export_results(result: RunResult, db_file: Path) -> None:
    session = init_db(db_file=db_file, reset=True)
    try:
        NormalizedTransactionRepository(session).create_many(result.transactions)
        DisposalSliceRepository(session).create_many(result.ledger_result.disposals)
        OpenLotRepository(session).create_many(result.ledger_result.open_inventory)
        GainRecordRepository(session).create_many(result.accumulator.records())
    finally:
        session.close()
    logger.info("Exported results to %s", db_file)


def run(
    paths: Sequence[Path],
    *,
    settings: AppSettings,
    year: int | None = None,
    wallets: Sequence[str] = (),
    commodities: Sequence[str] = (),
    db_file: Path | None = None,
) -> RunResult:
    result = compute_gains(paths, settings=settings, wallets=wallets, commodities=commodities)
    if db_file is not None:
        export_results(result, db_file)

    gain_filter = GainFilter.build(year=year, wallets=wallets, commodities=commodities)
    render_gain_summary(compute_gain_summary(result.accumulator, gain_filter))
    render_inventory_summary(
        compute_inventory_summary(result.ledger_result.open_inventory, wallets=wallets, commodities=commodities)
    )
    render_warning_summary(result.ledger_result.warnings)
    return result


def _split_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute FIFO capital gains and income from exchange CSV exports.")
    parser.add_argument("files", nargs="+", type=Path, help="CSV files to process")
    parser.add_argument("--year", type=int, default=0, help="tax year to report (0 = all years)")
    parser.add_argument(
        "--wallet",
        default="",
        help="comma-separated wallets to include; also the default wallet for rows without one",
    )
    parser.add_argument("--commodity", default="", help="comma-separated commodity symbols to include, e.g. BTC,ETH")
    parser.add_argument("--db", type=Path, default=None, help="export results to this SQLite file")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose logging")
    args = parser.parse_args(argv)

    settings = config()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    wallets = _split_list(args.wallet) or list(settings.default_wallets)
    try:
        run(
            args.files,
            settings=settings,
            year=args.year or None,
            wallets=wallets,
            commodities=_split_list(args.commodity),
            db_file=args.db or settings.db_file,
        )
    except RecordImportError as err:
        logger.error("%s", err)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
