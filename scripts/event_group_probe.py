# flake8: noqa: E402
# uv run scripts/event_group_probe.py data/ledger.csv

from __future__ import annotations

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path
from typing import Iterable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import config
from domain.grouping import EventGrouper
from domain.normalizer import TransactionNormalizer
from domain.records import EventGroup, EventKind
from importers.csv_records import CsvRecordReader, lookup_wallet

DETAIL_LIMIT = 50
# Set to an EventKind to list only groups of that kind, e.g. EventKind.TRANSFER.
KIND_FILTER: EventKind | None = None


def print_group(group: EventGroup, normalizer: TransactionNormalizer) -> None:
    fiat = group.fiat_asset or "-"
    print(f"- key={group.key} kind={group.kind} fiat={fiat} consideration={group.consideration} fee={group.fee}")
    for record in group.records:
        print(
            f"    {record.timestamp.isoformat()} | type={record.type:<10} subtype={record.subtype:<15} "
            f"asset={record.asset:<8} wallet={record.wallet or '':<20} amount={record.quantity} fee={record.fee}"
        )
    for tx in normalizer.normalize_group(group):
        source_wallet = f" from={tx.source_wallet_id}" if tx.source_wallet_id else ""
        print(
            f"    => {tx.type:<8} {tx.quantity} {tx.commodity} wallet={tx.wallet_id}{source_wallet} "
            f"consideration={tx.consideration} fee={tx.fee}"
        )
    print()


def summarize(path: Path, default_wallets: list[str]) -> None:
    settings = config()
    records = CsvRecordReader(path).load_records()
    groups = EventGrouper(fiat_currencies=settings.fiat_currencies).group(records)
    normalizer = TransactionNormalizer(wallet_lookup=lookup_wallet, default_wallets=default_wallets)

    print(f"Records: {len(records)}")
    print(f"Event groups: {len(groups)}")
    kind_counts = Counter(group.kind for group in groups)
    for kind, count in sorted(kind_counts.items()):
        print(f"  {kind:<10} {count}")
    fiat_only = sum(1 for group in groups if not group.commodity_legs)
    print(f"Fiat-only groups: {fiat_only}")

    display = [group for group in groups if KIND_FILTER is None or group.kind == KIND_FILTER]
    print(f"\nFirst {min(len(display), DETAIL_LIMIT)} groups (of {len(display)}):")
    for group in display[:DETAIL_LIMIT]:
        print_group(group, normalizer)


def main(argv: Iterable[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Group a CSV export into events and show how each is normalized.")
    parser.add_argument("path", type=Path, help="Path to a CSV export")
    parser.add_argument("--wallet", action="append", default=[], help="default wallet for rows without one")
    args = parser.parse_args(argv)
    summarize(args.path, args.wallet)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, handlers=[logging.StreamHandler()])
    main()
