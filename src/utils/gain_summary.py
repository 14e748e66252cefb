from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from domain.gains import GainAccumulator, GainFilter, GainKey, GainRecord
from domain.inventory import LedgerWarning

from .formatting import format_currency


@dataclass
class GainSummaryRow:
    year: int
    wallet_id: str
    commodity: str
    short_term: Decimal
    long_term: Decimal
    income: Decimal


def compute_gain_summary(accumulator: GainAccumulator, gain_filter: GainFilter | None = None) -> list[GainSummaryRow]:
    return rows_from_records(accumulator.records(gain_filter))


def rows_from_records(records: Iterable[tuple[GainKey, GainRecord]]) -> list[GainSummaryRow]:
    return [
        GainSummaryRow(
            year=key.year,
            wallet_id=key.wallet_id,
            commodity=key.commodity,
            short_term=record.short_term,
            long_term=record.long_term,
            income=record.income,
        )
        for key, record in records
    ]


def format_gain_summary(rows: Iterable[GainSummaryRow]) -> str:
    rows_list = list(rows)
    if not rows_list:
        return "Realized gains:\n  (no taxable events)"

    texts = [
        (
            str(row.year),
            row.wallet_id,
            row.commodity,
            format_currency(row.short_term),
            format_currency(row.long_term),
            format_currency(row.income),
        )
        for row in rows_list
    ]
    labels = ("Year", "Wallet", "Commodity", "Short-term", "Long-term", "Income")
    widths = [max(len(label), max(len(text[idx]) for text in texts)) for idx, label in enumerate(labels)]

    header = (
        f"{labels[0]:<{widths[0]}} "
        f"{labels[1]:<{widths[1]}} "
        f"{labels[2]:<{widths[2]}} "
        f"{labels[3]:>{widths[3]}} "
        f"{labels[4]:>{widths[4]}} "
        f"{labels[5]:>{widths[5]}}"
    )
    lines = ["Realized gains:", header, "-" * len(header)]
    for year, wallet_id, commodity, short_term, long_term, income in texts:
        lines.append(
            f"{year:<{widths[0]}} "
            f"{wallet_id:<{widths[1]}} "
            f"{commodity:<{widths[2]}} "
            f"{short_term:>{widths[3]}} "
            f"{long_term:>{widths[4]}} "
            f"{income:>{widths[5]}}"
        )

    totals = (
        sum((row.short_term for row in rows_list), start=Decimal(0)),
        sum((row.long_term for row in rows_list), start=Decimal(0)),
        sum((row.income for row in rows_list), start=Decimal(0)),
    )
    lines.append("-" * len(header))
    label_width = widths[0] + widths[1] + widths[2] + 2
    lines.append(
        f"{'Total':<{label_width}} "
        f"{format_currency(totals[0]):>{widths[3]}} "
        f"{format_currency(totals[1]):>{widths[4]}} "
        f"{format_currency(totals[2]):>{widths[5]}}"
    )
    return "\n".join(lines)


def render_gain_summary(rows: Iterable[GainSummaryRow]) -> None:
    print(format_gain_summary(rows))


def render_warning_summary(warnings: Iterable[LedgerWarning]) -> None:
    warnings_list = list(warnings)
    if not warnings_list:
        return
    print(f"Warnings: {len(warnings_list)} (see log output for details)")
    for warning in warnings_list:
        print(f"  {warning.kind} {warning.wallet_id}/{warning.commodity}: {warning.message}")
