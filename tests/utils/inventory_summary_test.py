from __future__ import annotations

from decimal import Decimal

import pytest

from domain.ledger import CommodityId, OpenLotSnapshot, WalletId
from tests.helpers.time_utils import day
from utils.inventory_summary import compute_inventory_summary, render_inventory_summary


def _lot(wallet_id: str, commodity: str, quantity: str, unit_cost: str, offset: int = 0) -> OpenLotSnapshot:
    return OpenLotSnapshot(
        wallet_id=WalletId(wallet_id),
        commodity=CommodityId(commodity),
        acquired_timestamp=day(offset),
        quantity=Decimal(quantity),
        unit_cost=Decimal(unit_cost),
    )


def test_compute_inventory_summary_aggregates_lots_per_holding() -> None:
    lots = [
        _lot("spot", "BTC", "0.5", "10000", 0),
        _lot("spot", "BTC", "0.25", "20000", 10),
        _lot("ledger", "ETH", "2", "1500", 3),
    ]

    summary = compute_inventory_summary(lots)

    assert [(holding.wallet_id, holding.commodity) for holding in summary.holdings] == [
        ("ledger", "ETH"),
        ("spot", "BTC"),
    ]
    btc = summary.holdings[1]
    assert btc.quantity == Decimal("0.75")
    assert btc.cost_basis == Decimal(10000)
    assert btc.lots == 2


def test_compute_inventory_summary_filters() -> None:
    lots = [_lot("spot", "BTC", "1", "1"), _lot("Ledger", "ETH", "1", "1"), _lot("ledger", "BTC", "1", "1")]

    summary = compute_inventory_summary(lots, wallets=[" LEDGER "], commodities=["eth"])

    assert [(holding.wallet_id, holding.commodity) for holding in summary.holdings] == [("Ledger", "ETH")]


def test_render_inventory_summary(capsys: pytest.CaptureFixture[str]) -> None:
    summary = compute_inventory_summary([_lot("spot", "BTC", "0.5", "10000")])

    render_inventory_summary(summary)

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Open inventory:"
    assert lines[1].split() == ["Wallet", "Commodity", "Quantity", "Cost", "basis", "Lots"]
    assert lines[3].split() == ["spot", "BTC", "0.5", "5000.00", "1"]


def test_render_empty_inventory(capsys: pytest.CaptureFixture[str]) -> None:
    render_inventory_summary(compute_inventory_summary([]))

    assert capsys.readouterr().out == "Open inventory:\n  (empty)\n"
