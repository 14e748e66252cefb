from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from domain.gains import normalize_filter_values
from domain.ledger import OpenLotSnapshot

from .formatting import format_currency, format_decimal


@dataclass
class HoldingSummary:
    wallet_id: str
    commodity: str
    quantity: Decimal = Decimal("0")
    cost_basis: Decimal = Decimal("0")
    lots: int = 0


@dataclass
class InventorySummary:
    holdings: list[HoldingSummary] = field(default_factory=list)


def compute_inventory_summary(
    open_lots: Iterable[OpenLotSnapshot],
    *,
    wallets: Iterable[str] | None = None,
    commodities: Iterable[str] | None = None,
) -> InventorySummary:
    wallet_set = normalize_filter_values(wallets)
    commodity_set = normalize_filter_values(commodities)

    by_key: dict[tuple[str, str], HoldingSummary] = {}
    for lot in open_lots:
        if wallet_set and lot.wallet_id.strip().lower() not in wallet_set:
            continue
        if commodity_set and lot.commodity.strip().lower() not in commodity_set:
            continue
        key = (lot.wallet_id, lot.commodity)
        holding = by_key.get(key)
        if holding is None:
            holding = HoldingSummary(wallet_id=lot.wallet_id, commodity=lot.commodity)
            by_key[key] = holding
        holding.quantity += lot.quantity
        holding.cost_basis += lot.total_cost
        holding.lots += 1

    return InventorySummary(holdings=[by_key[key] for key in sorted(by_key)])


def render_inventory_summary(summary: InventorySummary) -> None:
    print("Open inventory:")
    if not summary.holdings:
        print("  (empty)")
        return

    rows = [
        (
            holding.wallet_id,
            holding.commodity,
            format_decimal(holding.quantity),
            format_currency(holding.cost_basis),
            str(holding.lots),
        )
        for holding in summary.holdings
    ]

    wallet_width = max(len("Wallet"), max(len(row[0]) for row in rows))
    commodity_width = max(len("Commodity"), max(len(row[1]) for row in rows))
    quantity_width = max(len("Quantity"), max(len(row[2]) for row in rows))
    cost_width = max(len("Cost basis"), max(len(row[3]) for row in rows))
    lots_width = max(len("Lots"), max(len(row[4]) for row in rows))

    header = (
        f"{'Wallet':<{wallet_width}} {'Commodity':<{commodity_width}} "
        f"{'Quantity':>{quantity_width}} {'Cost basis':>{cost_width}} {'Lots':>{lots_width}}"
    )
    lines = [header, "-" * len(header)]
    for wallet_id, commodity, quantity, cost_basis, lots in rows:
        lines.append(
            f"{wallet_id:<{wallet_width}} {commodity:<{commodity_width}} "
            f"{quantity:>{quantity_width}} {cost_basis:>{cost_width}} {lots:>{lots_width}}"
        )

    lines.append("-" * len(header))
    print("\n".join(lines))
