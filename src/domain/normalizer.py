from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Iterable, Protocol, Sequence

from .gains import normalize_filter_values
from .ledger import CommodityId, NormalizedTransaction, TransactionType, WalletId
from .records import EventGroup, EventKind, RawRecord

logger = logging.getLogger(__name__)

CONVERT_MARKER = "convert"
BUY_TYPE = "buy"
SELL_TYPE = "sell"


class WalletLookup(Protocol):
    """Resolve the wallet a record belongs to (explicit field, caller default, source tag)."""

    def __call__(self, record: RawRecord, default_wallets: Sequence[str], source: str) -> str: ...


class TransactionNormalizer:
    """Turn classified event groups into ledger-ready transactions.

    All non-fiat legs of a group are assumed to settle against the same fiat
    legs, so the group's fiat consideration and fee are split across them by
    absolute quantity share.
    """

    def __init__(self, *, wallet_lookup: WalletLookup, default_wallets: Sequence[str] = ()) -> None:
        self._wallet_lookup = wallet_lookup
        self._default_wallets = list(default_wallets)

    def normalize(self, groups: Iterable[EventGroup]) -> list[NormalizedTransaction]:
        transactions: list[NormalizedTransaction] = []
        for group in groups:
            transactions.extend(self.normalize_group(group))
        return transactions

    def normalize_group(self, group: EventGroup) -> list[NormalizedTransaction]:
        if not group.commodity_legs:
            logger.debug("Skipping fiat-only group key=%s source=%s", group.key, group.source)
            return []

        match group.kind:
            case EventKind.TRANSFER:
                return self._transfer_transactions(group)
            case EventKind.INCOME:
                return self._income_transactions(group)
            case EventKind.TRADE:
                return self._trade_transactions(group)

    def _trade_transactions(self, group: EventGroup) -> list[NormalizedTransaction]:
        transactions: list[NormalizedTransaction] = []
        for leg in group.commodity_legs:
            if leg.quantity == 0:
                logger.debug("Dropping zero-quantity leg key=%s asset=%s", group.key, leg.asset)
                continue

            row_type = leg.type.strip().lower()
            quantity = leg.quantity
            if CONVERT_MARKER in row_type:
                tx_type = TransactionType.CONVERT
            elif row_type == SELL_TYPE:
                # Some exports log sales with unsigned amounts.
                tx_type = TransactionType.SELL
                quantity = -abs(quantity)
            elif row_type == BUY_TYPE:
                tx_type = TransactionType.BUY
                quantity = abs(quantity)
            elif quantity > 0:
                tx_type = TransactionType.BUY
            else:
                tx_type = TransactionType.SELL

            consideration, fee = self._allocate(group, leg)
            transactions.append(self._transaction(group, leg, tx_type, consideration, fee, quantity=quantity))
        return transactions

    def _income_transactions(self, group: EventGroup) -> list[NormalizedTransaction]:
        transactions: list[NormalizedTransaction] = []
        for leg in group.commodity_legs:
            # The negative side of a reward is its notional source, not a disposal.
            if leg.quantity <= 0:
                continue

            # The denominator still counts the discarded negative legs.
            consideration, fee = self._allocate(group, leg)
            if consideration == 0:
                logger.info(
                    "Unvalued income key=%s asset=%s quantity=%s; zero cost basis", group.key, leg.asset, leg.quantity
                )
            transactions.append(self._transaction(group, leg, TransactionType.INCOME, consideration, fee))
        return transactions

    def _transfer_transactions(self, group: EventGroup) -> list[NormalizedTransaction]:
        positives: dict[str, list[RawRecord]] = defaultdict(list)
        negatives: dict[str, list[RawRecord]] = defaultdict(list)
        for leg in group.commodity_legs:
            if leg.quantity > 0:
                positives[leg.asset.strip().lower()].append(leg)
            elif leg.quantity < 0:
                negatives[leg.asset.strip().lower()].append(leg)

        transactions: list[NormalizedTransaction] = []
        for commodity_key, destination_legs in positives.items():
            candidates = negatives.get(commodity_key, [])
            for leg in destination_legs:
                paired = pair_transfer_leg(leg, candidates)
                source_wallet: WalletId | None = None
                if paired is None:
                    logger.warning(
                        "Transfer key=%s asset=%s quantity=%s has no source leg; source wallet unresolved",
                        group.key,
                        leg.asset,
                        leg.quantity,
                    )
                else:
                    source_wallet = self._wallet(paired)

                transactions.append(
                    NormalizedTransaction(
                        wallet_id=self._wallet(leg),
                        commodity=CommodityId(leg.asset),
                        timestamp=leg.timestamp,
                        type=TransactionType.TRANSFER,
                        quantity=abs(leg.quantity),
                        correlation_id=group.key,
                        source=group.source,
                        source_wallet_id=source_wallet,
                    )
                )
        return transactions

    def _allocate(self, group: EventGroup, leg: RawRecord) -> tuple[Decimal, Decimal]:
        if group.has_fiat_settlement:
            share = abs(leg.quantity)
            return group.consideration * share / group.denominator, group.fee * share / group.denominator
        return abs(leg.cost), abs(leg.fee)

    def _transaction(
        self,
        group: EventGroup,
        leg: RawRecord,
        tx_type: TransactionType,
        consideration: Decimal,
        fee: Decimal,
        *,
        quantity: Decimal | None = None,
    ) -> NormalizedTransaction:
        return NormalizedTransaction(
            wallet_id=self._wallet(leg),
            commodity=CommodityId(leg.asset),
            timestamp=leg.timestamp,
            type=tx_type,
            quantity=leg.quantity if quantity is None else quantity,
            consideration=consideration,
            fee=fee,
            correlation_id=group.key,
            source=group.source,
        )

    def _wallet(self, record: RawRecord) -> WalletId:
        return WalletId(self._wallet_lookup(record, self._default_wallets, record.source))


def pair_transfer_leg(destination: RawRecord, candidates: Sequence[RawRecord]) -> RawRecord | None:
    """Pick the source leg for a transfer destination.

    Exact absolute-quantity match first, otherwise the first candidate. The
    fallback is a heuristic: with several unequal source legs the pairing is
    not well-defined.
    """
    wanted = abs(destination.quantity)
    for candidate in candidates:
        if abs(candidate.quantity) == wanted:
            return candidate
    if candidates:
        return candidates[0]
    return None


def merge_transactions(chunks: Iterable[Iterable[NormalizedTransaction]]) -> list[NormalizedTransaction]:
    """Merge per-source transaction lists into one chronological stream."""
    merged = [tx for chunk in chunks for tx in chunk]
    merged.sort(key=lambda tx: (tx.timestamp, tx.source, tx.correlation_id))
    return merged


def filter_transactions(
    transactions: Iterable[NormalizedTransaction],
    *,
    wallets: Iterable[str] | None = None,
    commodities: Iterable[str] | None = None,
) -> list[NormalizedTransaction]:
    wallet_set = normalize_filter_values(wallets)
    commodity_set = normalize_filter_values(commodities)
    filtered: list[NormalizedTransaction] = []
    for tx in transactions:
        if wallet_set and tx.wallet_id.strip().lower() not in wallet_set:
            continue
        if commodity_set and tx.commodity.strip().lower() not in commodity_set:
            continue
        filtered.append(tx)
    return filtered
