from __future__ import annotations

from decimal import Decimal

from domain.grouping import EventGrouper
from domain.ledger import TransactionType
from domain.normalizer import (
    TransactionNormalizer,
    filter_transactions,
    merge_transactions,
    pair_transfer_leg,
)
from importers.csv_records import lookup_wallet
from tests.constants import BTC, ETH, EUR, SPOT_WALLET
from tests.helpers.time_utils import day, make_record, make_transaction


def test_fiat_settlement_is_split_by_quantity_share(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [
        make_record(asset=BTC, quantity="1", reference_id="T1", wallet=SPOT_WALLET),
        make_record(asset=ETH, quantity="3", reference_id="T1", wallet=SPOT_WALLET),
        make_record(asset=EUR, quantity="-400", fee="8", reference_id="T1", wallet=SPOT_WALLET),
    ]

    transactions = normalizer.normalize(grouper.group(records))

    assert [(tx.commodity, tx.type) for tx in transactions] == [
        (BTC, TransactionType.BUY),
        (ETH, TransactionType.BUY),
    ]
    assert [tx.consideration for tx in transactions] == [Decimal(100), Decimal(300)]
    assert [tx.fee for tx in transactions] == [Decimal(2), Decimal(6)]
    assert sum(tx.consideration for tx in transactions) == Decimal(400)
    assert {tx.correlation_id for tx in transactions} == {"T1"}


def test_sell_leg_is_classified_by_sign(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [
        make_record(asset=BTC, quantity="-0.5", reference_id="S1"),
        make_record(asset=EUR, quantity="6000", reference_id="S1"),
    ]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert tx.type == TransactionType.SELL
    assert tx.quantity == Decimal("-0.5")
    assert tx.consideration == Decimal(6000)


def test_group_without_fiat_uses_leg_cost(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [make_record(asset=ETH, quantity="2", cost="-350", fee="1.5", reference_id="C1")]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert tx.consideration == Decimal(350)
    assert tx.fee == Decimal("1.5")


def test_convert_legs_become_convert_transactions(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [
        make_record(asset=BTC, quantity="-0.1", record_type="convert", cost="3000", reference_id="X1"),
        make_record(asset=ETH, quantity="1.5", record_type="convert", cost="3000", reference_id="X1"),
    ]

    transactions = normalizer.normalize(grouper.group(records))

    assert [tx.type for tx in transactions] == [TransactionType.CONVERT, TransactionType.CONVERT]
    assert [tx.quantity for tx in transactions] == [Decimal("-0.1"), Decimal("1.5")]


def test_zero_quantity_legs_are_dropped(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [
        make_record(asset=BTC, quantity="0", reference_id="Z1"),
        make_record(asset=EUR, quantity="-10", reference_id="Z1"),
    ]

    assert normalizer.normalize(grouper.group(records)) == []


def test_fiat_only_group_yields_nothing(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [make_record(asset=EUR, quantity="1000", record_type="deposit", reference_id="D1")]

    assert normalizer.normalize(grouper.group(records)) == []


def test_income_ignores_negative_legs(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [
        make_record(asset=ETH, quantity="-0.01", record_type="earn", reference_id="R1"),
        make_record(asset=ETH, quantity="0.01", record_type="earn", subtype="reward", reference_id="R1"),
    ]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert tx.type == TransactionType.INCOME
    assert tx.quantity == Decimal("0.01")
    assert tx.consideration == 0


def test_transfer_pairs_source_wallet_by_exact_quantity(
    grouper: EventGrouper, normalizer: TransactionNormalizer
) -> None:
    records = [
        make_record(asset=ETH, quantity="-1", subtype="allocation", wallet="spot", reference_id="A1"),
        make_record(asset=ETH, quantity="-2", subtype="allocation", wallet="flex", reference_id="A1"),
        make_record(asset=ETH, quantity="2", subtype="allocation", wallet="bonded", reference_id="A1"),
    ]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert tx.type == TransactionType.TRANSFER
    assert tx.wallet_id == "bonded"
    assert tx.source_wallet_id == "flex"
    assert tx.quantity == Decimal(2)


def test_transfer_without_source_leg_keeps_unresolved_source(
    grouper: EventGrouper, normalizer: TransactionNormalizer
) -> None:
    records = [make_record(asset=ETH, quantity="1", subtype="autoallocation", wallet="bonded", reference_id="A2")]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert tx.type == TransactionType.TRANSFER
    assert tx.source_wallet_id is None


def test_pair_transfer_leg_falls_back_to_first_candidate() -> None:
    destination = make_record(asset=ETH, quantity="3")
    first = make_record(asset=ETH, quantity="-1", wallet="a")
    second = make_record(asset=ETH, quantity="-2", wallet="b")

    assert pair_transfer_leg(destination, [first, second]) is first
    assert pair_transfer_leg(destination, []) is None


def test_wallet_falls_back_to_default_then_source(grouper: EventGrouper) -> None:
    records = [make_record(asset=BTC, quantity="1", reference_id="W1", source="kraken.csv")]
    groups = grouper.group(records)

    (with_default,) = TransactionNormalizer(wallet_lookup=lookup_wallet, default_wallets=["vault"]).normalize(groups)
    (without_default,) = TransactionNormalizer(wallet_lookup=lookup_wallet).normalize(groups)

    assert with_default.wallet_id == "vault"
    assert without_default.wallet_id == "kraken.csv"


def test_merge_orders_by_timestamp_then_source_then_correlation() -> None:
    late = make_transaction(tx_type=TransactionType.BUY, commodity=BTC, quantity="1", timestamp=day(2), source="a.csv")
    tied_b = make_transaction(
        tx_type=TransactionType.BUY, commodity=BTC, quantity="1", timestamp=day(1), source="b.csv", correlation_id="1"
    )
    tied_a2 = make_transaction(
        tx_type=TransactionType.BUY, commodity=BTC, quantity="1", timestamp=day(1), source="a.csv", correlation_id="2"
    )
    tied_a1 = make_transaction(
        tx_type=TransactionType.BUY, commodity=BTC, quantity="1", timestamp=day(1), source="a.csv", correlation_id="1"
    )

    merged = merge_transactions([[late, tied_b], [tied_a2, tied_a1]])

    assert merged == [tied_a1, tied_a2, tied_b, late]


def test_filters_are_trimmed_and_case_insensitive() -> None:
    transactions = [
        make_transaction(tx_type=TransactionType.BUY, commodity=BTC, quantity="1", wallet_id="Spot"),
        make_transaction(tx_type=TransactionType.BUY, commodity=ETH, quantity="1", wallet_id="Spot"),
        make_transaction(tx_type=TransactionType.BUY, commodity=BTC, quantity="1", wallet_id="ledger"),
    ]

    by_wallet = filter_transactions(transactions, wallets=[" spot "])
    by_both = filter_transactions(transactions, wallets=["SPOT"], commodities=["btc", ""])
    unfiltered = filter_transactions(transactions, wallets=[""], commodities=None)

    assert by_wallet == transactions[:2]
    assert by_both == transactions[:1]
    assert unfiltered == transactions


def test_explicit_sell_type_with_unsigned_amount_is_a_sale(
    grouper: EventGrouper, normalizer: TransactionNormalizer
) -> None:
    records = [
        make_record(asset=BTC, quantity="1", record_type="buy", cost="10000", reference_id="B1"),
        make_record(asset=BTC, quantity="1", record_type="sell", cost="15000", reference_id="S1"),
    ]

    buy, sell = normalizer.normalize(grouper.group(records))

    assert (buy.type, buy.quantity) == (TransactionType.BUY, Decimal(1))
    assert (sell.type, sell.quantity) == (TransactionType.SELL, Decimal(-1))
    assert sell.consideration == Decimal(15000)


def test_explicit_buy_type_with_negative_amount_is_a_purchase(
    grouper: EventGrouper, normalizer: TransactionNormalizer
) -> None:
    records = [make_record(asset=ETH, quantity="-2", record_type="Buy", cost="400", reference_id="B2")]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert (tx.type, tx.quantity) == (TransactionType.BUY, Decimal(2))


def test_income_row_type_becomes_valued_income(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [make_record(asset=ETH, quantity="1", record_type="income", cost="2000", reference_id="I1")]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert tx.type == TransactionType.INCOME
    assert tx.consideration == Decimal(2000)


def test_income_with_fiat_leg_takes_fiat_value(grouper: EventGrouper, normalizer: TransactionNormalizer) -> None:
    records = [
        make_record(asset=ETH, quantity="0.5", record_type="earn", subtype="reward", reference_id="R2"),
        make_record(asset=EUR, quantity="1000", record_type="earn", fee="2", reference_id="R2"),
    ]

    (tx,) = normalizer.normalize(grouper.group(records))

    assert tx.type == TransactionType.INCOME
    assert tx.consideration == Decimal(1000)
    assert tx.fee == Decimal(2)


def test_income_fiat_value_is_shared_with_discarded_negative_legs(
    grouper: EventGrouper, normalizer: TransactionNormalizer
) -> None:
    records = [
        make_record(asset=ETH, quantity="-0.01", record_type="earn", reference_id="R3"),
        make_record(asset=ETH, quantity="0.01", record_type="earn", subtype="reward", reference_id="R3"),
        make_record(asset=EUR, quantity="20", record_type="earn", reference_id="R3"),
    ]

    (tx,) = normalizer.normalize(grouper.group(records))

    # The negative leg is dropped but still counts in the allocation denominator,
    # so only half of the fiat value reaches the income.
    assert tx.quantity == Decimal("0.01")
    assert tx.consideration == Decimal(10)
