from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from db.repositories import (
    DisposalSliceRepository,
    GainRecordRepository,
    NormalizedTransactionRepository,
    OpenLotRepository,
)
from domain.gains import GainFilter, GainKey, GainRecord
from domain.ledger import (
    CommodityId,
    DisposalSlice,
    HoldingTerm,
    OpenLotSnapshot,
    TransactionType,
    WalletId,
)
from tests.constants import BTC, ETH, LEDGER_WALLET, MAIN_WALLET
from tests.helpers.time_utils import day, make_transaction


@pytest.fixture()
def tx_repo(test_session: Session) -> NormalizedTransactionRepository:
    return NormalizedTransactionRepository(test_session)


@pytest.fixture()
def gain_repo(test_session: Session) -> GainRecordRepository:
    return GainRecordRepository(test_session)


def test_transactions_round_trip_in_stream_order(tx_repo: NormalizedTransactionRepository) -> None:
    transactions = [
        make_transaction(
            tx_type=TransactionType.BUY, commodity=BTC, quantity="0.12345678", consideration="1000.01", timestamp=day(5)
        ),
        make_transaction(
            tx_type=TransactionType.TRANSFER,
            commodity=BTC,
            quantity="0.1",
            wallet_id=LEDGER_WALLET,
            source_wallet_id=MAIN_WALLET,
            timestamp=day(1),
        ),
    ]

    tx_repo.create_many(transactions)

    assert tx_repo.list() == transactions


def test_disposals_keep_decimal_precision(test_session: Session) -> None:
    repo = DisposalSliceRepository(test_session)
    disposal = DisposalSlice(
        wallet_id=MAIN_WALLET,
        commodity=ETH,
        disposed_timestamp=day(400),
        acquired_timestamp=day(0),
        quantity_used=Decimal("0.000000000000000001"),
        cost_basis=Decimal("0.1"),
        proceeds=Decimal("0.30000000000000000004"),
        term=HoldingTerm.LONG,
        correlation_id="S1",
    )

    repo.create_many([disposal])

    (stored,) = repo.list()
    assert stored == disposal
    assert stored.gain == Decimal("0.20000000000000000004")


def test_open_lots_round_trip(test_session: Session) -> None:
    repo = OpenLotRepository(test_session)
    lots = [
        OpenLotSnapshot(
            wallet_id=WalletId("spot"),
            commodity=CommodityId("BTC"),
            acquired_timestamp=day(0),
            quantity=Decimal("0.5"),
            unit_cost=Decimal(10000),
        ),
        OpenLotSnapshot(
            wallet_id=WalletId("spot"),
            commodity=CommodityId("BTC"),
            acquired_timestamp=day(3),
            quantity=Decimal("1.5"),
            unit_cost=Decimal(12000),
        ),
    ]

    repo.create_many(lots)

    assert repo.list() == lots


def test_gain_records_are_filtered_on_read(gain_repo: GainRecordRepository) -> None:
    gain_repo.create_many(
        [
            (GainKey(2024, "spot", "ETH"), GainRecord(short_term=Decimal(5))),
            (GainKey(2023, "spot", "BTC"), GainRecord(long_term=Decimal(10), income=Decimal(1))),
            (GainKey(2024, "earn", "BTC"), GainRecord(income=Decimal(2))),
        ]
    )

    assert [key for key, _ in gain_repo.list()] == [
        GainKey(2023, "spot", "BTC"),
        GainKey(2024, "earn", "BTC"),
        GainKey(2024, "spot", "ETH"),
    ]

    filtered = gain_repo.list(GainFilter.build(year=2024, commodities=["btc"]))
    assert filtered == [(GainKey(2024, "earn", "BTC"), GainRecord(income=Decimal(2)))]
