from typing import Generator

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base
from domain.gains import GainAccumulator
from domain.grouping import EventGrouper
from domain.inventory import FifoLedger
from domain.normalizer import TransactionNormalizer
from importers.csv_records import lookup_wallet
from tests.helpers.time_utils import DEFAULT_TIME_GEN

engine: Engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
session_factory = sessionmaker(engine)


@pytest.fixture(scope="function")
def test_session() -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function", autouse=True)
def reset_db() -> Generator[None, None, None]:
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _reset_default_time_gen() -> None:
    DEFAULT_TIME_GEN.reset()


@pytest.fixture(scope="function")
def accumulator() -> GainAccumulator:
    return GainAccumulator()


@pytest.fixture(scope="function")
def ledger(accumulator: GainAccumulator) -> FifoLedger:
    return FifoLedger(accumulator=accumulator)


@pytest.fixture(scope="function")
def grouper() -> EventGrouper:
    return EventGrouper()


@pytest.fixture(scope="function")
def normalizer() -> TransactionNormalizer:
    return TransactionNormalizer(wallet_lookup=lookup_wallet)
