from typing import Annotated, Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from db.repositories import GainRecordRepository, NormalizedTransactionRepository, OpenLotRepository


def get_session(request: Request) -> Generator[Session, None, None]:
    with request.app.state.sessionmaker() as session:
        yield session


def get_gain_record_repository(session: Annotated[Session, Depends(get_session)]) -> GainRecordRepository:
    return GainRecordRepository(session)


def get_open_lot_repository(session: Annotated[Session, Depends(get_session)]) -> OpenLotRepository:
    return OpenLotRepository(session)


def get_transaction_repository(session: Annotated[Session, Depends(get_session)]) -> NormalizedTransactionRepository:
    return NormalizedTransactionRepository(session)
