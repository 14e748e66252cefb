import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from time import perf_counter
from typing import Annotated, AsyncGenerator, Awaitable, Callable

from fastapi import Depends, FastAPI, Query, Request, Response
from pydantic import BaseModel
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from api.dependencies import get_gain_record_repository, get_open_lot_repository, get_transaction_repository
from config import DB_FILE, config
from db.repositories import GainRecordRepository, NormalizedTransactionRepository, OpenLotRepository
from domain.gains import GainFilter
from domain.ledger import NormalizedTransaction, OpenLotSnapshot

logger = logging.getLogger(__name__)


class GainRow(BaseModel):
    year: int
    wallet_id: str
    commodity: str
    short_term: Decimal
    long_term: Decimal
    income: Decimal


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
    db_file = config().db_file or DB_FILE
    engine = create_engine(f"sqlite:///{db_file}")
    fastapi_app.state.sessionmaker = sessionmaker(engine)
    yield
    engine.dispose()


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def log_process_time(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    start_time = perf_counter()
    response = await call_next(request)
    process_time = perf_counter() - start_time
    logger.info("Request time: %s %s: %.4fs", request.method, request.url, process_time)
    return response


@app.get("/gains")
def get_gains(
    gr: Annotated[GainRecordRepository, Depends(get_gain_record_repository)],
    year: int | None = None,
    wallet: Annotated[list[str] | None, Query()] = None,
    commodity: Annotated[list[str] | None, Query()] = None,
) -> list[GainRow]:
    gain_filter = GainFilter.build(year=year, wallets=wallet, commodities=commodity)
    return [
        GainRow(
            year=key.year,
            wallet_id=key.wallet_id,
            commodity=key.commodity,
            short_term=record.short_term,
            long_term=record.long_term,
            income=record.income,
        )
        for key, record in gr.list(gain_filter)
    ]


@app.get("/open-lots")
def get_open_lots(lr: Annotated[OpenLotRepository, Depends(get_open_lot_repository)]) -> list[OpenLotSnapshot]:
    return lr.list()


@app.get("/transactions")
def get_transactions(
    tr: Annotated[NormalizedTransactionRepository, Depends(get_transaction_repository)],
) -> list[NormalizedTransaction]:
    return tr.list()
