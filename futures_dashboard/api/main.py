import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Awaitable, List, Optional, TypeVar

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from futures_dashboard.core.entities.account import BalanceResponse, BalanceSnapshotResponse, IncomeResponse
from futures_dashboard.core.entities.position import (
    OpenOrderResponse,
    OpenPositionResponse,
    PositionHistoryResponse,
)
from futures_dashboard.core.entities.summary import (
    DailyPnLResponse,
    ErrorResponse,
    HistoryResponse,
    MonthlySummaryResponse,
    WeeklyPnLResponse,
)
from futures_dashboard.core.entities.trade import TradeResponse
from futures_dashboard.core.errors import EmptyUpstreamData, ExchangeAPIError, InvalidTradeData
from futures_dashboard.core.interfaces.datasource import IExchangeSource, ITradeArchive
from futures_dashboard.core.services import AccountService
from futures_dashboard.core.settings import Settings
from futures_dashboard.infrastructure.cache.redis_service import RedisService
from futures_dashboard.infrastructure.cache.response_cache import ResponseCache
from futures_dashboard.infrastructure.gateways.binance_api import BinanceGateway
from futures_dashboard.infrastructure.gateways.local_mock import LocalMockSource
from futures_dashboard.infrastructure.persistence.memory_repo import InMemoryArchive
from futures_dashboard.infrastructure.persistence.postgres_repo import PostgresRepo
from futures_dashboard.infrastructure.scheduler import DataRefresher

# Setup Logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("FuturesDashboard")

T = TypeVar("T")


# --- Wiring ---

def build_exchange(settings: Settings) -> IExchangeSource:
    if settings.use_mock:
        logger.info("USE_MOCK set. Serving canned exchange data.")
        return LocalMockSource()
    return BinanceGateway(
        api_key=settings.binance_api_key,
        api_secret=settings.binance_api_secret,
        base_url=settings.binance_base_url,
        timeout=settings.api_timeout_seconds,
    )


def build_archive(settings: Settings) -> ITradeArchive:
    if not settings.database_url:
        logger.warning("DATABASE_URL not set. Using a process-local archive.")
        return InMemoryArchive()
    return PostgresRepo(settings.database_url)


def build_service(settings: Settings) -> AccountService:
    cache = ResponseCache(
        ttl_seconds=settings.cache_ttl_seconds,
        redis_service=RedisService(settings.redis_url) if settings.redis_url else None,
    )
    return AccountService(build_exchange(settings), build_archive(settings), cache, settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)
    service = build_service(settings)
    refresher = DataRefresher(service, settings.refresh_interval_seconds)

    app.state.settings = settings
    app.state.service = service
    app.state.refresher = refresher
    refresher.start()
    try:
        yield
    finally:
        await refresher.stop()
        await service.exchange.aclose()


app = FastAPI(
    title="Futures Dashboard API",
    version="1.0.0",
    description="Binance USDT-M futures account dashboard: balances, reconstructed positions and PnL summaries",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Dependency Injection ---

def get_service(request: Request) -> AccountService:
    return request.app.state.service


def get_refresher(request: Request) -> Optional[DataRefresher]:
    return getattr(request.app.state, "refresher", None)


async def with_timeout(service: AccountService, call: Awaitable[T]) -> T:
    return await asyncio.wait_for(call, timeout=service.settings.api_timeout_seconds)


# --- Error mapping ---

def _error(status_code: int, message: str, exc: Exception) -> JSONResponse:
    body = ErrorResponse(message=message, error=str(exc) or exc.__class__.__name__)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(InvalidTradeData)
async def invalid_trade_handler(request: Request, exc: InvalidTradeData):
    logger.warning(f"Invalid trade data on {request.url.path}: {exc}")
    return _error(400, "Invalid trade data", exc)


@app.exception_handler(EmptyUpstreamData)
async def empty_upstream_handler(request: Request, exc: EmptyUpstreamData):
    logger.warning(f"No data for {request.url.path}: {exc}")
    return _error(404, "No data available", exc)


@app.exception_handler(asyncio.TimeoutError)
async def timeout_handler(request: Request, exc: asyncio.TimeoutError):
    logger.error(f"Timed out serving {request.url.path}")
    return _error(504, "Request timed out", exc)


@app.exception_handler(ExchangeAPIError)
async def exchange_error_handler(request: Request, exc: ExchangeAPIError):
    logger.error(f"Exchange error on {request.url.path}: {exc}")
    return _error(502, "Exchange request failed", exc)


@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}")
    return _error(500, "Internal server error", exc)


# --- Endpoints ---

@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.get("/v1/account/balance", response_model=BalanceResponse)
async def get_balance(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_balance())


@app.get("/v1/account/trades", response_model=List[TradeResponse])
async def get_account_trades(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_account_trades())


@app.get("/v1/account/income", response_model=List[IncomeResponse])
async def get_income_history(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_income_history())


@app.get("/v1/account/positions/open", response_model=List[OpenPositionResponse])
async def get_open_positions(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_open_positions())


@app.get("/v1/account/orders/open", response_model=List[OpenOrderResponse])
async def get_open_orders(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_open_orders())


@app.get("/v1/account/balance/snapshots", response_model=List[BalanceSnapshotResponse])
async def get_balance_snapshots(service: AccountService = Depends(get_service)):
    """
    Persisted daily balances with the latest entry replaced by the live balance.
    """
    return await with_timeout(service, service.get_balance_snapshot())


@app.get("/v1/positions/history", response_model=List[PositionHistoryResponse])
async def get_positions_history(service: AccountService = Depends(get_service)):
    """
    Closed round-trip positions rebuilt from live and archived fills,
    ascending by close time.
    """
    return await with_timeout(service, service.get_position_history())


@app.get("/v1/pnl/daily", response_model=List[DailyPnLResponse])
async def get_daily_pnl(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_daily_pnl())


@app.get("/v1/pnl/weekly", response_model=List[WeeklyPnLResponse])
async def get_weekly_pnl(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_weekly_pnl())


@app.get("/v1/pnl/monthly", response_model=List[MonthlySummaryResponse])
async def get_monthly_summary(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_monthly_summary())


@app.get("/v1/pnl/history", response_model=List[HistoryResponse])
async def get_history(service: AccountService = Depends(get_service)):
    return await with_timeout(service, service.get_history())


@app.get("/v1/status/last-updated")
async def get_last_updated(refresher: Optional[DataRefresher] = Depends(get_refresher)):
    return {"last_updated": refresher.last_refreshed_at if refresher else None}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
