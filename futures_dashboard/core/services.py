import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from pydantic import TypeAdapter

from futures_dashboard.core.constants import (
    CACHE_ACCOUNT_TRADES,
    CACHE_BALANCE,
    CACHE_INCOME_HISTORY,
    CACHE_OPEN_ORDERS,
    CACHE_OPEN_POSITIONS,
)
from futures_dashboard.core.entities.account import BalanceResponse, BalanceSnapshotResponse, IncomeResponse
from futures_dashboard.core.entities.position import (
    OpenOrderResponse,
    OpenPositionResponse,
    PositionHistoryResponse,
)
from futures_dashboard.core.entities.summary import (
    DailyPnLResponse,
    HistoryResponse,
    MonthlySummaryResponse,
    WeeklyPnLResponse,
)
from futures_dashboard.core.entities.trade import TradeResponse
from futures_dashboard.core.errors import EmptyUpstreamData
from futures_dashboard.core.interfaces.datasource import IExchangeSource, ITradeArchive
from futures_dashboard.core.settings import Settings
from futures_dashboard.core.use_cases import pnl_aggregator
from futures_dashboard.core.use_cases.position_reconstructor import PositionReconstructor
from futures_dashboard.core.use_cases.trade_merger import merge_trades
from futures_dashboard.infrastructure.cache.response_cache import ResponseCache

logger = logging.getLogger(__name__)

_BALANCE = TypeAdapter(BalanceResponse)
_TRADES = TypeAdapter(List[TradeResponse])
_INCOMES = TypeAdapter(List[IncomeResponse])
_POSITIONS = TypeAdapter(List[OpenPositionResponse])
_ORDERS = TypeAdapter(List[OpenOrderResponse])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountService:
    """
    Cached access to live account data plus the derived analytics
    (position history and PnL summaries).
    """

    def __init__(
        self,
        exchange: IExchangeSource,
        archive: ITradeArchive,
        cache: ResponseCache,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.exchange = exchange
        self.archive = archive
        self.cache = cache
        self.settings = settings or Settings()
        self.clock = clock

    # --- Cached exchange resources ---

    async def get_balance(self, force: bool = False) -> BalanceResponse:
        return await self.cache.get_or_fetch(CACHE_BALANCE, self.exchange.get_balance, _BALANCE, force)

    async def get_income_history(self, force: bool = False) -> List[IncomeResponse]:
        async def fetch():
            start = self.clock() - timedelta(days=self.settings.income_lookback_days)
            return await self.exchange.get_income_history(start_time=start)

        return await self.cache.get_or_fetch(CACHE_INCOME_HISTORY, fetch, _INCOMES, force)

    async def get_account_trades(self, force: bool = False) -> List[TradeResponse]:
        async def fetch():
            symbols = await self._trade_symbols()
            if not symbols:
                logger.info("No symbols configured or traded recently; skipping trade fetch")
                return []
            return await self.exchange.get_account_trades(symbols)

        return await self.cache.get_or_fetch(CACHE_ACCOUNT_TRADES, fetch, _TRADES, force)

    async def get_open_positions(self, force: bool = False) -> List[OpenPositionResponse]:
        return await self.cache.get_or_fetch(
            CACHE_OPEN_POSITIONS, self.exchange.get_open_positions, _POSITIONS, force
        )

    async def get_open_orders(self, force: bool = False) -> List[OpenOrderResponse]:
        return await self.cache.get_or_fetch(CACHE_OPEN_ORDERS, self.exchange.get_open_orders, _ORDERS, force)

    async def _trade_symbols(self) -> List[str]:
        if self.settings.trade_symbols:
            return list(self.settings.trade_symbols)
        # userTrades needs a symbol; fall back to whatever showed up in income
        incomes = await self.get_income_history()
        symbols: Dict[str, None] = {}
        for record in incomes:
            if record.symbol:
                symbols.setdefault(record.symbol.upper(), None)
        return list(symbols)

    # --- Derived views ---

    async def get_position_history(self) -> List[PositionHistoryResponse]:
        # A live failure propagates before the archive is touched
        live = await self.get_account_trades()
        archived = await self.archive.get_all_account_trades()
        merged = merge_trades(live, archived)
        logger.debug(f"Reconstructing from {len(live)} live + {len(archived)} archived fills ({len(merged)} unique)")
        return PositionReconstructor.reconstruct(merged)

    async def get_balance_snapshot(self) -> List[BalanceSnapshotResponse]:
        persisted = await self.archive.get_balance_snapshots()
        if not persisted:
            raise EmptyUpstreamData("No balance snapshots have been persisted yet")
        balance = await self.get_balance()
        return pnl_aggregator.merge_balance_snapshots(persisted, balance)

    async def get_daily_pnl(self) -> List[DailyPnLResponse]:
        persisted = await self.archive.get_daily_pnl()
        if not persisted:
            raise EmptyUpstreamData("No daily PnL has been persisted yet")
        incomes = await self.get_income_history()
        return pnl_aggregator.merge_daily_pnl(persisted, incomes, self.clock())

    async def get_weekly_pnl(self) -> List[WeeklyPnLResponse]:
        return pnl_aggregator.weekly_pnl(await self.get_daily_pnl())

    async def get_monthly_summary(self) -> List[MonthlySummaryResponse]:
        return pnl_aggregator.monthly_summary(await self.get_daily_pnl())

    async def get_history(self) -> List[HistoryResponse]:
        incomes = await self.get_income_history()
        return pnl_aggregator.income_history(incomes, self.clock())

    # --- Refresh ---

    async def refresh(self) -> Dict[str, int]:
        """
        Re-fetch every cached resource, archive the fetched fills and upsert
        today's balance snapshot and daily PnL.
        """
        now = self.clock()
        today = now.astimezone(timezone.utc).date()

        balance = await self.get_balance(force=True)
        incomes = await self.get_income_history(force=True)
        trades = await self.get_account_trades(force=True)
        positions = await self.get_open_positions(force=True)
        orders = await self.get_open_orders(force=True)

        archived = await self.archive.archive_trades(trades)
        await self.archive.upsert_balance_snapshot(today, balance.balance)
        await self.archive.upsert_daily_pnl(today, pnl_aggregator.daily_income_pnl(incomes, today), now)

        return {
            "trades": len(trades),
            "archived": archived,
            "incomes": len(incomes),
            "open_positions": len(positions),
            "open_orders": len(orders),
        }
