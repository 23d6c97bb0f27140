from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional, Sequence

from futures_dashboard.core.entities.account import BalanceResponse, BalanceSnapshotResponse, IncomeResponse
from futures_dashboard.core.entities.position import OpenOrderResponse, OpenPositionResponse
from futures_dashboard.core.entities.summary import DailyPnLResponse
from futures_dashboard.core.entities.trade import TradeResponse


class IExchangeSource(ABC):
    """Live account data from the exchange."""

    @abstractmethod
    async def get_balance(self) -> BalanceResponse:
        pass

    @abstractmethod
    async def get_account_trades(
        self,
        symbols: Sequence[str],
        start_time: Optional[datetime] = None
    ) -> List[TradeResponse]:
        pass

    @abstractmethod
    async def get_income_history(self, start_time: Optional[datetime] = None) -> List[IncomeResponse]:
        pass

    @abstractmethod
    async def get_open_positions(self) -> List[OpenPositionResponse]:
        pass

    @abstractmethod
    async def get_open_orders(self) -> List[OpenOrderResponse]:
        pass

    async def aclose(self) -> None:
        """Release transport resources. No-op by default."""


class ITradeArchive(ABC):
    """Historical fills and persisted daily series."""

    @abstractmethod
    async def get_all_account_trades(self) -> List[TradeResponse]:
        pass

    @abstractmethod
    async def get_balance_snapshots(self) -> List[BalanceSnapshotResponse]:
        """Ascending by date."""
        pass

    @abstractmethod
    async def get_daily_pnl(self) -> List[DailyPnLResponse]:
        """Ascending by date."""
        pass

    @abstractmethod
    async def archive_trades(self, trades: Sequence[TradeResponse]) -> int:
        """
        Store fills not already archived. Returns the number of new rows.
        """
        pass

    @abstractmethod
    async def upsert_balance_snapshot(self, day: date, balance: float) -> None:
        pass

    @abstractmethod
    async def upsert_daily_pnl(self, day: date, pnl: float, last_updated: datetime) -> None:
        pass
