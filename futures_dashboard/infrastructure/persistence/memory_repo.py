from datetime import date, datetime
from typing import Dict, List, Sequence, Tuple

from futures_dashboard.core.entities.account import BalanceSnapshotResponse
from futures_dashboard.core.entities.summary import DailyPnLResponse
from futures_dashboard.core.entities.trade import TradeResponse
from futures_dashboard.core.interfaces.datasource import ITradeArchive
from futures_dashboard.core.use_cases.trade_merger import trade_identity


class InMemoryArchive(ITradeArchive):
    """Process-local archive for mock mode and tests."""

    def __init__(
        self,
        trades: Sequence[TradeResponse] = (),
        balance_snapshots: Sequence[BalanceSnapshotResponse] = (),
        daily_pnl: Sequence[DailyPnLResponse] = (),
    ):
        self._trades: Dict[Tuple, TradeResponse] = {}
        for t in trades:
            self._trades.setdefault(trade_identity(t), t)
        self._snapshots: Dict[date, float] = {s.date: s.balance for s in balance_snapshots}
        self._daily: Dict[date, DailyPnLResponse] = {d.date: d for d in daily_pnl}

    async def get_all_account_trades(self) -> List[TradeResponse]:
        return list(self._trades.values())

    async def get_balance_snapshots(self) -> List[BalanceSnapshotResponse]:
        return [BalanceSnapshotResponse(date=d, balance=b) for d, b in sorted(self._snapshots.items())]

    async def get_daily_pnl(self) -> List[DailyPnLResponse]:
        return [self._daily[d] for d in sorted(self._daily)]

    async def archive_trades(self, trades: Sequence[TradeResponse]) -> int:
        added = 0
        for t in trades:
            key = trade_identity(t)
            if key not in self._trades:
                self._trades[key] = t
                added += 1
        return added

    async def upsert_balance_snapshot(self, day: date, balance: float) -> None:
        self._snapshots[day] = balance

    async def upsert_daily_pnl(self, day: date, pnl: float, last_updated: datetime) -> None:
        self._daily[day] = DailyPnLResponse(date=day, pnl=pnl, last_updated=last_updated)
