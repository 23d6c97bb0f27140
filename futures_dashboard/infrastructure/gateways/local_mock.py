import random
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from futures_dashboard.core.constants import COMMISSION, FUNDING_FEE, REALIZED_PNL
from futures_dashboard.core.entities.account import BalanceResponse, IncomeResponse
from futures_dashboard.core.entities.position import OpenOrderResponse, OpenPositionResponse
from futures_dashboard.core.entities.trade import TradeResponse
from futures_dashboard.core.interfaces.datasource import IExchangeSource


class LocalMockSource(IExchangeSource):
    """
    Canned exchange data for running the service without Binance credentials.
    """

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime.now(timezone.utc)

    async def get_balance(self) -> BalanceResponse:
        return BalanceResponse(balance=round(random.uniform(1000, 5000), 2), update_time=self.now)

    async def get_account_trades(
        self,
        symbols: Sequence[str],
        start_time: Optional[datetime] = None
    ) -> List[TradeResponse]:
        # One closed long and one still-open short on BTCUSDT
        t0 = self.now - timedelta(hours=6)
        trades = [
            TradeResponse(symbol="BTCUSDT", id=1, order_id=101, side="BUY", position_side="LONG",
                          price=40000.0, quantity=0.01, time=t0),
            TradeResponse(symbol="BTCUSDT", id=2, order_id=102, side="SELL", position_side="LONG",
                          price=40500.0, quantity=0.01, realized_pnl=5.0, commission=0.16,
                          time=t0 + timedelta(hours=1)),
            TradeResponse(symbol="BTCUSDT", id=3, order_id=103, side="SELL", position_side="SHORT",
                          price=40400.0, quantity=0.02, time=t0 + timedelta(hours=2)),
        ]
        wanted = {s.upper() for s in symbols}
        return [
            t for t in trades
            if (not wanted or t.symbol in wanted) and (start_time is None or t.time >= start_time)
        ]

    async def get_income_history(self, start_time: Optional[datetime] = None) -> List[IncomeResponse]:
        records = []
        for days_ago in range(7):
            moment = self.now - timedelta(days=days_ago, hours=1)
            records.extend([
                IncomeResponse(symbol="BTCUSDT", income_type=REALIZED_PNL, income=5.0,
                               asset="USDT", time=moment, tran_id=1000 + days_ago * 3),
                IncomeResponse(symbol="BTCUSDT", income_type=COMMISSION, income=-0.16,
                               asset="USDT", time=moment, tran_id=1001 + days_ago * 3),
                IncomeResponse(symbol="BTCUSDT", income_type=FUNDING_FEE, income=-0.05,
                               asset="USDT", time=moment, tran_id=1002 + days_ago * 3),
            ])
        if start_time is not None:
            records = [r for r in records if r.time >= start_time]
        return sorted(records, key=lambda r: r.time)

    async def get_open_positions(self) -> List[OpenPositionResponse]:
        return [
            OpenPositionResponse(symbol="BTCUSDT", position_side="SHORT", entry_price=40400.0,
                                 unrealized_profit=-1.2, liquidation_price=52000.0, notional=-809.2)
        ]

    async def get_open_orders(self) -> List[OpenOrderResponse]:
        return [
            OpenOrderResponse(symbol="BTCUSDT", price=39000.0, time=self.now, entry_type="CLOSE SHORT",
                              order_type="LIMIT", amount=0.02, reduce_only=False)
        ]
