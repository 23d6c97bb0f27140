"""
Builders and fakes shared by the test modules.
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from futures_dashboard.core.entities.account import BalanceResponse, IncomeResponse
from futures_dashboard.core.entities.position import OpenOrderResponse, OpenPositionResponse
from futures_dashboard.core.entities.trade import TradeResponse
from futures_dashboard.core.interfaces.datasource import IExchangeSource

NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_trade(
    id: int,
    side: str,
    qty: float,
    price: float = 100.0,
    pnl: float = 0.0,
    position_side: str = "LONG",
    symbol: str = "BTCUSDT",
    minute: Optional[int] = None,
    order_id: Optional[int] = None,
) -> TradeResponse:
    """Fill at T0 + `minute` minutes (defaults to the trade id)."""
    return TradeResponse(
        symbol=symbol,
        id=id,
        order_id=order_id if order_id is not None else 1000 + id,
        side=side,
        position_side=position_side,
        price=price,
        quantity=qty,
        realized_pnl=pnl,
        time=T0 + timedelta(minutes=id if minute is None else minute),
    )


def make_income(income_type: str, amount: float, time: datetime, symbol: str = "BTCUSDT") -> IncomeResponse:
    return IncomeResponse(symbol=symbol, income_type=income_type, income=amount, asset="USDT", time=time)


class FakeExchange(IExchangeSource):
    """Scripted exchange that counts calls."""

    def __init__(
        self,
        balance: float = 1000.0,
        trades: Sequence[TradeResponse] = (),
        incomes: Sequence[IncomeResponse] = (),
        positions: Sequence[OpenPositionResponse] = (),
        orders: Sequence[OpenOrderResponse] = (),
    ):
        self.balance = balance
        self.trades = list(trades)
        self.incomes = list(incomes)
        self.positions = list(positions)
        self.orders = list(orders)
        self.error: Optional[Exception] = None
        self.calls = {"balance": 0, "trades": 0, "income": 0, "positions": 0, "orders": 0}
        self.requested_symbols: List[List[str]] = []

    def _maybe_fail(self):
        if self.error is not None:
            raise self.error

    async def get_balance(self) -> BalanceResponse:
        self.calls["balance"] += 1
        self._maybe_fail()
        return BalanceResponse(balance=self.balance, update_time=NOW)

    async def get_account_trades(self, symbols, start_time=None) -> List[TradeResponse]:
        self.calls["trades"] += 1
        self.requested_symbols.append(list(symbols))
        self._maybe_fail()
        return list(self.trades)

    async def get_income_history(self, start_time=None) -> List[IncomeResponse]:
        self.calls["income"] += 1
        self._maybe_fail()
        return list(self.incomes)

    async def get_open_positions(self) -> List[OpenPositionResponse]:
        self.calls["positions"] += 1
        self._maybe_fail()
        return list(self.positions)

    async def get_open_orders(self) -> List[OpenOrderResponse]:
        self.calls["orders"] += 1
        self._maybe_fail()
        return list(self.orders)
