from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from futures_dashboard.core.entities.trade import PositionSide


class PositionHistoryResponse(BaseModel):
    """
    A closed round trip on one (symbol, position side): flat -> open -> flat.
    Still-open exposure is never represented here.
    """
    model_config = ConfigDict(frozen=True)

    symbol: str
    positionSide: PositionSide
    entryPrice: float
    avgClosePrice: float
    openTime: datetime
    closeTime: datetime
    pnl: float
    timesOpened: int
    timesClosed: int


class OpenPositionResponse(BaseModel):
    """Live open position as reported by the exchange risk endpoint."""
    symbol: str
    position_side: str
    entry_price: float
    unrealized_profit: float
    liquidation_price: float
    notional: float


class OpenOrderResponse(BaseModel):
    symbol: str
    price: float
    time: datetime
    entry_type: str  # e.g. "OPEN LONG", "CLOSE SHORT"
    order_type: str
    amount: float
    reduce_only: Optional[bool] = None
