from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class PositionSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class TradeResponse(BaseModel):
    """
    One fill as delivered by the exchange or the archive.
    Quantity is unsigned; side and position side are kept as the raw strings
    so that validation happens in one place (the normalizer).
    """
    model_config = ConfigDict(frozen=True)

    symbol: str
    id: int
    order_id: int
    side: str
    position_side: str
    price: float
    quantity: float
    realized_pnl: float = 0.0
    quote_quantity: float = 0.0
    commission: float = 0.0
    time: datetime
    buyer: bool = False
    maker: bool = False


class NormalizedTrade(BaseModel):
    """
    Validated fill with a signed quantity (SELL fills negative).
    Only ever built from a TradeResponse, never mutated.
    """
    model_config = ConfigDict(frozen=True)

    symbol: str
    id: int
    order_id: int
    side: Side
    position_side: PositionSide
    price: float
    quantity: float
    signed_quantity: float
    realized_pnl: float
    quote_quantity: float = 0.0
    commission: float = 0.0
    time: datetime
    buyer: bool = False
    maker: bool = False
