import math
from typing import Iterable, List

from futures_dashboard.core.entities.trade import NormalizedTrade, PositionSide, Side, TradeResponse
from futures_dashboard.core.errors import InvalidTradeData


def normalize_trade(trade: TradeResponse) -> NormalizedTrade:
    """
    Validate a raw fill and return a new NormalizedTrade whose quantity is
    signed by side (SELL negative). The input is left untouched.
    """
    if not trade.symbol or not trade.symbol.strip():
        raise InvalidTradeData(f"Trade {trade.id} has an empty symbol")

    try:
        side = Side(str(trade.side).upper())
    except ValueError:
        raise InvalidTradeData(f"Trade {trade.id} ({trade.symbol}) has unknown side {trade.side!r}") from None

    try:
        position_side = PositionSide(str(trade.position_side).upper())
    except ValueError:
        raise InvalidTradeData(
            f"Trade {trade.id} ({trade.symbol}) has unknown position side {trade.position_side!r}"
        ) from None

    for field in ("price", "quantity", "realized_pnl"):
        value = getattr(trade, field)
        if not math.isfinite(value):
            raise InvalidTradeData(f"Trade {trade.id} ({trade.symbol}) has non-finite {field}: {value}")

    quantity = abs(trade.quantity)
    signed_quantity = -quantity if side is Side.SELL else quantity

    return NormalizedTrade(
        symbol=trade.symbol,
        id=trade.id,
        order_id=trade.order_id,
        side=side,
        position_side=position_side,
        price=trade.price,
        quantity=quantity,
        signed_quantity=signed_quantity,
        realized_pnl=trade.realized_pnl,
        quote_quantity=trade.quote_quantity,
        commission=trade.commission,
        time=trade.time,
        buyer=trade.buyer,
        maker=trade.maker,
    )


def normalize_trades(trades: Iterable[TradeResponse]) -> List[NormalizedTrade]:
    # All-or-nothing: the first bad record aborts the batch
    return [normalize_trade(t) for t in trades]
