from typing import Dict, Hashable, Iterable, List, Tuple, TypeVar, Union

from futures_dashboard.core.entities.trade import NormalizedTrade, TradeResponse

T = TypeVar("T", TradeResponse, NormalizedTrade)


def _enum_value(value: Union[str, object]) -> str:
    return str(getattr(value, "value", value)).upper()


def trade_identity(trade: Union[TradeResponse, NormalizedTrade]) -> Tuple[Hashable, ...]:
    """
    (symbol, id, orderId, side, positionSide). Price, quantity and time are
    not part of identity; the archive and the live API round them differently.
    """
    return (
        trade.symbol,
        trade.id,
        trade.order_id,
        _enum_value(trade.side),
        _enum_value(trade.position_side),
    )


def merge_trades(live: Iterable[T], archive: Iterable[T]) -> List[T]:
    """
    Concatenate live before archive and keep the first copy of each fill.
    No ordering is promised; the reconstructor sorts.
    """
    seen: Dict[Tuple[Hashable, ...], T] = {}
    for source in (live, archive):
        for trade in source:
            key = trade_identity(trade)
            if key not in seen:
                seen[key] = trade
    return list(seen.values())
