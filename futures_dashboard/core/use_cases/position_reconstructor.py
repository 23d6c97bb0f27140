from typing import Dict, Iterable, List, Sequence, Union

from futures_dashboard.core.constants import (
    CLOSE_EPSILON,
    CLOSE_ROUNDING_DIGITS,
    FLAT_EPSILON,
    PNL_ROUNDING_DIGITS,
)
from futures_dashboard.core.entities.position import PositionHistoryResponse
from futures_dashboard.core.entities.trade import NormalizedTrade, PositionSide, TradeResponse
from futures_dashboard.core.use_cases.trade_normalizer import normalize_trade


def _is_opening(trade: NormalizedTrade, position_side: PositionSide) -> bool:
    if position_side is PositionSide.LONG:
        return trade.signed_quantity > 0
    return trade.signed_quantity < 0


def _is_flat(position: float) -> bool:
    return abs(position) < FLAT_EPSILON


def _is_closed(position: float) -> bool:
    # Tolerates exchange-side rounding dust after a full close
    return abs(round(position, CLOSE_ROUNDING_DIGITS)) < CLOSE_EPSILON


class PositionReconstructor:
    """
    Rebuilds closed round-trip positions from individual fills.

    LONG and SHORT books of the same symbol are independent state machines and
    are never netted against each other. Only segments that start flat and come
    back to (near) flat are emitted; a trailing open segment is dropped.
    """

    @staticmethod
    def reconstruct_side(
        trades: Sequence[NormalizedTrade], position_side: PositionSide
    ) -> List[PositionHistoryResponse]:
        """
        Walk one (symbol, position side) run.

        Preconditions: every trade shares the symbol and position side, and the
        list is sorted ascending by time (ties keep their original order).
        """
        position_side = PositionSide(position_side)
        history: List[PositionHistoryResponse] = []

        position = 0.0
        i = 0
        n = len(trades)

        while i < n:
            first = trades[i]

            # Closing fills seen while flat belong to a segment opened before
            # this window; skip them.
            if not (_is_flat(position) and _is_opening(first, position_side)):
                i += 1
                continue

            # INIT segment state
            position = 0.0
            entry_price_sum = 0.0
            times_opened = 0
            close_price_sum = 0.0
            times_closed = 0
            pnl_sum = 0.0
            open_time = first.time
            close_time = first.time

            closed_at = None
            j = i
            while j < n:
                trade = trades[j]
                position += trade.signed_quantity

                if _is_opening(trade, position_side):
                    entry_price_sum += trade.price
                    times_opened += 1
                else:
                    pnl_sum += trade.realized_pnl
                    close_price_sum += trade.price
                    times_closed += 1

                close_time = trade.time

                if _is_closed(position):
                    closed_at = j
                    break
                j += 1

            if closed_at is None:
                # Still open at the end of the data: nothing to report
                break

            history.append(PositionHistoryResponse(
                symbol=first.symbol,
                positionSide=position_side,
                entryPrice=entry_price_sum / times_opened if times_opened else 0.0,
                avgClosePrice=close_price_sum / times_closed if times_closed else 0.0,
                openTime=open_time,
                closeTime=close_time,
                pnl=round(pnl_sum, PNL_ROUNDING_DIGITS),
                timesOpened=times_opened,
                timesClosed=times_closed,
            ))

            # Dust left by the loose close test does not carry into the next segment
            position = 0.0
            i = closed_at + 1

        return history

    @staticmethod
    def reconstruct(trades: Iterable[Union[TradeResponse, NormalizedTrade]]) -> List[PositionHistoryResponse]:
        """
        Reconstruct every closed position across all symbols and both sides,
        sorted ascending by close time.

        Raw trades are normalized first; one invalid record fails the whole
        batch with InvalidTradeData before anything is emitted.
        """
        normalized = [
            t if isinstance(t, NormalizedTrade) else normalize_trade(t)
            for t in trades
        ]

        # Group by symbol, keeping first-seen order
        by_symbol: Dict[str, List[NormalizedTrade]] = {}
        for trade in normalized:
            by_symbol.setdefault(trade.symbol, []).append(trade)

        history: List[PositionHistoryResponse] = []
        for symbol_trades in by_symbol.values():
            for side in (PositionSide.LONG, PositionSide.SHORT):
                side_trades = [t for t in symbol_trades if t.position_side is side]
                if not side_trades:
                    continue
                # sorted() is stable: equal timestamps keep their input order
                side_trades = sorted(side_trades, key=lambda t: t.time)
                history.extend(PositionReconstructor.reconstruct_side(side_trades, side))

        history.sort(key=lambda p: p.closeTime)
        return history


reconstruct_positions = PositionReconstructor.reconstruct
reconstruct_side = PositionReconstructor.reconstruct_side
