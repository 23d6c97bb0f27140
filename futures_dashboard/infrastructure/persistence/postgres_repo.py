import asyncio
import logging
from contextlib import closing
from datetime import date, datetime, timezone
from typing import List, Sequence

import psycopg2
from psycopg2.extras import execute_values

from futures_dashboard.core.entities.account import BalanceSnapshotResponse
from futures_dashboard.core.entities.summary import DailyPnLResponse
from futures_dashboard.core.entities.trade import TradeResponse
from futures_dashboard.core.interfaces.datasource import ITradeArchive

logger = logging.getLogger(__name__)


class PostgresRepo(ITradeArchive):
    """
    Trade archive and persisted daily series on PostgreSQL.

    psycopg2 is blocking, so every public coroutine hands its work to a
    worker thread. Each call opens its own connection and closes it on
    the way out, including when the query fails.
    """

    def __init__(self, dsn: str):
        self.dsn = dsn
        self._init_db()

    def _connect(self):
        return closing(psycopg2.connect(self.dsn))

    def _init_db(self):
        with self._connect() as conn, conn.cursor() as cur:
            # Fills
            cur.execute("""
                CREATE TABLE IF NOT EXISTS trade_details (
                    symbol VARCHAR NOT NULL,
                    trade_id BIGINT NOT NULL,
                    order_id BIGINT NOT NULL,
                    side VARCHAR NOT NULL,
                    position_side VARCHAR NOT NULL,
                    price DECIMAL,
                    qty DECIMAL,
                    realized_pnl DECIMAL,
                    quote_qty DECIMAL,
                    commission DECIMAL,
                    time_ms BIGINT,
                    buyer BOOLEAN,
                    maker BOOLEAN,
                    PRIMARY KEY (symbol, trade_id, order_id, side, position_side)
                );
            """)

            # End-of-day balance
            cur.execute("""
                CREATE TABLE IF NOT EXISTS balance_snapshots (
                    day DATE PRIMARY KEY,
                    balance DECIMAL
                );
            """)

            # Daily PnL
            cur.execute("""
                CREATE TABLE IF NOT EXISTS daily_pnl (
                    day DATE PRIMARY KEY,
                    pnl DECIMAL,
                    last_updated TIMESTAMPTZ
                );
            """)

            conn.commit()
        logger.info("Archive tables ready.")

    # --- Blocking implementations ---

    def _fetch_all(self, query: str) -> list:
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(query)
            return cur.fetchall()

    def _select_trades(self) -> List[TradeResponse]:
        rows = self._fetch_all("""
            SELECT symbol, trade_id, order_id, side, position_side, price, qty,
                   realized_pnl, quote_qty, commission, time_ms, buyer, maker
            FROM trade_details
            ORDER BY time_ms
        """)

        return [
            TradeResponse(
                symbol=row[0],
                id=row[1],
                order_id=row[2],
                side=row[3],
                position_side=row[4],
                price=float(row[5]),
                quantity=float(row[6]),
                realized_pnl=float(row[7] or 0),
                quote_quantity=float(row[8] or 0),
                commission=float(row[9] or 0),
                time=datetime.fromtimestamp(row[10] / 1000, tz=timezone.utc),
                buyer=bool(row[11]),
                maker=bool(row[12]),
            )
            for row in rows
        ]

    def _insert_trades(self, trades: Sequence[TradeResponse]) -> int:
        if not trades:
            return 0

        data = [
            (
                t.symbol, t.id, t.order_id, t.side.upper(), t.position_side.upper(),
                t.price, t.quantity, t.realized_pnl, t.quote_quantity, t.commission,
                int(t.time.timestamp() * 1000), t.buyer, t.maker,
            )
            for t in trades
        ]

        insert_query = """
            INSERT INTO trade_details (symbol, trade_id, order_id, side, position_side, price, qty,
                                       realized_pnl, quote_qty, commission, time_ms, buyer, maker)
            VALUES %s
            ON CONFLICT DO NOTHING
            RETURNING trade_id
        """

        with self._connect() as conn, conn.cursor() as cur:
            inserted = execute_values(cur, insert_query, data, fetch=True)
            conn.commit()
        return len(inserted)

    def _select_balance_snapshots(self) -> List[BalanceSnapshotResponse]:
        rows = self._fetch_all("SELECT day, balance FROM balance_snapshots ORDER BY day")
        return [BalanceSnapshotResponse(date=row[0], balance=float(row[1])) for row in rows]

    def _select_daily_pnl(self) -> List[DailyPnLResponse]:
        rows = self._fetch_all("SELECT day, pnl, last_updated FROM daily_pnl ORDER BY day")
        return [DailyPnLResponse(date=row[0], pnl=float(row[1]), last_updated=row[2]) for row in rows]

    def _execute(self, query: str, params: tuple):
        with self._connect() as conn, conn.cursor() as cur:
            cur.execute(query, params)
            conn.commit()

    # --- ITradeArchive ---

    async def get_all_account_trades(self) -> List[TradeResponse]:
        return await asyncio.to_thread(self._select_trades)

    async def get_balance_snapshots(self) -> List[BalanceSnapshotResponse]:
        return await asyncio.to_thread(self._select_balance_snapshots)

    async def get_daily_pnl(self) -> List[DailyPnLResponse]:
        return await asyncio.to_thread(self._select_daily_pnl)

    async def archive_trades(self, trades: Sequence[TradeResponse]) -> int:
        inserted = await asyncio.to_thread(self._insert_trades, list(trades))
        logger.info(f"Archived {inserted} new fills ({len(trades)} offered)")
        return inserted

    async def upsert_balance_snapshot(self, day: date, balance: float) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO balance_snapshots (day, balance) VALUES (%s, %s)
            ON CONFLICT (day) DO UPDATE SET balance = EXCLUDED.balance
            """,
            (day, balance),
        )

    async def upsert_daily_pnl(self, day: date, pnl: float, last_updated: datetime) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO daily_pnl (day, pnl, last_updated) VALUES (%s, %s, %s)
            ON CONFLICT (day) DO UPDATE SET pnl = EXCLUDED.pnl, last_updated = EXCLUDED.last_updated
            """,
            (day, pnl, last_updated),
        )
