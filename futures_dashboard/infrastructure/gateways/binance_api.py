import asyncio
import hashlib
import hmac
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlencode

import httpx

from futures_dashboard.core.constants import (
    ACCOUNT_TRADES_ENDPOINT,
    BALANCE_ASSET,
    BALANCE_ENDPOINT,
    INCOME_HISTORY_ENDPOINT,
    MAINNET_BASE_URL,
    OPEN_ORDERS_ENDPOINT,
    OPEN_POSITIONS_ENDPOINT,
)
from futures_dashboard.core.entities.account import BalanceResponse, IncomeResponse
from futures_dashboard.core.entities.position import OpenOrderResponse, OpenPositionResponse
from futures_dashboard.core.entities.trade import TradeResponse
from futures_dashboard.core.errors import ExchangeAPIError
from futures_dashboard.core.interfaces.datasource import IExchangeSource

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "Received an empty response from Binance API."


def _to_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)


def _from_ms(value: Any) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def _to_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def _income_key(raw: Dict[str, Any]) -> tuple:
    tran_id = raw.get("tranId")
    if tran_id not in (None, ""):
        return ("tran", str(tran_id))
    return (raw.get("time"), raw.get("incomeType"), raw.get("symbol"), raw.get("income"))


def _entry_type(side: str, position_side: str, reduce_only: bool) -> str:
    """
    "OPEN LONG" / "CLOSE LONG" / "OPEN SHORT" / "CLOSE SHORT".
    One-way mode reports positionSide BOTH; the direction then comes from side.
    """
    side = side.upper()
    position_side = position_side.upper()
    if position_side in ("LONG", "SHORT"):
        opening = (side == "BUY") == (position_side == "LONG")
        return f"{'OPEN' if opening else 'CLOSE'} {position_side}"
    if reduce_only:
        return "CLOSE LONG" if side == "SELL" else "CLOSE SHORT"
    return "OPEN LONG" if side == "BUY" else "OPEN SHORT"


class BinanceGateway(IExchangeSource):
    """
    IExchangeSource for the Binance USDT-M futures REST API.

    This is the boundary where the exchange's string-typed numbers and epoch
    milliseconds become floats and UTC datetimes.
    """

    def __init__(
        self,
        api_key: Optional[str],
        api_secret: Optional[str],
        base_url: str = MAINNET_BASE_URL,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not api_key or not api_secret:
            raise ExchangeAPIError("Binance API credentials are not configured")
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        logger.info(f"BinanceGateway initialized. URL: {base_url}")

    async def aclose(self) -> None:
        await self.client.aclose()

    # --- Transport ---

    def _sign_params(self, params: Dict[str, Any]) -> Dict[str, Any]:
        params = dict(params)
        params["timestamp"] = int(time.time() * 1000)
        query = urlencode(params)
        params["signature"] = hmac.new(
            self.api_secret.encode("utf-8"),
            query.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return params

    async def _signed_get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        delay = self.backoff_factor
        attempt = 0
        while True:
            signed = self._sign_params(params or {})
            logger.info(f"GET {self.base_url}{path}")
            try:
                response = await self.client.get(
                    path, params=signed, headers={"X-MBX-APIKEY": self.api_key}
                )
            except httpx.TransportError as exc:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(f"Retry exhausted after {attempt - 1} attempts on {path}: {exc}")
                    raise
                logger.warning(f"Retrying {path} attempt {attempt}/{self.max_retries} after error: {exc}")
                await asyncio.sleep(delay)
                delay *= 2
                continue
            return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> Any:
        if response.status_code >= 400:
            code, msg = None, response.text
            try:
                payload = response.json()
                code, msg = payload.get("code"), payload.get("msg", msg)
            except ValueError:
                pass
            logger.error(f"Binance API error ({response.status_code}): {msg}")
            raise ExchangeAPIError(
                f"Binance API error: {msg} (Code: {code})",
                code=code,
                status_code=response.status_code,
            )
        if not response.content:
            raise ExchangeAPIError(EMPTY_RESPONSE_MESSAGE, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            logger.error("Failed to decode JSON response from Binance")
            raise ExchangeAPIError("Invalid JSON response from Binance API.") from exc

    # --- IExchangeSource ---

    async def get_balance(self) -> BalanceResponse:
        balances = await self._signed_get(BALANCE_ENDPOINT)
        if not isinstance(balances, list):
            raise ExchangeAPIError(EMPTY_RESPONSE_MESSAGE)
        current = next((b for b in balances if b.get("asset") == BALANCE_ASSET), None)
        return BalanceResponse(
            balance=_to_float(current.get("crossWalletBalance")) if current else 0.0,
            update_time=datetime.now(timezone.utc),
        )

    async def get_account_trades(
        self,
        symbols: Sequence[str],
        start_time: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[TradeResponse]:
        """
        userTrades requires a symbol, so each symbol is paged separately by fromId.
        """
        trades: List[TradeResponse] = []
        for symbol in symbols:
            params: Dict[str, Any] = {"symbol": symbol, "limit": limit}
            if start_time is not None:
                params["startTime"] = _to_ms(start_time)

            while True:
                batch = await self._signed_get(ACCOUNT_TRADES_ENDPOINT, params)
                if not isinstance(batch, list) or not batch:
                    break
                trades.extend(self._map_trade(raw) for raw in batch)
                if len(batch) < limit:
                    break
                # fromId cannot be combined with a time window
                params.pop("startTime", None)
                params["fromId"] = int(batch[-1]["id"]) + 1

        return trades

    async def get_income_history(
        self,
        start_time: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[IncomeResponse]:
        params: Dict[str, Any] = {"limit": limit}
        if start_time is not None:
            params["startTime"] = _to_ms(start_time)

        entries: List[IncomeResponse] = []
        seen = set()
        while True:
            batch = await self._signed_get(INCOME_HISTORY_ENDPOINT, params)
            if not isinstance(batch, list) or not batch:
                break
            fresh = [raw for raw in batch if _income_key(raw) not in seen]
            if not fresh:
                break
            seen.update(_income_key(raw) for raw in fresh)
            entries.extend(self._map_income(raw) for raw in fresh)
            if len(batch) < limit:
                break
            # Records sharing the last timestamp may spill onto the next page
            params["startTime"] = int(batch[-1]["time"])

        return entries

    async def get_open_positions(self) -> List[OpenPositionResponse]:
        rows = await self._signed_get(OPEN_POSITIONS_ENDPOINT)
        positions = []
        for row in rows or []:
            if _to_float(row.get("positionAmt")) == 0:
                continue
            positions.append(OpenPositionResponse(
                symbol=row["symbol"],
                position_side=row.get("positionSide", "BOTH"),
                entry_price=_to_float(row.get("entryPrice")),
                unrealized_profit=_to_float(row.get("unRealizedProfit")),
                liquidation_price=_to_float(row.get("liquidationPrice")),
                notional=_to_float(row.get("notional")),
            ))
        return positions

    async def get_open_orders(self) -> List[OpenOrderResponse]:
        rows = await self._signed_get(OPEN_ORDERS_ENDPOINT)
        orders = []
        for row in rows or []:
            reduce_only = bool(row.get("reduceOnly", False))
            price = _to_float(row.get("price"))
            if price == 0:
                # Stop / take-profit market orders carry their trigger in stopPrice
                price = _to_float(row.get("stopPrice"))
            orders.append(OpenOrderResponse(
                symbol=row["symbol"],
                price=price,
                time=_from_ms(row.get("time", 0)),
                entry_type=_entry_type(row.get("side", ""), row.get("positionSide", "BOTH"), reduce_only),
                order_type=row.get("type") or row.get("origType", ""),
                amount=_to_float(row.get("origQty")),
                reduce_only=reduce_only,
            ))
        return orders

    # --- Mapping ---

    @staticmethod
    def _map_trade(raw: Dict[str, Any]) -> TradeResponse:
        return TradeResponse(
            symbol=raw["symbol"],
            id=int(raw["id"]),
            order_id=int(raw["orderId"]),
            side=raw["side"],
            position_side=raw.get("positionSide", ""),
            price=_to_float(raw.get("price")),
            quantity=_to_float(raw.get("qty")),
            realized_pnl=_to_float(raw.get("realizedPnl")),
            quote_quantity=_to_float(raw.get("quoteQty")),
            commission=_to_float(raw.get("commission")),
            time=_from_ms(raw["time"]),
            buyer=bool(raw.get("buyer", False)),
            maker=bool(raw.get("maker", False)),
        )

    @staticmethod
    def _map_income(raw: Dict[str, Any]) -> IncomeResponse:
        trade_id = raw.get("tradeId")
        return IncomeResponse(
            symbol=raw.get("symbol") or None,
            income_type=raw.get("incomeType"),
            income=_to_float(raw.get("income")),
            asset=raw.get("asset"),
            info=raw.get("info"),
            time=_from_ms(raw["time"]),
            tran_id=int(raw["tranId"]) if raw.get("tranId") not in (None, "") else None,
            trade_id=int(trade_id) if trade_id not in (None, "") else None,
        )
