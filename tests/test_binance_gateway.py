"""
BinanceGateway against a scripted httpx transport.
"""
import hashlib
import hmac
from datetime import datetime, timezone
from urllib.parse import urlencode

import httpx
import pytest

from futures_dashboard.core.errors import ExchangeAPIError
from futures_dashboard.infrastructure.gateways.binance_api import BinanceGateway, _entry_type

BASE_URL = "https://fapi.test"


def gateway_for(handler, **kwargs) -> BinanceGateway:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return BinanceGateway("key", "secret", base_url=BASE_URL, client=client, backoff_factor=0, **kwargs)


def raw_trade(id, side="BUY", position_side="LONG", symbol="BTCUSDT"):
    return {
        "symbol": symbol, "id": id, "orderId": 500 + id, "side": side, "positionSide": position_side,
        "price": "42000.5", "qty": "0.010", "realizedPnl": "1.25", "quoteQty": "420.005",
        "commission": "0.168", "commissionAsset": "USDT", "time": 1704067200000 + id,
        "buyer": side == "BUY", "maker": False,
    }


async def test_requests_are_signed():
    seen = {}

    def handler(request: httpx.Request):
        seen["headers"] = request.headers
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[{"asset": "USDT", "crossWalletBalance": "10"}])

    await gateway_for(handler).get_balance()

    params = seen["params"]
    assert seen["headers"]["X-MBX-APIKEY"] == "key"
    signature = params.pop("signature")
    expected = hmac.new(b"secret", urlencode(params).encode(), hashlib.sha256).hexdigest()
    assert signature == expected
    assert "timestamp" in params


async def test_balance_picks_usdt_and_parses_strings():
    def handler(request):
        assert request.url.path == "/fapi/v3/balance"
        return httpx.Response(200, json=[
            {"asset": "BNB", "crossWalletBalance": "3.1"},
            {"asset": "USDT", "crossWalletBalance": "1523.77"},
        ])

    balance = await gateway_for(handler).get_balance()
    assert balance.balance == pytest.approx(1523.77)
    assert balance.update_time.tzinfo is not None


async def test_trades_are_mapped_and_paged_by_from_id():
    requests = []

    def handler(request):
        params = dict(request.url.params)
        requests.append(params)
        if "fromId" not in params:
            return httpx.Response(200, json=[raw_trade(1), raw_trade(2)])
        return httpx.Response(200, json=[raw_trade(3, side="SELL")])

    trades = await gateway_for(handler).get_account_trades(["BTCUSDT"], limit=2)

    assert [t.id for t in trades] == [1, 2, 3]
    assert requests[1]["fromId"] == "3"
    first = trades[0]
    assert first.order_id == 501
    assert first.price == 42000.5
    assert first.quantity == 0.01
    assert first.realized_pnl == 1.25
    assert first.time == datetime.fromtimestamp(1704067200.001, tz=timezone.utc)


async def test_trades_requested_per_symbol():
    symbols = []

    def handler(request):
        symbols.append(request.url.params["symbol"])
        return httpx.Response(200, json=[])

    assert await gateway_for(handler).get_account_trades(["BTCUSDT", "ETHUSDT"]) == []
    assert symbols == ["BTCUSDT", "ETHUSDT"]


async def test_income_paged_by_start_time():
    starts = []

    def handler(request):
        starts.append(request.url.params.get("startTime"))
        if len(starts) == 1:
            return httpx.Response(200, json=[
                {"symbol": "BTCUSDT", "incomeType": "REALIZED_PNL", "income": "5.5", "asset": "USDT",
                 "info": "", "time": 1704067200000, "tranId": 9, "tradeId": "77"},
                {"symbol": "", "incomeType": "TRANSFER", "income": "100", "asset": "USDT",
                 "info": "TRANSFER", "time": 1704067300000, "tranId": 10, "tradeId": ""},
            ])
        return httpx.Response(200, json=[])

    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    incomes = await gateway_for(handler).get_income_history(start_time=start, limit=2)

    assert starts == ["1704067200000", "1704067300000"]
    assert incomes[0].income == 5.5
    assert incomes[0].trade_id == 77
    assert incomes[1].symbol is None
    assert incomes[1].trade_id is None


async def test_income_paging_keeps_records_sharing_a_page_boundary_timestamp():
    def income(tran_id, time_ms):
        return {"symbol": "BTCUSDT", "incomeType": "COMMISSION", "income": "-0.1", "asset": "USDT",
                "info": "", "time": time_ms, "tranId": tran_id, "tradeId": ""}

    pages = [
        [income(1, 1704067200000), income(2, 1704067300000)],
        [income(2, 1704067300000), income(3, 1704067300000)],
        [income(2, 1704067300000), income(3, 1704067300000)],
    ]
    starts = []

    def handler(request):
        starts.append(request.url.params.get("startTime"))
        return httpx.Response(200, json=pages[len(starts) - 1])

    incomes = await gateway_for(handler).get_income_history(limit=2)

    assert [i.tran_id for i in incomes] == [1, 2, 3]
    assert starts == [None, "1704067300000", "1704067300000"]


async def test_zero_size_positions_are_dropped():
    def handler(request):
        return httpx.Response(200, json=[
            {"symbol": "BTCUSDT", "positionSide": "LONG", "positionAmt": "0.5", "entryPrice": "40000",
             "unRealizedProfit": "12.3", "liquidationPrice": "30000", "notional": "20006"},
            {"symbol": "ETHUSDT", "positionSide": "SHORT", "positionAmt": "0.000", "entryPrice": "0",
             "unRealizedProfit": "0", "liquidationPrice": "0", "notional": "0"},
        ])

    [position] = await gateway_for(handler).get_open_positions()
    assert position.symbol == "BTCUSDT"
    assert position.unrealized_profit == 12.3


async def test_open_orders_entry_type_and_stop_price():
    def handler(request):
        return httpx.Response(200, json=[
            {"symbol": "BTCUSDT", "price": "0", "stopPrice": "39000", "side": "SELL", "positionSide": "LONG",
             "type": "STOP_MARKET", "origQty": "0.5", "reduceOnly": True, "time": 1704067200000},
            {"symbol": "ETHUSDT", "price": "2300", "stopPrice": "0", "side": "SELL", "positionSide": "SHORT",
             "type": "LIMIT", "origQty": "1", "reduceOnly": False, "time": 1704067200000},
        ])

    stop, limit = await gateway_for(handler).get_open_orders()

    assert stop.entry_type == "CLOSE LONG"
    assert stop.price == 39000
    assert stop.amount == 0.5
    assert limit.entry_type == "OPEN SHORT"
    assert limit.price == 2300


@pytest.mark.parametrize("side,position_side,reduce_only,expected", [
    ("BUY", "LONG", False, "OPEN LONG"),
    ("SELL", "LONG", True, "CLOSE LONG"),
    ("SELL", "SHORT", False, "OPEN SHORT"),
    ("BUY", "SHORT", True, "CLOSE SHORT"),
    ("BUY", "BOTH", False, "OPEN LONG"),
    ("SELL", "BOTH", True, "CLOSE LONG"),
    ("BUY", "BOTH", True, "CLOSE SHORT"),
])
def test_entry_type(side, position_side, reduce_only, expected):
    assert _entry_type(side, position_side, reduce_only) == expected


async def test_api_error_carries_code_and_message():
    def handler(request):
        return httpx.Response(400, json={"code": -2015, "msg": "Invalid API-key, IP, or permissions for action."})

    with pytest.raises(ExchangeAPIError) as exc_info:
        await gateway_for(handler).get_balance()

    assert exc_info.value.code == -2015
    assert exc_info.value.status_code == 400
    assert "Invalid API-key" in str(exc_info.value)


async def test_empty_body_is_an_error():
    def handler(request):
        return httpx.Response(200, content=b"")

    with pytest.raises(ExchangeAPIError, match="empty response"):
        await gateway_for(handler).get_open_orders()


async def test_transport_errors_are_retried_then_raised():
    attempts = 0

    def handler(request):
        nonlocal attempts
        attempts += 1
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(httpx.ConnectError):
        await gateway_for(handler, max_retries=2).get_balance()
    assert attempts == 3


async def test_transport_error_recovers_on_retry():
    attempts = 0

    def handler(request):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(200, json=[])

    assert await gateway_for(handler).get_open_positions() == []
    assert attempts == 2


def test_missing_credentials_rejected():
    with pytest.raises(ExchangeAPIError):
        BinanceGateway(None, "secret")
