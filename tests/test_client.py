from decimal import Decimal

import httpx
import pytest
import respx

from tradebot.binance.account import AccountCommissions, AccountOverview, sign
from tradebot.binance.client import Binance, ceil_to_step
from tradebot.binance.exchange_info import ExchangeInfo
from tradebot.order import Order, OrderSide, OrderStatus, OrderType
from tradebot.ticker import Ticker

BTCUSDT = Ticker("BTC", "USDT")
API_HOST = "api.binance.com"
DATA_HOST = "data-api.binance.vision"

ACCOUNT = {
    "uid": 1,
    "balances": [
        {"asset": "BTC", "free": "0.5", "locked": "0"},
        {"asset": "USDT", "free": "1000", "locked": "10"},
    ],
    "commissionRates": {"maker": "0.001", "taker": "0.002"},
}


def _symbol(filters, base="BTC", quote="USDT"):
    return {
        "symbol": base + quote,
        "baseAsset": base,
        "quoteAsset": quote,
        "baseAssetPrecision": 8,
        "quoteAssetPrecision": 8,
        "filters": filters,
    }


LOT = {"filterType": "LOT_SIZE", "minQty": "0.00001", "maxQty": "9000", "stepSize": "0.00001"}
NOTIONAL = {"filterType": "NOTIONAL", "minNotional": "5"}
PRICE = {"filterType": "PRICE_FILTER", "minPrice": "0.01", "maxPrice": "1000000", "tickSize": "0.01"}


def _exchange(filters):
    return ExchangeInfo.from_dict({"symbols": [_symbol(filters)]})


def _order(amount, price, side=OrderSide.BUY):
    return Order(
        creation_time=0,
        ticker=BTCUSDT,
        side=side,
        order_type=OrderType.MARKET,
        amount=Decimal(amount),
        price=Decimal(price),
    )


def _order_response(status="NEW", order_id=42):
    return {
        "symbol": "BTCUSDT",
        "orderId": order_id,
        "orderListId": -1,
        "clientOrderId": "client",
        "transactTime": 1700000000000,
        "price": "100.0",
        "origQty": "1.0",
        "executedQty": "0.0",
        "cummulativeQuoteQty": "0.0",
        "status": status,
        "timeInForce": "GTC",
        "type": "LIMIT",
        "side": "BUY",
    }


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("BINANCE_API_KEY", "placeholder")
    monkeypatch.setenv("BINANCE_API_SECRET", "secret")


def test_ceil_to_step_value():
    assert ceil_to_step(Decimal("0.123"), Decimal("0.01")) == Decimal("0.13")


@pytest.mark.parametrize(
    "value,step",
    [("0.123", "0.01"), ("5", "1"), ("1.23456789", "0.00001"), ("0.00000001", "0.1")],
)
def test_ceil_to_step_invariants(value, step):
    value, step = Decimal(value), Decimal(step)
    result = ceil_to_step(value, step)
    assert result >= value
    assert result - value < step
    assert (result / step) == (result / step).to_integral_value()


def test_ceil_to_step_keeps_exact_multiples():
    assert ceil_to_step(Decimal("0.05"), Decimal("0.01")) == Decimal("0.05")


@pytest.mark.asyncio
async def test_default_fees():
    async with Binance() as binance:
        assert await binance.get_fees(_order("1", "1")) == Decimal("0.001")


@pytest.mark.asyncio
async def test_fees_from_account():
    async with Binance() as binance:
        binance.account_overview = AccountOverview(
            uid=1, commission_rates=AccountCommissions(Decimal("0.001"), Decimal("0.002"))
        )
        assert await binance.get_fees(_order("1", "1")) == Decimal("0.002")


@pytest.mark.asyncio
async def test_adjust_raises_minimum_notional():
    async with Binance() as binance:
        binance.exchange_info = _exchange([PRICE, LOT, NOTIONAL])
        order = _order("0.0012345", "100")
        await binance.adjust_order_price_and_amount(order)
        step = Decimal("0.00001")
        assert order.amount * order.price >= Decimal("5")
        assert order.amount / step == (order.amount / step).to_integral_value()
        assert order.amount - step < Decimal("5") / order.price


@pytest.mark.asyncio
async def test_adjust_rounds_up_to_step():
    async with Binance() as binance:
        binance.exchange_info = _exchange([LOT, NOTIONAL])
        original = Decimal("1.23456789")
        order = _order(original, "100")
        await binance.adjust_order_price_and_amount(order)
        assert order.amount >= original
        assert order.amount - original < Decimal("0.00001")
        assert order.price == Decimal("100")


@pytest.mark.asyncio
async def test_adjust_out_of_range_raises():
    async with Binance() as binance:
        lot = {"filterType": "LOT_SIZE", "minQty": "0.1", "maxQty": "1", "stepSize": "0.1"}
        binance.exchange_info = _exchange([lot, NOTIONAL])
        order = _order("2", "0.1")
        with pytest.raises(ValueError, match="not within allowed quantity range"):
            await binance.adjust_order_price_and_amount(order)
        assert order.amount == Decimal("2")


@pytest.mark.asyncio
async def test_adjust_without_exchange_info_raises():
    async with Binance() as binance:
        with pytest.raises(ValueError, match="Empty exchange info"):
            await binance.adjust_order_price_and_amount(_order("1", "1"))


@pytest.mark.asyncio
async def test_adjust_unknown_ticker_raises():
    async with Binance() as binance:
        binance.exchange_info = ExchangeInfo.from_dict(
            {"symbols": [_symbol([LOT, NOTIONAL], base="ETH")]}
        )
        with pytest.raises(ValueError, match="Ticker info not found"):
            await binance.adjust_order_price_and_amount(_order("1", "1"))


@pytest.mark.asyncio
async def test_adjust_missing_notional_raises():
    async with Binance() as binance:
        binance.exchange_info = _exchange([LOT])
        with pytest.raises(ValueError, match="min_notional"):
            await binance.adjust_order_price_and_amount(_order("1", "1"))


@pytest.mark.asyncio
async def test_account_overview_is_signed(credentials):
    with respx.mock(assert_all_called=False) as router:
        route = router.get(host=API_HOST, path="/api/v3/account").mock(
            return_value=httpx.Response(200, json=ACCOUNT)
        )
        async with Binance() as binance:
            overview = await binance.get_account_overview(True)
        request = route.calls.last.request
        params = request.url.params
        expected = sign("secret", f"timestamp={params['timestamp']}&omitZeroBalances=true")
        assert params["signature"] == expected
        assert request.headers["X-MBX-APIKEY"] == "placeholder"
        assert overview.commission_rates.taker == Decimal("0.002")


@pytest.mark.asyncio
async def test_account_overview_is_cached(credentials):
    with respx.mock(assert_all_called=False) as router:
        route = router.get(host=API_HOST, path="/api/v3/account").mock(
            return_value=httpx.Response(200, json=ACCOUNT)
        )
        async with Binance() as binance:
            first = await binance.get_account_overview(False)
            second = await binance.get_account_overview(False)
            assert route.call_count == 1
            assert first == second
            await binance.get_account_overview(True)
            assert route.call_count == 2


@pytest.mark.asyncio
async def test_missing_credentials_raise(monkeypatch):
    monkeypatch.delenv("BINANCE_API_KEY", raising=False)
    monkeypatch.delenv("BINANCE_API_SECRET", raising=False)
    async with Binance() as binance:
        with pytest.raises(RuntimeError):
            await binance.get_account_overview(True)


@pytest.mark.asyncio
async def test_account_assets_use_free_balance(credentials):
    with respx.mock(assert_all_called=False) as router:
        router.get(host=API_HOST, path="/api/v3/account").mock(
            return_value=httpx.Response(200, json=ACCOUNT)
        )
        async with Binance() as binance:
            assets = await binance.get_account_assets()
        assert sorted(assets) == ["BTC", "USDT"]
        assert assets["USDT"].amount == Decimal("1000")
        assert assets["BTC"].value is None


@pytest.mark.asyncio
async def test_exchange_info_request():
    with respx.mock(assert_all_called=False) as router:
        route = router.get(host=API_HOST, path="/api/v3/exchangeInfo").mock(
            return_value=httpx.Response(200, json={"symbols": [_symbol([LOT, NOTIONAL])]})
        )
        async with Binance() as binance:
            info = await binance.get_exchange_info([BTCUSDT, Ticker("ETH", "USDT")])
        assert route.calls.last.request.url.params["symbols"] == '["BTCUSDT","ETHUSDT"]'
        assert info.find(BTCUSDT).symbol == "BTCUSDT"


@pytest.mark.asyncio
async def test_init_loads_rules_and_account(credentials):
    with respx.mock(assert_all_called=False) as router:
        router.get(host=API_HOST, path="/api/v3/exchangeInfo").mock(
            return_value=httpx.Response(200, json={"symbols": [_symbol([LOT, NOTIONAL])]})
        )
        router.get(host=API_HOST, path="/api/v3/account").mock(
            return_value=httpx.Response(200, json=ACCOUNT)
        )
        async with Binance() as binance:
            await binance.init([BTCUSDT])
            assert binance.exchange_info.find(BTCUSDT).base_asset == "BTC"
            assert binance.account_overview.uid == 1


@pytest.mark.asyncio
async def test_ping():
    with respx.mock(assert_all_called=False) as router:
        route = router.get(host=API_HOST, path="/api/v3/ping").mock(
            return_value=httpx.Response(200, json={})
        )
        async with Binance() as binance:
            result = await binance.ping()
        assert result is None
        assert route.call_count == 1
        request = route.calls.last.request
        assert request.method == "GET"
        assert request.url.path == "/api/v3/ping"


@pytest.mark.asyncio
async def test_get_candles():
    row = [
        1499040000000,
        "0.01634790",
        "0.80000000",
        "0.01575800",
        "0.01577100",
        "148976.11427815",
        1499644799999,
        "2434.19055334",
        308,
        "1756.87402397",
        "28.46694368",
        "0",
    ]
    with respx.mock(assert_all_called=False) as router:
        route = router.get(host=DATA_HOST, path="/api/v3/klines").mock(
            return_value=httpx.Response(200, json=[row, ["broken"]])
        )
        async with Binance() as binance:
            candles = await binance.get_candles(BTCUSDT, "1m", None, 1499644799999)
        params = route.calls.last.request.url.params
        assert params["symbol"] == "BTCUSDT"
        assert params["interval"] == "1m"
        assert params["endTime"] == "1499644799999"
        assert "startTime" not in params
        assert len(candles) == 1
        assert candles[0].low_price == Decimal("0.01575800")
        assert candles[0].ticker == BTCUSDT
        assert candles[0].closed is True


@pytest.mark.asyncio
async def test_get_orders_skips_unknown_status(credentials):
    with respx.mock(assert_all_called=False) as router:
        route = router.get(host=API_HOST, path="/api/v3/openOrders").mock(
            return_value=httpx.Response(
                200, json=[_order_response("NEW", 42), _order_response("WEIRD", 43)]
            )
        )
        async with Binance() as binance:
            orders = await binance.get_orders([BTCUSDT])
        assert route.calls.last.request.url.params["symbol"] == "BTCUSDT"
        assert [order.marketplace_id for order in orders] == ["42"]
        assert orders[0].status is OrderStatus.ACTIVE


@pytest.mark.asyncio
async def test_place_order(credentials):
    with respx.mock(assert_all_called=False) as router:
        route = router.post(host=API_HOST, path="/api/v3/order").mock(
            return_value=httpx.Response(200, json=_order_response("FILLED", 7))
        )
        async with Binance() as binance:
            placed = await binance.place_order(_order("1.5", "100"))
        params = route.calls.last.request.url.params
        assert params["order_type"] == "LIMIT"
        assert params["timeInForce"] == "GTC"
        assert params["quantity"] == "1.5"
        assert params["symbol"] == "BTCUSDT"
        assert placed.status is OrderStatus.EXECUTED
        assert placed.marketplace_id == "7"