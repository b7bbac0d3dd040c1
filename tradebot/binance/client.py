"""Exchange client: REST requests, order rules and the market stream."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from decimal import ROUND_CEILING, Decimal
from typing import Any, Iterable, Optional

import httpx

from tradebot.binance.account import AccountOverview, sign
from tradebot.binance.candles import Candle, parse_candles
from tradebot.binance.exchange_info import ExchangeInfo, LotSize, Notional
from tradebot.binance.orders import OrderResponse
from tradebot.binance.stream import listen_market_stream
from tradebot.events import EventBus
from tradebot.market import CandleEvent
from tradebot.order import Order
from tradebot.portfolio import Asset
from tradebot.ticker import Ticker

logger = logging.getLogger(__name__)

ENDPOINT = "https://api.binance.com"
PUBLIC_MARKET_ENDPOINT = "https://data-api.binance.vision"

_DEFAULT_FEES = Decimal("0.001")
_KEY_HEADER = "X-MBX-APIKEY"


def ceil_to_step(value: Decimal, step: Decimal) -> Decimal:
    """Round ``value`` up to a whole number of ``step``."""
    return (value / step).to_integral_value(rounding=ROUND_CEILING) * step


def _credentials() -> tuple[str, str]:
    try:
        return os.environ["BINANCE_API_KEY"], os.environ["BINANCE_API_SECRET"]
    except KeyError as err:
        raise RuntimeError(f"environment variable {err.args[0]} is not set") from None


def _timestamp() -> int:
    return int(time.time() * 1000)


class Binance:
    """Client for the exchange's REST and stream interfaces."""

    def __init__(self, http: Optional[httpx.AsyncClient] = None) -> None:
        self.http = http if http is not None else httpx.AsyncClient()
        self.exchange_info: Optional[ExchangeInfo] = None
        self.account_overview: Optional[AccountOverview] = None
        self._account_lock = asyncio.Lock()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "Binance":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def init(self, tickers: Iterable[Ticker]) -> None:
        """Load the trading rules of ``tickers`` and the account overview."""
        self.exchange_info = await self.get_exchange_info(tickers)
        await self.get_account_overview(True)

    async def _signed_request(self, method: str, path: str, params: str) -> httpx.Response:
        api_key, api_secret = _credentials()
        signature = sign(api_secret, params)
        url = f"{ENDPOINT}{path}?{params}&signature={signature}"
        logger.info("%s", url)
        return await self.http.request(method, url, headers={_KEY_HEADER: api_key})

    async def get_account_overview(self, refresh: bool = False) -> AccountOverview:
        """Account balances and fees, fetched when missing or when ``refresh`` is set."""
        async with self._account_lock:
            if refresh or self.account_overview is None:
                params = f"timestamp={_timestamp()}&omitZeroBalances=true"
                response = await self._signed_request("GET", "/api/v3/account", params)
                body = response.text
                logger.debug("Binance account response : %s", body)
                self.account_overview = AccountOverview.from_dict(response.json())
            return self.account_overview

    async def get_exchange_info(self, tickers: Iterable[Ticker]) -> ExchangeInfo:
        """Trading rules of ``tickers``."""
        symbols = ",".join(f'"{t.base}{t.quote}"' for t in tickers)
        url = f"{ENDPOINT}/api/v3/exchangeInfo"
        response = await self.http.get(url, params={"symbols": f"[{symbols}]"})
        logger.info("%s", response.request.url)
        return ExchangeInfo.from_dict(response.json())

    async def ping(self) -> None:
        """Check that the exchange answers."""
        await self.http.get(f"{ENDPOINT}/api/v3/ping")

    async def fetch_klines(
        self,
        symbol: str,
        interval: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> list[Candle]:
        """Raw candles of ``symbol``; malformed rows are skipped."""
        params = {"symbol": symbol, "interval": interval}
        if start is not None:
            params["startTime"] = str(start)
        if end is not None:
            params["endTime"] = str(end)
        response = await self.http.get(f"{PUBLIC_MARKET_ENDPOINT}/api/v3/klines", params=params)
        logger.info("%s", response.request.url)
        rows = response.json()
        if not isinstance(rows, list):
            raise ValueError("expected a list of klines")
        return parse_candles(rows)

    async def get_candles(
        self,
        ticker: Ticker,
        interval: str,
        start: Optional[int] = None,
        end: Optional[int] = None,
    ) -> list[CandleEvent]:
        """Closed candle events of ``ticker``."""
        candles = await self.fetch_klines(str(ticker), interval, start, end)
        return [candle.to_candle_event(ticker) for candle in candles]

    async def get_open_orders(self, ticker: Ticker) -> list[OrderResponse]:
        """Open orders on ``ticker`` as the exchange reports them."""
        params = f"timestamp={_timestamp()}&symbol={ticker}"
        response = await self._signed_request("GET", "/api/v3/openOrders", params)
        items = response.json()
        if not isinstance(items, list):
            raise ValueError("expected a list of orders")
        orders = [OrderResponse.from_dict(item) for item in items]
        logger.debug("Binance %s open orders : %r", ticker, orders)
        return orders

    async def submit_order(self, order: Order) -> OrderResponse:
        """Send ``order`` and return the exchange's response."""
        params = (
            f"timestamp={_timestamp()}&symbol={order.ticker}&side={order.order_type}"
            f"&order_type=LIMIT&quantity={format(order.amount, 'f')}"
            f"&price={format(order.price, 'f')}&timeInForce=GTC"
        )
        response = await self._signed_request("POST", "/api/v3/order", params)
        result = OrderResponse.from_dict(response.json())
        logger.debug("Binance order response : %r", result)
        return result

    async def get_fees(self, order: Order) -> Decimal:
        """Taker fee ratio of the account, or a default when unknown."""
        if self.account_overview is None:
            return _DEFAULT_FEES
        return self.account_overview.commission_rates.taker

    async def adjust_order_price_and_amount(self, order: Order) -> None:
        """Round the amount to the lot size and raise it to the minimum notional."""
        if self.exchange_info is None:
            raise ValueError("Empty exchange info")
        info = self.exchange_info.find(order.ticker)
        if info is None:
            raise ValueError("Ticker info not found")

        lot: Optional[LotSize] = None
        notional: Optional[Notional] = None
        for item in info.filters:
            if isinstance(item, LotSize):
                lot = item
            elif isinstance(item, Notional):
                notional = item
        if lot is None:
            raise ValueError("No step_size found")
        if notional is None:
            raise ValueError("No min_notional found")

        price = order.price
        amount = ceil_to_step(order.amount, lot.step_size)
        amount = min(max(amount, lot.min_qty), lot.max_qty)
        if amount * price < notional.min_notional:
            amount = ceil_to_step(notional.min_notional / price, lot.step_size)
        if amount < lot.min_qty or amount > lot.max_qty:
            raise ValueError("Adjusted amount not within allowed quantity range")
        order.amount = amount

    async def get_account_assets(self) -> dict[str, Asset]:
        """Free balances of the account as portfolio assets."""
        overview = await self.get_account_overview(False)
        return {
            balance.asset: Asset(symbol=balance.asset, amount=balance.free)
            for balance in overview.balances
        }

    async def get_orders(self, tickers: Iterable[Ticker]) -> list[Order]:
        """Open orders on ``tickers``; those that cannot be converted are skipped."""
        orders = []
        for ticker in tickers:
            for response in await self.get_open_orders(ticker):
                try:
                    orders.append(response.to_order())
                except ValueError as err:
                    logger.debug("Skipping order %s: %s", response.order_id, err)
        return orders

    async def place_order(self, order: Order) -> Order:
        """Send ``order`` and return it as the exchange recorded it."""
        response = await self.submit_order(order)
        return response.to_order()

    async def start(self, tickers: Iterable[Ticker], bus: EventBus) -> None:
        """Stream market events of ``tickers`` onto ``bus``."""
        await listen_market_stream(list(tickers), bus)

    def __repr__(self) -> str:
        loaded: Any = self.exchange_info is not None
        return f"Binance(exchange_info_loaded={loaded})"