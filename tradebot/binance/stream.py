"""Live trade and candle stream from the exchange."""

from __future__ import annotations

import asyncio
import json
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from tradebot.events import EventBus
from tradebot.market import CandleEvent, MarketPlaceEvent, TradeEvent
from tradebot.ticker import Ticker

logger = logging.getLogger(__name__)

STREAM_ENDPOINT = "wss://stream.binance.com/stream"

_FIRST_CONNECT_DELAY = 3
_RETRY_DELAY = 10
_READ_TIMEOUT = 60


def stream_url(tickers: Iterable[Ticker]) -> str:
    """Combined stream URL with a trade and a one-minute kline stream per ticker."""
    tickers = list(tickers)
    names = [f"{t.base.lower()}{t.quote.lower()}" for t in tickers]
    trade_params = "/".join(f"{name}@trade" for name in names)
    candle_params = "/".join(f"{name}@kline_1m" for name in names)
    return f"{STREAM_ENDPOINT}?streams={trade_params}/{candle_params}"


def _decimal_str(value: Any) -> Decimal:
    if not isinstance(value, str):
        raise ValueError(f"expected a decimal string, got {value!r}")
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"invalid decimal {value!r}") from None
    if not number.is_finite():
        raise ValueError(f"invalid decimal {value!r}")
    return number


def _unsigned(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"expected an unsigned integer, got {value!r}")
    return value


def _boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {value!r}")
    return value


def _ticker(symbol: Any) -> Ticker:
    if not isinstance(symbol, str):
        raise ValueError(f"expected a symbol, got {symbol!r}")
    try:
        return Ticker.parse(symbol)
    except ValueError:
        raise ValueError(f"failed to parse ticker {symbol}") from None


def _trade_event(data: Mapping[str, Any]) -> TradeEvent:
    try:
        _unsigned(data["E"])
        _boolean(data["m"])
        symbol = data["s"]
        trade_id = _unsigned(data["t"])
        trade_time = _unsigned(data["T"])
        price = _decimal_str(data["p"])
        quantity = _decimal_str(data["q"])
    except (KeyError, TypeError) as err:
        raise ValueError(f"Stream parsing error : {err}") from err
    return TradeEvent(
        trade_id=trade_id,
        trade_time=trade_time,
        ticker=_ticker(symbol),
        price=price,
        quantity=quantity,
    )


def _candle_event(data: Mapping[str, Any]) -> CandleEvent:
    try:
        _unsigned(data["E"])
        symbol = data["s"]
        kline = data["k"]
        fields = dict(
            open_price=_decimal_str(kline["o"]),
            close_price=_decimal_str(kline["c"]),
            high_price=_decimal_str(kline["h"]),
            low_price=_decimal_str(kline["l"]),
            trade_count=_unsigned(kline["n"]),
            start_time=_unsigned(kline["t"]),
            close_time=_unsigned(kline["T"]),
            volume=_decimal_str(kline["q"]),
            closed=_boolean(kline["x"]),
        )
    except (KeyError, TypeError) as err:
        raise ValueError(f"Stream parsing error : {err}") from err
    return CandleEvent(ticker=_ticker(symbol), **fields)


def parse_stream_message(text: Union[str, bytes]) -> Optional[MarketPlaceEvent]:
    """Turn a combined-stream message into a market event.

    Returns None for event kinds that are not handled; raises ValueError for
    malformed messages.
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError as err:
        raise ValueError("Invalid json") from err
    data = value.get("data") if isinstance(value, dict) else None
    if data is None:
        raise ValueError("Unknown json")
    kind = data.get("e") if isinstance(data, dict) else None
    if kind == "trade":
        return _trade_event(data)
    if kind == "kline":
        return _candle_event(data)
    return None


async def _connect(url: str) -> Any:
    while True:
        try:
            return await websockets.connect(url)
        except (OSError, WebSocketException, asyncio.TimeoutError) as err:
            logger.info("Failed to connect to stream: %r", err)
            await asyncio.sleep(_RETRY_DELAY)


async def _pump(websocket: Any, bus: EventBus) -> None:
    while True:
        try:
            message = await asyncio.wait_for(websocket.recv(), _READ_TIMEOUT)
        except asyncio.TimeoutError:
            logger.error("Stream error: no message within %s seconds", _READ_TIMEOUT)
            return
        except ConnectionClosed as err:
            logger.error("Stream closed: %s", err)
            return
        if not isinstance(message, str):
            continue
        try:
            event = parse_stream_message(message)
        except ValueError as err:
            logger.error("%s", err)
            continue
        if event is None:
            logger.debug("Event not implemented")
        else:
            bus.publish(event)


async def listen_market_stream(tickers: Iterable[Ticker], bus: EventBus) -> None:
    """Publish trades and candles of ``tickers`` on ``bus``, reconnecting forever."""
    url = stream_url(tickers)
    logger.info("Connecting to market data stream %s", url)
    while True:
        await asyncio.sleep(_FIRST_CONNECT_DELAY)
        websocket = await _connect(url)
        logger.info("Connected to market data stream %s", url)
        try:
            await _pump(websocket, bus)
        finally:
            await websocket.close()
        logger.info("Reconnecting")