"""Scalping strategy: buy on short-term strength, sell once a target profit is reached."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional

from tradebot.events import (
    ContinueAction,
    NoAction,
    OrderAction,
    StrategyAction,
)
from tradebot.market import CandleEvent, MarketPlace, MarketPlaceEvent, TradeEvent
from tradebot.order import Order, OrderSide, OrderStatus, OrderType
from tradebot.portfolio import Portfolio
from tradebot.state import State
from tradebot.ticker import Ticker
from tradebot.utils import atr, wsma

logger = logging.getLogger(__name__)

_TRADE_HISTORY_LIMIT = 500
_CANDLE_HISTORY_LIMIT = 20
_SELL_AMOUNT_FACTOR = Decimal("0.999")
_MIN_PULLBACK = Decimal("0.01")
_REENTRY_RESET = timedelta(hours=8)
_PENDING = (OrderStatus.DRAFT, OrderStatus.SENT, OrderStatus.ACTIVE)


def _fmt(value: Decimal) -> str:
    return format(value, "f")


def _ms(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


def _timestamp(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _wait(ticker: Ticker, reason: str, stop_propagation: bool = False) -> ContinueAction:
    return ContinueAction(ticker=ticker, stop_propagation=stop_propagation, reason=reason)


class ScalpingStrategy:
    """Trades each ticker in and out, driven by smoothed averages and true range."""

    def __init__(self, state: State, marketplace: MarketPlace, tickers: Iterable[Ticker]) -> None:
        self.state = state
        self.marketplace = marketplace
        self.tickers = list(tickers)
        self.trade_history: dict[Ticker, deque[TradeEvent]] = {}
        self.candle_history: dict[Ticker, deque[CandleEvent]] = {}
        self.target_profit = Decimal("1.5")
        self.quote_amount = Decimal(300)
        self.buy_cooldown = timedelta(seconds=60)
        self.initialized = False

    async def _init(self, start_time: int) -> None:
        for ticker in self.tickers:
            candles = await self.marketplace.get_candles(ticker, "1m", None, start_time)
            logger.info(
                "Loaded %d candles for %s. Start=%s End=%s",
                len(candles),
                ticker,
                _timestamp(candles[0].start_time) if candles else None,
                _timestamp(candles[-1].start_time) if candles else None,
            )
            self.candle_history[ticker] = deque(candles)

    def _add_trade(self, event: TradeEvent) -> None:
        history = self.trade_history.setdefault(event.ticker, deque())
        history.appendleft(event)
        if len(history) > _TRADE_HISTORY_LIMIT:
            history.pop()

    def _add_candle(self, event: CandleEvent) -> None:
        history = self.candle_history.setdefault(event.ticker, deque())
        if history and history[0].start_time == event.start_time:
            history.popleft()
        history.appendleft(event)
        if len(history) >= _CANDLE_HISTORY_LIMIT:
            history.pop()

    def _wsma(self, ticker: Ticker, period: int) -> Optional[Decimal]:
        history = self.candle_history.get(ticker)
        if history is None:
            return None
        return wsma([candle.close_price for candle in history], period)

    def _atr(self, ticker: Ticker, period: int) -> Optional[Decimal]:
        history = self.candle_history.get(ticker)
        if history is None:
            return None
        return atr(
            [(c.high_price, c.low_price, c.close_price) for c in history],
            period,
        )

    def _desired_buy_amount(
        self, ticker: Ticker, portfolio: Portfolio, current_price: Decimal
    ) -> Decimal:
        asset = portfolio.assets.get(ticker.quote)
        if asset is None:
            raise ValueError(f"Asset {ticker.quote} not present in portfolio.")
        if asset.amount < self.quote_amount:
            raise ValueError(
                f"Not enough {ticker.quote} in portfolio to buy {_fmt(self.quote_amount)}"
                f" : only got {_fmt(asset.amount)}."
            )
        return self.quote_amount / current_price

    async def on_marketplace_event(self, event: MarketPlaceEvent) -> StrategyAction:
        """Record candles and decide what to do after a trade."""
        if isinstance(event, TradeEvent):
            if not self.initialized:
                return NoAction()
            return await self._on_trade(event)

        if not self.initialized:
            await self._init(event.start_time)
            self.initialized = True
        if event.ticker not in self.tickers:
            return _wait(event.ticker, "Other ticker")
        self._add_candle(event)
        return _wait(event.ticker, "None")

    async def _on_trade(self, event: TradeEvent) -> StrategyAction:
        if event.ticker not in self.tickers:
            return NoAction()
        self._add_trade(event)

        ticker = event.ticker
        indicators = (
            self._wsma(ticker, 5),
            self._wsma(ticker, 14),
            self._atr(ticker, 3),
            self._atr(ticker, 10),
        )

        if any(o.ticker == ticker and o.status in _PENDING for o in self.state.orders):
            return _wait(ticker, "Existing order", stop_propagation=True)

        last = self.state.last_executed_order(ticker, None)
        if last is None:
            return await self._entry(event, *indicators)
        last_order = last[1]
        if last_order.side is OrderSide.BUY:
            return await self._sell(event, last_order, indicators[0], indicators[1])
        return await self._reentry(event, last_order, *indicators)

    async def _sell(
        self,
        event: TradeEvent,
        last_order: Order,
        wsma_short: Optional[Decimal],
        wsma_long: Optional[Decimal],
    ) -> StrategyAction:
        ticker = event.ticker
        order = Order(
            creation_time=event.trade_time,
            ticker=ticker,
            side=OrderSide.SELL,
            order_type=OrderType.MARKET,
            status=OrderStatus.DRAFT,
            amount=last_order.amount * _SELL_AMOUNT_FACTOR,
            price=event.price,
            filled_amount=Decimal(0),
            parent_order_price=last_order.trade_total_price(),
        )
        fees = await self.marketplace.get_fees(order)
        receive = last_order.amount * event.price * (1 - fees)
        take_profit = receive - last_order.amount * last_order.price

        if take_profit < self.target_profit:
            reason = (
                f"Profit too low to sell {_fmt(last_order.amount)} {ticker.base} : "
                f"missing {_fmt(self.target_profit - take_profit)} {ticker.quote}."
            )
            return _wait(ticker, reason, stop_propagation=True)

        if wsma_short is None or wsma_long is None:
            return _wait(ticker, "SMA or WSMA missing")
        if wsma_short > wsma_long and take_profit < self.target_profit * 10:
            return _wait(ticker, "Upward trend : skipping sell.")

        return OrderAction(order)

    async def _potential_buy(self, event: TradeEvent, last_order: Order) -> Optional[Order]:
        try:
            amount = self._desired_buy_amount(event.ticker, self.state.portfolio, event.price)
        except ValueError:
            return None
        order = Order(
            creation_time=event.trade_time,
            ticker=event.ticker,
            side=OrderSide.BUY,
            order_type=OrderType.MARKET,
            status=OrderStatus.DRAFT,
            amount=amount,
            price=event.price,
            filled_amount=Decimal(0),
            parent_order_price=last_order.trade_total_price(),
        )
        try:
            await self.marketplace.adjust_order_price_and_amount(order)
        except ValueError:
            return None
        return order

    async def _reentry(
        self,
        event: TradeEvent,
        last_order: Order,
        wsma_short: Optional[Decimal],
        wsma_long: Optional[Decimal],
        atr_short: Optional[Decimal],
        atr_long: Optional[Decimal],
    ) -> StrategyAction:
        ticker = event.ticker
        last_trade_time = last_order.last_trade_time()
        time_since_sell: Optional[int] = None
        if last_trade_time is not None and event.trade_time >= last_trade_time:
            time_since_sell = event.trade_time - last_trade_time

        if time_since_sell is not None and time_since_sell < _ms(self.buy_cooldown):
            return _wait(ticker, "Too soon for re-entry", stop_propagation=True)

        last_buy = self.state.last_executed_order(ticker, OrderSide.BUY)
        first_buy = self.state.first_executed_order(ticker, OrderSide.BUY)
        potential = await self._potential_buy(event, last_order)
        if potential is None or last_buy is None or first_buy is None:
            return NoAction()

        skip = time_since_sell is None or time_since_sell > _ms(_REENTRY_RESET)
        first_price, last_price = first_buy[1].price, last_buy[1].price

        if not skip:
            if last_price <= event.price and first_price <= event.price:
                reason = (
                    f"First ({_fmt(first_price)}) and last ({_fmt(last_price)}) buy order price "
                    "higher than current price : skipping buy."
                )
                return _wait(ticker, reason)
            if wsma_short is None or wsma_long is None:
                return _wait(ticker, "SMA or WSMA missing : skipping buy.")
            if wsma_short < wsma_long:
                return _wait(ticker, "SMA < WSMA : skipping buy.")
            if wsma_short > event.price:
                return _wait(ticker, "SMA > price : skipping buy.")
            if atr_short is None or atr_long is None:
                return _wait(ticker, "ATR missing : skipping buy.")
            if atr_short < atr_long:
                return _wait(ticker, "Average true range lower than usual : skipping buy.")
            pullback = (last_order.price - event.price) / last_order.price
            if pullback < _MIN_PULLBACK:
                return _wait(ticker, "No significant pullback since last sell : skipping buy.")

        return OrderAction(potential)

    async def _entry(
        self,
        event: TradeEvent,
        wsma_short: Optional[Decimal],
        wsma_long: Optional[Decimal],
        atr_short: Optional[Decimal],
        atr_long: Optional[Decimal],
    ) -> StrategyAction:
        ticker = event.ticker
        amount = self._desired_buy_amount(ticker, self.state.portfolio, event.price)

        if wsma_short is None or wsma_long is None:
            return NoAction()
        if wsma_long > event.price:
            return _wait(ticker, "SMA > price : skipping entry.")
        if wsma_short < wsma_long:
            return _wait(ticker, "SMA < WSMA : skipping entry.")

        if atr_short is None or atr_long is None:
            return NoAction()
        if atr_short < atr_long:
            return _wait(ticker, "Average true range lower than usual : skipping entry.")

        order = Order(
            creation_time=event.trade_time,
            ticker=ticker,
            side=OrderSide.BUY,
            order_type=OrderType.MARKET,
            status=OrderStatus.DRAFT,
            amount=amount,
            price=event.price,
            filled_amount=Decimal(0),
            parent_order_price=None,
        )
        await self.marketplace.adjust_order_price_and_amount(order)
        return OrderAction(order)