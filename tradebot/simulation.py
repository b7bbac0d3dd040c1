"""Simulated order execution and the background tasks that drive the bot."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional, Union

import httpx

from tradebot.events import (
    EventBus,
    OrderAction,
    OrdersUpdate,
    PortfolioUpdate,
    StrategyAction,
    StrategyActionEvent,
)
from tradebot.market import (
    CandleEvent,
    MarketPlace,
    TradeEvent,
    marketplace_event_to_dict,
)
from tradebot.order import Order, OrderSide, OrderStatus, OrderTrade, OrderType
from tradebot.scalping import ScalpingStrategy
from tradebot.state import OrderRejected, State
from tradebot.ticker import Ticker

logger = logging.getLogger(__name__)

_ACTIVATION_DELAY_MS = 2000
_FILL_RATIO = Decimal("0.1")
_SEND_DELAY = 0.5
_FILL_DELAY = 1.0
_TRADE_DELAY = 0.1
_OVERVIEW_PERIOD = 60


def _log_overview(state: State) -> None:
    logger.info("%s", state.portfolio)
    for symbol in list(state.portfolio.assets):
        logger.info("%s scalped : %s", symbol, state.total_scalped(symbol))


def _publish_orders(state: State, bus: EventBus) -> None:
    bus.publish(OrdersUpdate(copy.deepcopy(state.orders)))


def activate_sent_orders(orders: Iterable[Order], time: int) -> bool:
    """Activate sent orders older than two seconds at ``time``.

    Returns whether any sent order was seen.
    """
    seen = False
    for order in orders:
        if order.status is not OrderStatus.SENT:
            continue
        if order.creation_time + _ACTIVATION_DELAY_MS < time:
            order.status = OrderStatus.ACTIVE
            order.working_time = time
        seen = True
    return seen


def _trade_amount(order: Order, event: TradeEvent) -> Optional[Decimal]:
    share = event.quantity * _FILL_RATIO
    if order.order_type is OrderType.MARKET:
        return share
    if order.order_type is OrderType.LIMIT:
        if order.side is OrderSide.SELL:
            return share if event.price >= order.price else None
        return share if event.price <= order.price else None
    return None


async def _fill_orders(
    state: State, marketplace: MarketPlace, event: TradeEvent, delay: float
) -> bool:
    processed = False
    portfolio = state.portfolio
    candidates = [
        order
        for order in state.orders
        if order.status is OrderStatus.ACTIVE and order.ticker == event.ticker
    ]
    for order in candidates:
        trade_amount = _trade_amount(order, event)
        if trade_amount is None:
            logger.debug("No trade for order")
            continue

        if delay:
            await asyncio.sleep(delay)

        to_fulfill = order.amount - order.filled_amount
        side = "BUY" if order.side is OrderSide.BUY else "SELL"
        if to_fulfill > trade_amount:
            order.filled_amount += trade_amount
            filled = trade_amount
            stage = "PARTIAL"
        else:
            order.status = OrderStatus.EXECUTED
            order.filled_amount = order.amount
            filled = to_fulfill
            stage = "FINAL"
        logger.info(
            "%s %s for order %s %s/%s : +%s",
            stage, side, event.ticker, order.filled_amount, order.amount, filled,
        )
        trade = OrderTrade(trade_time=event.trade_time, amount=filled, price=event.price)
        order.trades.append(trade)

        fees = await marketplace.get_fees(order)
        price = event.price if order.order_type is OrderType.MARKET else order.price
        one = Decimal(1)

        if order.side is OrderSide.SELL:
            portfolio.update_asset_amount(order.ticker.quote, price * trade.amount * (one - fees), one)
            portfolio.update_asset_amount(order.ticker.base, -trade.amount, price)
        else:
            portfolio.update_asset_amount(order.ticker.base, trade.amount * (one - fees), price)
            portfolio.update_asset_amount(order.ticker.quote, -(price * trade.amount), one)
        processed = True
    return processed


async def fill_orders(state: State, marketplace: MarketPlace, event: TradeEvent) -> bool:
    """Let a public trade fill matching active orders and update the portfolio.

    Returns whether any order was filled.
    """
    return await _fill_orders(state, marketplace, event, 0)


def apply_trade_value(state: State, event: TradeEvent) -> None:
    """Revalue the traded base asset at the trade price."""
    asset = state.portfolio.assets.get(event.ticker.base)
    if asset is not None:
        asset.value = asset.amount * event.price
        state.portfolio.update_value()


async def simulate_new_orders_processing(state: State, bus: EventBus, is_replay: bool) -> None:
    """Move draft orders to sent and sent orders to active, driven by trade times."""
    subscription = bus.subscribe()
    while True:
        event = await subscription.recv()
        if not isinstance(event, TradeEvent):
            continue

        if activate_sent_orders(state.orders, event.trade_time):
            _publish_orders(state, bus)

        processed = False
        for order in [o for o in state.orders if o.status is OrderStatus.DRAFT]:
            if not is_replay:
                await asyncio.sleep(_SEND_DELAY)
            order.status = OrderStatus.SENT
            processed = True
        if processed:
            _publish_orders(state, bus)


async def simulate_orders_processing(
    state: State, marketplace: MarketPlace, bus: EventBus, is_replay: bool
) -> None:
    """Fill active orders from public trades and publish the results."""
    subscription = bus.subscribe()
    delay = 0 if is_replay else _FILL_DELAY
    while True:
        event = await subscription.recv()
        if not isinstance(event, TradeEvent):
            continue
        processed = await _fill_orders(state, marketplace, event, delay)
        if not is_replay:
            await asyncio.sleep(_TRADE_DELAY)
        if processed:
            _log_overview(state)
            bus.publish(PortfolioUpdate(copy.deepcopy(state.portfolio)))
            _publish_orders(state, bus)


async def update_portfolio_value(state: State, bus: EventBus) -> None:
    """Keep asset values in line with the latest trade prices."""
    subscription = bus.subscribe()
    while True:
        event = await subscription.recv()
        if isinstance(event, TradeEvent):
            apply_trade_value(state, event)


async def print_overview(state: State) -> None:
    """Log the portfolio and scalping profits every minute."""
    while True:
        _log_overview(state)
        await asyncio.sleep(_OVERVIEW_PERIOD)


async def process_strategy_action(state: State, action: StrategyAction, bus: EventBus) -> None:
    """Record an ordering action in the state and publish the action."""
    if isinstance(action, OrderAction):
        logger.info("%r", action.order)
        try:
            state.add_order(action.order)
        except OrderRejected as err:
            logger.debug("Order rejected: %s", err)
    bus.publish(StrategyActionEvent(action))


async def run_strategy(
    state: State, marketplace: MarketPlace, tickers: Iterable[Ticker], bus: EventBus
) -> None:
    """Feed market events to a scalping strategy and act on its decisions."""
    strategy = ScalpingStrategy(state, marketplace, list(tickers))
    subscription = bus.subscribe()
    while True:
        event = await subscription.recv()
        if not isinstance(event, (TradeEvent, CandleEvent)):
            continue
        try:
            action = await strategy.on_marketplace_event(event)
        except (ValueError, RuntimeError, OSError, httpx.HTTPError) as err:
            logger.debug("Strategy error: %s", err)
            continue
        await process_strategy_action(state, action, bus)


async def record_events(path: Union[str, Path], bus: EventBus) -> None:
    """Append every market event on ``bus`` to ``path`` as one JSON line."""
    subscription = bus.subscribe()
    with Path(path).open("a", encoding="utf-8") as file:
        while True:
            event = await subscription.recv()
            if not isinstance(event, (TradeEvent, CandleEvent)):
                continue
            try:
                line = json.dumps(marketplace_event_to_dict(event), separators=(",", ":"))
            except (TypeError, ValueError):
                logger.error("Failed to save event")
                continue
            file.write(line + "\n")
            file.flush()