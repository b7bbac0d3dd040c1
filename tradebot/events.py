"""Application events, strategy actions and the broadcast bus that carries them."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Union

from tradebot.market import (
    CandleEvent,
    MarketPlaceEvent,
    TradeEvent,
    marketplace_event_from_dict,
    marketplace_event_to_dict,
)
from tradebot.order import Order
from tradebot.portfolio import Portfolio
from tradebot.ticker import Ticker


@dataclass
class PortfolioUpdate:
    """The portfolio changed."""

    portfolio: Portfolio


@dataclass
class OrdersUpdate:
    """The list of orders changed."""

    orders: list[Order]


@dataclass
class OrderAction:
    """The strategy wants to place an order."""

    order: Order


@dataclass
class CancelAction:
    """The strategy wants to cancel an order."""

    order_id: str
    reason: str


@dataclass(frozen=True)
class NoAction:
    """The strategy has nothing to do."""


@dataclass
class ContinueAction:
    """The strategy looked at a ticker and decided to wait."""

    ticker: Ticker
    stop_propagation: bool
    reason: str


StrategyAction = Union[OrderAction, CancelAction, NoAction, ContinueAction]


@dataclass
class StrategyActionEvent:
    """A strategy produced an action."""

    action: StrategyAction


AppEvent = Union[PortfolioUpdate, OrdersUpdate, StrategyActionEvent, TradeEvent, CandleEvent]


class Strategy(Protocol):
    """A trading strategy reacting to market events."""

    async def on_marketplace_event(self, event: MarketPlaceEvent) -> StrategyAction:
        """Decide what to do after ``event``."""
        ...


class Subscription:
    """One receiver on an :class:`EventBus`; the oldest events are dropped when it lags."""

    def __init__(self, bus: "EventBus", capacity: int) -> None:
        self._bus = bus
        self._queue: asyncio.Queue[AppEvent] = asyncio.Queue(maxsize=capacity)

    def _deliver(self, event: AppEvent) -> None:
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(event)

    async def recv(self) -> AppEvent:
        """Wait for the next event."""
        return await self._queue.get()

    def close(self) -> None:
        """Stop receiving events."""
        self._bus._discard(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventBus:
    """Broadcasts every published event to every subscription."""

    def __init__(self, capacity: int = 1000) -> None:
        self.capacity = capacity
        self._subscriptions: list[Subscription] = []

    def subscribe(self) -> Subscription:
        subscription = Subscription(self, self.capacity)
        self._subscriptions.append(subscription)
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, event: AppEvent) -> int:
        """Send ``event`` to all subscriptions and return how many got it."""
        for subscription in self._subscriptions:
            subscription._deliver(event)
        return len(self._subscriptions)


def _single(data: Any) -> tuple[str, Any]:
    if not isinstance(data, Mapping) or len(data) != 1:
        raise ValueError("expected an object with a single tag")
    ((tag, body),) = data.items()
    return tag, body


def _action_to_dict(action: StrategyAction) -> Any:
    if isinstance(action, OrderAction):
        return {"Order": {"order": action.order.to_dict()}}
    if isinstance(action, CancelAction):
        return {"Cancel": {"order_id": action.order_id, "reason": action.reason}}
    if isinstance(action, NoAction):
        return "None"
    if isinstance(action, ContinueAction):
        return {
            "Continue": {
                "ticker": action.ticker.to_dict(),
                "stop_propagation": action.stop_propagation,
                "reason": action.reason,
            }
        }
    raise TypeError(f"not a strategy action: {action!r}")


def _action_from_dict(data: Any) -> StrategyAction:
    if data == "None":
        return NoAction()
    tag, body = _single(data)
    if tag == "Order":
        return OrderAction(Order.from_dict(body["order"]))
    if tag == "Cancel":
        return CancelAction(order_id=body["order_id"], reason=body["reason"])
    if tag == "Continue":
        return ContinueAction(
            ticker=Ticker.from_dict(body["ticker"]),
            stop_propagation=bool(body["stop_propagation"]),
            reason=body["reason"],
        )
    raise ValueError(f"unknown strategy action {tag!r}")


def app_event_to_dict(event: AppEvent) -> dict[str, Any]:
    """Encode an application event as tagged JSON-ready data."""
    if isinstance(event, PortfolioUpdate):
        return {"State": {"Portfolio": event.portfolio.to_dict()}}
    if isinstance(event, OrdersUpdate):
        return {"State": {"Orders": [order.to_dict() for order in event.orders]}}
    if isinstance(event, StrategyActionEvent):
        return {"Strategy": {"Action": _action_to_dict(event.action)}}
    if isinstance(event, (TradeEvent, CandleEvent)):
        return {"MarketPlace": marketplace_event_to_dict(event)}
    raise TypeError(f"not an application event: {event!r}")


def app_event_from_dict(data: Any) -> AppEvent:
    """Decode data produced by :func:`app_event_to_dict`."""
    tag, body = _single(data)
    if tag == "State":
        kind, value = _single(body)
        if kind == "Portfolio":
            return PortfolioUpdate(Portfolio.from_dict(value))
        if kind == "Orders":
            return OrdersUpdate([Order.from_dict(order) for order in value])
        raise ValueError(f"unknown state event {kind!r}")
    if tag == "Strategy":
        kind, value = _single(body)
        if kind != "Action":
            raise ValueError(f"unknown strategy event {kind!r}")
        return StrategyActionEvent(_action_from_dict(value))
    if tag == "MarketPlace":
        return marketplace_event_from_dict(body)
    raise ValueError(f"unknown application event {tag!r}")


def encode_app_event(event: AppEvent) -> str:
    """Compact JSON text for an application event."""
    return json.dumps(app_event_to_dict(event), separators=(",", ":"))


def decode_app_event(text: Union[str, bytes]) -> AppEvent:
    """Parse JSON text into an application event; raise ValueError if malformed."""
    try:
        return app_event_from_dict(json.loads(text))
    except (KeyError, TypeError, AttributeError, ArithmeticError) as err:
        raise ValueError(f"malformed application event: {err}") from err