"""Market data events and the interface a marketplace offers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol, Union

from tradebot.order import Order
from tradebot.portfolio import Asset
from tradebot.ticker import Ticker

if TYPE_CHECKING:
    from tradebot.events import EventBus


@dataclass
class TradeEvent:
    """A public trade on a ticker."""

    trade_id: int
    trade_time: int
    ticker: Ticker
    price: Decimal
    quantity: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "t": self.trade_id,
            "T": self.trade_time,
            "s": self.ticker.to_dict(),
            "p": format(self.price, "f"),
            "q": format(self.quantity, "f"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TradeEvent":
        return cls(
            trade_id=int(data["t"]),
            trade_time=int(data["T"]),
            ticker=Ticker.from_dict(data["s"]),
            price=Decimal(data["p"]),
            quantity=Decimal(data["q"]),
        )


@dataclass
class CandleEvent:
    """A candle (kline) for a ticker, possibly still open."""

    ticker: Ticker
    open_price: Decimal
    close_price: Decimal
    high_price: Decimal
    low_price: Decimal
    trade_count: int
    start_time: int
    close_time: int
    volume: Decimal
    closed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "s": self.ticker.to_dict(),
            "o": format(self.open_price, "f"),
            "c": format(self.close_price, "f"),
            "h": format(self.high_price, "f"),
            "l": format(self.low_price, "f"),
            "n": self.trade_count,
            "t": self.start_time,
            "T": self.close_time,
            "q": format(self.volume, "f"),
            "x": self.closed,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CandleEvent":
        return cls(
            ticker=Ticker.from_dict(data["s"]),
            open_price=Decimal(data["o"]),
            close_price=Decimal(data["c"]),
            high_price=Decimal(data["h"]),
            low_price=Decimal(data["l"]),
            trade_count=int(data["n"]),
            start_time=int(data["t"]),
            close_time=int(data["T"]),
            volume=Decimal(data["q"]),
            closed=bool(data["x"]),
        )


MarketPlaceEvent = Union[TradeEvent, CandleEvent]

_TRADE_TAG = "P"
_CANDLE_TAG = "C"


def marketplace_event_to_dict(event: MarketPlaceEvent) -> dict[str, Any]:
    """Encode a market event tagged ``P`` (trade) or ``C`` (candle)."""
    if isinstance(event, TradeEvent):
        return {_TRADE_TAG: event.to_dict()}
    if isinstance(event, CandleEvent):
        return {_CANDLE_TAG: event.to_dict()}
    raise TypeError(f"not a marketplace event: {event!r}")


def marketplace_event_from_dict(data: Any) -> MarketPlaceEvent:
    """Decode a market event produced by :func:`marketplace_event_to_dict`."""
    if not isinstance(data, Mapping) or len(data) != 1:
        raise ValueError("a marketplace event is an object with a single tag")
    ((tag, body),) = data.items()
    if tag == _TRADE_TAG:
        return TradeEvent.from_dict(body)
    if tag == _CANDLE_TAG:
        return CandleEvent.from_dict(body)
    raise ValueError(f"unknown marketplace event {tag!r}")


class MarketPlace(Protocol):
    """What the bot needs from an exchange."""

    async def start(self, tickers: list[Ticker], bus: "EventBus") -> None:
        """Stream market events for ``tickers`` onto ``bus``."""
        ...

    async def get_candles(
        self,
        ticker: Ticker,
        interval: str,
        start: Optional[int],
        end: Optional[int],
    ) -> list[CandleEvent]:
        """Historical candles for ``ticker``."""
        ...

    async def get_fees(self, order: Order) -> Decimal:
        """Fee ratio that applies to ``order``."""
        ...

    async def adjust_order_price_and_amount(self, order: Order) -> None:
        """Round the order's amount to the exchange rules; raise if impossible."""
        ...

    async def get_account_assets(self) -> dict[str, Asset]:
        """Assets held on the account, keyed by symbol."""
        ...

    async def get_orders(self, tickers: list[Ticker]) -> list[Order]:
        """Open orders on the given tickers."""
        ...

    async def place_order(self, order: Order) -> Order:
        """Send ``order`` to the exchange and return what it recorded."""
        ...