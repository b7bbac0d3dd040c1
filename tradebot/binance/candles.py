"""Historical candles in the exchange's array format."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from tradebot.market import CandleEvent
from tradebot.ticker import Ticker


def _unsigned(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"Invalid {what}")
    return value


def _price(value: Any, what: str) -> Decimal:
    if not isinstance(value, str):
        raise ValueError(f"Invalid {what}")
    try:
        number = Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Invalid decimal: {value!r}") from None
    if not number.is_finite():
        raise ValueError(f"Invalid decimal: {value!r}")
    return number


@dataclass
class Candle:
    """One kline row."""

    start_time: int = 0
    close_time: int = 0
    open_price: Decimal = Decimal(0)
    close_price: Decimal = Decimal(0)
    high_price: Decimal = Decimal(0)
    low_price: Decimal = Decimal(0)
    trade_count: int = 0
    volume: Decimal = Decimal(0)

    @classmethod
    def from_json(cls, value: Any) -> "Candle":
        """Read a kline array; trade count and volume are not taken from it."""
        if not isinstance(value, list):
            raise ValueError("Expected an array for candle data")
        if len(value) < 11:
            raise ValueError("Candle array needs at least 11 elements")
        return cls(
            start_time=_unsigned(value[0], "open time"),
            close_time=_unsigned(value[6], "close time"),
            open_price=_price(value[1], "open price"),
            close_price=_price(value[4], "close price"),
            high_price=_price(value[2], "high price"),
            low_price=_price(value[3], "low price"),
        )

    def to_json(self) -> list[Any]:
        """The kline array with twelve elements, prices as strings."""
        volume = format(self.volume, "f")
        return [
            self.start_time,
            format(self.open_price, "f"),
            format(self.high_price, "f"),
            format(self.low_price, "f"),
            format(self.close_price, "f"),
            volume,
            self.close_time,
            volume,
            self.trade_count,
            "",
            "",
            "",
        ]

    def to_candle_event(self, ticker: Ticker) -> CandleEvent:
        """A closed candle event for ``ticker``."""
        return CandleEvent(
            ticker=ticker,
            open_price=self.open_price,
            close_price=self.close_price,
            high_price=self.high_price,
            low_price=self.low_price,
            trade_count=self.trade_count,
            start_time=self.start_time,
            close_time=self.close_time,
            volume=self.volume,
            closed=True,
        )


def parse_candles(values: Iterable[Any]) -> list[Candle]:
    """Parse kline rows, skipping the ones that are malformed."""
    candles = []
    for value in values:
        try:
            candles.append(Candle.from_json(value))
        except ValueError:
            continue
    return candles