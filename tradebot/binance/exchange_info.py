"""Exchange symbol rules: price, lot size and notional filters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Union

from tradebot.ticker import Ticker

logger = logging.getLogger(__name__)


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


@dataclass(frozen=True)
class PriceFilter:
    """Allowed price range and tick size."""

    min_price: Decimal
    max_price: Decimal
    tick_size: Decimal


@dataclass(frozen=True)
class LotSize:
    """Allowed quantity range and step size."""

    min_qty: Decimal
    max_qty: Decimal
    step_size: Decimal


@dataclass(frozen=True)
class Notional:
    """Minimum order value."""

    min_notional: Decimal


SymbolInfoFilter = Union[PriceFilter, LotSize, Notional]


def parse_filter(data: Any) -> SymbolInfoFilter:
    """Parse one filter object; raise ValueError for unknown or malformed filters."""
    try:
        kind = data["filterType"]
        if kind == "PRICE_FILTER":
            return PriceFilter(
                min_price=_decimal_str(data["minPrice"]),
                max_price=_decimal_str(data["maxPrice"]),
                tick_size=_decimal_str(data["tickSize"]),
            )
        if kind == "LOT_SIZE":
            return LotSize(
                min_qty=_decimal_str(data["minQty"]),
                max_qty=_decimal_str(data["maxQty"]),
                step_size=_decimal_str(data["stepSize"]),
            )
        if kind == "NOTIONAL":
            return Notional(min_notional=_decimal_str(data["minNotional"]))
    except (KeyError, TypeError) as err:
        raise ValueError(f"malformed filter: {err}") from err
    raise ValueError(f"unknown filter type {kind!r}")


def parse_filters(items: Iterable[Any]) -> list[SymbolInfoFilter]:
    """Parse the filters that are understood and skip the others."""
    filters = []
    for item in items:
        try:
            filters.append(parse_filter(item))
        except ValueError as err:
            logger.debug("Failed deserialize symbol info %r %s", item, err)
    return filters


@dataclass(frozen=True)
class SymbolInfo:
    """Trading rules of one symbol."""

    symbol: str
    base_asset: str
    quote_asset: str
    base_asset_precision: int
    quote_asset_precision: int
    filters: list[SymbolInfoFilter] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SymbolInfo":
        try:
            return cls(
                symbol=str(data["symbol"]),
                base_asset=str(data["baseAsset"]),
                quote_asset=str(data["quoteAsset"]),
                base_asset_precision=_unsigned(data["baseAssetPrecision"]),
                quote_asset_precision=_unsigned(data["quoteAssetPrecision"]),
                filters=parse_filters(data["filters"]),
            )
        except (KeyError, TypeError) as err:
            raise ValueError(f"malformed symbol info: {err}") from err


@dataclass(frozen=True)
class ExchangeInfo:
    """Trading rules of the requested symbols."""

    symbols: list[SymbolInfo] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExchangeInfo":
        try:
            return cls(symbols=[SymbolInfo.from_dict(item) for item in data["symbols"]])
        except (KeyError, TypeError) as err:
            raise ValueError(f"malformed exchange info: {err}") from err

    def find(self, ticker: Ticker) -> Optional[SymbolInfo]:
        """Rules of the symbol trading ``ticker``, or None."""
        return next(
            (
                info
                for info in self.symbols
                if info.quote_asset == ticker.quote and info.base_asset == ticker.base
            ),
            None,
        )