"""Shared bot state: the portfolio and every order placed."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterator, Optional

from tradebot.order import Order, OrderSide, OrderStatus
from tradebot.portfolio import Portfolio
from tradebot.ticker import Ticker

_FEE_FACTOR = Decimal("0.999")

IndexedOrder = tuple[int, Order]


class OrderRejected(Exception):
    """An order cannot be added to the state."""


def _compare_working_time(a: IndexedOrder, b: IndexedOrder) -> int:
    ta, tb = a[1].working_time, b[1].working_time
    if ta is None or tb is None:
        return 0
    return (ta > tb) - (ta < tb)


@dataclass
class State:
    """Portfolio and orders of the bot."""

    portfolio: Portfolio = field(default_factory=Portfolio)
    orders: list[Order] = field(default_factory=list)

    def add_order(self, order: Order) -> Order:
        """Record a draft order, checking that a buy can be paid for."""
        if order.status is not OrderStatus.DRAFT:
            raise OrderRejected("Order is not a draft")
        if order.side is OrderSide.BUY:
            asset = self.portfolio.assets.get(order.ticker.quote)
            if asset is None or asset.amount < order.price * order.amount:
                raise OrderRejected("Not enough funds in portfolio")
        self.orders.append(order)
        return order

    def _executed(self, ticker: Ticker, side: Optional[OrderSide]) -> Iterator[IndexedOrder]:
        for index, order in enumerate(self.orders):
            if (
                order.ticker == ticker
                and (side is None or order.side is side)
                and order.status is OrderStatus.EXECUTED
            ):
                yield index, order

    def first_executed_order(
        self, ticker: Ticker, side: Optional[OrderSide] = None
    ) -> Optional[IndexedOrder]:
        """Executed order with the earliest working time, as (index, order)."""
        best: Optional[IndexedOrder] = None
        for candidate in self._executed(ticker, side):
            if best is None or _compare_working_time(best, candidate) > 0:
                best = candidate
        return best

    def last_executed_order(
        self, ticker: Ticker, side: Optional[OrderSide] = None
    ) -> Optional[IndexedOrder]:
        """Executed order with the latest working time, as (index, order)."""
        best: Optional[IndexedOrder] = None
        for candidate in self._executed(ticker, side):
            if best is None or _compare_working_time(best, candidate) <= 0:
                best = candidate
        return best

    def total_scalped(self, base_asset: str) -> Decimal:
        """Profit of executed sells of ``base_asset`` over their parent buys, after fees."""
        return sum(
            (
                order.trade_total_price() * _FEE_FACTOR - order.parent_order_price
                for order in self.orders
                if order.side is OrderSide.SELL
                and order.ticker.base == base_asset
                and order.status is OrderStatus.EXECUTED
                and order.parent_order_price is not None
            ),
            Decimal(0),
        )