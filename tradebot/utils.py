"""Price indicators computed over recent-first price histories."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Optional, Sequence


def sma(prices: Sequence[Decimal], period: int) -> Optional[Decimal]:
    """Simple moving average of the ``period`` most recent prices."""
    prices = list(prices)
    if len(prices) < period:
        return None
    return sum(prices[:period], Decimal(0)) / Decimal(period)


def wsma(prices: Sequence[Decimal], period: int) -> Optional[Decimal]:
    """Wilder smoothing moving average seeded with the oldest price of the window."""
    prices = list(prices)
    if period <= 0 or len(prices) < period:
        return None
    alpha = 1.0 / period
    value = float(prices[period - 1])
    for price in reversed(prices[1:period]):
        value += (float(price) - value) * alpha
    if not math.isfinite(value):
        return None
    return Decimal(repr(value))


def atr(prices: Sequence[tuple[Decimal, Decimal, Decimal]], n: int) -> Optional[Decimal]:
    """Average true range over ``n`` (high, low, previous close) tuples."""
    prices = list(prices)
    if len(prices) < n:
        return None
    ranges = [
        max(high - low, abs(high - prev_close), abs(low - prev_close))
        for high, low, prev_close in prices[:n]
    ]
    if not ranges:
        return None
    return sum(ranges, Decimal(0)) / Decimal(len(ranges))


def avg(prices: Sequence[Decimal]) -> Optional[Decimal]:
    """Arithmetic mean, or None for no prices."""
    prices = list(prices)
    if not prices:
        return None
    return sum(prices, Decimal(0)) / Decimal(len(prices))


def percentiles(prices: Sequence[Decimal]) -> dict[int, Decimal]:
    """Nearest-rank percentiles 10, 20, ... 90 of the prices."""
    ordered = sorted(prices)
    if not ordered:
        raise ValueError("percentiles need at least one price")
    size = len(ordered)
    result = {}
    for p in range(10, 100, 10):
        rank = math.floor(size * (p / 100) + 0.5)
        result[p] = ordered[min(rank, size - 1)]
    return result