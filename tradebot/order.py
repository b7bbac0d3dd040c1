"""Orders, their sides, types, statuses and fills."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from tradebot.ticker import Ticker


def _opt_decimal(value: Any) -> Optional[Decimal]:
    return None if value is None else Decimal(value)


def _opt_decimal_str(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else format(value, "f")


class OrderSide(Enum):
    """Direction of an order."""

    BUY = "Buy"
    SELL = "Sell"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "OrderSide":
        """Parse an exchange side such as ``BUY`` (case-insensitive)."""
        key = value.upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown order side {key}") from None


class OrderType(Enum):
    """Kind of order."""

    MARKET = "Market"
    LIMIT = "Limit"
    STOP_LOSS = "StopLoss"
    STOP_LOSS_LIMIT = "StopLossLimit"
    TAKE_PROFIT = "TakeProfit"
    TAKE_PROFIT_LIMIT = "TakeProfitLimit"
    LIMIT_MAKER = "LimitMaker"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "OrderType":
        """Parse an exchange order type such as ``STOP_LOSS`` (case-insensitive)."""
        key = value.upper()
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown order type {key}") from None


class OrderStatus(Enum):
    """Life-cycle state of an order."""

    DRAFT = "Draft"
    SENT = "Sent"
    ACTIVE = "Active"
    EXECUTED = "Executed"
    PENDING_CANCEL = "PendingCancel"
    CANCELLED = "Cancelled"
    REJECTED = "Rejected"
    EXPIRED = "Expired"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_exchange(cls, value: str) -> "OrderStatus":
        """Map an exchange status string (case-sensitive) to a status."""
        try:
            return _EXCHANGE_STATUSES[value]
        except KeyError:
            raise ValueError(f"Unknown order status {value}") from None


_EXCHANGE_STATUSES = {
    "PENDING_NEW": OrderStatus.SENT,
    "NEW": OrderStatus.ACTIVE,
    "PARTIALLY_FILLED": OrderStatus.ACTIVE,
    "FILLED": OrderStatus.EXECUTED,
    "CANCELED": OrderStatus.CANCELLED,
    "REJECTED": OrderStatus.REJECTED,
    "EXPIRED": OrderStatus.EXPIRED,
    "EXPIRED_IN_MATCH": OrderStatus.EXPIRED,
}


@dataclass
class OrderTrade:
    """A fill of part of an order."""

    trade_time: int
    amount: Decimal
    price: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "trade_time": self.trade_time,
            "amount": format(self.amount, "f"),
            "price": format(self.price, "f"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderTrade":
        return cls(
            trade_time=int(data["trade_time"]),
            amount=Decimal(data["amount"]),
            price=Decimal(data["price"]),
        )


@dataclass
class Order:
    """An order on a ticker together with the trades that filled it."""

    creation_time: int
    ticker: Ticker
    side: OrderSide
    order_type: OrderType
    amount: Decimal
    price: Decimal
    status: OrderStatus = OrderStatus.DRAFT
    filled_amount: Decimal = Decimal(0)
    trades: list[OrderTrade] = field(default_factory=list)
    sent_time: Optional[int] = None
    working_time: Optional[int] = None
    parent_order_price: Optional[Decimal] = None
    marketplace_id: Optional[str] = None

    def last_trade_time(self) -> Optional[int]:
        """Time of the most recent trade, or None without trades."""
        return max((trade.trade_time for trade in self.trades), default=None)

    def trade_total_price(self) -> Decimal:
        """Total quote value of all trades."""
        return sum((trade.amount * trade.price for trade in self.trades), Decimal(0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "creation_time": self.creation_time,
            "sent_time": self.sent_time,
            "working_time": self.working_time,
            "ticker": self.ticker.to_dict(),
            "side": self.side.value,
            "order_type": self.order_type.value,
            "status": self.status.value,
            "amount": format(self.amount, "f"),
            "price": format(self.price, "f"),
            "filled_amount": format(self.filled_amount, "f"),
            "trades": [trade.to_dict() for trade in self.trades],
            "parent_order_price": _opt_decimal_str(self.parent_order_price),
            "marketplace_id": self.marketplace_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Order":
        return cls(
            creation_time=int(data["creation_time"]),
            sent_time=data["sent_time"],
            working_time=data["working_time"],
            ticker=Ticker.from_dict(data["ticker"]),
            side=OrderSide(data["side"]),
            order_type=OrderType(data["order_type"]),
            status=OrderStatus(data["status"]),
            amount=Decimal(data["amount"]),
            price=Decimal(data["price"]),
            filled_amount=Decimal(data["filled_amount"]),
            trades=[OrderTrade.from_dict(trade) for trade in data["trades"]],
            parent_order_price=_opt_decimal(data["parent_order_price"]),
            marketplace_id=data["marketplace_id"],
        )