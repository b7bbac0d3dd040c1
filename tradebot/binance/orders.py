"""Order responses returned by the exchange."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from tradebot.order import Order, OrderSide, OrderStatus, OrderType
from tradebot.ticker import Ticker


def _decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"expected a decimal, got {value!r}")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"invalid decimal {value!r}") from None
    if not number.is_finite():
        raise ValueError(f"invalid decimal {value!r}")
    return number


def _integer(value: Any, unsigned: bool = True) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or (unsigned and value < 0):
        raise ValueError(f"invalid integer {value!r}")
    return value


@dataclass(frozen=True)
class Fill:
    """One execution of an order."""

    price: Decimal
    qty: Decimal
    commission: Decimal
    commission_asset: str
    trade_id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Fill":
        try:
            trade_id = data.get("tradeId")
            return cls(
                price=_decimal(data["price"]),
                qty=_decimal(data["qty"]),
                commission=_decimal(data["commission"]),
                commission_asset=str(data["commissionAsset"]),
                trade_id=None if trade_id is None else _integer(trade_id),
            )
        except (KeyError, TypeError, AttributeError) as err:
            raise ValueError(f"malformed fill: {err}") from err


@dataclass(frozen=True)
class OrderResponse:
    """An order as the exchange reports it."""

    symbol: str
    order_id: int
    order_list_id: int
    client_order_id: str
    transact_time: int
    price: Decimal
    orig_qty: Decimal
    executed_qty: Decimal
    cummulative_quote_qty: Decimal
    status: str
    time_in_force: str
    order_type: str
    side: str
    working_time: Optional[int] = None
    fills: list[Fill] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OrderResponse":
        """Parse an exchange order object; raise ValueError if malformed."""
        try:
            working_time = data.get("workingTime")
            return cls(
                symbol=str(data["symbol"]),
                order_id=_integer(data["orderId"]),
                order_list_id=_integer(data["orderListId"], unsigned=False),
                client_order_id=str(data["clientOrderId"]),
                transact_time=_integer(data["transactTime"]),
                price=_decimal(data["price"]),
                orig_qty=_decimal(data["origQty"]),
                executed_qty=_decimal(data["executedQty"]),
                cummulative_quote_qty=_decimal(data["cummulativeQuoteQty"]),
                status=str(data["status"]),
                time_in_force=str(data["timeInForce"]),
                order_type=str(data["type"]),
                side=str(data["side"]),
                working_time=None if working_time is None else _integer(working_time),
                fills=[Fill.from_dict(item) for item in data.get("fills", [])],
            )
        except (KeyError, TypeError, AttributeError) as err:
            raise ValueError(f"malformed order response: {err}") from err

    def to_order(self) -> Order:
        """Convert to an order; raise ValueError on unknown symbol, status, type or side."""
        return Order(
            creation_time=self.transact_time,
            sent_time=self.transact_time,
            working_time=self.working_time,
            ticker=Ticker.parse(self.symbol),
            status=OrderStatus.from_exchange(self.status),
            order_type=OrderType.parse(self.order_type),
            side=OrderSide.parse(self.side),
            price=self.price,
            amount=self.orig_qty,
            filled_amount=self.executed_qty,
            trades=[],
            parent_order_price=None,
            marketplace_id=str(self.order_id),
        )