"""Account overview returned by the exchange and request signing."""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping


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


def sign(secret: str, params: str) -> str:
    """Hex HMAC-SHA256 signature of a query string."""
    return hmac.new(secret.encode(), params.encode(), hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class AccountBalance:
    """Free and locked amounts of one asset."""

    asset: str
    free: Decimal
    locked: Decimal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccountBalance":
        return cls(
            asset=str(data["asset"]),
            free=_decimal_str(data["free"]),
            locked=_decimal_str(data["locked"]),
        )


@dataclass(frozen=True)
class AccountCommissions:
    """Maker and taker fee ratios."""

    maker: Decimal
    taker: Decimal

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccountCommissions":
        return cls(maker=_decimal_str(data["maker"]), taker=_decimal_str(data["taker"]))


@dataclass(frozen=True)
class AccountOverview:
    """Balances and commission rates of an account."""

    uid: int
    commission_rates: AccountCommissions
    balances: list[AccountBalance] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccountOverview":
        """Parse the exchange's account response; raise ValueError if malformed."""
        try:
            uid = data["uid"]
            if isinstance(uid, bool) or not isinstance(uid, int) or uid < 0:
                raise ValueError(f"invalid uid {uid!r}")
            return cls(
                uid=uid,
                balances=[AccountBalance.from_dict(item) for item in data["balances"]],
                commission_rates=AccountCommissions.from_dict(data["commissionRates"]),
            )
        except (KeyError, TypeError) as err:
            raise ValueError(f"malformed account overview: {err}") from err