"""Assets held and their estimated value."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional

_PURPLE = "\x1b[35m"
_YELLOW = "\x1b[33m"
_RESET = "\x1b[0m"


@dataclass
class Asset:
    """An amount of one asset and its estimated value in the quote currency."""

    symbol: str
    amount: Decimal
    value: Optional[Decimal] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "amount": format(self.amount, "f"),
            "value": None if self.value is None else format(self.value, "f"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Asset":
        value = data.get("value")
        return cls(
            symbol=data["symbol"],
            amount=Decimal(data["amount"]),
            value=None if value is None else Decimal(value),
        )


@dataclass
class Portfolio:
    """All assets held, keyed by symbol."""

    assets: dict[str, Asset] = field(default_factory=dict)
    value: Optional[Decimal] = None

    def next_prev_symbol(self, current: Optional[str], is_next: bool) -> Optional[str]:
        """Step through symbols in sorted order, wrapping around at either end."""
        keys = sorted(self.assets)
        if not keys:
            return None
        if current is None or current not in keys:
            return keys[0]
        step = 1 if is_next else -1
        return keys[(keys.index(current) + step) % len(keys)]

    def update_asset_amount(self, symbol: str, delta: Decimal, current_price: Decimal) -> None:
        """Add ``delta`` to an asset, revalue it at ``current_price`` and update the total."""
        asset = self.assets.get(symbol)
        if asset is None:
            self.assets[symbol] = Asset(symbol, delta, delta * current_price)
        else:
            asset.amount += delta
            asset.value = asset.amount * current_price
        self.update_value()

    def update_value(self) -> None:
        """Recompute the total from the assets that have a value."""
        self.value = sum(
            (asset.value for asset in self.assets.values() if asset.value is not None),
            Decimal(0),
        )

    def __str__(self) -> str:
        lines = []
        for asset in self.assets.values():
            value = asset.value if asset.value is not None else Decimal(0)
            unit = value / asset.amount if asset.amount != 0 else Decimal(0)
            lines.append(
                f"{asset.symbol}: {_PURPLE}{format(asset.amount, 'f')}{_RESET}"
                f" (~total {format(value, 'f')}, unit {format(unit, 'f')})"
            )
        total = "?" if self.value is None else format(self.value, "f")
        return f"~{_YELLOW}{total}{_RESET} :\n" + "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "assets": {symbol: asset.to_dict() for symbol, asset in self.assets.items()},
            "value": None if self.value is None else format(self.value, "f"),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Portfolio":
        value = data.get("value")
        return cls(
            assets={symbol: Asset.from_dict(asset) for symbol, asset in data["assets"].items()},
            value=None if value is None else Decimal(value),
        )