"""Trading pairs made of a base asset and a quote asset."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class Ticker:
    """A trading pair such as BTC/USDT."""

    base: str
    quote: str

    @classmethod
    def parse(cls, value: str) -> "Ticker":
        """Split a 6 or 7 character symbol into a three-letter base and its quote."""
        if len(value) not in (6, 7):
            raise ValueError(f"Could not convert {len(value)} to ticker")
        return cls(base=value[:3], quote=value[3:])

    def to_dict(self) -> dict[str, Any]:
        return {"b": self.base, "q": self.quote}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Ticker":
        return cls(base=data["b"], quote=data["q"])

    def __str__(self) -> str:
        return f"{self.base}{self.quote}"