"""
models/signal.py
----------------
Typed trading signal produced by the alert parser.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class SignalKind(str, Enum):
    OPEN = "OPEN"
    CLOSE = "CLOSE"


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def order_side(self) -> str:
        """Venue side that opens a position in this direction."""
        return "buy" if self is Direction.LONG else "sell"

    @property
    def close_side(self) -> str:
        """Venue side that unwinds a position in this direction."""
        return "sell" if self is Direction.LONG else "buy"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TradeSignal:
    kind: SignalKind
    symbol: str
    timestamp: datetime = field(default_factory=utc_now)
    direction: Optional[Direction] = None
    last_price: Optional[float] = None
    fair_price: Optional[float] = None
    spread_percent: Optional[float] = None
    marker: Optional[str] = None
    raw_text: str = field(default="", repr=False, compare=False)

    def __post_init__(self):
        if not self.symbol:
            raise ValueError("TradeSignal requires a symbol")
        if self.kind is SignalKind.OPEN and self.direction is None:
            raise ValueError("OPEN signal requires a direction")
        if self.kind is SignalKind.CLOSE and (
            self.direction is not None
            or self.last_price is not None
            or self.fair_price is not None
            or self.spread_percent is not None
        ):
            raise ValueError("CLOSE signal carries only symbol and timestamp")

    @classmethod
    def open(
        cls,
        symbol: str,
        direction: Direction,
        last_price: Optional[float] = None,
        fair_price: Optional[float] = None,
        spread_percent: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        marker: Optional[str] = None,
        raw_text: str = "",
    ) -> "TradeSignal":
        return cls(
            kind=SignalKind.OPEN,
            symbol=symbol,
            timestamp=timestamp or utc_now(),
            direction=direction,
            last_price=last_price,
            fair_price=fair_price,
            spread_percent=spread_percent,
            marker=marker,
            raw_text=raw_text,
        )

    @classmethod
    def close(
        cls, symbol: str, timestamp: Optional[datetime] = None, raw_text: str = ""
    ) -> "TradeSignal":
        return cls(
            kind=SignalKind.CLOSE,
            symbol=symbol,
            timestamp=timestamp or utc_now(),
            raw_text=raw_text,
        )

    @property
    def is_open(self) -> bool:
        return self.kind is SignalKind.OPEN
