"""
models/contract.py
------------------
Venue-side shapes: contract specification, normalized position rows and
fills, order results and the sizing plan derived from them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.signal import Direction

TRADABLE_STATUS = "Open"


@dataclass(frozen=True)
class ContractSpec:
    symbol: str
    tick_size: float = 0.0
    lot_size: float = 1.0
    multiplier: float = 1.0
    min_order_qty: float = 1.0
    max_order_qty: float = 1_000_000.0
    status: str = TRADABLE_STATUS
    max_leverage: float = 100.0

    @property
    def is_tradable(self) -> bool:
        return self.status == TRADABLE_STATUS


@dataclass(frozen=True)
class RiskPlan:
    entry_price: float
    quantity: int
    notional: float
    leverage: int
    required_margin: float
    direction: Direction
    multiplier: float = 1.0


@dataclass(frozen=True)
class VenuePosition:
    symbol: str
    side: str
    size: float
    entry_price: float = 0.0
    mark_price: float = 0.0
    unrealized_pnl: float = 0.0
    leverage: float = 1.0


@dataclass(frozen=True)
class Fill:
    symbol: str
    side: str
    price: float
    size: float = 0.0
    order_id: str = ""
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class OrderResult:
    order_id: str
    client_oid: str
    symbol: str
    side: str
    quantity: int
