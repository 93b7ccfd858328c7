"""
models/position.py
-------------------
Positions tracked by the bot: open ones (one per symbol) and the closed
history of the current trading day.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.signal import Direction, utc_now


@dataclass
class Position:
    symbol: str
    direction: Direction
    entry_price: float
    quantity: int          # lots
    order_id: str
    opened_at: datetime = field(default_factory=utc_now)
    notional: float = 0.0  # USDT
    multiplier: float = 1.0
    dry_run: bool = False


@dataclass(frozen=True)
class ClosedPosition:
    symbol: str
    direction: Direction
    entry_price: float
    quantity: int
    order_id: str
    opened_at: datetime
    notional: float
    multiplier: float
    exit_price: float
    realized_pnl: float
    realized_pnl_percent: float
    duration_seconds: float
    closed_at: datetime
    close_reason: str = "reconciliation"   # or "signal"
    exit_price_estimated: bool = False
    close_order_id: Optional[str] = None

    @property
    def is_win(self) -> bool:
        return self.realized_pnl >= 0


@dataclass(frozen=True)
class LedgerStatistics:
    trade_count: int = 0
    win_count: int = 0
    loss_count: int = 0
    total_pnl: float = 0.0
    open_count: int = 0
    daily_trades: int = 0
    total_signals: int = 0
    signals_ignored: int = 0

    @property
    def win_rate(self) -> float:
        if not self.trade_count:
            return 0.0
        return self.win_count / self.trade_count * 100.0
