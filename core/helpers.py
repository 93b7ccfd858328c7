"""
core/helpers.py
---------------
Small shared utilities:
- symbol normalization / symbol lists
- percent price change for long/short
- realized PnL on KuCoin lots (contract multiplier aware)
- human readable durations
"""

import logging
import math
import re
from typing import FrozenSet, Iterable

from models.signal import Direction

logger = logging.getLogger("helpers")


# ============================================================
# 🔤 Symbols
# ============================================================

def normalize_symbol(raw: str) -> str:
    """'  blessusdtm ' → 'BLESSUSDTM'. Strips anything that is not A-Z/0-9."""
    if not raw or not isinstance(raw, str):
        return ""
    return re.sub(r"[^A-Z0-9]", "", raw.upper())


def parse_symbol_list(raw: str | Iterable[str] | None) -> FrozenSet[str]:
    """Comma separated env value (or iterable) → frozenset of clean symbols."""
    if not raw:
        return frozenset()
    items = raw.split(",") if isinstance(raw, str) else raw
    return frozenset(s for s in (normalize_symbol(i) for i in items) if s)


def is_valid_number(value) -> bool:
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


# ============================================================
# 📈 Price change WITHOUT leverage
# ============================================================

def calculate_price_change(entry_price: float, exit_price: float, direction: Direction) -> float:
    """Real percent change of the position (no leverage)."""
    if entry_price <= 0:
        return 0.0

    change = ((exit_price - entry_price) / entry_price) * 100.0

    if direction is Direction.SHORT:
        change *= -1

    return change


# ============================================================
# 💰 Realized PnL in USDT
# ============================================================

def calculate_pnl(
    entry_price: float,
    exit_price: float,
    quantity: float,
    direction: Direction,
    multiplier: float = 1.0,
) -> float:
    """(exit - entry) * lots * multiplier, sign flipped for SHORT."""
    pnl = (exit_price - entry_price) * quantity * multiplier
    return -pnl if direction is Direction.SHORT else pnl


# ============================================================
# ⏱ Durations
# ============================================================

def format_duration(seconds: float) -> str:
    """3725 → '1h 2m 5s'."""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)

    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
