import logging
import threading
from collections import Counter
from typing import Dict, List, Optional, Tuple

from models.position import ClosedPosition, LedgerStatistics, Position

logger = logging.getLogger("position_ledger")


class PositionLedger:
    """
    In-memory book of the bot's positions.

    Holds:
      - open positions, one per symbol
      - closed positions of the current trading day (append-only)
      - day counters: trades executed, signals received, signals ignored

    Nothing is persisted. After a restart the ledger starts empty and only
    positions opened from then on are tracked.

    Signal handling and the reconciliation loop both write here, so every
    mutation takes the same lock.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._open: Dict[str, Position] = {}
        self._closed: List[ClosedPosition] = []
        self._daily_trades = 0
        self._total_signals = 0
        self._ignored: Counter = Counter()

    # ----------------------------------------------------------------------
    # OPEN POSITIONS
    # ----------------------------------------------------------------------
    def add_open(self, position: Position):
        with self._lock:
            previous = self._open.get(position.symbol)
            if previous is not None:
                logger.warning(
                    f"⚠️ Ledger: {position.symbol} already tracked "
                    f"(order {previous.order_id}); replacing with order {position.order_id}"
                )
            self._open[position.symbol] = position

        logger.info(
            f"📌 Ledger: tracking {position.symbol} {position.direction.value} "
            f"({position.quantity} lots @ {position.entry_price})"
        )

    def remove_open(self, symbol: str) -> Optional[Position]:
        with self._lock:
            position = self._open.pop(symbol, None)

        if position is not None:
            logger.info(f"🗑 Ledger: stopped tracking {symbol}")
        return position

    def get_open(self, symbol: str) -> Optional[Position]:
        with self._lock:
            return self._open.get(symbol)

    def has_open(self, symbol: str) -> bool:
        with self._lock:
            return symbol in self._open

    def count_open(self) -> int:
        with self._lock:
            return len(self._open)

    def open_positions(self) -> List[Position]:
        with self._lock:
            return list(self._open.values())

    # ----------------------------------------------------------------------
    # CLOSED HISTORY
    # ----------------------------------------------------------------------
    def add_closed(self, closed: ClosedPosition):
        with self._lock:
            self._closed.append(closed)

        logger.info(
            f"📕 Ledger: closed {closed.symbol} | P&L {closed.realized_pnl:.4f} USDT "
            f"({closed.realized_pnl_percent:.2f}%)"
        )

    def close_position(
        self, symbol: str, closed: ClosedPosition, expected_order_id: Optional[str] = None
    ) -> bool:
        """
        Atomically move an open position to the closed history.

        expected_order_id pins the exact entry the caller looked at. If that
        entry is gone (or was replaced by a newer one) nothing changes and
        False is returned.
        """
        with self._lock:
            current = self._open.get(symbol)
            if current is None:
                return False
            if expected_order_id is not None and current.order_id != expected_order_id:
                return False

            del self._open[symbol]
            self._closed.append(closed)

        logger.info(
            f"📕 Ledger: {symbol} moved to history ({closed.close_reason}) | "
            f"P&L {closed.realized_pnl:.4f} USDT ({closed.realized_pnl_percent:.2f}%)"
        )
        return True

    def closed_positions(self) -> Tuple[ClosedPosition, ...]:
        with self._lock:
            return tuple(self._closed)

    # ----------------------------------------------------------------------
    # DAY COUNTERS
    # ----------------------------------------------------------------------
    def record_signal(self):
        with self._lock:
            self._total_signals += 1

    def record_ignored(self, reason_code: str = "unknown"):
        with self._lock:
            self._ignored[str(reason_code)] += 1

    def record_trade(self):
        with self._lock:
            self._daily_trades += 1

    @property
    def daily_trades(self) -> int:
        with self._lock:
            return self._daily_trades

    def ignored_by_reason(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._ignored)

    # ----------------------------------------------------------------------
    # STATISTICS
    # ----------------------------------------------------------------------
    def statistics(self) -> LedgerStatistics:
        """Recomputed on every call over today's closed positions."""
        with self._lock:
            closed = list(self._closed)
            open_count = len(self._open)
            daily_trades = self._daily_trades
            total_signals = self._total_signals
            ignored = sum(self._ignored.values())

        wins = sum(1 for c in closed if c.is_win)
        return LedgerStatistics(
            trade_count=len(closed),
            win_count=wins,
            loss_count=len(closed) - wins,
            total_pnl=sum(c.realized_pnl for c in closed),
            open_count=open_count,
            daily_trades=daily_trades,
            total_signals=total_signals,
            signals_ignored=ignored,
        )

    def reset_daily(self):
        """New trading day: history and counters go, open positions stay."""
        with self._lock:
            self._closed = []
            self._daily_trades = 0
            self._total_signals = 0
            self._ignored.clear()

        logger.info("🔄 Ledger: daily statistics reset")
