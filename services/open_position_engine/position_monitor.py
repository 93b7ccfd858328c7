# services/open_position_engine/position_monitor.py
"""
Reconciliation loop: keeps the ledger in line with KuCoin.

Each tick walks a snapshot of the tracked positions. A symbol with no
venue position (or size 0) was closed outside the bot (TP/SL, liquidation,
manual close). Its closing fill is looked up in the trade history and the
position is moved to the closed history. Dry-run positions only exist in
the ledger and are left alone.

Ticks never overlap: a tick that starts while another is still running is
skipped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from core.errors import ReconciliationError, VenueError
from core.helpers import calculate_pnl, calculate_price_change
from models.contract import Fill
from models.position import ClosedPosition, Position
from models.signal import utc_now

logger = logging.getLogger("position_monitor")

OnClosed = Callable[[ClosedPosition], Awaitable[None]]


@dataclass
class ReconciliationReport:
    checked: List[str] = field(default_factory=list)
    closed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: bool = False


def find_closing_fill(fills: List[Fill], position: Position) -> Optional[Fill]:
    """Newest fill on the closing side that is not older than the open."""
    close_side = position.direction.close_side
    for fill in fills:
        if fill.side != close_side:
            continue
        if fill.created_at is not None and fill.created_at < position.opened_at:
            continue
        return fill
    return None


def build_closed_position(
    position: Position,
    exit_price: float,
    close_reason: str,
    closed_at: Optional[datetime] = None,
    exit_price_estimated: bool = False,
    close_order_id: Optional[str] = None,
) -> ClosedPosition:
    closed_at = closed_at or utc_now()
    return ClosedPosition(
        symbol=position.symbol,
        direction=position.direction,
        entry_price=position.entry_price,
        quantity=position.quantity,
        order_id=position.order_id,
        opened_at=position.opened_at,
        notional=position.notional,
        multiplier=position.multiplier,
        exit_price=exit_price,
        realized_pnl=calculate_pnl(
            position.entry_price, exit_price, position.quantity, position.direction, position.multiplier
        ),
        realized_pnl_percent=calculate_price_change(position.entry_price, exit_price, position.direction),
        duration_seconds=max(0.0, (closed_at - position.opened_at).total_seconds()),
        closed_at=closed_at,
        close_reason=close_reason,
        exit_price_estimated=exit_price_estimated,
        close_order_id=close_order_id,
    )


class PositionMonitor:
    def __init__(self, ledger, venue, interval_sec: float = 30, on_closed: Optional[OnClosed] = None):
        self.ledger = ledger
        self.venue = venue
        self.interval_sec = interval_sec
        self.on_closed = on_closed

        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    # =========================================================
    # Control
    # =========================================================
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            logger.warning("⚠️ Position monitor already running")
            return
        self._task = asyncio.create_task(self._loop(), name="position_monitor")
        logger.info(f"📌 Position monitor started (every {self.interval_sec}s)")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("⏹ Position monitor stopped")

    async def _loop(self):
        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"❌ Error in position monitor: {e}")
            await asyncio.sleep(self.interval_sec)

    # =========================================================
    # One tick
    # =========================================================
    async def run_once(self) -> ReconciliationReport:
        if self._tick_lock.locked():
            logger.warning("⚠️ Previous reconciliation still running, tick skipped")
            return ReconciliationReport(skipped=True)

        async with self._tick_lock:
            report = ReconciliationReport()
            positions = self.ledger.open_positions()
            if not positions:
                logger.debug("📭 No tracked positions to reconcile")
                return report

            for position in positions:
                if position.dry_run:
                    # simulated, KuCoin never saw it
                    logger.debug(f"🧪 {position.symbol} is a dry-run position, not reconciled")
                    continue
                report.checked.append(position.symbol)
                try:
                    closed = await self._reconcile(position)
                except ReconciliationError as e:
                    logger.error(f"❌ {e}")
                    report.failed.append(position.symbol)
                    continue
                except Exception as e:
                    logger.exception(f"❌ {ReconciliationError(position.symbol, e)}")
                    report.failed.append(position.symbol)
                    continue

                if closed is not None:
                    report.closed.append(position.symbol)
                    await self._notify_closed(closed)

            logger.info(
                f"🔍 Reconciliation: checked={len(report.checked)} "
                f"closed={len(report.closed)} failed={len(report.failed)}"
            )
            return report

    async def _reconcile(self, position: Position) -> Optional[ClosedPosition]:
        symbol = position.symbol
        try:
            venue_positions = await self.venue.get_open_positions(symbol)
        except VenueError as e:
            raise ReconciliationError(symbol, e) from e

        live = next((p for p in venue_positions if p.symbol == symbol and p.size > 0), None)
        if live is not None:
            logger.info(
                f"📊 {symbol} open | size={live.size} | mark={live.mark_price} | "
                f"unrealized={live.unrealized_pnl:.4f} USDT"
            )
            return None

        logger.info(f"🔔 {symbol} no longer open on KuCoin, closed externally")

        try:
            fills = await self.venue.get_trade_history(symbol)
        except VenueError as e:
            raise ReconciliationError(symbol, e) from e

        fill = find_closing_fill(fills, position)
        if fill is not None and fill.price > 0:
            closed = build_closed_position(
                position,
                exit_price=fill.price,
                close_reason="reconciliation",
                closed_at=fill.created_at,
                close_order_id=fill.order_id or None,
            )
        else:
            logger.warning(
                f"⚠️ No closing fill found for {symbol}, using entry price {position.entry_price} as exit"
            )
            closed = build_closed_position(
                position,
                exit_price=position.entry_price,
                close_reason="reconciliation",
                exit_price_estimated=True,
            )

        if not self.ledger.close_position(symbol, closed, expected_order_id=position.order_id):
            logger.info(f"ℹ️ {symbol} was already closed by another path, nothing recorded")
            return None

        return closed

    async def _notify_closed(self, closed: ClosedPosition):
        if self.on_closed is None:
            return
        try:
            await self.on_closed(closed)
        except Exception as e:
            logger.exception(f"❌ on_closed callback failed for {closed.symbol}: {e}")
