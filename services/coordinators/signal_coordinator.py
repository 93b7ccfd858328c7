import asyncio
import logging
import time
from typing import Optional

from core.errors import RiskError, VenueError
from models.position import ClosedPosition, Position
from models.signal import SignalKind, TradeSignal
from services.open_position_engine.position_monitor import build_closed_position
from utils.formatters import (
    format_position_closed,
    format_position_opened,
    format_signal_ignored,
    format_trade_error,
)

logger = logging.getLogger("signal_coordinator")


class SignalCoordinator:
    """
    Turns parsed alerts into trades.

    Alerts arrive through submit() and are handled by run(), one at a time
    and in arrival order. A failed attempt is logged and notified, the queue
    keeps going.
    """

    def __init__(self, settings, ledger, venue, admission, risk, notifier=None):
        self.settings = settings
        self.ledger = ledger
        self.venue = venue
        self.admission = admission
        self.risk = risk
        self.notifier = notifier

        self.queue: asyncio.Queue = asyncio.Queue()

        logger.info("🔧 SignalCoordinator initialized.")

    # ==============================================================
    # 📥 QUEUE
    # ==============================================================
    async def submit(self, signal: TradeSignal):
        await self.queue.put(signal)
        logger.debug(f"📥 Queued {signal.kind.value} {signal.symbol} (pending={self.queue.qsize()})")

    async def run(self):
        logger.info("▶️ Signal consumer started")
        while True:
            signal = await self.queue.get()
            try:
                await self.handle_signal(signal)
            except Exception as e:
                logger.exception(f"❌ Unexpected error handling {signal.symbol}: {e}")
            finally:
                self.queue.task_done()

    async def handle_signal(self, signal: TradeSignal):
        if signal.kind is SignalKind.OPEN:
            return await self.handle_open(signal)
        return await self.handle_close(signal)

    # ==============================================================
    # 🚀 OPEN
    # ==============================================================
    async def handle_open(self, signal: TradeSignal) -> Optional[Position]:
        symbol = signal.symbol
        direction = signal.direction
        self.ledger.record_signal()

        logger.info(
            f"🔍 ENTRY signal {symbol} {direction.value} | last={signal.last_price} "
            f"fair={signal.fair_price} spread={signal.spread_percent}"
        )

        result = await self.admission.evaluate(signal)
        if not result.accepted:
            self.ledger.record_ignored(result.reason_code.value)
            await self._notify(format_signal_ignored(symbol, direction, result.reason, result.details))
            return None

        try:
            balance = result.details.get("balance")
            if balance is None:
                balance = await self.venue.get_balance()
            contract = result.details.get("contract")
            if contract is None:
                contract = await self.venue.get_contract_info(symbol)
            price = await self.venue.get_price(symbol)
            plan = self.risk.compute(balance, price, direction, contract)

            if self.settings.dry_run:
                order_id = f"DRY_RUN_{int(time.time() * 1000)}"
                logger.info(f"🧪 [DRY RUN] Would open {direction.value} {plan.quantity} lots {symbol} @ {price}")
            else:
                order = await self.venue.open_market_order(
                    symbol,
                    direction.order_side,
                    plan.quantity,
                    plan.leverage,
                    self.settings.margin_mode,
                )
                order_id = order.order_id
        except (RiskError, VenueError) as e:
            logger.error(f"❌ Could not open {symbol} {direction.value}: {e}")
            await self._notify(format_trade_error("OPEN", symbol, direction, e))
            return None

        position = Position(
            symbol=symbol,
            direction=direction,
            entry_price=plan.entry_price,
            quantity=plan.quantity,
            order_id=order_id,
            notional=plan.notional,
            multiplier=plan.multiplier,
            dry_run=self.settings.dry_run,
        )
        self.ledger.add_open(position)
        self.ledger.record_trade()

        logger.info(f"✅ Position opened: {symbol} {direction.value} {plan.quantity} lots (order {order_id})")
        await self._notify(format_position_opened(position, plan, balance))
        return position

    # ==============================================================
    # 🔻 CLOSE
    # ==============================================================
    async def handle_close(self, signal: TradeSignal) -> Optional[ClosedPosition]:
        symbol = signal.symbol
        self.ledger.record_signal()

        position = self.ledger.get_open(symbol)
        if position is None:
            logger.warning(f"⚠️ EXIT signal for {symbol} but no tracked position, ignored")
            return None

        close_order_id = None
        try:
            if self.settings.dry_run or position.dry_run:
                logger.info(f"🧪 [DRY RUN] Would close {position.quantity} lots {symbol}")
            else:
                order = await self.venue.close_market_order(
                    symbol,
                    position.direction.close_side,
                    position.quantity,
                    self.settings.leverage,
                    self.settings.margin_mode,
                )
                close_order_id = order.order_id
        except VenueError as e:
            logger.error(f"❌ Could not close {symbol}: {e}")
            await self._notify(format_trade_error("CLOSE", symbol, position.direction, e))
            return None

        exit_price, estimated = await self._exit_price(position)
        closed = build_closed_position(
            position,
            exit_price=exit_price,
            close_reason="signal",
            exit_price_estimated=estimated,
            close_order_id=close_order_id,
        )

        if not self.ledger.close_position(symbol, closed, expected_order_id=position.order_id):
            logger.info(f"ℹ️ {symbol} was already closed by reconciliation, nothing recorded")
            return None

        await self._notify(format_position_closed(closed))
        return closed

    async def _exit_price(self, position: Position):
        try:
            return await self.venue.get_price(position.symbol), False
        except VenueError as e:
            logger.warning(f"⚠️ No exit price for {position.symbol} ({e}), using entry price")
            return position.entry_price, True

    # ==============================================================
    # 📤 NOTIFICATIONS
    # ==============================================================
    async def notify_external_close(self, closed: ClosedPosition):
        """on_closed hook for the position monitor."""
        await self._notify(format_position_closed(closed))

    async def _notify(self, text: str):
        if self.notifier is None:
            return
        await self.notifier.safe_send(text)
