"""
services/scheduler_service.py
------------------------------
Daily report and day rollover.

Runs on its own calendar timer (not the reconciliation interval):
 - sleeps until the next REPORT_HOUR:00 UTC
 - builds the report (signals, trades, win rate, balance P&L, ROI)
 - sends it
 - resets the ledger day counters (open positions are kept)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from core.errors import VenueError
from models.position import LedgerStatistics
from utils.formatters import format_daily_report

logger = logging.getLogger("scheduler_service")


@dataclass(frozen=True)
class DailyReport:
    date: str
    trading_hours: str
    statistics: LedgerStatistics
    start_balance: float
    current_balance: float

    @property
    def balance_pnl(self) -> float:
        return self.current_balance - self.start_balance

    @property
    def roi(self) -> float:
        if self.start_balance <= 0:
            return 0.0
        return self.balance_pnl / self.start_balance * 100.0


def seconds_until_next_run(now: datetime, report_hour_utc: int = 23) -> float:
    """Seconds from `now` to the next report_hour_utc:00:00 UTC (always > 0)."""
    now = now.astimezone(timezone.utc)
    target = now.replace(hour=report_hour_utc, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class DailyReportScheduler:
    def __init__(self, ledger, venue, notifier=None, report_hour_utc: int = 23, trading_hours=None):
        self.ledger = ledger
        self.venue = venue
        self.notifier = notifier
        self.report_hour_utc = report_hour_utc
        self.trading_hours = trading_hours

        self.start_balance: float = 0.0
        self._task: Optional[asyncio.Task] = None

    # ============================================================
    # 🔹 CONTROL
    # ============================================================
    def start(self, start_balance: float = 0.0):
        self.start_balance = start_balance
        self._task = asyncio.create_task(self._loop(), name="daily_report")
        logger.info(f"🕒 Daily report scheduled at {self.report_hour_utc:02d}:00 UTC")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self):
        while True:
            delay = seconds_until_next_run(datetime.now(timezone.utc), self.report_hour_utc)
            logger.info(f"🕒 Next daily report in {delay / 3600:.1f}h")
            await asyncio.sleep(delay)
            try:
                await self.run_once()
            except Exception as e:
                logger.exception(f"❌ Error building daily report: {e}")

    # ============================================================
    # 🔹 REPORT
    # ============================================================
    async def build_report(self, now: Optional[datetime] = None) -> DailyReport:
        now = now or datetime.now(timezone.utc)
        try:
            current_balance = await self.venue.get_balance()
        except VenueError as e:
            logger.warning(f"⚠️ Balance unavailable for daily report: {e}")
            current_balance = self.start_balance

        return DailyReport(
            date=now.strftime("%Y-%m-%d"),
            trading_hours=self.trading_hours.describe() if self.trading_hours else "24h",
            statistics=self.ledger.statistics(),
            start_balance=self.start_balance,
            current_balance=current_balance,
        )

    async def run_once(self, now: Optional[datetime] = None) -> DailyReport:
        """Send today's report, then roll the day over."""
        report = await self.build_report(now)
        logger.info(
            f"📊 Daily report {report.date}: trades={report.statistics.trade_count} "
            f"pnl={report.statistics.total_pnl:.4f} roi={report.roi:.2f}%"
        )

        if self.notifier is not None:
            await self.notifier.safe_send(format_daily_report(report))

        self.ledger.reset_daily()
        self.start_balance = report.current_balance
        return report
