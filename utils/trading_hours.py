"""
utils/trading_hours.py
----------------------
Trading-hours window used by the admission gate.

Hours are whole local hours in the configured IANA timezone and the end hour
is inclusive: 9-17 accepts 09:00 through 17:59. A start hour greater than the
end hour wraps past midnight (22-2 → 22:00 .. 02:59).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class TradingHours:
    enabled: bool = False
    start_hour: int = 0
    end_hour: int = 23
    timezone: str = "UTC"

    def __post_init__(self):
        for name in ("start_hour", "end_hour"):
            value = getattr(self, name)
            if not 0 <= value <= 23:
                raise ValueError(f"{name} must be between 0 and 23, got {value}")
        ZoneInfo(self.timezone)  # raises for unknown zones

    @property
    def wraps_midnight(self) -> bool:
        return self.start_hour > self.end_hour

    def local_time(self, now: datetime | None = None) -> datetime:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            raise ValueError("now must be timezone-aware")
        return now.astimezone(ZoneInfo(self.timezone))

    def hour_in_window(self, hour: int) -> bool:
        if self.wraps_midnight:
            return hour >= self.start_hour or hour <= self.end_hour
        return self.start_hour <= hour <= self.end_hour

    def is_active(self, now: datetime | None = None) -> bool:
        if not self.enabled:
            return True
        return self.hour_in_window(self.local_time(now).hour)

    def time_until_open(self, now: datetime | None = None) -> timedelta:
        """Zero when trading is allowed, otherwise the wait until start_hour:00."""
        if self.is_active(now):
            return timedelta(0)

        local = self.local_time(now)
        opening = local.replace(hour=self.start_hour, minute=0, second=0, microsecond=0)
        if opening <= local:
            opening += timedelta(days=1)
        return opening - local

    def describe(self) -> str:
        if not self.enabled:
            return "24h"
        return f"{self.start_hour}:00-{self.end_hour}:59 {self.timezone}"

    def info(self, now: datetime | None = None) -> dict:
        local = self.local_time(now)
        wait = self.time_until_open(now)
        hours, rest = divmod(int(wait.total_seconds()), 3600)
        return {
            "current_time": local.strftime("%H:%M"),
            "trading_hours": self.describe(),
            "next_trading_in": f"{hours}h {rest // 60}m",
        }
