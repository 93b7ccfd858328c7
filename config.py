"""
config.py
---------
Central configuration for the KuCoin Futures signal trader.

Includes:
    ✔ .env loading (python-dotenv)
    ✔ KuCoin Futures credentials / endpoint
    ✔ Telegram (Telethon reader + notification bot)
    ✔ Risk and trading limits
    ✔ Trading hours
    ✔ Validation (ConfigError lists every problem at once)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import FrozenSet, List, Mapping, Optional

from dotenv import load_dotenv

from core.errors import ConfigError
from core.helpers import parse_symbol_list
from utils.trading_hours import TradingHours

# ============================================================
# Load .env
# ============================================================

load_dotenv()


# ============================================================
# PROJECT PATHS
# ============================================================

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

REQUIRED_ENV_VARS = (
    "KUCOIN_API_KEY",
    "KUCOIN_API_SECRET",
    "KUCOIN_API_PASSPHRASE",
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHANNEL_ID",
    "API_ID",
    "API_HASH",
)

MARGIN_MODES = ("CROSS", "ISOLATED")
DIRECTION_MAPPING_VERSIONS = ("v1", "v2")


@dataclass(frozen=True)
class Settings:
    # KuCoin Futures
    kucoin_api_key: str
    kucoin_api_secret: str
    kucoin_api_passphrase: str
    kucoin_base_url: str = "https://api-futures.kucoin.com"
    venue_http_timeout: float = 10.0

    # Telegram
    telegram_bot_token: str = ""
    telegram_channel_id: int = 0
    telegram_notify_chat_id: int = 0
    api_id: int = 0
    api_hash: str = ""
    telegram_session: str = "signal_trader"

    # Risk
    leverage: int = 10
    position_size_percent: float = 5.0
    margin_mode: str = "CROSS"
    min_spread_percent: float = 0.0

    # Trading
    allowed_symbols: FrozenSet[str] = field(default_factory=frozenset)
    blocked_symbols: FrozenSet[str] = field(default_factory=frozenset)
    max_daily_trades: int = 20
    max_open_positions: int = 3
    dry_run: bool = False
    notify_in_dry_run: bool = False
    direction_mapping: str = "v2"

    trading_hours: TradingHours = field(default_factory=TradingHours)

    # Loops
    reconcile_interval_sec: float = 30.0
    daily_report_hour_utc: int = 23

    # Logging
    log_level: str = "INFO"
    log_dir: str = os.path.join(BASE_DIR, "logs")

    @property
    def notifications_enabled(self) -> bool:
        return not self.dry_run or self.notify_in_dry_run

    @property
    def notify_chat_id(self) -> int:
        return self.telegram_notify_chat_id or self.telegram_channel_id


# ============================================================
# PARSING HELPERS
# ============================================================

def _flag(env: Mapping[str, str], key: str, default: str = "false") -> bool:
    return env.get(key, default).strip().lower() in ("1", "true", "yes", "on")


class _Reader:
    """Collects conversion errors instead of failing on the first one."""

    def __init__(self, env: Mapping[str, str]):
        self.env = env
        self.problems: List[str] = []

    def as_int(self, key: str, default: str) -> int:
        raw = self.env.get(key, default)
        try:
            return int(str(raw).strip())
        except ValueError:
            self.problems.append(f"{key} must be an integer, got {raw!r}")
            return int(default)

    def as_float(self, key: str, default: str) -> float:
        raw = self.env.get(key, default)
        try:
            return float(str(raw).strip())
        except ValueError:
            self.problems.append(f"{key} must be a number, got {raw!r}")
            return float(default)

    def check(self, ok: bool, message: str):
        if not ok:
            self.problems.append(message)


# ============================================================
# LOAD + VALIDATE
# ============================================================

def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from the environment. Raises ConfigError."""
    env = os.environ if env is None else env
    r = _Reader(env)

    for key in REQUIRED_ENV_VARS:
        r.check(bool(env.get(key, "").strip()), f"Missing required environment variable: {key}")

    leverage = r.as_int("LEVERAGE", "10")
    position_size_percent = r.as_float("POSITION_SIZE_PERCENT", "5")
    max_daily_trades = r.as_int("MAX_DAILY_TRADES", "20")
    max_open_positions = r.as_int("MAX_OPEN_POSITIONS", "3")
    min_spread = r.as_float("MIN_SPREAD_PERCENT", "0")
    start_hour = r.as_int("TRADING_START_HOUR", "0")
    end_hour = r.as_int("TRADING_END_HOUR", "23")
    report_hour = r.as_int("DAILY_REPORT_HOUR_UTC", "23")
    interval = r.as_float("RECONCILE_INTERVAL_SEC", "30")
    timeout = r.as_float("VENUE_HTTP_TIMEOUT", "10")
    channel_id = r.as_int("TELEGRAM_CHANNEL_ID", "0") if env.get("TELEGRAM_CHANNEL_ID") else 0
    notify_chat_id = r.as_int("TELEGRAM_NOTIFY_CHAT_ID", "0")
    api_id = r.as_int("API_ID", "0") if env.get("API_ID") else 0
    margin_mode = env.get("MARGIN_MODE", "CROSS").strip().upper()
    mapping = env.get("DIRECTION_MAPPING", "v2").strip().lower()

    r.check(1 <= leverage <= 100, "LEVERAGE must be between 1 and 100")
    r.check(0 < position_size_percent <= 100, "POSITION_SIZE_PERCENT must be between 0 and 100")
    r.check(max_daily_trades > 0, "MAX_DAILY_TRADES must be greater than 0")
    r.check(max_open_positions > 0, "MAX_OPEN_POSITIONS must be greater than 0")
    r.check(min_spread >= 0, "MIN_SPREAD_PERCENT must be >= 0")
    r.check(0 <= start_hour <= 23, "TRADING_START_HOUR must be between 0 and 23")
    r.check(0 <= end_hour <= 23, "TRADING_END_HOUR must be between 0 and 23")
    r.check(0 <= report_hour <= 23, "DAILY_REPORT_HOUR_UTC must be between 0 and 23")
    r.check(interval > 0, "RECONCILE_INTERVAL_SEC must be greater than 0")
    r.check(timeout > 0, "VENUE_HTTP_TIMEOUT must be greater than 0")
    r.check(margin_mode in MARGIN_MODES, f"MARGIN_MODE must be one of {MARGIN_MODES}")
    r.check(
        mapping in DIRECTION_MAPPING_VERSIONS,
        f"DIRECTION_MAPPING must be one of {DIRECTION_MAPPING_VERSIONS}",
    )

    trading_hours = TradingHours()
    try:
        trading_hours = TradingHours(
            enabled=_flag(env, "TRADING_HOURS_ENABLED"),
            start_hour=start_hour,
            end_hour=end_hour,
            timezone=env.get("TIMEZONE", "UTC").strip() or "UTC",
        )
    except Exception as e:
        r.problems.append(f"Invalid trading hours: {e}")

    if r.problems:
        raise ConfigError(r.problems)

    return Settings(
        kucoin_api_key=env["KUCOIN_API_KEY"].strip(),
        kucoin_api_secret=env["KUCOIN_API_SECRET"].strip(),
        kucoin_api_passphrase=env["KUCOIN_API_PASSPHRASE"].strip(),
        kucoin_base_url=env.get("KUCOIN_BASE_URL", "https://api-futures.kucoin.com").rstrip("/"),
        venue_http_timeout=timeout,
        telegram_bot_token=env["TELEGRAM_BOT_TOKEN"].strip(),
        telegram_channel_id=channel_id,
        telegram_notify_chat_id=notify_chat_id,
        api_id=api_id,
        api_hash=env["API_HASH"].strip(),
        telegram_session=env.get("TELEGRAM_SESSION", "signal_trader"),
        leverage=leverage,
        position_size_percent=position_size_percent,
        margin_mode=margin_mode,
        min_spread_percent=min_spread,
        allowed_symbols=parse_symbol_list(env.get("ALLOWED_SYMBOLS", "")),
        blocked_symbols=parse_symbol_list(env.get("BLOCKED_SYMBOLS", "")),
        max_daily_trades=max_daily_trades,
        max_open_positions=max_open_positions,
        dry_run=_flag(env, "DRY_RUN"),
        notify_in_dry_run=_flag(env, "NOTIFY_IN_DRY_RUN"),
        direction_mapping=mapping,
        trading_hours=trading_hours,
        reconcile_interval_sec=interval,
        daily_report_hour_utc=report_hour,
        log_level=env.get("LOG_LEVEL", "INFO").strip().upper(),
        log_dir=env.get("LOG_DIR", os.path.join(BASE_DIR, "logs")),
    )
