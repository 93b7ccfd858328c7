# =====================================================================
# formatters.py
# ---------------------------------------------------------------
# Telegram (HTML) texts: position opened/closed, ignored signal,
# trade errors, startup/shutdown and the daily report.
# =====================================================================

from html import escape

from core.helpers import format_duration
from models.contract import RiskPlan
from models.position import ClosedPosition, Position
from models.signal import Direction


def _signed(value: float, digits: int = 2, prefix: str = "") -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}{prefix}{abs(value):.{digits}f}"


def _direction_label(direction) -> str:
    if direction is None:
        return "N/A"
    d = Direction(direction)
    return f"📈 {d.value}" if d is Direction.LONG else f"📉 {d.value}"


def format_position_opened(position: Position, plan: RiskPlan, balance: float) -> str:
    mode = " (DRY RUN)" if position.dry_run else ""
    return (
        f"✅ <b>POSITION OPENED{mode}</b>\n\n"
        f"<b>Symbol:</b> {position.symbol}\n"
        f"<b>Direction:</b> {_direction_label(position.direction)}\n"
        f"<b>Entry:</b> ${position.entry_price}\n"
        f"<b>Quantity:</b> {position.quantity} lots\n"
        f"<b>Leverage:</b> {plan.leverage}x\n"
        f"💰 <b>Size:</b> ${plan.notional:.2f} | <b>Margin:</b> ${plan.required_margin:.2f}\n"
        f"<b>Balance:</b> ${balance:.2f}\n\n"
        f"Signal: {position.opened_at:%Y-%m-%d %H:%M:%S} UTC"
    )


def format_position_closed(closed: ClosedPosition) -> str:
    profit = closed.realized_pnl >= 0
    emoji = "🟢" if profit else "🔴"
    result = "PROFIT" if profit else "LOSS"
    estimated = " (estimated)" if closed.exit_price_estimated else ""
    return (
        f"{emoji} <b>POSITION CLOSED - {result}</b>\n\n"
        f"<b>Symbol:</b> {closed.symbol}\n"
        f"<b>Direction:</b> {closed.direction.value}\n"
        f"<b>Entry:</b> ${closed.entry_price}\n"
        f"<b>Exit:</b> ${closed.exit_price}{estimated}\n"
        f"<b>Result:</b> {_signed(closed.realized_pnl_percent)}% "
        f"({_signed(closed.realized_pnl, prefix='$')})\n\n"
        f"<b>Duration:</b> {format_duration(closed.duration_seconds)}\n"
        f"<b>Closed by:</b> {closed.close_reason}"
    )


def format_signal_ignored(symbol: str, direction, reason: str, details: dict | None = None) -> str:
    details = details or {}
    message = (
        f"⏰ <b>SIGNAL IGNORED</b>\n\n"
        f"<b>Symbol:</b> {symbol}\n"
        f"<b>Direction:</b> {_direction_label(direction)}\n"
        f"<b>Reason:</b> {escape(reason)}"
    )

    if details.get("current_time"):
        message += f"\n\n<b>Current time:</b> {details['current_time']}"
    if details.get("trading_hours"):
        message += f"\n<b>Trading hours:</b> {details['trading_hours']}"
    if details.get("next_trading_in"):
        message += f"\n<b>Next trading in:</b> {details['next_trading_in']}"
    if details.get("current_spread"):
        message += f"\n<b>Spread:</b> {details['current_spread']} (min {details.get('min_required')})"

    return message


def format_trade_error(kind: str, symbol: str, direction, error: Exception) -> str:
    return (
        f"❌ <b>SIGNAL PROCESSING ERROR</b>\n\n"
        f"<b>Type:</b> {kind}\n"
        f"<b>Symbol:</b> {symbol}\n"
        f"<b>Direction:</b> {_direction_label(direction)}\n"
        f"<b>Error:</b> {escape(str(error))}"
    )


def format_startup(balance: float, settings) -> str:
    return (
        f"🤖 <b>TRADING BOT STARTED</b>\n\n"
        f"Balance: {balance:.2f} USDT\n"
        f"Mode: {'DRY RUN' if settings.dry_run else 'LIVE TRADING'}\n"
        f"Position size: {settings.position_size_percent}% | Leverage: {settings.leverage}x\n"
        f"Trading hours: {settings.trading_hours.describe()}"
    )


def format_shutdown(open_positions: int, daily_trades: int) -> str:
    return (
        f"🛑 <b>TRADING BOT STOPPED</b>\n\n"
        f"Open positions: {open_positions}\n"
        f"Trades today: {daily_trades}"
    )


def format_daily_report(report) -> str:
    stats = report.statistics
    win_rate = stats.win_rate
    loss_rate = 100.0 - win_rate if stats.trade_count else 0.0
    pnl_emoji = "💰" if report.balance_pnl >= 0 else "📉"
    roi_emoji = "📈" if report.roi >= 0 else "📉"

    return (
        f"📊 <b>DAILY REPORT</b>\n\n"
        f"<b>Date:</b> {report.date}\n"
        f"<b>Trading hours:</b> {report.trading_hours}\n"
        f"<b>Signals:</b> {stats.total_signals}\n"
        f"<b>Ignored:</b> {stats.signals_ignored}\n"
        f"<b>Trades opened:</b> {stats.daily_trades}\n"
        f"<b>Trades closed:</b> {stats.trade_count}\n"
        f"✅ <b>Wins:</b> {stats.win_count} ({win_rate:.1f}%)\n"
        f"❌ <b>Losses:</b> {stats.loss_count} ({loss_rate:.1f}%)\n"
        f"<b>Realized P&amp;L:</b> {_signed(stats.total_pnl, prefix='$')}\n"
        f"{pnl_emoji} <b>Balance P&amp;L:</b> {_signed(report.balance_pnl, prefix='$')}\n"
        f"{roi_emoji} <b>ROI:</b> {_signed(report.roi)}%\n\n"
        f"<b>Balance:</b> ${report.start_balance:.2f} → ${report.current_balance:.2f}"
    )
