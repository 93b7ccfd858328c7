# main.py
import asyncio
import logging
import signal
import sys

from telegram import Bot

from application_layer import ApplicationLayer
from config import load_settings
from core.errors import ConfigError, VenueError
from services.telegram_service.telegram_reader import TelegramReader
from utils.formatters import format_shutdown, format_startup
from utils.logger import configure_logging

logger = logging.getLogger("main")


async def run() -> int:
    # 1) Settings
    try:
        settings = load_settings()
    except ConfigError as e:
        configure_logging()
        for problem in e.problems:
            logger.error(f"❌ {problem}")
        return 1

    configure_logging(settings.log_dir, settings.log_level)
    logger.info("🚀 Starting KuCoin Futures signal trader...")

    # 2) Wiring
    bot = Bot(settings.telegram_bot_token)
    app_layer = ApplicationLayer(settings, bot=bot)

    # 3) Venue connectivity
    try:
        await app_layer.venue.connect()
        balance = await app_layer.venue.get_balance()
    except VenueError as e:
        logger.error(f"❌ Could not connect to KuCoin: {e}")
        await app_layer.venue.close()
        return 1

    await app_layer.notifier.safe_send(format_startup(balance, settings))

    # 4) Background tasks
    reader = TelegramReader(settings, app_layer.signal)
    consumer = asyncio.create_task(app_layer.signal.run(), name="signal_consumer")
    reader_task = asyncio.create_task(reader.run(), name="telegram_reader")
    app_layer.position_monitor.start()
    app_layer.scheduler.start(start_balance=balance)
    logger.info("✅ Background tasks started")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    # reader dying (session revoked, network) also stops the bot
    reader_task.add_done_callback(lambda _: stop_event.set())

    await stop_event.wait()

    exit_code = 0
    if reader_task.done() and not reader_task.cancelled() and reader_task.exception() is not None:
        logger.error(f"❌ Telegram reader failed: {reader_task.exception()!r}")
        exit_code = 1
    else:
        logger.info("🛑 Shutdown requested...")

    # 5) Shutdown
    await app_layer.position_monitor.stop()
    await app_layer.scheduler.stop()
    await reader.stop()
    for task in (consumer, reader_task):
        task.cancel()
    await asyncio.gather(consumer, reader_task, return_exceptions=True)

    await app_layer.notifier.safe_send(
        format_shutdown(app_layer.ledger.count_open(), app_layer.ledger.daily_trades)
    )
    await app_layer.venue.close()

    logger.info("👋 Bot stopped.")
    return exit_code


def main():
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
