# services/telegram_service/telegram_reader.py
import logging

from telethon import TelegramClient, events

from services.telegram_service.signal_parser import parse_signal

logger = logging.getLogger("telegram_reader")


class TelegramReader:
    """
    Listens to the alert channel (Telethon user session) and hands every
    recognised alert to the coordinator queue.
    """

    def __init__(self, settings, coordinator, client=None):
        self.settings = settings
        self.coordinator = coordinator
        self.client = client or TelegramClient(
            settings.telegram_session, settings.api_id, settings.api_hash
        )

    async def handle_text(self, text: str):
        if not text:
            return None

        signal = parse_signal(text, mapping=self.settings.direction_mapping)
        if signal is None:
            logger.debug(f"💤 Message is not a signal: {text[:80]!r}")
            return None

        logger.info(f"📩 {signal.kind.value} signal received: {signal.symbol}")
        await self.coordinator.submit(signal)
        return signal

    async def run(self):
        await self.client.start()
        logger.info(f"📡 Telethon connected, listening to channel {self.settings.telegram_channel_id}...")

        @self.client.on(events.NewMessage(chats=self.settings.telegram_channel_id))
        async def handler(event):
            await self.handle_text(event.message.message or "")

        await self.client.run_until_disconnected()

    async def stop(self):
        if self.client.is_connected():
            await self.client.disconnect()
