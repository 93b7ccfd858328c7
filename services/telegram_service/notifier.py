import logging

from telegram.constants import ParseMode
from telegram.error import TelegramError

logger = logging.getLogger("notifier")


class Notifier:
    """
    Outbound Telegram messages (python-telegram-bot Bot).

    - send_message(channel, text): explicit target, raises on failure
    - safe_send(text): default chat, never raises
    - enabled=False: nothing leaves the process, text is only logged
      (dry run without NOTIFY_IN_DRY_RUN)
    """

    def __init__(self, bot, chat_id: int, enabled: bool = True):
        if not chat_id:
            raise ValueError("❌ Notifier requires a valid chat_id")
        self.bot = bot
        self.chat_id = chat_id
        self.enabled = enabled

    async def send_message(self, channel, text: str):
        if not self.enabled:
            logger.info(f"💬 [SUPPRESSED] {text[:200]}")
            return

        await self.bot.send_message(
            chat_id=channel or self.chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            disable_web_page_preview=True,
        )
        logger.info(f"📨 Message sent to {channel or self.chat_id}")

    async def safe_send(self, text: str) -> bool:
        try:
            await self.send_message(self.chat_id, text)
            return True
        except TelegramError as e:
            logger.error(f"❌ Error sending Telegram message: {e}")
        except Exception as e:
            logger.exception(f"❌ Unexpected error sending Telegram message: {e}")
        return False
