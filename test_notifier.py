# test_notifier.py
import asyncio

import pytest
from telegram.constants import ParseMode
from telegram.error import TelegramError

from conftest import FakeBot
from services.telegram_service.notifier import Notifier


def test_send_message_uses_html():
    bot = FakeBot()
    notifier = Notifier(bot, chat_id=-100)

    asyncio.run(notifier.send_message(-200, "<b>hi</b>"))

    assert bot.sent == [{
        "chat_id": -200,
        "text": "<b>hi</b>",
        "parse_mode": ParseMode.HTML,
        "disable_web_page_preview": True,
    }]


def test_safe_send_targets_default_chat():
    bot = FakeBot()
    assert asyncio.run(Notifier(bot, chat_id=-100).safe_send("hello"))
    assert bot.sent[0]["chat_id"] == -100


def test_send_message_raises_on_failure():
    notifier = Notifier(FakeBot(error=TelegramError("flood")), chat_id=-100)
    with pytest.raises(TelegramError):
        asyncio.run(notifier.send_message(-100, "x"))


def test_safe_send_never_raises():
    assert asyncio.run(Notifier(FakeBot(error=TelegramError("flood")), chat_id=-100).safe_send("x")) is False
    assert asyncio.run(Notifier(FakeBot(error=RuntimeError("boom")), chat_id=-100).safe_send("x")) is False


def test_disabled_notifier_sends_nothing():
    bot = FakeBot()
    notifier = Notifier(bot, chat_id=-100, enabled=False)

    assert asyncio.run(notifier.safe_send("dry run"))
    assert bot.sent == []


def test_chat_id_is_required():
    with pytest.raises(ValueError):
        Notifier(FakeBot(), chat_id=0)
