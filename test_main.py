# test_main.py
import asyncio
import os
import signal

import pytest

import main
from application_layer import ApplicationLayer
from conftest import FakeBot, FakeVenue, make_settings


class FailingReader:
    def __init__(self, settings, coordinator):
        self.stopped = False

    async def run(self):
        raise ConnectionError("session revoked")

    async def stop(self):
        self.stopped = True


class SigtermReader(FailingReader):
    async def run(self):
        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.Event().wait()


@pytest.fixture
def wired(monkeypatch):
    venue = FakeVenue()
    monkeypatch.setattr(main, "load_settings", lambda: make_settings())
    monkeypatch.setattr(main, "configure_logging", lambda *args: None)
    monkeypatch.setattr(main, "Bot", lambda token: FakeBot())
    monkeypatch.setattr(main, "ApplicationLayer", lambda settings, bot: ApplicationLayer(settings, bot, venue=venue))
    return venue


def test_reader_failure_exits_with_error(monkeypatch, wired, caplog):
    monkeypatch.setattr(main, "TelegramReader", FailingReader)

    assert asyncio.run(main.run()) == 1

    assert "session revoked" in caplog.text
    assert wired.calls[-1] == ("close",)


def test_sigterm_exits_cleanly(monkeypatch, wired):
    monkeypatch.setattr(main, "TelegramReader", SigtermReader)

    assert asyncio.run(main.run()) == 0
    assert wired.calls[-1] == ("close",)


def test_venue_failure_exits_with_error(monkeypatch, wired):
    wired.errors["connect"] = main.VenueError("KC-API-KEY not exists", "/api/v1/account-overview")
    monkeypatch.setattr(main, "TelegramReader", FailingReader)

    assert asyncio.run(main.run()) == 1
    assert "get_balance" not in [c[0] for c in wired.calls]
