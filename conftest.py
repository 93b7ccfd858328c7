# conftest.py
"""
Shared fakes for the test suite: an in-memory KuCoin venue, a notifier that
records messages and a python-telegram-bot stand-in.
"""

import dataclasses
from datetime import datetime, timezone

import pytest

from config import Settings
from core.errors import VenueError
from models.contract import ContractSpec, OrderResult
from models.position import Position
from models.signal import Direction, TradeSignal
from services.kucoin_service.kucoin_client import CONTRACT_NOT_FOUND
from services.positions_service.position_ledger import PositionLedger

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeVenue:
    """Async stand-in for KuCoinClient. Every call is appended to .calls."""

    def __init__(self, balance=1000.0, prices=None, contracts=None):
        self.balance = balance
        self.prices = dict(prices or {})
        self.contracts = dict(contracts or {})
        self.positions = {}     # symbol -> [VenuePosition]
        self.fills = {}         # symbol -> [Fill]
        self.errors = {}        # method name -> exception to raise
        self.symbol_errors = {}  # symbol -> exception for get_open_positions
        self.calls = []
        self.orders = []
        self.gate = None        # asyncio.Event blocking get_open_positions
        self._order_seq = 0

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.errors:
            raise self.errors[name]

    async def connect(self):
        self._record("connect")
        return True

    async def close(self):
        self._record("close")

    async def get_balance(self):
        self._record("get_balance")
        return self.balance

    async def get_price(self, symbol):
        self._record("get_price", symbol)
        if symbol not in self.prices:
            raise VenueError(f"No price for {symbol}", "/api/v1/ticker")
        return self.prices[symbol]

    async def get_contract_info(self, symbol):
        self._record("get_contract_info", symbol)
        if symbol not in self.contracts:
            raise VenueError(f"Contract {symbol} not found", "/api/v1/contracts/active", CONTRACT_NOT_FOUND)
        return self.contracts[symbol]

    async def _order(self, kind, symbol, side, quantity, leverage, margin_mode):
        self._record(kind, symbol, side, quantity, leverage, margin_mode)
        self._order_seq += 1
        order = OrderResult(
            order_id=f"ORDER-{self._order_seq}",
            client_oid=f"client-{self._order_seq}",
            symbol=symbol,
            side=side,
            quantity=quantity,
        )
        self.orders.append((kind, order))
        return order

    async def open_market_order(self, symbol, side, quantity, leverage, margin_mode="CROSS"):
        return await self._order("open_market_order", symbol, side, quantity, leverage, margin_mode)

    async def close_market_order(self, symbol, side, quantity, leverage, margin_mode="CROSS"):
        return await self._order("close_market_order", symbol, side, quantity, leverage, margin_mode)

    async def get_open_positions(self, symbol=None):
        self._record("get_open_positions", symbol)
        if self.gate is not None:
            await self.gate.wait()
        if symbol in self.symbol_errors:
            raise self.symbol_errors[symbol]
        if symbol is None:
            return [p for rows in self.positions.values() for p in rows]
        return list(self.positions.get(symbol, []))

    async def get_trade_history(self, symbol=None):
        self._record("get_trade_history", symbol)
        return list(self.fills.get(symbol, []))


class FakeNotifier:
    def __init__(self):
        self.messages = []

    async def send_message(self, channel, text):
        self.messages.append(text)

    async def safe_send(self, text):
        self.messages.append(text)
        return True


class FakeBot:
    def __init__(self, error=None):
        self.sent = []
        self.error = error

    async def send_message(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.sent.append(kwargs)


def make_settings(**overrides) -> Settings:
    base = Settings(
        kucoin_api_key="key",
        kucoin_api_secret="secret",
        kucoin_api_passphrase="passphrase",
        telegram_bot_token="123:abc",
        telegram_channel_id=-1001,
        api_id=1,
        api_hash="hash",
    )
    return dataclasses.replace(base, **overrides)


def make_position(symbol="BLESSUSDTM", direction=Direction.LONG, entry_price=10.0, quantity=500,
                  order_id="ORDER-1", opened_at=T0, multiplier=0.01) -> Position:
    return Position(
        symbol=symbol,
        direction=direction,
        entry_price=entry_price,
        quantity=quantity,
        order_id=order_id,
        opened_at=opened_at,
        notional=entry_price * quantity * multiplier,
        multiplier=multiplier,
    )


def open_signal(symbol="BLESSUSDTM", direction=Direction.LONG, spread=5.0) -> TradeSignal:
    return TradeSignal.open(
        symbol=symbol,
        direction=direction,
        last_price=10.0,
        fair_price=9.5,
        spread_percent=spread,
        timestamp=T0,
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def ledger():
    return PositionLedger()


@pytest.fixture
def venue():
    return FakeVenue(
        balance=1000.0,
        prices={"BLESSUSDTM": 10.0, "ZKJUSDTM": 2.0},
        contracts={
            "BLESSUSDTM": ContractSpec("BLESSUSDTM", multiplier=0.01),
            "ZKJUSDTM": ContractSpec("ZKJUSDTM", multiplier=1.0),
        },
    )


@pytest.fixture
def notifier():
    return FakeNotifier()

