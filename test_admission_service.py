# test_admission_service.py
import asyncio
from datetime import datetime, timezone

import pytest

from conftest import make_position, make_settings, open_signal
from core.errors import ValidationRejection, VenueError
from models.contract import ContractSpec
from models.signal import SignalKind, TradeSignal
from services.application.admission_service import AdmissionService, RejectionCode
from utils.trading_hours import TradingHours

EVENING = datetime(2024, 5, 1, 20, 0, tzinfo=timezone.utc)
OFFICE_HOURS = TradingHours(enabled=True, start_hour=9, end_hour=17, timezone="UTC")


def evaluate(settings, ledger, venue, signal, now=EVENING):
    service = AdmissionService(settings, ledger, venue, clock=lambda: now)
    return asyncio.run(service.evaluate(signal))


def test_accepts_valid_signal(settings, ledger, venue):
    result = evaluate(settings, ledger, venue, open_signal())

    assert result.accepted
    assert result.reason_code is None
    result.raise_for_rejection()  # no-op
    assert [c[0] for c in venue.calls] == ["get_balance", "get_contract_info"]
    assert result.details["balance"] == 1000.0
    assert result.details["contract"].symbol == "BLESSUSDTM"


def test_spread_below_minimum(ledger, venue):
    settings = make_settings(min_spread_percent=4.0)
    result = evaluate(settings, ledger, venue, open_signal(spread=3.0))

    assert result.reason_code is RejectionCode.SPREAD_TOO_LOW
    assert result.details["current_spread"] == "3.00%"


def test_missing_spread_fails_when_filter_is_on(ledger, venue):
    settings = make_settings(min_spread_percent=4.0)
    result = evaluate(settings, ledger, venue, open_signal(spread=None))
    assert result.reason_code is RejectionCode.SPREAD_TOO_LOW


def test_missing_spread_passes_when_filter_is_off(settings, ledger, venue):
    assert evaluate(settings, ledger, venue, open_signal(spread=None)).accepted


def test_blocked_symbol(ledger, venue):
    settings = make_settings(blocked_symbols=frozenset({"BLESSUSDTM"}))
    result = evaluate(settings, ledger, venue, open_signal("BLESSUSDTM"))
    assert result.reason_code is RejectionCode.SYMBOL_BLOCKED


def test_symbol_not_in_allow_list(ledger, venue):
    settings = make_settings(allowed_symbols=frozenset({"ZKJUSDTM"}))
    assert evaluate(settings, ledger, venue, open_signal("BLESSUSDTM")).reason_code is RejectionCode.SYMBOL_NOT_ALLOWED
    assert evaluate(settings, ledger, venue, open_signal("ZKJUSDTM")).accepted


def test_symbol_gate_reported_before_trading_hours(ledger, venue):
    settings = make_settings(blocked_symbols=frozenset({"BLESSUSDTM"}), trading_hours=OFFICE_HOURS)
    result = evaluate(settings, ledger, venue, open_signal("BLESSUSDTM"), now=EVENING)
    assert result.reason_code is RejectionCode.SYMBOL_BLOCKED


def test_invalid_direction(settings, ledger, venue):
    signal = TradeSignal(kind=SignalKind.OPEN, symbol="BLESSUSDTM", direction="SIDEWAYS")
    assert evaluate(settings, ledger, venue, signal).reason_code is RejectionCode.INVALID_DIRECTION


def test_outside_trading_hours(ledger, venue):
    settings = make_settings(trading_hours=OFFICE_HOURS)
    result = evaluate(settings, ledger, venue, open_signal(), now=EVENING)

    assert result.reason_code is RejectionCode.OUTSIDE_TRADING_HOURS
    assert result.details == {
        "current_time": "20:00",
        "trading_hours": "9:00-17:59 UTC",
        "next_trading_in": "13h 0m",
    }


def test_inside_trading_hours(ledger, venue):
    settings = make_settings(trading_hours=OFFICE_HOURS)
    noon = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert evaluate(settings, ledger, venue, open_signal(), now=noon).accepted


def test_position_already_open(settings, ledger, venue):
    ledger.add_open(make_position("BLESSUSDTM"))
    assert evaluate(settings, ledger, venue, open_signal("BLESSUSDTM")).reason_code is RejectionCode.POSITION_EXISTS


def test_max_open_positions(ledger, venue):
    settings = make_settings(max_open_positions=2)
    ledger.add_open(make_position("A"))
    ledger.add_open(make_position("B"))
    assert evaluate(settings, ledger, venue, open_signal()).reason_code is RejectionCode.MAX_OPEN_POSITIONS


def test_max_daily_trades(ledger, venue):
    settings = make_settings(max_daily_trades=1)
    ledger.record_trade()
    assert evaluate(settings, ledger, venue, open_signal()).reason_code is RejectionCode.MAX_DAILY_TRADES


@pytest.mark.parametrize("settings_kwargs, prepare", [
    ({"min_spread_percent": 10.0}, None),
    ({"blocked_symbols": frozenset({"BLESSUSDTM"})}, None),
    ({"trading_hours": OFFICE_HOURS}, None),
    ({}, lambda ledger: ledger.add_open(make_position("BLESSUSDTM"))),
    ({"max_daily_trades": 1}, lambda ledger: ledger.record_trade()),
])
def test_local_rejection_makes_no_venue_call(settings_kwargs, prepare, ledger, venue):
    if prepare:
        prepare(ledger)
    result = evaluate(make_settings(**settings_kwargs), ledger, venue, open_signal("BLESSUSDTM"))

    assert not result.accepted
    assert venue.calls == []


def test_balance_unavailable(settings, ledger, venue):
    venue.errors["get_balance"] = VenueError("timeout", "/api/v1/account-overview")
    result = evaluate(settings, ledger, venue, open_signal())

    assert result.reason_code is RejectionCode.BALANCE_UNAVAILABLE
    assert [c[0] for c in venue.calls] == ["get_balance"]


def test_zero_balance(settings, ledger, venue):
    venue.balance = 0
    assert evaluate(settings, ledger, venue, open_signal()).reason_code is RejectionCode.INSUFFICIENT_BALANCE


def test_unknown_contract(settings, ledger, venue):
    result = evaluate(settings, ledger, venue, open_signal("NOPEUSDTM"))
    assert result.reason_code is RejectionCode.SYMBOL_NOT_FOUND


def test_contract_not_trading(settings, ledger, venue):
    venue.contracts["BLESSUSDTM"] = ContractSpec("BLESSUSDTM", status="Paused")
    assert evaluate(settings, ledger, venue, open_signal()).reason_code is RejectionCode.SYMBOL_NOT_TRADING


def test_raise_for_rejection(ledger, venue):
    settings = make_settings(blocked_symbols=frozenset({"BLESSUSDTM"}))
    result = evaluate(settings, ledger, venue, open_signal())

    with pytest.raises(ValidationRejection) as exc:
        result.raise_for_rejection()
    assert exc.value.code is RejectionCode.SYMBOL_BLOCKED
