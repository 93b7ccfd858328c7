# test_signal_parser.py
from datetime import datetime, timezone

import pytest

from core.errors import ParseFailure
from models.signal import Direction, SignalKind
from services.telegram_service.signal_parser import (
    classify,
    parse_close,
    parse_detected_time,
    parse_open,
    parse_signal,
    resolve_direction,
)

NOW = datetime(2024, 5, 1, 17, 0, tzinfo=timezone.utc)

ENTRY_RU = """🚨 KuCoin - 5.55%
👉BLESSUSDTM👈
🟢 Последняя цена: 0.00559200
⚖️ Справедливая: 0.00529800
⏰ Обнаружено: 16:50:19.198 UTC"""

ENTRY_EN = """🚨 KuCoin alert
👉ZKJUSDTM👈
Spread: 3.20%
🔴 Last Price: 0.1234
⚖️ Fair Price: 0.1300
⏰ Detected: 16:55:00 UTC"""

ENTRY_SHORT_LABELS = """🚨 KuCoin - 2.5%
👉 ABCUSDTM 👈
🔴 Last: 1.5
Fair: 1.45"""

EXIT_RU = """✅ BLESSUSDTM - Цены сравнялись!
⏱️ Через: 11 сек 850 мс
💰 Последняя цена: 0.00562100"""


def test_parse_entry_russian_vocabulary():
    signal = parse_open(ENTRY_RU, now=NOW)

    assert signal.kind is SignalKind.OPEN
    assert signal.symbol == "BLESSUSDTM"
    assert signal.spread_percent == pytest.approx(5.55)
    assert signal.last_price == pytest.approx(0.005592)
    assert signal.fair_price == pytest.approx(0.005298)
    assert signal.direction is Direction.SHORT  # v2: green = short
    assert signal.marker == "🟢"
    assert signal.timestamp == datetime(2024, 5, 1, 16, 50, 19, 198000, tzinfo=timezone.utc)


def test_parse_entry_english_vocabulary():
    signal = parse_open(ENTRY_EN, now=NOW)

    assert signal.symbol == "ZKJUSDTM"
    assert signal.spread_percent == pytest.approx(3.2)
    assert signal.last_price == pytest.approx(0.1234)
    assert signal.fair_price == pytest.approx(0.13)
    assert signal.direction is Direction.LONG  # v2: red = long
    assert signal.timestamp == datetime(2024, 5, 1, 16, 55, 0, tzinfo=timezone.utc)


def test_parse_entry_short_labels_without_detection_time():
    signal = parse_open(ENTRY_SHORT_LABELS, now=NOW)

    assert signal.symbol == "ABCUSDTM"
    assert signal.last_price == pytest.approx(1.5)
    assert signal.fair_price == pytest.approx(1.45)
    assert signal.timestamp == NOW


def test_fair_price_with_long_russian_label():
    text = ENTRY_RU.replace("Справедливая:", "Справедливая цена:")
    assert parse_open(text, now=NOW).fair_price == pytest.approx(0.005298)


def test_spread_is_optional():
    text = ENTRY_RU.replace("🚨 KuCoin - 5.55%", "🚨 KuCoin")
    signal = parse_open(text, now=NOW)
    assert signal is not None
    assert signal.spread_percent is None


def test_direction_follows_mapping_version():
    assert parse_open(ENTRY_RU, mapping="v1", now=NOW).direction is Direction.LONG
    assert parse_open(ENTRY_RU, mapping="v2", now=NOW).direction is Direction.SHORT


@pytest.mark.parametrize("mapping, marker, expected", [
    ("v1", "🟢", Direction.LONG),
    ("v1", "🔴", Direction.SHORT),
    ("v2", "🟢", Direction.SHORT),
    ("v2", "🔴", Direction.LONG),
])
def test_resolve_direction_table(mapping, marker, expected):
    assert resolve_direction(f"{marker} Last: 1", mapping) is expected


def test_resolve_direction_unknown_mapping():
    with pytest.raises(ValueError):
        resolve_direction("🟢", "v9")


def test_no_direction_marker_drops_signal():
    text = ENTRY_RU.replace("🟢 ", "")
    assert parse_open(text, now=NOW) is None


def test_both_direction_markers_drop_signal():
    text = ENTRY_RU + "\n🔴"
    assert parse_open(text, now=NOW) is None


@pytest.mark.parametrize("text, field", [
    (ENTRY_RU.replace("🟢 ", ""), "direction"),
    (ENTRY_RU.replace("⚖️ Справедливая: 0.00529800", ""), "fair_price"),
    (ENTRY_RU.replace("🟢 Последняя цена: 0.00559200", "🟢"), "last_price"),
    (ENTRY_RU.replace("👉BLESSUSDTM👈", ""), "symbol"),
])
def test_strict_mode_names_missing_field(text, field):
    with pytest.raises(ParseFailure) as exc:
        parse_open(text, strict=True, now=NOW)
    assert exc.value.field == field
    assert exc.value.kind == "OPEN"


def test_unparsable_detection_time_falls_back_to_now():
    text = ENTRY_RU.replace("16:50:19.198 UTC", "soon")
    assert parse_open(text, now=NOW).timestamp == NOW


def test_detection_time_just_before_midnight_belongs_to_yesterday():
    now = datetime(2024, 5, 2, 0, 0, 5, tzinfo=timezone.utc)
    detected = parse_detected_time("23:59:58.500 UTC", now)
    assert detected == datetime(2024, 5, 1, 23, 59, 58, 500000, tzinfo=timezone.utc)


def test_classify():
    assert classify(ENTRY_RU) is SignalKind.OPEN
    assert classify(EXIT_RU) is SignalKind.CLOSE
    assert classify("good morning channel") is None
    assert classify("") is None
    # exit phrase wins over entry markers
    assert classify(ENTRY_RU + "\nЦены сравнялись") is SignalKind.CLOSE


@pytest.mark.parametrize("text", [
    EXIT_RU,
    "✅ BLESSUSDTM – Цены сравнялись!",
    "✅ BLESSUSDTM: Цены сравнялись",
    "BLESSUSDTM - Цены сравнялись",
    "✅ BLESSUSDTM - Prices converged!",
    "BLESSUSDTM prices converged",
])
def test_parse_close_variants(text):
    signal = parse_close(text, now=NOW)
    assert signal.kind is SignalKind.CLOSE
    assert signal.symbol == "BLESSUSDTM"
    assert signal.direction is None
    assert signal.last_price is None
    assert signal.timestamp == NOW


def test_parse_close_without_symbol():
    assert parse_close("Цены сравнялись!") is None
    with pytest.raises(ParseFailure) as exc:
        parse_close("Цены сравнялись!", strict=True)
    assert exc.value.kind == "CLOSE"
    assert exc.value.field == "symbol"


def test_parse_signal_dispatch():
    assert parse_signal(ENTRY_RU).kind is SignalKind.OPEN
    assert parse_signal(EXIT_RU).kind is SignalKind.CLOSE
    assert parse_signal("📊 daily stats") is None
