# services/telegram_service/signal_parser.py
"""
Parser for the KuCoin Monitor alerts posted in the signal channel.

Two message shapes are recognized.

ENTRY (opens a position):

    🚨 KuCoin - 5.55%
    👉BLESSUSDTM👈
    🟢 Последняя цена: 0.00559200
    ⚖️ Справедливая: 0.00529800
    ⏰ Обнаружено: 16:50:19.198 UTC

EXIT (closes it):

    ✅ BLESSUSDTM - Цены сравнялись!
    ⏱️ Через: 11 сек 850 мс
    💰 Последняя цена: 0.00562100

The channel has changed its wording over time (Russian labels first, English
labels later), so every field is read through an ordered table of rules and
the first rule that matches wins. A new vocabulary generation is a new row in
the tables below, never a new branch in the code.

Direction comes only from the color marker (🟢 / 🔴). Which color means LONG
has flipped once upstream, so the table is versioned and picked through
DIRECTION_MAPPING (see DIRECTION_MAPPINGS).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

from core.errors import ParseFailure
from core.helpers import normalize_symbol
from models.signal import Direction, SignalKind, TradeSignal, utc_now

logger = logging.getLogger("signal_parser")


# ============================================================
# 🔖 Shape markers
# ============================================================

ENTRY_MARKER = "🚨 KuCoin"
SYMBOL_OPEN_MARKER = "👉"
SYMBOL_CLOSE_MARKER = "👈"

EXIT_MARKERS = (
    "Цены сравнялись",   # v1
    "Prices converged",  # v2
)

GREEN_MARKER = "🟢"
RED_MARKER = "🔴"

DIRECTION_MAPPINGS = {
    # early channel: green = price below fair → buy
    "v1": {GREEN_MARKER: Direction.LONG, RED_MARKER: Direction.SHORT},
    # current channel: green flags an over-priced last price → short it
    "v2": {GREEN_MARKER: Direction.SHORT, RED_MARKER: Direction.LONG},
}
DEFAULT_DIRECTION_MAPPING = "v2"

# A detection time this far in the future belongs to yesterday (alert sent
# just before midnight UTC, parsed just after).
FUTURE_TOLERANCE = timedelta(minutes=5)


# ============================================================
# 📋 Rule tables
# ============================================================

@dataclass(frozen=True)
class FieldRule:
    field: str
    pattern: re.Pattern
    convert: Callable[[str], Any] = str

    def extract(self, text: str) -> Optional[Any]:
        match = self.pattern.search(text)
        if not match:
            return None
        return self.convert(match.group(1))


_NUMBER = r"([0-9]+(?:\.[0-9]+)?)"


def _rules(field: str, patterns: Sequence[str], convert: Callable[[str], Any] = str, flags=0):
    return tuple(FieldRule(field, re.compile(p, flags), convert) for p in patterns)


SYMBOL_RULES = _rules("symbol", [
    r"👉\s*([A-Z0-9]+)\s*👈",
], normalize_symbol)

SPREAD_RULES = _rules("spread", [
    r"KuCoin\s*[-–—]\s*" + _NUMBER + r"\s*%",
    r"Spread:\s*" + _NUMBER + r"\s*%",
    r"Спред:\s*" + _NUMBER + r"\s*%",
], float, re.IGNORECASE)

LAST_PRICE_RULES = _rules("last_price", [
    r"Последняя цена:\s*" + _NUMBER,
    r"Last Price:\s*" + _NUMBER,
    r"\bLast:\s*" + _NUMBER,
], float, re.IGNORECASE)

FAIR_PRICE_RULES = _rules("fair_price", [
    r"Справедливая:\s*" + _NUMBER,
    r"Справедливая цена:\s*" + _NUMBER,
    r"Fair Price:\s*" + _NUMBER,
    r"\bFair:\s*" + _NUMBER,
], float, re.IGNORECASE)

DETECTED_AT_RULES = _rules("detected_at", [
    r"Обнаружено:\s*([^\n]+)",
    r"Detected:\s*([^\n]+)",
], str.strip, re.IGNORECASE)

CLOSE_SYMBOL_RULES = _rules("symbol", [
    r"✅\s*([A-Z0-9]+)\s*-\s*(?i:Цены сравнялись)",
    r"✅\s*([A-Z0-9]+)\s*[–—:]\s*(?i:Цены сравнялись)",
    r"\b([A-Z0-9]{2,})\s*[-–—:]?\s*(?i:Цены сравнялись)",
    r"✅\s*([A-Z0-9]+)\s*[-–—:]\s*(?i:Prices converged)",
    r"\b([A-Z0-9]{2,})\s*[-–—:]?\s*(?i:Prices converged)",
], normalize_symbol)


def first_match(rules: Sequence[FieldRule], text: str) -> Optional[Any]:
    """Try each rule in order; the first successful extraction wins."""
    for rule in rules:
        try:
            value = rule.extract(text)
        except ValueError:
            continue
        if value not in (None, ""):
            return value
    return None


# ============================================================
# 🧭 Classification
# ============================================================

def classify(text: str) -> Optional[SignalKind]:
    if not text:
        return None

    if any(marker.lower() in text.lower() for marker in EXIT_MARKERS):
        return SignalKind.CLOSE

    if ENTRY_MARKER in text and SYMBOL_OPEN_MARKER in text and SYMBOL_CLOSE_MARKER in text:
        return SignalKind.OPEN

    return None


# ============================================================
# 🟢🔴 Direction
# ============================================================

def resolve_direction(text: str, mapping: str = DEFAULT_DIRECTION_MAPPING) -> Optional[Direction]:
    """Exactly one color marker must be present; otherwise None."""
    try:
        table = DIRECTION_MAPPINGS[mapping]
    except KeyError:
        raise ValueError(f"Unknown direction mapping: {mapping}") from None

    found = [marker for marker in table if marker in text]
    if len(found) != 1:
        return None
    return table[found[0]]


# ============================================================
# ⏰ Detection time
# ============================================================

_TIME_RE = re.compile(r"(\d{1,2}):(\d{2}):(\d{2})(?:\.(\d{1,6}))?")


def parse_detected_time(raw: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """'16:50:19.198 UTC' → today's UTC datetime, or None if unreadable."""
    now = now or utc_now()
    match = _TIME_RE.search(raw or "")
    if not match:
        return None

    hours, minutes, seconds = (int(match.group(i)) for i in (1, 2, 3))
    fraction = match.group(4) or "0"
    micros = int(fraction.ljust(6, "0")[:6])

    try:
        detected = now.astimezone(timezone.utc).replace(
            hour=hours, minute=minutes, second=seconds, microsecond=micros
        )
    except ValueError:
        return None

    if detected - now > FUTURE_TOLERANCE:
        detected -= timedelta(days=1)
    return detected


# ============================================================
# 📥 ENTRY
# ============================================================

def _require(value, field: str, kind: str = "OPEN"):
    if value is None:
        raise ParseFailure(field, kind)
    return value


def parse_open(
    text: str,
    mapping: str = DEFAULT_DIRECTION_MAPPING,
    strict: bool = False,
    now: Optional[datetime] = None,
) -> Optional[TradeSignal]:
    """
    ENTRY text → OPEN TradeSignal.
    Missing symbol / last price / fair price / direction drops the signal
    (None) and logs which field was missing; strict=True raises ParseFailure.
    """
    try:
        symbol = _require(first_match(SYMBOL_RULES, text or ""), "symbol")
        spread = first_match(SPREAD_RULES, text)
        last_price = _require(first_match(LAST_PRICE_RULES, text), "last_price")
        fair_price = _require(first_match(FAIR_PRICE_RULES, text), "fair_price")
        direction = _require(resolve_direction(text, mapping), "direction")
    except ParseFailure as e:
        if strict:
            raise
        logger.warning(f"⚠️ ENTRY signal dropped: '{e.field}' not found")
        return None

    now = now or utc_now()
    timestamp = now
    raw_time = first_match(DETECTED_AT_RULES, text)
    if raw_time:
        parsed_time = parse_detected_time(raw_time, now)
        if parsed_time is None:
            logger.warning(f"⚠️ Could not parse detection time: {raw_time!r}")
        else:
            timestamp = parsed_time

    marker = GREEN_MARKER if GREEN_MARKER in text else RED_MARKER
    signal = TradeSignal.open(
        symbol=symbol,
        direction=direction,
        last_price=last_price,
        fair_price=fair_price,
        spread_percent=spread,
        timestamp=timestamp,
        marker=marker,
        raw_text=text,
    )

    logger.info(
        f"✅ Parsed ENTRY signal: {symbol} {direction.value} | "
        f"Last={last_price} Fair={fair_price} Spread={spread if spread is not None else 'N/A'}%"
    )
    return signal


# ============================================================
# 📤 EXIT
# ============================================================

def parse_close(text: str, strict: bool = False, now: Optional[datetime] = None) -> Optional[TradeSignal]:
    symbol = first_match(CLOSE_SYMBOL_RULES, text or "")
    if not symbol:
        if strict:
            raise ParseFailure("symbol", "CLOSE")
        logger.warning("⚠️ EXIT signal dropped: 'symbol' not found")
        return None

    logger.info(f"✅ Parsed EXIT signal: {symbol}")
    return TradeSignal.close(symbol=symbol, timestamp=now or utc_now(), raw_text=text)


# ============================================================
# 🔀 Dispatcher
# ============================================================

def parse_signal(text: str, mapping: str = DEFAULT_DIRECTION_MAPPING) -> Optional[TradeSignal]:
    kind = classify(text)
    if kind is SignalKind.CLOSE:
        return parse_close(text)
    if kind is SignalKind.OPEN:
        return parse_open(text, mapping=mapping)
    return None
