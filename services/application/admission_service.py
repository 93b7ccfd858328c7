"""
services/application/admission_service.py
-----------------------------------------
Gate sequence every OPEN signal must pass before any money moves.

The order is part of the contract:

    1. spread filter            ┐
    2. blocked / allowed symbol │
    3. direction                │ local, no network
    4. trading hours            │
    5. position already open    │
    6. max open positions       │
    7. max daily trades         ┘
    8. live balance > 0         ┐ venue calls, only reached
    9. contract exists + Open   ┘ when 1-7 pass

The first failing gate decides the reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from core.errors import ValidationRejection, VenueError
from models.signal import Direction, TradeSignal
from services.kucoin_service.kucoin_client import CONTRACT_NOT_FOUND

logger = logging.getLogger("admission_service")


class RejectionCode(str, Enum):
    SPREAD_TOO_LOW = "SPREAD_TOO_LOW"
    SYMBOL_BLOCKED = "SYMBOL_BLOCKED"
    SYMBOL_NOT_ALLOWED = "SYMBOL_NOT_ALLOWED"
    INVALID_DIRECTION = "INVALID_DIRECTION"
    OUTSIDE_TRADING_HOURS = "OUTSIDE_TRADING_HOURS"
    POSITION_EXISTS = "POSITION_EXISTS"
    MAX_OPEN_POSITIONS = "MAX_OPEN_POSITIONS"
    MAX_DAILY_TRADES = "MAX_DAILY_TRADES"
    BALANCE_UNAVAILABLE = "BALANCE_UNAVAILABLE"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    SYMBOL_NOT_TRADING = "SYMBOL_NOT_TRADING"


@dataclass(frozen=True)
class AdmissionResult:
    accepted: bool
    reason_code: Optional[RejectionCode] = None
    reason: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **details) -> "AdmissionResult":
        return cls(accepted=True, details=details)

    @classmethod
    def reject(cls, code: RejectionCode, reason: str, **details) -> "AdmissionResult":
        return cls(accepted=False, reason_code=code, reason=reason, details=details)

    def raise_for_rejection(self):
        if not self.accepted:
            raise ValidationRejection(self.reason_code, self.reason, self.details)


class AdmissionService:
    def __init__(self, settings, ledger, venue, clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings
        self.ledger = ledger
        self.venue = venue
        self.clock = clock
        self.last_balance: Optional[float] = None

    # ----------------------------------------------------------------------
    # LOCAL GATES (1-7)
    # ----------------------------------------------------------------------
    def check_local(self, signal: TradeSignal) -> AdmissionResult:
        s = self.settings
        symbol = signal.symbol

        # 1. spread
        if s.min_spread_percent > 0:
            spread = signal.spread_percent
            if spread is None or spread < s.min_spread_percent:
                shown = f"{spread:.2f}%" if spread is not None else "N/A"
                return AdmissionResult.reject(
                    RejectionCode.SPREAD_TOO_LOW,
                    f"Spread {shown} < minimum {s.min_spread_percent}%",
                    current_spread=shown,
                    min_required=f"{s.min_spread_percent}%",
                )

        # 2. symbol lists
        if symbol in s.blocked_symbols:
            return AdmissionResult.reject(
                RejectionCode.SYMBOL_BLOCKED, f"Symbol {symbol} is in blocked list"
            )
        if s.allowed_symbols and symbol not in s.allowed_symbols:
            return AdmissionResult.reject(
                RejectionCode.SYMBOL_NOT_ALLOWED, f"Symbol {symbol} is not in allowed list"
            )

        # 3. direction
        if signal.direction not in (Direction.LONG, Direction.SHORT):
            return AdmissionResult.reject(
                RejectionCode.INVALID_DIRECTION, f"Invalid direction: {signal.direction}"
            )

        # 4. trading hours
        now = self.clock() if self.clock else None
        if not s.trading_hours.is_active(now):
            return AdmissionResult.reject(
                RejectionCode.OUTSIDE_TRADING_HOURS,
                "Outside trading hours",
                **s.trading_hours.info(now),
            )

        # 5. one position per symbol
        if self.ledger.has_open(symbol):
            return AdmissionResult.reject(
                RejectionCode.POSITION_EXISTS, f"Open position already exists for {symbol}"
            )

        # 6. open positions cap
        if self.ledger.count_open() >= s.max_open_positions:
            return AdmissionResult.reject(
                RejectionCode.MAX_OPEN_POSITIONS,
                f"Maximum open positions ({s.max_open_positions}) reached",
            )

        # 7. daily trades cap
        if self.ledger.daily_trades >= s.max_daily_trades:
            return AdmissionResult.reject(
                RejectionCode.MAX_DAILY_TRADES,
                f"Maximum daily trades ({s.max_daily_trades}) reached",
            )

        return AdmissionResult.ok()

    # ----------------------------------------------------------------------
    # VENUE GATES (8-9)
    # ----------------------------------------------------------------------
    async def check_venue(self, signal: TradeSignal) -> AdmissionResult:
        symbol = signal.symbol

        # 8. balance
        try:
            balance = await self.venue.get_balance()
        except VenueError as e:
            return AdmissionResult.reject(
                RejectionCode.BALANCE_UNAVAILABLE, f"Error checking balance: {e}"
            )
        self.last_balance = balance
        if balance <= 0:
            return AdmissionResult.reject(RejectionCode.INSUFFICIENT_BALANCE, "Insufficient balance")

        # 9. contract
        try:
            contract = await self.venue.get_contract_info(symbol)
        except VenueError as e:
            if e.code == CONTRACT_NOT_FOUND:
                return AdmissionResult.reject(
                    RejectionCode.SYMBOL_NOT_FOUND, f"Symbol {symbol} not found"
                )
            return AdmissionResult.reject(
                RejectionCode.SYMBOL_NOT_FOUND, f"Symbol {symbol} not found or error: {e}"
            )
        if not contract.is_tradable:
            return AdmissionResult.reject(
                RejectionCode.SYMBOL_NOT_TRADING,
                f"Symbol {symbol} is not trading (status {contract.status})",
            )

        # handed on so the order step does not fetch them again
        return AdmissionResult.ok(balance=balance, contract=contract)

    async def evaluate(self, signal: TradeSignal) -> AdmissionResult:
        result = self.check_local(signal)
        if result.accepted:
            result = await self.check_venue(signal)

        if result.accepted:
            logger.info(f"✅ Admission passed: {signal.symbol} {signal.direction.value}")
        else:
            logger.warning(f"⛔ Admission rejected {signal.symbol}: [{result.reason_code.value}] {result.reason}")
        return result
