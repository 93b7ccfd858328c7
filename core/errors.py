"""
core/errors.py
--------------
Error taxonomy for the signal trader.

    TradingBotError
     ├── ConfigError            fatal at startup
     ├── ParseFailure           alert text dropped (diagnostic only)
     ├── ValidationRejection    admission gate refused the signal
     ├── RiskError
     │    ├── InvalidInput
     │    └── InsufficientBalance
     ├── VenueError             KuCoin transport / API failure
     └── ReconciliationError    one symbol failed during a monitor tick
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class TradingBotError(Exception):
    """Base class for every error raised by this project."""


class ConfigError(TradingBotError):
    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class ParseFailure(TradingBotError):
    """The alert looked like a signal but a required field is missing."""

    def __init__(self, field: str, kind: str = "OPEN"):
        self.field = field
        self.kind = kind
        super().__init__(f"{kind} signal: '{field}' not found")


class ValidationRejection(TradingBotError):
    def __init__(self, code, reason: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


class RiskError(TradingBotError):
    pass


class InvalidInput(RiskError):
    pass


class InsufficientBalance(RiskError):
    def __init__(self, required_margin: float, balance: float):
        self.required_margin = required_margin
        self.balance = balance
        super().__init__(
            f"Insufficient balance. Required margin: {required_margin:.4f} USDT, "
            f"Available: {balance:.4f} USDT"
        )


class VenueError(TradingBotError):
    def __init__(self, message: str, endpoint: str = "", code: Optional[str] = None):
        self.endpoint = endpoint
        self.code = code
        prefix = f"KuCoin API Error [{endpoint}]" if endpoint else "KuCoin API Error"
        super().__init__(f"{prefix}: {message}")


class ReconciliationError(TradingBotError):
    def __init__(self, symbol: str, cause: Exception):
        self.symbol = symbol
        self.cause = cause
        super().__init__(f"Reconciliation failed for {symbol}: {cause}")
