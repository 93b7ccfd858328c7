"""
services/application/risk_service.py
------------------------------------
Position sizing for KuCoin Futures.

KuCoin trades whole LOTS and every contract has a multiplier (0.001 for
XBTUSDTM, 10 for some alt contracts...), so:

    notional       = balance * position_size_percent / 100
    raw_lots       = notional / (price * multiplier)
    lots           = clamp(floor(raw_lots), min_order_qty, max_order_qty)
    required_margin = lots * price * multiplier / leverage

The margin check runs after clamping: bumping a tiny plan up to the minimum
lot can still make it unaffordable.
"""

import logging
import math

from core.errors import InsufficientBalance, InvalidInput
from core.helpers import is_valid_number
from models.contract import ContractSpec, RiskPlan
from models.signal import Direction

logger = logging.getLogger("risk_service")

DEFAULT_MULTIPLIER = 1.0
DEFAULT_MIN_ORDER_QTY = 1
DEFAULT_MAX_ORDER_QTY = 1_000_000
LOT_REL_TOLERANCE = 1e-12


def calculate_position_plan(
    balance: float,
    price: float,
    direction,
    contract: ContractSpec | None,
    leverage: int,
    position_size_percent: float,
) -> RiskPlan:
    if not is_valid_number(balance) or balance <= 0:
        raise InvalidInput(f"Invalid balance: {balance}")

    if not is_valid_number(price) or price <= 0:
        raise InvalidInput(f"Invalid entry price: {price}")

    try:
        direction = Direction(direction)
    except ValueError:
        raise InvalidInput(f"Invalid direction: {direction}. Must be LONG or SHORT") from None

    if not is_valid_number(leverage) or leverage <= 0:
        raise InvalidInput(f"Invalid leverage: {leverage}")

    multiplier = (contract.multiplier if contract else 0) or DEFAULT_MULTIPLIER
    min_qty = int(math.ceil((contract.min_order_qty if contract else 0) or DEFAULT_MIN_ORDER_QTY))
    max_qty = int((contract.max_order_qty if contract else 0) or DEFAULT_MAX_ORDER_QTY)

    # 1. Position size in USDT
    notional = balance * (position_size_percent / 100)

    # 2. Lots (KuCoin requires integers)
    raw_lots = notional / (price * multiplier)
    # absorbs float noise (499.99999999999994 is 500 lots), not real fractions
    lots = math.floor(raw_lots * (1 + LOT_REL_TOLERANCE))

    logger.info(
        f"[RISK] Balance: {balance} USDT | Size: {position_size_percent}% = {notional:.4f} USDT | "
        f"Multiplier: {multiplier} | Raw lots: {raw_lots:.2f} → {lots}"
    )

    if lots < min_qty:
        logger.warning(f"[RISK] Calculated lots ({lots}) < minimum ({min_qty}). Using minimum.")
        lots = min_qty

    if lots > max_qty:
        logger.warning(f"[RISK] Calculated lots ({lots}) > maximum ({max_qty}). Using maximum.")
        lots = max_qty

    # 3. Required margin
    required_margin = (lots * price * multiplier) / leverage

    # 4. Final margin check (after clamping)
    if required_margin > balance:
        raise InsufficientBalance(required_margin, balance)

    plan = RiskPlan(
        entry_price=price,
        quantity=lots,
        notional=lots * price * multiplier,
        leverage=int(leverage),
        required_margin=required_margin,
        direction=direction,
        multiplier=multiplier,
    )

    logger.info(
        f"[RISK] Plan: {lots} lots {direction.value} @ {price} | "
        f"Size: {plan.notional:.2f} USDT | Margin: {required_margin:.4f} USDT ({leverage}x)"
    )
    return plan


class RiskService:
    """Binds the configured leverage / size percent to the sizing function."""

    def __init__(self, leverage: int, position_size_percent: float):
        self.leverage = leverage
        self.position_size_percent = position_size_percent

    def compute(self, balance: float, price: float, direction, contract: ContractSpec | None) -> RiskPlan:
        return calculate_position_plan(
            balance,
            price,
            direction,
            contract,
            leverage=self.leverage,
            position_size_percent=self.position_size_percent,
        )
