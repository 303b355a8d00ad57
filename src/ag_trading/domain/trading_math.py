"""Leveraged position math. Pure Decimal functions, no I/O.

Leverage is an integer in [MIN_LEVERAGE, MAX_LEVERAGE]. Commission and the
daily maintenance rate both scale linearly across that range.
"""

from decimal import Decimal

from src.ag_common.enums import PositionType
from src.ag_common.money import clamp

MIN_LEVERAGE = 1
MAX_LEVERAGE = 10

MIN_COMMISSION_RATE = Decimal("0.01")
MAX_COMMISSION_RATE = Decimal("0.05")

MIN_DAILY_MAINTENANCE_RATE = Decimal("0.001")
MAX_DAILY_MAINTENANCE_RATE = Decimal("0.01")

# Liquidation triggers at 90% of the theoretical wipe-out move
LIQUIDATION_BUFFER = Decimal("0.9")


def _leverage_fraction(leverage: Decimal) -> Decimal:
    return (leverage - MIN_LEVERAGE) / (MAX_LEVERAGE - MIN_LEVERAGE)


def commission_rate(leverage: int) -> Decimal:
    """1% at 1x up to 5% at 10x."""
    rate = MIN_COMMISSION_RATE + _leverage_fraction(Decimal(leverage)) * (
        MAX_COMMISSION_RATE - MIN_COMMISSION_RATE
    )
    return clamp(rate, MIN_COMMISSION_RATE, MAX_COMMISSION_RATE)


def liquidation_price(entry_price: Decimal, leverage: int, position_type: PositionType) -> Decimal:
    move = LIQUIDATION_BUFFER / Decimal(leverage)
    if position_type is PositionType.LONG:
        return entry_price * (1 - move)
    return entry_price * (1 + move)


def daily_maintenance_rate(leverage: int) -> Decimal:
    """0.1% per day at 1x up to 1% at 10x. Out-of-range leverage is clamped."""
    lev = clamp(Decimal(leverage), Decimal(MIN_LEVERAGE), Decimal(MAX_LEVERAGE))
    return MIN_DAILY_MAINTENANCE_RATE + _leverage_fraction(lev) * (
        MAX_DAILY_MAINTENANCE_RATE - MIN_DAILY_MAINTENANCE_RATE
    )


def pnl(
    position_type: PositionType,
    entry_price: Decimal,
    current_price: Decimal,
    margin: Decimal,
    leverage: int,
) -> Decimal:
    """Profit or loss on ``margin`` for a move from entry to current price."""
    diff = current_price - entry_price
    if position_type is PositionType.SHORT:
        diff = -diff
    return diff / entry_price * margin * leverage


def position_quantity(net_margin: Decimal, leverage: int, entry_price: Decimal) -> Decimal:
    return net_margin * leverage / entry_price
