"""Odds and payout rules shared by the casino games."""

from decimal import ROUND_DOWN, Decimal

from src.ag_common.enums import GameType
from src.ag_common.money import quantize

# Coinflip: a correct guess still loses 10% of the time
COINFLIP_WIN_ROLL = 0.9

BLACKJACK_PAYOUT = Decimal("1.5")

CRASH_RTP = Decimal("0.95")
CRASH_MAX_MULTIPLIER = Decimal("10000")
CRASH_MIN_AUTO_CASHOUT = Decimal("1.01")
MULTIPLIER_PLACES = Decimal("0.01")


def crash_point(r: float) -> Decimal:
    """Draw from r in [0, 1): P(crash >= M) = 0.95 / M for M >= 1."""
    if r >= 1:
        return CRASH_MAX_MULTIPLIER
    point = CRASH_RTP / (Decimal(1) - Decimal(str(r)))
    point = max(Decimal(1), min(CRASH_MAX_MULTIPLIER, point))
    return point.quantize(MULTIPLIER_PLACES, rounding=ROUND_DOWN)


def round_profit(
    game_type: str, bet: Decimal, result: str, won: bool, payout: Decimal | None = None
) -> Decimal:
    """Net profit of one recorded round, from its stored result."""
    if game_type == GameType.PLINKO.value:
        return quantize(bet * (Decimal(result) - 1))
    if game_type == GameType.BLACKJACK.value and result == "blackjack":
        return quantize(bet * BLACKJACK_PAYOUT)
    if game_type == GameType.CRASH.value and won and payout is not None:
        return payout - bet
    if result == "push":
        return Decimal(0)
    return bet if won else -bet
