"""Settlement payout rule for a resolved prediction market.

- winning side: ``quantity`` Agon (1 per share)
- losing side: 0
- invalid outcome: the position's cost basis back (quantity * avg_price)

``profit`` is what gets added to realized_pnl: payout minus cost basis.
"""

from decimal import Decimal

from src.ag_common.enums import PredictionSide, ResolutionOutcome
from src.ag_common.money import ZERO, quantize


def settlement_payout(
    side: PredictionSide,
    quantity: Decimal,
    avg_price: Decimal,
    outcome: ResolutionOutcome,
) -> tuple[Decimal, Decimal]:
    """Return (payout, profit) for one position."""
    if quantity <= 0:
        return ZERO, ZERO
    cost = quantize(quantity * avg_price)
    if outcome is ResolutionOutcome.INVALID:
        payout = cost
    elif outcome.value == side.value:
        payout = quantize(quantity)
    else:
        payout = ZERO
    return payout, payout - cost


def outcome_from_payout_numerators(numerators: list[object] | None) -> ResolutionOutcome | None:
    """Polymarket lists payout numerators as [NO, YES]; "1" marks the winner."""
    if not numerators or len(numerators) < 2:
        return None
    normalized = [str(n).strip() for n in numerators]
    if normalized[1] == "1":
        return ResolutionOutcome.YES
    if normalized[0] == "1":
        return ResolutionOutcome.NO
    return ResolutionOutcome.INVALID
