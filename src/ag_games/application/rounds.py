"""Bookkeeping common to every finished game round."""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency, GameType, TransactionType
from src.ag_common.errors import InvalidBetError
from src.ag_common.money import is_positive_finite, quantize
from src.ag_games.domain.repository import GameHistoryRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import write_transaction

GAME_CURRENCY = Currency.STONEWORKS_DOLLAR


def validate_bet(amount: Decimal | None) -> Decimal:
    if amount is None or not is_positive_finite(amount):
        raise InvalidBetError("Invalid bet amount")
    return quantize(amount)


async def record_round(
    db: AsyncSession,
    history: GameHistoryRepositoryProtocol,
    user_id: str,
    game_type: GameType,
    bet: Decimal,
    result: str,
    choice: str | None,
    won: bool,
    payout: Decimal,
    description: str,
) -> None:
    """Write the game_history row and its ``game`` transaction (|net change|)."""
    await history.insert(db, user_id, game_type, bet, result, choice, won, payout)
    await write_transaction(
        db,
        TransactionType.GAME,
        GAME_CURRENCY,
        abs(payout - bet),
        from_user_id=user_id,
        description=description,
    )
