"""GameService: single-request games (coinflip, plinko) plus history and stats.

A round debits the bet, credits the payout (if any) and writes its history
and transaction rows in one DB transaction. The guarded debit rejects a bet
the wallet cannot cover.
"""

import json
import random
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import GameType
from src.ag_common.errors import InvalidBetError
from src.ag_common.money import ZERO, quantize
from src.ag_games.application.rounds import GAME_CURRENCY, record_round, validate_bet
from src.ag_games.application.schemas import (
    CoinflipResponse,
    GameHistoryItem,
    GameStatsResponse,
    PlinkoResponse,
)
from src.ag_games.domain.plinko import (
    HOUSE_EDGE_FACTOR,
    MULTIPLIERS,
    VALID_RISKS,
    VALID_ROWS,
    drop_ball,
    landing_slot,
)
from src.ag_games.domain.repository import GameHistoryRepositoryProtocol
from src.ag_games.domain.rules import COINFLIP_WIN_ROLL, round_profit
from src.ag_games.infrastructure.persistence import GameHistoryRepository
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.persistence import WalletRepository

DEFAULT_HISTORY_LIMIT = 10


class GameService:
    def __init__(
        self,
        history: GameHistoryRepositoryProtocol | None = None,
        wallets: WalletRepositoryProtocol | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._history: GameHistoryRepositoryProtocol = history or GameHistoryRepository()
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()
        self._rng = rng or random.SystemRandom()

    async def coinflip(
        self, db: AsyncSession, user_id: str, bet_amount: Decimal, choice: str
    ) -> CoinflipResponse:
        bet = validate_bet(bet_amount)
        if choice not in ("heads", "tails"):
            raise InvalidBetError("Invalid choice. Must be heads or tails")

        flip = "heads" if self._rng.random() < 0.5 else "tails"
        won = choice == flip and self._rng.random() < COINFLIP_WIN_ROLL
        payout = bet * 2 if won else ZERO

        try:
            wallet = await self._wallets.debit(db, user_id, GAME_CURRENCY, bet)
            if payout > 0:
                wallet = await self._wallets.credit(db, user_id, GAME_CURRENCY, payout)
            await record_round(
                db,
                self._history,
                user_id,
                GameType.COINFLIP,
                bet,
                flip,
                choice,
                won,
                payout,
                f"Coin flip: {choice} vs {flip} - {'Won' if won else 'Lost'}",
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return CoinflipResponse(
            won=won,
            result=flip,
            choice=choice,
            bet_amount=bet,
            amount_change=payout - bet,
            new_balance=wallet.stoneworks_dollar,
        )

    async def plinko(
        self, db: AsyncSession, user_id: str, bet_amount: Decimal, rows: int, risk: str
    ) -> PlinkoResponse:
        bet = validate_bet(bet_amount)
        if rows not in VALID_ROWS:
            raise InvalidBetError("Invalid row count. Must be 8, 12, or 16")
        if risk not in VALID_RISKS:
            raise InvalidBetError("Invalid risk level. Must be low, medium, or high")

        table = MULTIPLIERS[risk][rows]
        slot = landing_slot(drop_ball(rows, self._rng), rows, len(table))
        multiplier = table[slot]
        payout = quantize(bet * multiplier * HOUSE_EDGE_FACTOR)
        won = multiplier >= 1

        try:
            wallet = await self._wallets.debit(db, user_id, GAME_CURRENCY, bet)
            if payout > 0:
                wallet = await self._wallets.credit(db, user_id, GAME_CURRENCY, payout)
            await record_round(
                db,
                self._history,
                user_id,
                GameType.PLINKO,
                bet,
                str(multiplier),
                json.dumps(
                    {"rows": rows, "risk": risk, "landing_slot": slot, "multiplier": str(multiplier)}
                ),
                won,
                payout,
                f"Plinko: {rows} rows, {risk} risk - {multiplier}x",
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return PlinkoResponse(
            won=won,
            multiplier=multiplier,
            landing_slot=slot,
            bet_amount=bet,
            payout=payout,
            amount_change=payout - bet,
            new_balance=wallet.stoneworks_dollar,
        )

    async def history(
        self, db: AsyncSession, user_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[GameHistoryItem]:
        records = await self._history.recent(db, user_id, limit)
        return [GameHistoryItem.from_record(r) for r in records]

    async def stats(self, db: AsyncSession, user_id: str) -> GameStatsResponse:
        records = await self._history.all_for_user(db, user_id)
        won = sum(1 for r in records if r.won)
        profit = sum(
            (round_profit(r.game_type, r.bet_amount, r.result, r.won, r.payout) for r in records),
            ZERO,
        )
        return GameStatsResponse(
            total_games=len(records),
            games_won=won,
            games_lost=len(records) - won,
            total_profit=profit,
        )
