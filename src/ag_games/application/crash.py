"""CrashService: one shared crash round held in Redis.

Keys:
    crash:round                 current round (round_id, crash_point, started_at)
    crash:round:<id>:bets       hash user_id -> active bet

The crash point never leaves the server until ``finalize``. A bet is debited
when placed; cashing out or finalizing claims the bet's hash field before
the paying DB transaction, so each bet settles exactly once. If that
transaction rolls back, the claimed state is put back. A cashout above the
crash point settles the bet as lost, so a rejected cashout costs the bet.
"""

import json
import logging
import random
import uuid
from decimal import ROUND_DOWN, Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.datetime_utils import utc_now
from src.ag_common.enums import GameType
from src.ag_common.errors import GameStateError, InvalidBetError
from src.ag_common.money import quantize
from src.ag_games.application.rounds import GAME_CURRENCY, record_round, validate_bet
from src.ag_games.application.schemas import (
    CrashBetResponse,
    CrashCashoutResponse,
    CrashFinalizeResponse,
    CrashRoundResponse,
)
from src.ag_games.domain.models import CrashBet, CrashRound
from src.ag_games.domain.repository import GameHistoryRepositoryProtocol
from src.ag_games.domain.rules import CRASH_MIN_AUTO_CASHOUT, MULTIPLIER_PLACES, crash_point
from src.ag_games.infrastructure.persistence import GameHistoryRepository
from src.ag_games.infrastructure.state_store import GameStateStore
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

ROUND_KEY = "crash:round"


def _bets_key(round_id: str) -> str:
    return f"{ROUND_KEY}:{round_id}:bets"


class CrashService:
    def __init__(
        self,
        store: GameStateStore | None = None,
        history: GameHistoryRepositoryProtocol | None = None,
        wallets: WalletRepositoryProtocol | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store or GameStateStore()
        self._history: GameHistoryRepositoryProtocol = history or GameHistoryRepository()
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()
        self._rng = rng or random.SystemRandom()

    async def _current(self) -> CrashRound | None:
        data = await self._store.get(ROUND_KEY)
        return CrashRound.from_dict(data) if data else None

    async def _require_round(self) -> CrashRound:
        rnd = await self._current()
        if rnd is None:
            raise GameStateError("No active round. Please start a round first.")
        return rnd

    async def current_round(self, user_id: str) -> CrashRoundResponse:
        rnd = await self._current()
        if rnd is None:
            return CrashRoundResponse(round_id=None, started_at=None)
        bet = await self._store.hash_get(_bets_key(rnd.round_id), user_id)
        return CrashRoundResponse(
            round_id=rnd.round_id,
            started_at=rnd.started_at.isoformat(),
            has_active_bet=bet is not None,
        )

    async def start(self) -> CrashRoundResponse:
        rnd = CrashRound(
            round_id=uuid.uuid4().hex,
            crash_point=crash_point(self._rng.random()),
            started_at=utc_now(),
        )
        if not await self._store.put_if_absent(ROUND_KEY, rnd.to_dict()):
            raise GameStateError("A round is already in progress")
        logger.info("Crash round %s started", rnd.round_id)
        return CrashRoundResponse(round_id=rnd.round_id, started_at=rnd.started_at.isoformat())

    async def place_bet(
        self,
        db: AsyncSession,
        user_id: str,
        bet_amount: Decimal,
        auto_cashout: Decimal | None = None,
    ) -> CrashBetResponse:
        amount = validate_bet(bet_amount)
        if auto_cashout is not None and auto_cashout < CRASH_MIN_AUTO_CASHOUT:
            raise InvalidBetError(f"Auto cashout must be at least {CRASH_MIN_AUTO_CASHOUT}x")
        rnd = await self._require_round()
        bets_key = _bets_key(rnd.round_id)
        if await self._store.hash_get(bets_key, user_id) is not None:
            raise GameStateError("You already have an active bet")

        bet = CrashBet(user_id=user_id, amount=amount, auto_cashout=auto_cashout)
        placed = False
        try:
            wallet = await self._wallets.debit(db, user_id, GAME_CURRENCY, amount)
            placed = await self._store.hash_put_if_absent(bets_key, user_id, bet.to_dict())
            if not placed:
                raise GameStateError("You already have an active bet")
            await db.commit()
        except Exception:
            await db.rollback()
            if placed:
                await self._store.hash_claim(bets_key, user_id)
            raise

        return CrashBetResponse(
            round_id=rnd.round_id,
            bet_amount=amount,
            auto_cashout=auto_cashout,
            new_balance=wallet.stoneworks_dollar,
        )

    async def cashout(
        self, db: AsyncSession, user_id: str, multiplier: Decimal
    ) -> CrashCashoutResponse:
        if not multiplier.is_finite() or multiplier < 1:
            raise InvalidBetError("Invalid cashout multiplier")
        multiplier = multiplier.quantize(MULTIPLIER_PLACES, rounding=ROUND_DOWN)
        rnd = await self._require_round()
        bets_key = _bets_key(rnd.round_id)
        data = await self._store.hash_get(bets_key, user_id)
        if data is None:
            raise GameStateError("No active bet found")

        bet = CrashBet.from_dict(data)
        crashed = multiplier > rnd.crash_point
        payout = quantize(bet.amount * multiplier)
        claimed = False
        try:
            if not await self._store.hash_claim(bets_key, user_id):
                raise GameStateError("No active bet found")
            claimed = True
            if crashed:
                await self._record(db, rnd, bet, Decimal(0), None, reveal=False)
            else:
                wallet = await self._wallets.credit(db, user_id, GAME_CURRENCY, payout)
                await self._record(db, rnd, bet, payout, multiplier, reveal=False)
            await db.commit()
        except Exception:
            await db.rollback()
            if claimed:
                await self._store.hash_put_if_absent(bets_key, user_id, data)
            raise

        if crashed:
            logger.info("Crash bet of %s lost on late cashout in round %s", user_id, rnd.round_id)
            raise GameStateError("Cannot cash out after crash, bet lost")

        return CrashCashoutResponse(
            round_id=rnd.round_id,
            cashout_multiplier=multiplier,
            payout=payout,
            profit=payout - bet.amount,
            new_balance=wallet.stoneworks_dollar,
        )

    async def finalize(self, db: AsyncSession) -> CrashFinalizeResponse:
        """Settle every remaining bet, reveal the crash point and clear the round.

        A bet whose auto-cashout is at or below the crash point is paid at that
        multiplier; the rest are lost.
        """
        rnd = await self._current()
        if rnd is None:
            return CrashFinalizeResponse(
                round_id=None, crash_point=None, bets_lost=0, bets_auto_cashed_out=0
            )
        if not await self._store.claim(ROUND_KEY):
            raise GameStateError("Round already finalized")

        bets_key = _bets_key(rnd.round_id)
        lost = auto_cashed = 0
        claimed: dict[str, dict[str, Any]] = {}
        try:
            for user_id, data in (await self._store.hash_all(bets_key)).items():
                if not await self._store.hash_claim(bets_key, user_id):
                    continue
                claimed[user_id] = data
                bet = CrashBet.from_dict(data)
                if bet.auto_cashout is not None and bet.auto_cashout <= rnd.crash_point:
                    payout = quantize(bet.amount * bet.auto_cashout)
                    await self._wallets.credit(db, user_id, GAME_CURRENCY, payout)
                    await self._record(db, rnd, bet, payout, bet.auto_cashout)
                    auto_cashed += 1
                else:
                    await self._record(db, rnd, bet, Decimal(0), None)
                    lost += 1
            await db.commit()
        except Exception:
            await db.rollback()
            logger.exception("Crash round %s failed to finalize", rnd.round_id)
            await self._restore(rnd, claimed)
            raise

        logger.info(
            "Crash round %s finalized at %sx: %d lost, %d auto cashed out",
            rnd.round_id,
            rnd.crash_point,
            lost,
            auto_cashed,
        )
        return CrashFinalizeResponse(
            round_id=rnd.round_id,
            crash_point=rnd.crash_point,
            bets_lost=lost,
            bets_auto_cashed_out=auto_cashed,
        )

    async def _restore(self, rnd: CrashRound, bets: dict[str, dict[str, Any]]) -> None:
        """Put a claimed round and its bets back after a rolled-back finalize."""
        bets_key = _bets_key(rnd.round_id)
        for user_id, data in bets.items():
            await self._store.hash_put_if_absent(bets_key, user_id, data)
        if not await self._store.put_if_absent(ROUND_KEY, rnd.to_dict()):
            logger.error(
                "Crash round %s not restored: a new round already started", rnd.round_id
            )

    async def _record(
        self,
        db: AsyncSession,
        rnd: CrashRound,
        bet: CrashBet,
        payout: Decimal,
        cashed_out: Decimal | None,
        reveal: bool = True,
    ) -> None:
        # Rows written while the round is still open must not carry the crash point
        won = cashed_out is not None
        crashed_at = str(rnd.crash_point) if reveal else None
        if won:
            description = f"Crash: Cashed out at {cashed_out:.2f}x"
        elif reveal:
            description = f"Crash: Lost at {rnd.crash_point:.2f}x"
        else:
            description = "Crash: Lost on a late cashout"
        await record_round(
            db,
            self._history,
            bet.user_id,
            GameType.CRASH,
            bet.amount,
            crashed_at or ("cashed_out" if won else "crashed"),
            json.dumps(
                {
                    "crashed_at": crashed_at,
                    "cashed_out": str(cashed_out) if won else None,
                }
            ),
            won,
            payout,
            description,
        )
