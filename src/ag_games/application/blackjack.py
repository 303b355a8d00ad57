"""BlackjackService: deal / hit / stand with the hand held in Redis.

The client only ever sends ``game_id``; deck and hands stay server-side and
the dealer's hole card is hidden until the hand is over. The bet is debited
on deal. Finishing a hand claims (deletes) its Redis key before the DB
transaction that pays it, so a hand can be paid at most once; a rolled-back
payment restores the hand as it was before the final action.
"""

import json
import logging
import random
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import GameType
from src.ag_common.errors import GameNotFoundError, WalletNotFoundError
from src.ag_common.money import ZERO, quantize
from src.ag_games.application.rounds import GAME_CURRENCY, record_round, validate_bet
from src.ag_games.application.schemas import BlackjackResponse, CardItem
from src.ag_games.domain.cards import (
    DEALER_STANDS_ON,
    card_value,
    hand_value,
    is_blackjack,
    is_bust,
    shuffled_deck,
)
from src.ag_games.domain.models import BlackjackHand
from src.ag_games.domain.repository import GameHistoryRepositoryProtocol
from src.ag_games.domain.rules import BLACKJACK_PAYOUT
from src.ag_games.infrastructure.persistence import GameHistoryRepository
from src.ag_games.infrastructure.state_store import GameStateStore
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


def _key(game_id: str) -> str:
    return f"blackjack:{game_id}"


def natural_outcome(player_bj: bool, dealer_bj: bool, bet: Decimal) -> tuple[str, Decimal, bool]:
    """(result, payout, won) when either side is dealt a blackjack."""
    if player_bj and dealer_bj:
        return "push", bet, False
    if player_bj:
        return "blackjack", bet + quantize(bet * BLACKJACK_PAYOUT), True
    return "dealer_blackjack", ZERO, False


def showdown(player_total: int, dealer_total: int, bet: Decimal) -> tuple[str, Decimal, bool]:
    """(result, payout, won) after the dealer has drawn out."""
    if dealer_total > 21:
        return "dealer_bust", bet * 2, True
    if player_total > dealer_total:
        return "win", bet * 2, True
    if player_total == dealer_total:
        return "push", bet, False
    return "loss", ZERO, False


class BlackjackService:
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

    async def deal(self, db: AsyncSession, user_id: str, bet_amount: Decimal | None) -> BlackjackResponse:
        bet = validate_bet(bet_amount)
        deck = shuffled_deck(self._rng)
        hand = BlackjackHand(
            game_id=uuid.uuid4().hex,
            user_id=user_id,
            bet=bet,
            deck=deck[4:],
            player=[deck[0], deck[2]],
            dealer=[deck[1], deck[3]],
        )

        player_bj, dealer_bj = is_blackjack(hand.player), is_blackjack(hand.dealer)
        stored = False
        try:
            wallet = await self._wallets.debit(db, user_id, GAME_CURRENCY, bet)
            if player_bj or dealer_bj:
                result, payout, won = natural_outcome(player_bj, dealer_bj, bet)
                if payout > 0:
                    wallet = await self._wallets.credit(db, user_id, GAME_CURRENCY, payout)
                await self._record(db, hand, result, payout, won)
                await db.commit()
                return self._finished(hand, result, payout, won, wallet.stoneworks_dollar)

            await self._store.put(_key(hand.game_id), hand.to_dict())
            stored = True
            await db.commit()
        except Exception:
            await db.rollback()
            if stored:
                await self._store.claim(_key(hand.game_id))
            raise

        return self._in_progress(hand)

    async def hit(self, db: AsyncSession, user_id: str, game_id: str | None) -> BlackjackResponse:
        hand = await self._load(user_id, game_id)
        before = hand.to_dict()
        hand.player.append(hand.draw())
        if is_bust(hand.player):
            return await self._finish(db, hand, before, "bust", ZERO, False)
        await self._store.put(_key(hand.game_id), hand.to_dict())
        return self._in_progress(hand)

    async def stand(self, db: AsyncSession, user_id: str, game_id: str | None) -> BlackjackResponse:
        hand = await self._load(user_id, game_id)
        before = hand.to_dict()
        while hand_value(hand.dealer) < DEALER_STANDS_ON:
            hand.dealer.append(hand.draw())
        result, payout, won = showdown(hand_value(hand.player), hand_value(hand.dealer), hand.bet)
        return await self._finish(db, hand, before, result, payout, won)

    async def _load(self, user_id: str, game_id: str | None) -> BlackjackHand:
        if not game_id:
            raise GameNotFoundError("game_id is required")
        data = await self._store.get(_key(game_id))
        if data is None or data.get("user_id") != user_id:
            raise GameNotFoundError()
        return BlackjackHand.from_dict(data)

    async def _finish(
        self,
        db: AsyncSession,
        hand: BlackjackHand,
        before: dict[str, Any],
        result: str,
        payout: Decimal,
        won: bool,
    ) -> BlackjackResponse:
        """Claim the hand, then pay it. A rolled-back payment puts ``before`` back."""
        key = _key(hand.game_id)
        if not await self._store.claim(key):
            raise GameNotFoundError("Game already finished")
        try:
            if payout > 0:
                wallet = await self._wallets.credit(db, hand.user_id, GAME_CURRENCY, payout)
            else:
                current = await self._wallets.get_wallet(db, hand.user_id)
                if current is None:
                    raise WalletNotFoundError(hand.user_id)
                wallet = current
            await self._record(db, hand, result, payout, won)
            await db.commit()
        except Exception:
            await db.rollback()
            await self._store.put_if_absent(key, before)
            raise

        logger.debug("Blackjack %s finished for %s: %s", hand.game_id, hand.user_id, result)
        return self._finished(hand, result, payout, won, wallet.stoneworks_dollar)

    async def _record(
        self, db: AsyncSession, hand: BlackjackHand, result: str, payout: Decimal, won: bool
    ) -> None:
        await record_round(
            db,
            self._history,
            hand.user_id,
            GameType.BLACKJACK,
            hand.bet,
            result,
            json.dumps(
                {"player_value": hand_value(hand.player), "dealer_value": hand_value(hand.dealer)}
            ),
            won,
            payout,
            f"Blackjack: {result}",
        )

    def _in_progress(self, hand: BlackjackHand) -> BlackjackResponse:
        upcard = hand.dealer[0]
        return BlackjackResponse(
            game_id=hand.game_id,
            game_over=False,
            player_hand=[CardItem.from_card(c) for c in hand.player],
            dealer_hand=[CardItem.from_card(upcard)],
            player_value=hand_value(hand.player),
            dealer_value=card_value(upcard),
            bet_amount=hand.bet,
        )

    def _finished(
        self,
        hand: BlackjackHand,
        result: str,
        payout: Decimal,
        won: bool,
        new_balance: Decimal,
    ) -> BlackjackResponse:
        return BlackjackResponse(
            game_id=hand.game_id,
            game_over=True,
            result=result,
            won=won,
            player_hand=[CardItem.from_card(c) for c in hand.player],
            dealer_hand=[CardItem.from_card(c) for c in hand.dealer],
            player_value=hand_value(hand.player),
            dealer_value=hand_value(hand.dealer),
            bet_amount=hand.bet,
            amount_change=payout - hand.bet,
            new_balance=new_balance,
        )
