"""Pydantic schemas for the casino game API. All bets are in Stoneworks Dollars."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from src.ag_common.datetime_utils import isoformat_or_none
from src.ag_common.money import Money
from src.ag_games.domain.cards import Card
from src.ag_games.domain.models import GameRecord

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CoinflipRequest(BaseModel):
    bet_amount: Decimal = Field(..., gt=0, allow_inf_nan=False, alias="betAmount")
    choice: Literal["heads", "tails"]

    model_config = {"populate_by_name": True}


class BlackjackRequest(BaseModel):
    action: Literal["deal", "hit", "stand"] = "deal"
    bet_amount: Decimal | None = Field(None, gt=0, allow_inf_nan=False, alias="betAmount")
    game_id: str | None = Field(None, alias="gameId")

    model_config = {"populate_by_name": True}


class PlinkoRequest(BaseModel):
    bet_amount: Decimal = Field(..., gt=0, allow_inf_nan=False, alias="betAmount")
    rows: Literal[8, 12, 16]
    risk: Literal["low", "medium", "high"]

    model_config = {"populate_by_name": True}


class CrashBetRequest(BaseModel):
    bet_amount: Decimal = Field(..., gt=0, allow_inf_nan=False, alias="betAmount")
    auto_cashout: Decimal | None = Field(None, allow_inf_nan=False, alias="autoCashout")

    model_config = {"populate_by_name": True}


class CrashCashoutRequest(BaseModel):
    multiplier: Decimal = Field(..., ge=1, allow_inf_nan=False, alias="cashoutMultiplier")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CardItem(BaseModel):
    rank: str
    suit: str

    @classmethod
    def from_card(cls, c: Card) -> "CardItem":
        return cls(rank=c.rank, suit=c.suit)


class CoinflipResponse(BaseModel):
    won: bool
    result: str
    choice: str
    bet_amount: Money
    amount_change: Money
    new_balance: Money


class PlinkoResponse(BaseModel):
    won: bool
    multiplier: Money
    landing_slot: int
    bet_amount: Money
    payout: Money
    amount_change: Money
    new_balance: Money


class BlackjackResponse(BaseModel):
    game_id: str
    game_over: bool
    result: str | None = None
    won: bool | None = None
    player_hand: list[CardItem]
    dealer_hand: list[CardItem]
    player_value: int
    dealer_value: int
    bet_amount: Money
    amount_change: Money | None = None
    new_balance: Money | None = None


class CrashRoundResponse(BaseModel):
    round_id: str | None
    started_at: str | None
    has_active_bet: bool = False
    # Only set once the round is finalized
    crash_point: Money | None = None


class CrashBetResponse(BaseModel):
    round_id: str
    bet_amount: Money
    auto_cashout: Money | None
    new_balance: Money


class CrashCashoutResponse(BaseModel):
    round_id: str
    cashout_multiplier: Money
    payout: Money
    profit: Money
    new_balance: Money


class CrashFinalizeResponse(BaseModel):
    round_id: str | None
    crash_point: Money | None
    bets_lost: int
    bets_auto_cashed_out: int


class GameHistoryItem(BaseModel):
    id: int
    game_type: str
    bet_amount: Money
    result: str
    choice: str | None
    won: bool
    payout: Money
    created_at: str | None

    @classmethod
    def from_record(cls, r: GameRecord) -> "GameHistoryItem":
        return cls(
            id=r.id,
            game_type=r.game_type,
            bet_amount=r.bet_amount,
            result=r.result,
            choice=r.choice,
            won=r.won,
            payout=r.payout,
            created_at=isoformat_or_none(r.created_at),
        )


class GameStatsResponse(BaseModel):
    total_games: int
    games_won: int
    games_lost: int
    total_profit: Money
