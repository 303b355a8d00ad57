"""Domain models for ag_games.

Blackjack hands and the crash round are serialized to JSON for Redis; the
``to_dict``/``from_dict`` pairs define that format.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.ag_games.domain.cards import Card


@dataclass
class GameRecord:
    id: int
    game_type: str
    bet_amount: Decimal
    result: str
    choice: str | None
    won: bool
    payout: Decimal
    created_at: datetime | None = None


@dataclass
class GameStats:
    total_games: int
    games_won: int
    games_lost: int
    total_profit: Decimal


@dataclass
class BlackjackHand:
    game_id: str
    user_id: str
    bet: Decimal
    deck: list[Card]
    player: list[Card]
    dealer: list[Card]

    def draw(self) -> Card:
        return self.deck.pop(0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "user_id": self.user_id,
            "bet": str(self.bet),
            "deck": [c.to_dict() for c in self.deck],
            "player": [c.to_dict() for c in self.player],
            "dealer": [c.to_dict() for c in self.dealer],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BlackjackHand":
        return cls(
            game_id=data["game_id"],
            user_id=data["user_id"],
            bet=Decimal(data["bet"]),
            deck=[Card.from_dict(c) for c in data["deck"]],
            player=[Card.from_dict(c) for c in data["player"]],
            dealer=[Card.from_dict(c) for c in data["dealer"]],
        )


@dataclass
class CrashBet:
    user_id: str
    amount: Decimal
    auto_cashout: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "amount": str(self.amount),
            "auto_cashout": str(self.auto_cashout) if self.auto_cashout is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrashBet":
        auto = data.get("auto_cashout")
        return cls(
            user_id=data["user_id"],
            amount=Decimal(data["amount"]),
            auto_cashout=Decimal(auto) if auto is not None else None,
        )


@dataclass
class CrashRound:
    round_id: str
    crash_point: Decimal
    started_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_id": self.round_id,
            "crash_point": str(self.crash_point),
            "started_at": self.started_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CrashRound":
        return cls(
            round_id=data["round_id"],
            crash_point=Decimal(data["crash_point"]),
            started_at=datetime.fromisoformat(data["started_at"]),
        )
