"""Repository Protocol for game_history."""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import GameType
from src.ag_games.domain.models import GameRecord


class GameHistoryRepositoryProtocol(Protocol):
    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        game_type: GameType,
        bet_amount: Decimal,
        result: str,
        choice: str | None,
        won: bool,
        payout: Decimal,
    ) -> int: ...

    async def recent(self, db: AsyncSession, user_id: str, limit: int) -> list[GameRecord]: ...

    async def all_for_user(self, db: AsyncSession, user_id: str) -> list[GameRecord]: ...
