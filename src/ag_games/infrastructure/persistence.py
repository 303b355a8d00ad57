"""GameHistoryRepository: append-only game_history rows."""

from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import GameType
from src.ag_games.domain.models import GameRecord

_INSERT_SQL = text("""
    INSERT INTO game_history (user_id, game_type, bet_amount, result, choice, won, payout)
    VALUES (:user_id, :game_type, :bet_amount, :result, :choice, :won, :payout)
    RETURNING id
""")

_COLUMNS = "id, game_type, bet_amount, result, choice, won, payout, created_at"

_RECENT_SQL = text(f"""
    SELECT {_COLUMNS} FROM game_history
    WHERE user_id = :user_id
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_ALL_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS} FROM game_history
    WHERE user_id = :user_id
""")


def _row_to_record(row: object) -> GameRecord:
    return GameRecord(
        id=row.id,  # type: ignore[attr-defined]
        game_type=row.game_type,  # type: ignore[attr-defined]
        bet_amount=row.bet_amount,  # type: ignore[attr-defined]
        result=row.result,  # type: ignore[attr-defined]
        choice=row.choice,  # type: ignore[attr-defined]
        won=row.won,  # type: ignore[attr-defined]
        payout=row.payout,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class GameHistoryRepository:
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
    ) -> int:
        res = await db.execute(
            _INSERT_SQL,
            {
                "user_id": user_id,
                "game_type": game_type.value,
                "bet_amount": bet_amount,
                "result": result,
                "choice": choice,
                "won": won,
                "payout": payout,
            },
        )
        return int(res.scalar_one())

    async def recent(self, db: AsyncSession, user_id: str, limit: int) -> list[GameRecord]:
        rows = (await db.execute(_RECENT_SQL, {"user_id": user_id, "limit": limit})).fetchall()
        return [_row_to_record(r) for r in rows]

    async def all_for_user(self, db: AsyncSession, user_id: str) -> list[GameRecord]:
        rows = (await db.execute(_ALL_FOR_USER_SQL, {"user_id": user_id})).fetchall()
        return [_row_to_record(r) for r in rows]
