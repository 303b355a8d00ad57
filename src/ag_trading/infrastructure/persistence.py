"""PositionRepository: raw SQL over crypto_positions."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import PositionStatus, PositionType
from src.ag_common.errors import InternalError
from src.ag_trading.domain.models import CryptoPosition, TradingStats

_COLUMNS = """
    id, user_id, coin_id, position_type, leverage, quantity, entry_price,
    liquidation_price, margin_agon, status, opened_at, closed_at, closed_price,
    realized_pnl, last_maintenance_fee_at, total_maintenance_fees
"""

_INSERT_SQL = text(f"""
    INSERT INTO crypto_positions
        (user_id, coin_id, position_type, leverage, quantity, entry_price,
         liquidation_price, margin_agon, status, last_maintenance_fee_at)
    VALUES
        (:user_id, :coin_id, :position_type, :leverage, :quantity, :entry_price,
         :liquidation_price, :margin_agon, 'open', NOW())
    RETURNING {_COLUMNS}
""")

_GET_SQL = text(f"""
    SELECT {_COLUMNS} FROM crypto_positions
    WHERE id = :position_id AND user_id = :user_id
""")

_LOCK_OPEN_SQL = text(f"""
    SELECT {_COLUMNS} FROM crypto_positions
    WHERE id = :position_id AND user_id = :user_id AND status = 'open'
    FOR UPDATE
""")

_CLOSE_SQL = text(f"""
    UPDATE crypto_positions
    SET status = 'closed', closed_at = NOW(),
        closed_price = :closed_price, realized_pnl = :realized_pnl
    WHERE id = :position_id AND status = 'open'
    RETURNING {_COLUMNS}
""")

_LIST_ALL_SQL = text(f"""
    SELECT {_COLUMNS} FROM crypto_positions
    WHERE user_id = :user_id
    ORDER BY opened_at DESC, id DESC
""")

_LIST_BY_STATUS_SQL = text(f"""
    SELECT {_COLUMNS} FROM crypto_positions
    WHERE user_id = :user_id AND status = :status
    ORDER BY opened_at DESC, id DESC
""")

_STATS_SQL = text("""
    SELECT
        COUNT(*) FILTER (WHERE status = 'open')                          AS open_positions,
        COUNT(*) FILTER (WHERE status = 'closed')                        AS closed_positions,
        COALESCE(SUM(margin_agon) FILTER (WHERE status = 'open'), 0)     AS total_margin,
        COALESCE(SUM(realized_pnl)
                 FILTER (WHERE status = 'closed' AND realized_pnl > 0), 0) AS total_profit,
        COALESCE(ABS(SUM(realized_pnl)
                 FILTER (WHERE status = 'closed' AND realized_pnl < 0)), 0) AS total_loss,
        COALESCE(SUM(realized_pnl) FILTER (WHERE status = 'closed'), 0)  AS net_pnl,
        COUNT(*) FILTER (WHERE status = 'closed' AND realized_pnl > 0)   AS winning_trades,
        COUNT(*) FILTER (WHERE status = 'closed' AND realized_pnl < 0)   AS losing_trades
    FROM crypto_positions
    WHERE user_id = :user_id
""")

_DUE_FOR_MAINTENANCE_SQL = text(f"""
    SELECT {_COLUMNS} FROM crypto_positions
    WHERE status = 'open'
      AND (last_maintenance_fee_at IS NULL OR last_maintenance_fee_at <= :cutoff)
    ORDER BY id
""")

# Re-checks the due condition under the row lock so a position is never
# charged twice for the same day.
_LOCK_DUE_SQL = text(f"""
    SELECT {_COLUMNS} FROM crypto_positions
    WHERE id = :position_id AND status = 'open'
      AND (last_maintenance_fee_at IS NULL OR last_maintenance_fee_at <= :cutoff)
    FOR UPDATE
""")

_CHARGE_MAINTENANCE_SQL = text("""
    UPDATE crypto_positions
    SET margin_agon = :new_margin,
        total_maintenance_fees = COALESCE(total_maintenance_fees, 0) + :fee,
        last_maintenance_fee_at = NOW()
    WHERE id = :position_id
""")


def _row_to_position(row: object) -> CryptoPosition:
    return CryptoPosition(
        id=row.id,  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        coin_id=row.coin_id,  # type: ignore[attr-defined]
        position_type=PositionType(row.position_type),  # type: ignore[attr-defined]
        leverage=int(row.leverage),  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        entry_price=row.entry_price,  # type: ignore[attr-defined]
        liquidation_price=row.liquidation_price,  # type: ignore[attr-defined]
        margin_agon=row.margin_agon,  # type: ignore[attr-defined]
        status=PositionStatus(row.status),  # type: ignore[attr-defined]
        opened_at=row.opened_at,  # type: ignore[attr-defined]
        closed_at=row.closed_at,  # type: ignore[attr-defined]
        closed_price=row.closed_price,  # type: ignore[attr-defined]
        realized_pnl=row.realized_pnl,  # type: ignore[attr-defined]
        last_maintenance_fee_at=row.last_maintenance_fee_at,  # type: ignore[attr-defined]
        total_maintenance_fees=row.total_maintenance_fees,  # type: ignore[attr-defined]
    )


class PositionRepository:
    async def insert(
        self,
        db: AsyncSession,
        user_id: str,
        coin_id: str,
        position_type: PositionType,
        leverage: int,
        quantity: Decimal,
        entry_price: Decimal,
        liquidation_price: Decimal,
        margin_agon: Decimal,
    ) -> CryptoPosition:
        row = (
            await db.execute(
                _INSERT_SQL,
                {
                    "user_id": user_id,
                    "coin_id": coin_id,
                    "position_type": position_type.value,
                    "leverage": leverage,
                    "quantity": quantity,
                    "entry_price": entry_price,
                    "liquidation_price": liquidation_price,
                    "margin_agon": margin_agon,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Position insert returned no rows")
        return _row_to_position(row)

    async def get(self, db: AsyncSession, position_id: int, user_id: str) -> CryptoPosition | None:
        row = (
            await db.execute(_GET_SQL, {"position_id": position_id, "user_id": user_id})
        ).fetchone()
        return _row_to_position(row) if row else None

    async def lock_open(
        self, db: AsyncSession, position_id: int, user_id: str
    ) -> CryptoPosition | None:
        row = (
            await db.execute(_LOCK_OPEN_SQL, {"position_id": position_id, "user_id": user_id})
        ).fetchone()
        return _row_to_position(row) if row else None

    async def close(
        self,
        db: AsyncSession,
        position_id: int,
        closed_price: Decimal,
        realized_pnl: Decimal,
    ) -> CryptoPosition:
        row = (
            await db.execute(
                _CLOSE_SQL,
                {
                    "position_id": position_id,
                    "closed_price": closed_price,
                    "realized_pnl": realized_pnl,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError(f"Position {position_id} was not open")
        return _row_to_position(row)

    async def list_for_user(
        self, db: AsyncSession, user_id: str, status: PositionStatus | None
    ) -> list[CryptoPosition]:
        if status is None:
            result = await db.execute(_LIST_ALL_SQL, {"user_id": user_id})
        else:
            result = await db.execute(
                _LIST_BY_STATUS_SQL, {"user_id": user_id, "status": status.value}
            )
        return [_row_to_position(r) for r in result.fetchall()]

    async def stats(self, db: AsyncSession, user_id: str) -> TradingStats:
        row = (await db.execute(_STATS_SQL, {"user_id": user_id})).fetchone()
        if row is None:
            raise InternalError("Stats query returned no rows")
        return TradingStats(
            open_positions=int(row.open_positions),
            closed_positions=int(row.closed_positions),
            total_margin=Decimal(row.total_margin),
            total_profit=Decimal(row.total_profit),
            total_loss=Decimal(row.total_loss),
            net_pnl=Decimal(row.net_pnl),
            winning_trades=int(row.winning_trades),
            losing_trades=int(row.losing_trades),
        )

    async def due_for_maintenance(
        self, db: AsyncSession, cutoff: datetime
    ) -> list[CryptoPosition]:
        rows = (await db.execute(_DUE_FOR_MAINTENANCE_SQL, {"cutoff": cutoff})).fetchall()
        return [_row_to_position(r) for r in rows]

    async def lock_due_for_maintenance(
        self, db: AsyncSession, position_id: int, cutoff: datetime
    ) -> CryptoPosition | None:
        row = (
            await db.execute(_LOCK_DUE_SQL, {"position_id": position_id, "cutoff": cutoff})
        ).fetchone()
        return _row_to_position(row) if row else None

    async def charge_maintenance(
        self, db: AsyncSession, position_id: int, new_margin: Decimal, fee: Decimal
    ) -> None:
        await db.execute(
            _CHARGE_MAINTENANCE_SQL,
            {"position_id": position_id, "new_margin": new_margin, "fee": fee},
        )
