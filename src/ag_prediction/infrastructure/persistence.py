"""PredictionRepository: raw SQL over prediction_* tables.

Order placement and settlement lock the market row first (FOR UPDATE), then
the wallet and position rows, always in that order.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import MarketStatus, PredictionSide, ResolutionOutcome
from src.ag_common.errors import InsufficientPositionError, InternalError
from src.ag_prediction.domain.models import (
    PredictionMarket,
    PredictionPosition,
    Quote,
    TradeRecord,
)

_MARKET_COLUMNS = """
    m.id, m.pm_market_id, m.question, m.status, m.yes_token_id, m.no_token_id,
    m.end_date, m.metadata, m.resolution, m.created_at, m.updated_at
"""

_LAST_QUOTE_LATERAL = """
    LEFT JOIN LATERAL (
        SELECT q.yes_bid, q.yes_ask, q.no_bid, q.no_ask, q.src_timestamp,
               q.created_at AS quote_created_at
        FROM prediction_quotes q
        WHERE q.market_id = m.id
        ORDER BY q.created_at DESC, q.id DESC
        LIMIT 1
    ) lq ON TRUE
"""

_POSITION_COLUMNS = "id, user_id, market_id, side, quantity, avg_price, realized_pnl, updated_at"

# ---------------------------------------------------------------------------
# SQL: markets
# ---------------------------------------------------------------------------

_LIST_MARKETS_SQL = text(f"""
    SELECT {_MARKET_COLUMNS},
           lq.yes_bid, lq.yes_ask, lq.no_bid, lq.no_ask, lq.src_timestamp, lq.quote_created_at
    FROM prediction_markets m
    {_LAST_QUOTE_LATERAL}
    ORDER BY (m.status = 'active') DESC, m.end_date ASC NULLS LAST, m.id ASC
""")

_LIST_ACTIVE_MARKETS_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM prediction_markets m
    WHERE m.status = 'active'
    ORDER BY m.id
""")

_GET_MARKET_SQL = text(f"""
    SELECT {_MARKET_COLUMNS},
           lq.yes_bid, lq.yes_ask, lq.no_bid, lq.no_ask, lq.src_timestamp, lq.quote_created_at
    FROM prediction_markets m
    {_LAST_QUOTE_LATERAL}
    WHERE m.id = :market_id
""")

_LOCK_MARKET_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM prediction_markets m
    WHERE m.id = :market_id
    FOR UPDATE
""")

_GET_MARKET_BY_PM_ID_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM prediction_markets m
    WHERE m.pm_market_id = :pm_market_id
""")

_INSERT_MARKET_SQL = text("""
    INSERT INTO prediction_markets
        (pm_market_id, question, status, yes_token_id, no_token_id, end_date, metadata)
    VALUES
        (:pm_market_id, :question, 'active', :yes_token_id, :no_token_id, :end_date,
         CAST(:metadata AS JSONB))
    RETURNING id, pm_market_id, question, status, yes_token_id, no_token_id,
              end_date, metadata, resolution, created_at, updated_at
""")

_UPDATE_TOKENS_SQL = text("""
    UPDATE prediction_markets
    SET yes_token_id = :yes_token_id, no_token_id = :no_token_id
    WHERE id = :market_id
""")

_SET_MARKET_STATUS_SQL = text("""
    UPDATE prediction_markets SET status = :status
    WHERE id = :market_id
""")

_MARK_RESOLVED_SQL = text("""
    UPDATE prediction_markets
    SET status = 'resolved', resolution = :outcome
    WHERE id = :market_id
""")

_INSERT_SETTLEMENT_SQL = text("""
    INSERT INTO prediction_settlements (market_id, resolved_outcome)
    VALUES (:market_id, :outcome)
""")

# ---------------------------------------------------------------------------
# SQL: quotes
# ---------------------------------------------------------------------------

_LATEST_QUOTE_SQL = text("""
    SELECT yes_bid, yes_ask, no_bid, no_ask, src_timestamp, created_at
    FROM prediction_quotes
    WHERE market_id = :market_id
    ORDER BY created_at DESC, id DESC
    LIMIT 1
""")

_QUOTES_SINCE_SQL = text("""
    SELECT yes_bid, yes_ask, no_bid, no_ask, src_timestamp, created_at
    FROM prediction_quotes
    WHERE market_id = :market_id AND created_at >= :since
    ORDER BY created_at ASC, id ASC
    LIMIT :limit
""")

# Newest N, returned oldest-first
_RECENT_QUOTES_SQL = text("""
    SELECT * FROM (
        SELECT id, yes_bid, yes_ask, no_bid, no_ask, src_timestamp, created_at
        FROM prediction_quotes
        WHERE market_id = :market_id
        ORDER BY created_at DESC, id DESC
        LIMIT :limit
    ) recent
    ORDER BY created_at ASC, id ASC
""")

_INSERT_QUOTE_SQL = text("""
    INSERT INTO prediction_quotes (market_id, yes_bid, yes_ask, no_bid, no_ask, src_timestamp)
    VALUES (:market_id, :yes_bid, :yes_ask, :no_bid, :no_ask, :src_timestamp)
""")

_PRUNE_QUOTES_SQL = text("""
    DELETE FROM prediction_quotes
    WHERE market_id = :market_id
      AND id NOT IN (
          SELECT id FROM prediction_quotes
          WHERE market_id = :market_id
          ORDER BY created_at DESC, id DESC
          LIMIT :keep
      )
""")

# ---------------------------------------------------------------------------
# SQL: positions
# ---------------------------------------------------------------------------

_LOCK_POSITION_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM prediction_positions
    WHERE user_id = :user_id AND market_id = :market_id AND side = :side
    FOR UPDATE
""")

_SIDE_EXPOSURE_SQL = text("""
    SELECT COALESCE(SUM(quantity * (1 - avg_price)), 0) AS exposure
    FROM prediction_positions
    WHERE market_id = :market_id AND side = :side AND quantity > 0
""")

_UPSERT_POSITION_SQL = text(f"""
    INSERT INTO prediction_positions (user_id, market_id, side, quantity, avg_price)
    VALUES (:user_id, :market_id, :side, :quantity, :avg_price)
    ON CONFLICT (user_id, market_id, side) DO UPDATE
        SET quantity = EXCLUDED.quantity,
            avg_price = EXCLUDED.avg_price
    RETURNING {_POSITION_COLUMNS}
""")

_REDUCE_POSITION_SQL = text(f"""
    UPDATE prediction_positions
    SET quantity = quantity - :quantity,
        realized_pnl = realized_pnl + :realized_delta
    WHERE id = :position_id AND quantity >= :quantity
    RETURNING {_POSITION_COLUMNS}
""")

_LOCK_OPEN_POSITIONS_SQL = text(f"""
    SELECT {_POSITION_COLUMNS}
    FROM prediction_positions
    WHERE market_id = :market_id AND quantity > 0
    ORDER BY id
    FOR UPDATE
""")

_CLOSE_POSITION_SQL = text("""
    UPDATE prediction_positions
    SET quantity = 0,
        realized_pnl = realized_pnl + :realized_delta
    WHERE id = :position_id
""")

_COUNT_OPEN_POSITIONS_SQL = text("""
    SELECT COUNT(*) FROM prediction_positions
    WHERE market_id = :market_id AND quantity > 0
""")

_USER_OPEN_POSITIONS_SQL = text(f"""
    SELECT p.id, p.user_id, p.market_id, p.side, p.quantity, p.avg_price,
           p.realized_pnl, p.updated_at,
           m.question, m.status AS market_status,
           lq.yes_bid, lq.yes_ask, lq.no_bid, lq.no_ask, lq.src_timestamp, lq.quote_created_at
    FROM prediction_positions p
    JOIN prediction_markets m ON m.id = p.market_id
    {_LAST_QUOTE_LATERAL}
    WHERE p.user_id = :user_id AND p.quantity > 0
    ORDER BY p.updated_at DESC
""")

_USER_REALIZED_SQL = text("""
    SELECT COALESCE(SUM(realized_pnl), 0) FROM prediction_positions
    WHERE user_id = :user_id
""")

# ---------------------------------------------------------------------------
# SQL: orders / trades
# ---------------------------------------------------------------------------

_INSERT_ORDER_SQL = text("""
    INSERT INTO prediction_orders
        (user_id, market_id, side, action, quantity, exec_price, cost_agon, fee_agon, status)
    VALUES
        (:user_id, :market_id, :side, :action, :quantity, :exec_price, :cost_agon, :fee_agon, 'filled')
    RETURNING id
""")

_INSERT_TRADE_SQL = text("""
    INSERT INTO prediction_trades
        (order_id, user_id, market_id, side, quantity, exec_price, cost_agon)
    VALUES
        (:order_id, :user_id, :market_id, :side, :quantity, :exec_price, :cost_agon)
""")

_RECENT_TRADES_SQL = text("""
    SELECT t.id, t.order_id, t.market_id, t.side, o.action, t.quantity,
           t.exec_price, t.cost_agon, t.created_at, m.question
    FROM prediction_trades t
    JOIN prediction_orders o ON o.id = t.order_id
    JOIN prediction_markets m ON m.id = t.market_id
    WHERE t.user_id = :user_id
    ORDER BY t.created_at DESC, t.id DESC
    LIMIT :limit
""")


def _load_metadata(value: object) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)  # type: ignore[call-overload]


def _row_to_quote(row: object, created_attr: str = "created_at") -> Quote | None:
    if getattr(row, "yes_bid", None) is None:
        return None
    return Quote(
        yes_bid=row.yes_bid,  # type: ignore[attr-defined]
        yes_ask=row.yes_ask,  # type: ignore[attr-defined]
        no_bid=row.no_bid,  # type: ignore[attr-defined]
        no_ask=row.no_ask,  # type: ignore[attr-defined]
        src_timestamp=row.src_timestamp,  # type: ignore[attr-defined]
        created_at=getattr(row, created_attr, None),
    )


def _row_to_market(row: object, with_quote: bool = False) -> PredictionMarket:
    market = PredictionMarket(
        id=row.id,  # type: ignore[attr-defined]
        pm_market_id=row.pm_market_id,  # type: ignore[attr-defined]
        question=row.question,  # type: ignore[attr-defined]
        status=MarketStatus(row.status),  # type: ignore[attr-defined]
        yes_token_id=row.yes_token_id,  # type: ignore[attr-defined]
        no_token_id=row.no_token_id,  # type: ignore[attr-defined]
        end_date=row.end_date,  # type: ignore[attr-defined]
        metadata=_load_metadata(row.metadata),  # type: ignore[attr-defined]
        resolution=row.resolution,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )
    if with_quote:
        market.last_quote = _row_to_quote(row, "quote_created_at")
    return market


def _row_to_position(row: object) -> PredictionPosition:
    return PredictionPosition(
        id=row.id,  # type: ignore[attr-defined]
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        side=PredictionSide(row.side),  # type: ignore[attr-defined]
        quantity=row.quantity,  # type: ignore[attr-defined]
        avg_price=row.avg_price,  # type: ignore[attr-defined]
        realized_pnl=row.realized_pnl,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


class PredictionRepository:
    # -- markets -----------------------------------------------------------

    async def list_markets(self, db: AsyncSession) -> list[PredictionMarket]:
        rows = (await db.execute(_LIST_MARKETS_SQL)).fetchall()
        return [_row_to_market(r, with_quote=True) for r in rows]

    async def list_active_markets(self, db: AsyncSession) -> list[PredictionMarket]:
        rows = (await db.execute(_LIST_ACTIVE_MARKETS_SQL)).fetchall()
        return [_row_to_market(r) for r in rows]

    async def get_market(self, db: AsyncSession, market_id: int) -> PredictionMarket | None:
        row = (await db.execute(_GET_MARKET_SQL, {"market_id": market_id})).fetchone()
        return _row_to_market(row, with_quote=True) if row else None

    async def lock_market(self, db: AsyncSession, market_id: int) -> PredictionMarket | None:
        row = (await db.execute(_LOCK_MARKET_SQL, {"market_id": market_id})).fetchone()
        return _row_to_market(row) if row else None

    async def get_market_by_pm_id(
        self, db: AsyncSession, pm_market_id: str
    ) -> PredictionMarket | None:
        row = (
            await db.execute(_GET_MARKET_BY_PM_ID_SQL, {"pm_market_id": pm_market_id})
        ).fetchone()
        return _row_to_market(row) if row else None

    async def insert_market(
        self,
        db: AsyncSession,
        pm_market_id: str,
        question: str,
        yes_token_id: str | None,
        no_token_id: str | None,
        end_date: datetime | None,
        metadata: dict[str, Any],
    ) -> PredictionMarket:
        row = (
            await db.execute(
                _INSERT_MARKET_SQL,
                {
                    "pm_market_id": pm_market_id,
                    "question": question,
                    "yes_token_id": yes_token_id,
                    "no_token_id": no_token_id,
                    "end_date": end_date,
                    "metadata": json.dumps(metadata, default=str),
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Market insert returned no rows")
        return _row_to_market(row)

    async def update_tokens(
        self, db: AsyncSession, market_id: int, yes_token_id: str, no_token_id: str
    ) -> None:
        await db.execute(
            _UPDATE_TOKENS_SQL,
            {"market_id": market_id, "yes_token_id": yes_token_id, "no_token_id": no_token_id},
        )

    async def set_market_status(
        self, db: AsyncSession, market_id: int, status: MarketStatus
    ) -> None:
        await db.execute(_SET_MARKET_STATUS_SQL, {"market_id": market_id, "status": status.value})

    async def mark_resolved(
        self, db: AsyncSession, market_id: int, outcome: ResolutionOutcome
    ) -> None:
        await db.execute(_MARK_RESOLVED_SQL, {"market_id": market_id, "outcome": outcome.value})

    async def insert_settlement(
        self, db: AsyncSession, market_id: int, outcome: ResolutionOutcome
    ) -> None:
        await db.execute(_INSERT_SETTLEMENT_SQL, {"market_id": market_id, "outcome": outcome.value})

    # -- quotes ------------------------------------------------------------

    async def latest_quote(self, db: AsyncSession, market_id: int) -> Quote | None:
        row = (await db.execute(_LATEST_QUOTE_SQL, {"market_id": market_id})).fetchone()
        return _row_to_quote(row) if row else None

    async def quote_history(
        self, db: AsyncSession, market_id: int, since: datetime | None, limit: int
    ) -> list[Quote]:
        if since is None:
            result = await db.execute(_RECENT_QUOTES_SQL, {"market_id": market_id, "limit": limit})
        else:
            result = await db.execute(
                _QUOTES_SINCE_SQL, {"market_id": market_id, "since": since, "limit": limit}
            )
        quotes = [_row_to_quote(r) for r in result.fetchall()]
        return [q for q in quotes if q is not None]

    async def insert_quote(self, db: AsyncSession, market_id: int, quote: Quote) -> None:
        await db.execute(
            _INSERT_QUOTE_SQL,
            {
                "market_id": market_id,
                "yes_bid": quote.yes_bid,
                "yes_ask": quote.yes_ask,
                "no_bid": quote.no_bid,
                "no_ask": quote.no_ask,
                "src_timestamp": quote.src_timestamp,
            },
        )

    async def prune_quotes(self, db: AsyncSession, market_id: int, keep: int) -> None:
        await db.execute(_PRUNE_QUOTES_SQL, {"market_id": market_id, "keep": keep})

    # -- positions ---------------------------------------------------------

    async def lock_position(
        self, db: AsyncSession, user_id: str, market_id: int, side: PredictionSide
    ) -> PredictionPosition | None:
        row = (
            await db.execute(
                _LOCK_POSITION_SQL,
                {"user_id": user_id, "market_id": market_id, "side": side.value},
            )
        ).fetchone()
        return _row_to_position(row) if row else None

    async def side_exposure(
        self, db: AsyncSession, market_id: int, side: PredictionSide
    ) -> Decimal:
        value = (
            await db.execute(_SIDE_EXPOSURE_SQL, {"market_id": market_id, "side": side.value})
        ).scalar_one()
        return Decimal(value or 0)

    async def upsert_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: int,
        side: PredictionSide,
        quantity: Decimal,
        avg_price: Decimal,
    ) -> PredictionPosition:
        row = (
            await db.execute(
                _UPSERT_POSITION_SQL,
                {
                    "user_id": user_id,
                    "market_id": market_id,
                    "side": side.value,
                    "quantity": quantity,
                    "avg_price": avg_price,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Position upsert returned no rows")
        return _row_to_position(row)

    async def reduce_position(
        self, db: AsyncSession, position_id: int, quantity: Decimal, realized_delta: Decimal
    ) -> PredictionPosition:
        row = (
            await db.execute(
                _REDUCE_POSITION_SQL,
                {"position_id": position_id, "quantity": quantity, "realized_delta": realized_delta},
            )
        ).fetchone()
        if row is None:
            raise InsufficientPositionError(f"need {quantity}")
        return _row_to_position(row)

    async def lock_open_positions(
        self, db: AsyncSession, market_id: int
    ) -> list[PredictionPosition]:
        rows = (await db.execute(_LOCK_OPEN_POSITIONS_SQL, {"market_id": market_id})).fetchall()
        return [_row_to_position(r) for r in rows]

    async def close_position(
        self, db: AsyncSession, position_id: int, realized_delta: Decimal
    ) -> None:
        await db.execute(
            _CLOSE_POSITION_SQL, {"position_id": position_id, "realized_delta": realized_delta}
        )

    async def count_open_positions(self, db: AsyncSession, market_id: int) -> int:
        return int(
            (await db.execute(_COUNT_OPEN_POSITIONS_SQL, {"market_id": market_id})).scalar_one()
        )

    async def user_open_positions(
        self, db: AsyncSession, user_id: str
    ) -> list[PredictionPosition]:
        rows = (await db.execute(_USER_OPEN_POSITIONS_SQL, {"user_id": user_id})).fetchall()
        positions = []
        for r in rows:
            p = _row_to_position(r)
            p.question = r.question
            p.market_status = r.market_status
            p.last_quote = _row_to_quote(r, "quote_created_at")
            positions.append(p)
        return positions

    async def user_realized_pnl(self, db: AsyncSession, user_id: str) -> Decimal:
        value = (await db.execute(_USER_REALIZED_SQL, {"user_id": user_id})).scalar_one()
        return Decimal(value or 0)

    # -- fills -------------------------------------------------------------

    async def insert_order(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: int,
        side: PredictionSide,
        action: str,
        quantity: Decimal,
        exec_price: Decimal,
        cost_agon: Decimal,
        fee_agon: Decimal,
    ) -> int:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "user_id": user_id,
                "market_id": market_id,
                "side": side.value,
                "action": action,
                "quantity": quantity,
                "exec_price": exec_price,
                "cost_agon": cost_agon,
                "fee_agon": fee_agon,
            },
        )
        return int(result.scalar_one())

    async def insert_trade(
        self,
        db: AsyncSession,
        order_id: int,
        user_id: str,
        market_id: int,
        side: PredictionSide,
        quantity: Decimal,
        exec_price: Decimal,
        cost_agon: Decimal,
    ) -> None:
        await db.execute(
            _INSERT_TRADE_SQL,
            {
                "order_id": order_id,
                "user_id": user_id,
                "market_id": market_id,
                "side": side.value,
                "quantity": quantity,
                "exec_price": exec_price,
                "cost_agon": cost_agon,
            },
        )

    async def recent_trades(self, db: AsyncSession, user_id: str, limit: int) -> list[TradeRecord]:
        rows = (
            await db.execute(_RECENT_TRADES_SQL, {"user_id": user_id, "limit": limit})
        ).fetchall()
        return [
            TradeRecord(
                id=r.id,
                order_id=r.order_id,
                market_id=r.market_id,
                side=r.side,
                action=r.action,
                quantity=r.quantity,
                exec_price=r.exec_price,
                cost_agon=r.cost_agon,
                created_at=r.created_at,
                question=r.question,
            )
            for r in rows
        ]
