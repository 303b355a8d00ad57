"""Repository Protocol for prediction markets, quotes, positions and fills."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import MarketStatus, PredictionSide, ResolutionOutcome
from src.ag_prediction.domain.models import (
    PredictionMarket,
    PredictionPosition,
    Quote,
    TradeRecord,
)


class PredictionRepositoryProtocol(Protocol):
    # markets
    async def list_markets(self, db: AsyncSession) -> list[PredictionMarket]: ...

    async def list_active_markets(self, db: AsyncSession) -> list[PredictionMarket]: ...

    async def get_market(self, db: AsyncSession, market_id: int) -> PredictionMarket | None: ...

    async def lock_market(self, db: AsyncSession, market_id: int) -> PredictionMarket | None: ...

    async def get_market_by_pm_id(
        self, db: AsyncSession, pm_market_id: str
    ) -> PredictionMarket | None: ...

    async def insert_market(
        self,
        db: AsyncSession,
        pm_market_id: str,
        question: str,
        yes_token_id: str | None,
        no_token_id: str | None,
        end_date: datetime | None,
        metadata: dict[str, Any],
    ) -> PredictionMarket: ...

    async def update_tokens(
        self, db: AsyncSession, market_id: int, yes_token_id: str, no_token_id: str
    ) -> None: ...

    async def set_market_status(
        self, db: AsyncSession, market_id: int, status: MarketStatus
    ) -> None: ...

    async def mark_resolved(
        self, db: AsyncSession, market_id: int, outcome: ResolutionOutcome
    ) -> None: ...

    async def insert_settlement(
        self, db: AsyncSession, market_id: int, outcome: ResolutionOutcome
    ) -> None: ...

    # quotes
    async def latest_quote(self, db: AsyncSession, market_id: int) -> Quote | None: ...

    async def quote_history(
        self, db: AsyncSession, market_id: int, since: datetime | None, limit: int
    ) -> list[Quote]: ...

    async def insert_quote(self, db: AsyncSession, market_id: int, quote: Quote) -> None: ...

    async def prune_quotes(self, db: AsyncSession, market_id: int, keep: int) -> None: ...

    # positions
    async def lock_position(
        self, db: AsyncSession, user_id: str, market_id: int, side: PredictionSide
    ) -> PredictionPosition | None: ...

    async def side_exposure(
        self, db: AsyncSession, market_id: int, side: PredictionSide
    ) -> Decimal: ...

    async def upsert_position(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: int,
        side: PredictionSide,
        quantity: Decimal,
        avg_price: Decimal,
    ) -> PredictionPosition: ...

    async def reduce_position(
        self, db: AsyncSession, position_id: int, quantity: Decimal, realized_delta: Decimal
    ) -> PredictionPosition: ...

    async def lock_open_positions(
        self, db: AsyncSession, market_id: int
    ) -> list[PredictionPosition]: ...

    async def close_position(
        self, db: AsyncSession, position_id: int, realized_delta: Decimal
    ) -> None: ...

    async def count_open_positions(self, db: AsyncSession, market_id: int) -> int: ...

    async def user_open_positions(
        self, db: AsyncSession, user_id: str
    ) -> list[PredictionPosition]: ...

    async def user_realized_pnl(self, db: AsyncSession, user_id: str) -> Decimal: ...

    # fills
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
    ) -> int: ...

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
    ) -> None: ...

    async def recent_trades(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> list[TradeRecord]: ...
