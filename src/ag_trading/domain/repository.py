"""Repository Protocol for crypto_positions."""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import PositionStatus, PositionType
from src.ag_trading.domain.models import CryptoPosition, TradingStats


class PositionRepositoryProtocol(Protocol):
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
    ) -> CryptoPosition: ...

    async def get(self, db: AsyncSession, position_id: int, user_id: str) -> CryptoPosition | None: ...

    async def lock_open(
        self, db: AsyncSession, position_id: int, user_id: str
    ) -> CryptoPosition | None: ...

    async def close(
        self,
        db: AsyncSession,
        position_id: int,
        closed_price: Decimal,
        realized_pnl: Decimal,
    ) -> CryptoPosition: ...

    async def list_for_user(
        self, db: AsyncSession, user_id: str, status: PositionStatus | None
    ) -> list[CryptoPosition]: ...

    async def stats(self, db: AsyncSession, user_id: str) -> TradingStats: ...

    async def due_for_maintenance(
        self, db: AsyncSession, cutoff: datetime
    ) -> list[CryptoPosition]: ...

    async def lock_due_for_maintenance(
        self, db: AsyncSession, position_id: int, cutoff: datetime
    ) -> CryptoPosition | None: ...

    async def charge_maintenance(
        self, db: AsyncSession, position_id: int, new_margin: Decimal, fee: Decimal
    ) -> None: ...
