"""Repository Protocol: unit tests inject a mock that conforms to this."""

from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency
from src.ag_wallet.domain.models import TransactionRecord, Wallet


class WalletRepositoryProtocol(Protocol):
    async def create_wallet(self, db: AsyncSession, user_id: str) -> Wallet: ...

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None: ...

    async def lock_wallets(self, db: AsyncSession, user_ids: list[str]) -> list[Wallet]: ...

    async def credit(
        self, db: AsyncSession, user_id: str, currency: Currency, amount: Decimal
    ) -> Wallet: ...

    async def debit(
        self, db: AsyncSession, user_id: str, currency: Currency, amount: Decimal
    ) -> Wallet: ...

    async def hold_escrow(self, db: AsyncSession, user_id: str, amount: Decimal) -> Wallet: ...

    async def release_escrow(self, db: AsyncSession, user_id: str, amount: Decimal) -> Wallet: ...

    async def consume_escrow(self, db: AsyncSession, user_id: str, amount: Decimal) -> Wallet: ...

    async def list_transactions(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> list[TransactionRecord]: ...
