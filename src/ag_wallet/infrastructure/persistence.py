"""WalletRepository: concrete implementation of WalletRepositoryProtocol.

All balance-mutating operations are single guarded UPDATE ... RETURNING
statements. Zero rows back means the guard failed (insufficient funds) or
the wallet does not exist; the follow-up read tells the two apart.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from decimal import Decimal

from sqlalchemy import TextClause, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency
from src.ag_common.errors import InsufficientBalanceError, InternalError, WalletNotFoundError
from src.ag_wallet.domain.models import TransactionRecord, Wallet

_WALLET_COLUMNS = "user_id, agon, stoneworks_dollar, agon_escrow"

# ---------------------------------------------------------------------------
# SQL: wallet reads
# ---------------------------------------------------------------------------

_CREATE_WALLET_SQL = text(f"""
    INSERT INTO wallets (user_id, agon, stoneworks_dollar, agon_escrow)
    VALUES (:user_id, 0, 0, 0)
    RETURNING {_WALLET_COLUMNS}
""")

_GET_WALLET_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE user_id = :user_id
""")

# Fixed lock order (user_id) so two payments in opposite directions cannot deadlock
_LOCK_WALLETS_SQL = text(f"""
    SELECT {_WALLET_COLUMNS}
    FROM wallets
    WHERE user_id = ANY(CAST(:user_ids AS UUID[]))
    ORDER BY user_id
    FOR UPDATE
""")

# ---------------------------------------------------------------------------
# SQL: balance mutations, one statement per currency column
# ---------------------------------------------------------------------------


def _credit_sql(column: str) -> TextClause:
    return text(f"""
        UPDATE wallets
        SET {column} = {column} + :amount
        WHERE user_id = :user_id
        RETURNING {_WALLET_COLUMNS}
    """)


def _debit_sql(column: str) -> TextClause:
    return text(f"""
        UPDATE wallets
        SET {column} = {column} - :amount
        WHERE user_id = :user_id AND {column} >= :amount
        RETURNING {_WALLET_COLUMNS}
    """)


_CREDIT_SQL = {c: _credit_sql(c.value) for c in Currency}
_DEBIT_SQL = {c: _debit_sql(c.value) for c in Currency}

_HOLD_ESCROW_SQL = text(f"""
    UPDATE wallets
    SET agon = agon - :amount,
        agon_escrow = agon_escrow + :amount
    WHERE user_id = :user_id AND agon >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

_RELEASE_ESCROW_SQL = text(f"""
    UPDATE wallets
    SET agon = agon + :amount,
        agon_escrow = agon_escrow - :amount
    WHERE user_id = :user_id AND agon_escrow >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

_CONSUME_ESCROW_SQL = text(f"""
    UPDATE wallets
    SET agon_escrow = agon_escrow - :amount
    WHERE user_id = :user_id AND agon_escrow >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

_LIST_TRANSACTIONS_SQL = text("""
    SELECT t.id, t.from_user_id, t.to_user_id,
           fu.username AS from_username, tu.username AS to_username,
           t.transaction_type, t.currency, t.amount, t.description, t.created_at
    FROM transactions t
    LEFT JOIN users fu ON fu.id = t.from_user_id
    LEFT JOIN users tu ON tu.id = t.to_user_id
    WHERE t.from_user_id = :user_id OR t.to_user_id = :user_id
    ORDER BY t.created_at DESC, t.id DESC
    LIMIT :limit OFFSET :offset
""")


def _row_to_wallet(row: object) -> Wallet:
    return Wallet(
        user_id=str(row.user_id),  # type: ignore[attr-defined]
        agon=row.agon,  # type: ignore[attr-defined]
        stoneworks_dollar=row.stoneworks_dollar,  # type: ignore[attr-defined]
        agon_escrow=row.agon_escrow,  # type: ignore[attr-defined]
    )


def _row_to_transaction(row: object) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,  # type: ignore[attr-defined]
        from_user_id=str(row.from_user_id) if row.from_user_id else None,  # type: ignore[attr-defined]
        to_user_id=str(row.to_user_id) if row.to_user_id else None,  # type: ignore[attr-defined]
        from_username=row.from_username,  # type: ignore[attr-defined]
        to_username=row.to_username,  # type: ignore[attr-defined]
        transaction_type=row.transaction_type,  # type: ignore[attr-defined]
        currency=row.currency,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class WalletRepository:
    """Concrete repository: every mutation is atomic at the SQL level."""

    async def create_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        row = (await db.execute(_CREATE_WALLET_SQL, {"user_id": user_id})).fetchone()
        if row is None:
            raise InternalError("Wallet insert returned no rows")
        return _row_to_wallet(row)

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        row = (await db.execute(_GET_WALLET_SQL, {"user_id": user_id})).fetchone()
        return _row_to_wallet(row) if row else None

    async def lock_wallets(self, db: AsyncSession, user_ids: list[str]) -> list[Wallet]:
        rows = (await db.execute(_LOCK_WALLETS_SQL, {"user_ids": user_ids})).fetchall()
        return [_row_to_wallet(r) for r in rows]

    async def credit(
        self, db: AsyncSession, user_id: str, currency: Currency, amount: Decimal
    ) -> Wallet:
        row = (
            await db.execute(_CREDIT_SQL[currency], {"user_id": user_id, "amount": amount})
        ).fetchone()
        if row is None:
            raise WalletNotFoundError(user_id)
        return _row_to_wallet(row)

    async def debit(
        self, db: AsyncSession, user_id: str, currency: Currency, amount: Decimal
    ) -> Wallet:
        row = (
            await db.execute(_DEBIT_SQL[currency], {"user_id": user_id, "amount": amount})
        ).fetchone()
        if row is None:
            await self._raise_insufficient(db, user_id, currency, amount)
        return _row_to_wallet(row)

    async def hold_escrow(self, db: AsyncSession, user_id: str, amount: Decimal) -> Wallet:
        row = (
            await db.execute(_HOLD_ESCROW_SQL, {"user_id": user_id, "amount": amount})
        ).fetchone()
        if row is None:
            await self._raise_insufficient(db, user_id, Currency.AGON, amount)
        return _row_to_wallet(row)

    async def release_escrow(self, db: AsyncSession, user_id: str, amount: Decimal) -> Wallet:
        row = (
            await db.execute(_RELEASE_ESCROW_SQL, {"user_id": user_id, "amount": amount})
        ).fetchone()
        if row is None:
            raise InternalError(f"Escrow of user {user_id} is below {amount}")
        return _row_to_wallet(row)

    async def consume_escrow(self, db: AsyncSession, user_id: str, amount: Decimal) -> Wallet:
        row = (
            await db.execute(_CONSUME_ESCROW_SQL, {"user_id": user_id, "amount": amount})
        ).fetchone()
        if row is None:
            raise InternalError(f"Escrow of user {user_id} is below {amount}")
        return _row_to_wallet(row)

    async def list_transactions(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> list[TransactionRecord]:
        rows = (
            await db.execute(
                _LIST_TRANSACTIONS_SQL,
                {"user_id": user_id, "limit": limit, "offset": offset},
            )
        ).fetchall()
        return [_row_to_transaction(r) for r in rows]

    async def _raise_insufficient(
        self, db: AsyncSession, user_id: str, currency: Currency, amount: Decimal
    ) -> None:
        wallet = await self.get_wallet(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        raise InsufficientBalanceError(currency.value, amount, wallet.balance(currency))
