"""Audit trail shared by every module: transactions + activity_logs.

Both tables are append-only. Callers write them inside the same DB
transaction as the balance change they describe.
"""

import json
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency, TransactionType

_INSERT_TRANSACTION_SQL = text("""
    INSERT INTO transactions
        (from_user_id, to_user_id, transaction_type, currency, amount, description)
    VALUES
        (:from_user_id, :to_user_id, :transaction_type, :currency, :amount, :description)
    RETURNING id
""")

_INSERT_ACTIVITY_SQL = text("""
    INSERT INTO activity_logs (user_id, action, metadata)
    VALUES (:user_id, :action, CAST(:metadata AS JSONB))
""")

# "Platform account" = the earliest-created admin
_FIRST_ADMIN_SQL = text("""
    SELECT id FROM users
    WHERE is_admin = TRUE
    ORDER BY created_at ASC, id ASC
    LIMIT 1
""")


async def write_transaction(
    db: AsyncSession,
    transaction_type: TransactionType,
    currency: Currency,
    amount: Decimal,
    from_user_id: str | None = None,
    to_user_id: str | None = None,
    description: str | None = None,
) -> int:
    result = await db.execute(
        _INSERT_TRANSACTION_SQL,
        {
            "from_user_id": from_user_id,
            "to_user_id": to_user_id,
            "transaction_type": transaction_type.value,
            "currency": currency.value,
            "amount": amount,
            "description": description,
        },
    )
    return int(result.scalar_one())


async def log_activity(
    db: AsyncSession,
    user_id: str | None,
    action: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    await db.execute(
        _INSERT_ACTIVITY_SQL,
        {
            "user_id": user_id,
            "action": action,
            "metadata": json.dumps(metadata or {}, default=str),
        },
    )


async def first_admin_id(db: AsyncSession) -> str | None:
    row = (await db.execute(_FIRST_ADMIN_SQL)).fetchone()
    return str(row.id) if row else None
