"""AdminService: user management, balance adjustments, metrics, invite codes.

Every mutating action writes an activity_logs row attributed to the admin.
Auction moderation is delegated to AuctionApplicationService so escrow rules
live in one place.
"""

import json
import logging
import secrets
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_admin.application.schemas import (
    ActivityItem,
    AdjustBalanceResponse,
    AdminUserItem,
    CurrencySupply,
    GameTotals,
    InviteCodeItem,
    MetricsResponse,
    TransactionTypeTotals,
    UserFlagResponse,
    UserTotals,
)
from src.ag_auction.application.schemas import AuctionItem, ReleaseResponse
from src.ag_auction.application.service import AuctionApplicationService
from src.ag_common.datetime_utils import isoformat_or_none
from src.ag_common.enums import Currency, GameType, TransactionType
from src.ag_common.errors import (
    InternalError,
    InvalidAmountError,
    InviteCodeExistsError,
    InviteCodeNotFoundError,
    InviteCodeUsedError,
    NegativeBalanceError,
    UserNotFoundError,
    WalletNotFoundError,
)
from src.ag_common.money import ZERO, quantize
from src.ag_wallet.application.schemas import WalletResponse
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import log_activity, write_transaction
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_LENGTH = 8
MAX_GENERATE_ATTEMPTS = 10

# ---------------------------------------------------------------------------
# SQL: users
# ---------------------------------------------------------------------------

_LIST_USERS_SQL = text("""
    SELECT u.id, u.username, u.is_admin, u.disabled, u.created_at,
           w.agon, w.stoneworks_dollar, w.agon_escrow,
           (SELECT COUNT(*) FROM transactions t
            WHERE t.from_user_id = u.id OR t.to_user_id = u.id) AS transaction_count
    FROM users u
    LEFT JOIN wallets w ON w.user_id = u.id
    ORDER BY u.created_at DESC
""")

_TOGGLE_DISABLED_SQL = text("""
    UPDATE users SET disabled = NOT disabled
    WHERE id = :user_id
    RETURNING id, username, is_admin, disabled
""")

_TOGGLE_ADMIN_SQL = text("""
    UPDATE users SET is_admin = NOT is_admin
    WHERE id = :user_id
    RETURNING id, username, is_admin, disabled
""")

# ---------------------------------------------------------------------------
# SQL: metrics
# ---------------------------------------------------------------------------

_USER_TOTALS_SQL = text("""
    SELECT COUNT(*)                              AS total_users,
           COUNT(*) FILTER (WHERE disabled)      AS disabled_users,
           COUNT(*) FILTER (WHERE is_admin)      AS admin_users
    FROM users
""")

_TRANSACTIONS_BY_TYPE_SQL = text("""
    SELECT transaction_type, COUNT(*) AS count, COALESCE(SUM(amount), 0) AS volume
    FROM transactions
    GROUP BY transaction_type
    ORDER BY count DESC, transaction_type
""")

_SUPPLY_SQL = text("""
    SELECT COALESCE(SUM(agon), 0)              AS agon,
           COALESCE(SUM(agon_escrow), 0)       AS agon_escrow,
           COALESCE(SUM(stoneworks_dollar), 0) AS stoneworks_dollar
    FROM wallets
""")

_GAME_TOTALS_SQL = text("""
    SELECT game_type,
           COUNT(*)                        AS total_games,
           COUNT(*) FILTER (WHERE won)     AS wins,
           COUNT(*) FILTER (WHERE NOT won) AS losses,
           COUNT(DISTINCT user_id)         AS unique_players,
           COALESCE(SUM(bet_amount), 0)    AS total_bet,
           COALESCE(SUM(payout), 0)        AS total_payout
    FROM game_history
    GROUP BY game_type
""")

# ---------------------------------------------------------------------------
# SQL: activity and invite codes
# ---------------------------------------------------------------------------

_ACTIVITY_SQL = text("""
    SELECT a.id, a.user_id, u.username, a.action, a.metadata, a.created_at
    FROM activity_logs a
    LEFT JOIN users u ON u.id = a.user_id
    ORDER BY a.created_at DESC, a.id DESC
    LIMIT :limit OFFSET :offset
""")

_INVITE_COLUMNS = """
    ic.id, ic.code, ic.is_used, ic.created_by, ic.used_by, ic.created_at, ic.used_at,
    creator.username AS created_by_username, redeemer.username AS used_by_username
"""

_LIST_INVITE_CODES_SQL = text(f"""
    SELECT {_INVITE_COLUMNS}
    FROM invite_codes ic
    LEFT JOIN users creator ON creator.id = ic.created_by
    LEFT JOIN users redeemer ON redeemer.id = ic.used_by
    ORDER BY ic.created_at DESC, ic.id DESC
""")

_GET_INVITE_CODE_SQL = text(f"""
    SELECT {_INVITE_COLUMNS}
    FROM invite_codes ic
    LEFT JOIN users creator ON creator.id = ic.created_by
    LEFT JOIN users redeemer ON redeemer.id = ic.used_by
    WHERE ic.id = :code_id
""")

_INSERT_INVITE_CODE_SQL = text("""
    INSERT INTO invite_codes (code, created_by)
    VALUES (:code, :created_by)
    ON CONFLICT (code) DO NOTHING
    RETURNING id
""")

_LOCK_INVITE_CODE_SQL = text("""
    SELECT id, code, is_used FROM invite_codes WHERE id = :code_id FOR UPDATE
""")

_DELETE_INVITE_CODE_SQL = text("DELETE FROM invite_codes WHERE id = :code_id")


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def _metadata(value: object) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, str):
        return json.loads(value)
    return dict(value)  # type: ignore[call-overload]


def _row_to_invite(row: Any) -> InviteCodeItem:
    return InviteCodeItem(
        id=row.id,
        code=row.code,
        is_used=row.is_used,
        created_by=str(row.created_by) if row.created_by else None,
        created_by_username=row.created_by_username,
        used_by=str(row.used_by) if row.used_by else None,
        used_by_username=row.used_by_username,
        created_at=isoformat_or_none(row.created_at),
        used_at=isoformat_or_none(row.used_at),
    )


def _row_to_flags(row: Any) -> UserFlagResponse:
    return UserFlagResponse(
        id=str(row.id), username=row.username, is_admin=row.is_admin, disabled=row.disabled
    )


def _win_rate(wins: int, total: int) -> Decimal:
    if total == 0:
        return ZERO
    return round(Decimal(wins) * 100 / total, 2)


class AdminService:
    def __init__(
        self,
        wallets: WalletRepositoryProtocol | None = None,
        auctions: AuctionApplicationService | None = None,
        code_generator: Callable[[], str] = generate_invite_code,
    ) -> None:
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()
        self._auctions = auctions or AuctionApplicationService()
        self._generate_code = code_generator

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def list_users(self, db: AsyncSession) -> list[AdminUserItem]:
        rows = (await db.execute(_LIST_USERS_SQL)).fetchall()
        return [
            AdminUserItem(
                id=str(r.id),
                username=r.username,
                is_admin=r.is_admin,
                disabled=r.disabled,
                created_at=isoformat_or_none(r.created_at),
                agon=r.agon,
                stoneworks_dollar=r.stoneworks_dollar,
                agon_escrow=r.agon_escrow,
                transaction_count=int(r.transaction_count),
            )
            for r in rows
        ]

    async def toggle_disabled(
        self, db: AsyncSession, admin_id: str, user_id: str
    ) -> UserFlagResponse:
        return await self._toggle(db, admin_id, user_id, _TOGGLE_DISABLED_SQL, "admin_toggle_disabled")

    async def toggle_admin(self, db: AsyncSession, admin_id: str, user_id: str) -> UserFlagResponse:
        return await self._toggle(db, admin_id, user_id, _TOGGLE_ADMIN_SQL, "admin_toggle_admin")

    async def _toggle(
        self, db: AsyncSession, admin_id: str, user_id: str, sql: Any, action: str
    ) -> UserFlagResponse:
        try:
            row = (await db.execute(sql, {"user_id": user_id})).fetchone()
            if row is None:
                raise UserNotFoundError(user_id)
            flags = _row_to_flags(row)
            await log_activity(
                db,
                admin_id,
                action,
                {
                    "target_user_id": flags.id,
                    "target_username": flags.username,
                    "is_admin": flags.is_admin,
                    "disabled": flags.disabled,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Admin %s: %s on %s", admin_id, action, flags.username)
        return flags

    async def adjust_balance(
        self,
        db: AsyncSession,
        admin_id: str,
        user_id: str,
        currency: Currency,
        amount: Decimal,
    ) -> AdjustBalanceResponse:
        """Add (positive) or remove (negative) funds; the result may not go below zero."""
        if not amount.is_finite() or amount == 0:
            raise InvalidAmountError("Amount must be a non-zero number")
        delta = quantize(amount)
        if delta == 0:
            raise InvalidAmountError("Amount must be a non-zero number")

        try:
            locked = await self._wallets.lock_wallets(db, [user_id])
            if not locked:
                raise WalletNotFoundError(user_id)
            if locked[0].balance(currency) + delta < 0:
                raise NegativeBalanceError(currency.value)

            if delta > 0:
                wallet = await self._wallets.credit(db, user_id, currency, delta)
            else:
                wallet = await self._wallets.debit(db, user_id, currency, -delta)
            await write_transaction(
                db,
                TransactionType.ADMIN_ADJUST,
                currency,
                abs(delta),
                from_user_id=admin_id,
                to_user_id=user_id,
                description="Admin credit" if delta > 0 else "Admin debit",
            )
            await log_activity(
                db,
                admin_id,
                "admin_adjust_balance",
                {"target_user_id": user_id, "currency": currency.value, "amount": delta},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Admin %s adjusted %s %s by %s", admin_id, user_id, currency.value, delta)
        return AdjustBalanceResponse(
            user_id=user_id,
            currency=currency.value,
            amount=delta,
            wallet=WalletResponse.from_wallet(wallet),
        )

    # ------------------------------------------------------------------
    # Metrics and activity
    # ------------------------------------------------------------------

    async def metrics(self, db: AsyncSession) -> MetricsResponse:
        users = (await db.execute(_USER_TOTALS_SQL)).fetchone()
        by_type = (await db.execute(_TRANSACTIONS_BY_TYPE_SQL)).fetchall()
        supply = (await db.execute(_SUPPLY_SQL)).fetchone()
        games = {r.game_type: r for r in (await db.execute(_GAME_TOTALS_SQL)).fetchall()}

        game_totals = []
        for game_type in GameType:
            r = games.get(game_type.value)
            total = int(r.total_games) if r else 0
            wins = int(r.wins) if r else 0
            total_bet = Decimal(r.total_bet) if r else ZERO
            total_payout = Decimal(r.total_payout) if r else ZERO
            game_totals.append(
                GameTotals(
                    game_type=game_type.value,
                    total_games=total,
                    wins=wins,
                    losses=int(r.losses) if r else 0,
                    unique_players=int(r.unique_players) if r else 0,
                    total_bet=total_bet,
                    total_payout=total_payout,
                    house_profit=total_bet - total_payout,
                    win_rate=_win_rate(wins, total),
                )
            )

        return MetricsResponse(
            users=UserTotals(
                total_users=int(users.total_users) if users else 0,
                disabled_users=int(users.disabled_users) if users else 0,
                admin_users=int(users.admin_users) if users else 0,
            ),
            total_transactions=sum(int(r.count) for r in by_type),
            transactions_by_type=[
                TransactionTypeTotals(
                    transaction_type=r.transaction_type, count=int(r.count), volume=r.volume
                )
                for r in by_type
            ],
            supply=CurrencySupply(
                agon=supply.agon if supply else ZERO,
                agon_escrow=supply.agon_escrow if supply else ZERO,
                stoneworks_dollar=supply.stoneworks_dollar if supply else ZERO,
            ),
            games=game_totals,
        )

    async def activity(self, db: AsyncSession, limit: int, offset: int) -> list[ActivityItem]:
        rows = (await db.execute(_ACTIVITY_SQL, {"limit": limit, "offset": offset})).fetchall()
        return [
            ActivityItem(
                id=r.id,
                user_id=str(r.user_id) if r.user_id else None,
                username=r.username,
                action=r.action,
                metadata=_metadata(r.metadata),
                created_at=isoformat_or_none(r.created_at),
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Invite codes
    # ------------------------------------------------------------------

    async def list_invite_codes(self, db: AsyncSession) -> list[InviteCodeItem]:
        rows = (await db.execute(_LIST_INVITE_CODES_SQL)).fetchall()
        return [_row_to_invite(r) for r in rows]

    async def create_invite_code(
        self, db: AsyncSession, admin_id: str, code: str
    ) -> InviteCodeItem:
        try:
            code_id = await self._insert_code(db, admin_id, code)
            if code_id is None:
                raise InviteCodeExistsError(code)
            await log_activity(db, admin_id, "admin_create_invite_code", {"code": code})
            item = await self._get_code(db, code_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return item

    async def generate_invite_code(self, db: AsyncSession, admin_id: str) -> InviteCodeItem:
        """Insert a random code, drawing again on the rare collision."""
        try:
            for _ in range(MAX_GENERATE_ATTEMPTS):
                code = self._generate_code()
                code_id = await self._insert_code(db, admin_id, code)
                if code_id is not None:
                    break
            else:
                raise InternalError("Could not generate a unique invite code")
            await log_activity(db, admin_id, "admin_generate_invite_code", {"code": code})
            item = await self._get_code(db, code_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return item

    async def delete_invite_code(self, db: AsyncSession, admin_id: str, code_id: int) -> None:
        try:
            row = (await db.execute(_LOCK_INVITE_CODE_SQL, {"code_id": code_id})).fetchone()
            if row is None:
                raise InviteCodeNotFoundError(code_id)
            if row.is_used:
                raise InviteCodeUsedError()
            await db.execute(_DELETE_INVITE_CODE_SQL, {"code_id": code_id})
            await log_activity(db, admin_id, "admin_delete_invite_code", {"code": row.code})
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def _insert_code(self, db: AsyncSession, admin_id: str, code: str) -> int | None:
        row = (
            await db.execute(_INSERT_INVITE_CODE_SQL, {"code": code, "created_by": admin_id})
        ).fetchone()
        return int(row.id) if row else None

    async def _get_code(self, db: AsyncSession, code_id: int) -> InviteCodeItem:
        row = (await db.execute(_GET_INVITE_CODE_SQL, {"code_id": code_id})).fetchone()
        if row is None:
            raise InviteCodeNotFoundError(code_id)
        return _row_to_invite(row)

    # ------------------------------------------------------------------
    # Auctions
    # ------------------------------------------------------------------

    async def force_end_auction(
        self, db: AsyncSession, admin_id: str, auction_id: int
    ) -> AuctionItem:
        return await self._auctions.force_end_auction(db, admin_id, auction_id)

    async def auto_release_escrow(
        self, db: AsyncSession, admin_id: str, auction_id: int
    ) -> ReleaseResponse:
        return await self._auctions.auto_release_escrow(db, admin_id, auction_id)

    async def list_disputed(self, db: AsyncSession) -> list[AuctionItem]:
        return await self._auctions.list_pending_release(db)
