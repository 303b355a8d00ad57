"""User service: signup, login, logout, profile, user directory.

signup and login each open a user_sessions row keyed by the token's jti.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency, TransactionType
from src.ag_common.errors import (
    AccountDisabledError,
    InvalidCredentialsError,
    InvalidInviteCodeError,
    SearchQueryRequiredError,
    UsernameExistsError,
)
from src.ag_gateway.auth.jwt_handler import IssuedToken, create_access_token
from src.ag_gateway.auth.password import hash_password, verify_password
from src.ag_gateway.user.db_models import UserModel
from src.ag_gateway.user.schemas import (
    ProfileResponse,
    UserInfo,
    UserListItem,
    WalletBalances,
)
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import log_activity, write_transaction
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

SIGNUP_BONUS = Decimal("100")
SEARCH_LIMIT = 20

_LOCK_INVITE_SQL = text("""
    SELECT id, is_used FROM invite_codes
    WHERE code = :code
    FOR UPDATE
""")

_USE_INVITE_SQL = text("""
    UPDATE invite_codes
    SET is_used = TRUE, used_by = :user_id, used_at = NOW()
    WHERE id = :id AND is_used = FALSE
""")

_INSERT_SESSION_SQL = text("""
    INSERT INTO user_sessions (jti, user_id, expires_at)
    VALUES (:jti, :user_id, :expires_at)
""")

_REVOKE_SESSION_SQL = text("""
    UPDATE user_sessions SET revoked = TRUE
    WHERE jti = :jti
""")

_LIST_USERS_SQL = text("""
    SELECT id, username, is_admin, created_at
    FROM users
    WHERE id <> :user_id
    ORDER BY username
""")

_SEARCH_USERS_SQL = text("""
    SELECT id, username, is_admin, created_at
    FROM users
    WHERE id <> :user_id AND username ILIKE :pattern
    ORDER BY username
    LIMIT :limit
""")


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def user_info(user: UserModel) -> UserInfo:
    return UserInfo(id=str(user.id), username=user.username, is_admin=user.is_admin)


class UserService:
    """Stateless service: instantiate once, reuse across requests."""

    def __init__(self, wallet_repo: WalletRepositoryProtocol | None = None) -> None:
        self._wallets: WalletRepositoryProtocol = wallet_repo or WalletRepository()

    async def signup(
        self,
        db: AsyncSession,
        username: str,
        password: str,
        invite_code: str | None = None,
    ) -> tuple[UserModel, IssuedToken, bool]:
        """Create user + wallet (+ invite bonus) + session in one transaction.

        Returns (user, token, has_bonus).
        """
        try:
            existing = await db.execute(select(UserModel).where(UserModel.username == username))
            if existing.scalar_one_or_none() is not None:
                raise UsernameExistsError()

            invite_id = None
            if invite_code:
                invite = (await db.execute(_LOCK_INVITE_SQL, {"code": invite_code})).fetchone()
                if invite is None:
                    raise InvalidInviteCodeError("Invalid invite code")
                if invite.is_used:
                    raise InvalidInviteCodeError("Invite code has already been used")
                invite_id = invite.id

            user = UserModel(
                username=username,
                password_hash=hash_password(password),
                is_admin=False,
                disabled=False,
            )
            db.add(user)
            await db.flush()
            user_id = str(user.id)

            await self._wallets.create_wallet(db, user_id)

            has_bonus = invite_id is not None
            if has_bonus:
                await db.execute(_USE_INVITE_SQL, {"id": invite_id, "user_id": user_id})
                for currency in Currency:
                    await self._wallets.credit(db, user_id, currency, SIGNUP_BONUS)
                    await write_transaction(
                        db,
                        TransactionType.SIGNUP_BONUS,
                        currency,
                        SIGNUP_BONUS,
                        to_user_id=user_id,
                        description=f"Invite code bonus ({invite_code})",
                    )

            issued = await self._open_session(db, user)
            await log_activity(
                db, user_id, "signup", {"invite_code": invite_code, "has_bonus": has_bonus}
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise UsernameExistsError() from None
        except Exception:
            await db.rollback()
            raise

        logger.info("User %s signed up (bonus=%s)", username, has_bonus)
        return user, issued, has_bonus

    async def login(
        self, db: AsyncSession, username: str, password: str
    ) -> tuple[UserModel, IssuedToken]:
        """Unknown user and wrong password both raise InvalidCredentialsError."""
        result = await db.execute(select(UserModel).where(UserModel.username == username))
        user = result.scalar_one_or_none()

        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if user.disabled:
            raise AccountDisabledError()

        try:
            issued = await self._open_session(db, user)
            await log_activity(db, str(user.id), "login")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return user, issued

    async def logout(self, db: AsyncSession, jti: str) -> None:
        try:
            await db.execute(_REVOKE_SESSION_SQL, {"jti": jti})
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    async def profile(self, db: AsyncSession, user: UserModel) -> ProfileResponse:
        wallet = await self._wallets.get_wallet(db, str(user.id))
        balances = (
            WalletBalances(
                agon=wallet.agon,
                stoneworks_dollar=wallet.stoneworks_dollar,
                agon_escrow=wallet.agon_escrow,
            )
            if wallet
            else None
        )
        return ProfileResponse(
            user=user_info(user),
            created_at=user.created_at.isoformat(),
            wallet=balances,
        )

    async def list_users(self, db: AsyncSession, user_id: str) -> list[UserListItem]:
        rows = (await db.execute(_LIST_USERS_SQL, {"user_id": user_id})).fetchall()
        return [_row_to_item(r) for r in rows]

    async def search_users(
        self, db: AsyncSession, user_id: str, query: str | None
    ) -> list[UserListItem]:
        query = (query or "").strip()
        if not query:
            raise SearchQueryRequiredError()
        rows = (
            await db.execute(
                _SEARCH_USERS_SQL,
                {"user_id": user_id, "pattern": _like_pattern(query), "limit": SEARCH_LIMIT},
            )
        ).fetchall()
        return [_row_to_item(r) for r in rows]

    async def _open_session(self, db: AsyncSession, user: UserModel) -> IssuedToken:
        issued = create_access_token(str(user.id), user.username, user.is_admin)
        await db.execute(
            _INSERT_SESSION_SQL,
            {"jti": issued.jti, "user_id": str(user.id), "expires_at": issued.expires_at},
        )
        return issued


def _row_to_item(row: object) -> UserListItem:
    return UserListItem(
        id=str(row.id),  # type: ignore[attr-defined]
        username=row.username,  # type: ignore[attr-defined]
        is_admin=row.is_admin,  # type: ignore[attr-defined]
        created_at=row.created_at.isoformat(),  # type: ignore[attr-defined]
    )
