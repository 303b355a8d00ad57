"""FastAPI dependencies: get_current_user, require_admin.

Usage in any protected router:
    from src.ag_gateway.auth.dependencies import get_current_user

    @router.get("/protected")
    async def protected(user: Annotated[UserModel, Depends(get_current_user)]):
        ...

The token may arrive as a Bearer header or as the httpOnly auth cookie. The
user row is re-read on every request so that disabling or demoting a user
takes effect immediately.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.ag_common.database import get_db_session
from src.ag_common.errors import AccountDisabledError, AdminRequiredError, InvalidCredentialsError
from src.ag_gateway.auth.jwt_handler import decode_token
from src.ag_gateway.user.db_models import UserModel

# auto_error=False so a cookie-only request is not rejected before we look at it
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)

_SESSION_ACTIVE_SQL = text("""
    SELECT 1 FROM user_sessions
    WHERE jti = :jti AND user_id = :user_id
      AND revoked = FALSE AND expires_at > NOW()
""")


def extract_token(request: Request, bearer: str | None) -> str | None:
    if bearer:
        return bearer
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


async def get_current_user(
    request: Request,
    bearer: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> UserModel:
    """Validate the token and session, return the live UserModel.

    Raises HTTP 401 if the token is missing, invalid, expired or revoked.
    Raises HTTP 403 (AccountDisabledError) if the user is disabled.
    """
    token = extract_token(request, bearer)
    if not token:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id = str(payload["sub"])
    jti = str(payload["jti"])

    session_row = (
        await db.execute(_SESSION_ACTIVE_SQL, {"jti": jti, "user_id": user_id})
    ).fetchone()
    if session_row is None:
        raise _CREDENTIALS_EXCEPTION

    result = await db.execute(select(UserModel).where(UserModel.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _CREDENTIALS_EXCEPTION

    if user.disabled:
        raise AccountDisabledError()

    request.state.token_jti = jti
    return user


async def require_admin(
    current_user: Annotated[UserModel, Depends(get_current_user)],
) -> UserModel:
    """Raises HTTP 403 unless the caller is an admin."""
    if not current_user.is_admin:
        raise AdminRequiredError()
    return current_user
