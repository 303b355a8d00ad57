"""JWT access tokens (HS256, python-jose).

Tokens carry a ``jti`` that maps to a ``user_sessions`` row, so logout and
admin action can revoke a token before it expires.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.ag_common.datetime_utils import utc_now
from src.ag_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM
_EXPIRE = timedelta(days=settings.JWT_EXPIRE_DAYS)


@dataclass
class IssuedToken:
    token: str
    jti: str
    expires_at: datetime


def create_access_token(user_id: str, username: str, is_admin: bool) -> IssuedToken:
    now = utc_now()
    jti = uuid.uuid4().hex
    expires_at = now + _EXPIRE
    payload = {
        "sub": user_id,
        "username": username,
        "is_admin": is_admin,
        "jti": jti,
        "type": "access",
        "iat": now,
        "exp": expires_at,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    token = str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))
    return IssuedToken(token=token, jti=jti, expires_at=expires_at)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        InvalidCredentialsError: bad signature, expired, wrong issuer/audience,
            wrong type, or missing sub/jti.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if payload.get("type") != "access" or not payload.get("sub") or not payload.get("jti"):
        raise InvalidCredentialsError()
    return payload
