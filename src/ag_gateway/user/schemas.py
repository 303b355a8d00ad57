"""Pydantic request/response schemas for ag_gateway.

All responses are wrapped in ApiResponse at the router layer.
"""

from pydantic import BaseModel, Field, field_validator

from src.ag_common.money import Money


class SignupRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=16)
    # bcrypt ignores bytes past 72
    password: str = Field(..., min_length=6, max_length=72)
    invite_code: str | None = Field(None, alias="inviteCode", max_length=32)

    model_config = {"populate_by_name": True}

    @field_validator("username")
    @classmethod
    def username_no_whitespace(cls, v: str) -> str:
        if v != v.strip() or " " in v:
            raise ValueError("Username must not contain spaces")
        return v

    @field_validator("invite_code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class LoginRequest(BaseModel):
    username: str
    password: str


class UserInfo(BaseModel):
    """Minimal user info embedded in responses."""

    id: str
    username: str
    is_admin: bool


class AuthResponse(BaseModel):
    token: str
    token_type: str = "Bearer"
    expires_at: str
    user: UserInfo
    has_bonus: bool = False


class WalletBalances(BaseModel):
    agon: Money
    stoneworks_dollar: Money
    agon_escrow: Money


class ProfileResponse(BaseModel):
    user: UserInfo
    created_at: str
    wallet: WalletBalances | None


class UserListItem(BaseModel):
    id: str
    username: str
    is_admin: bool
    created_at: str
