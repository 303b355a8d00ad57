"""Pydantic schemas for the admin API."""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.ag_common.enums import Currency
from src.ag_common.money import Money
from src.ag_wallet.application.schemas import WalletResponse

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class AdjustBalanceRequest(BaseModel):
    currency: Currency
    amount: Decimal = Field(..., allow_inf_nan=False)


class CreateInviteCodeRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Code is required")
        return v


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AdminUserItem(BaseModel):
    id: str
    username: str
    is_admin: bool
    disabled: bool
    created_at: str | None
    agon: Money | None
    stoneworks_dollar: Money | None
    agon_escrow: Money | None
    transaction_count: int


class UserFlagResponse(BaseModel):
    id: str
    username: str
    is_admin: bool
    disabled: bool


class AdjustBalanceResponse(BaseModel):
    user_id: str
    currency: str
    amount: Money
    wallet: WalletResponse


class UserTotals(BaseModel):
    total_users: int
    disabled_users: int
    admin_users: int


class TransactionTypeTotals(BaseModel):
    transaction_type: str
    count: int
    volume: Money


class CurrencySupply(BaseModel):
    agon: Money
    agon_escrow: Money
    stoneworks_dollar: Money


class GameTotals(BaseModel):
    game_type: str
    total_games: int
    wins: int
    losses: int
    unique_players: int
    total_bet: Money
    total_payout: Money
    house_profit: Money
    win_rate: Money


class MetricsResponse(BaseModel):
    users: UserTotals
    total_transactions: int
    transactions_by_type: list[TransactionTypeTotals]
    supply: CurrencySupply
    games: list[GameTotals]


class ActivityItem(BaseModel):
    id: int
    user_id: str | None
    username: str | None
    action: str
    metadata: dict
    created_at: str | None


class InviteCodeItem(BaseModel):
    id: int
    code: str
    is_used: bool
    created_by: str | None
    created_by_username: str | None
    used_by: str | None
    used_by_username: str | None
    created_at: str | None
    used_at: str | None
