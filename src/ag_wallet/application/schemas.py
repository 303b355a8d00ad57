"""Pydantic schemas for the wallet, swap and payment API."""

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from src.ag_common.enums import Currency
from src.ag_common.money import Money
from src.ag_wallet.domain.models import TransactionRecord, Wallet

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class SwapRequest(BaseModel):
    from_currency: Currency = Field(..., alias="fromCurrency")
    to_currency: Currency = Field(..., alias="toCurrency")
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)

    model_config = {"populate_by_name": True}


class PaymentRequest(BaseModel):
    recipient_username: str = Field(..., min_length=1, alias="recipientUsername")
    currency: Currency
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False)
    description: str | None = Field(None, max_length=500)

    model_config = {"populate_by_name": True}

    @field_validator("recipient_username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    agon: Money
    stoneworks_dollar: Money
    agon_escrow: Money

    @classmethod
    def from_wallet(cls, wallet: Wallet) -> "WalletResponse":
        return cls(
            agon=wallet.agon,
            stoneworks_dollar=wallet.stoneworks_dollar,
            agon_escrow=wallet.agon_escrow,
        )


class SwapResponse(BaseModel):
    from_currency: str
    to_currency: str
    amount: Money
    wallet: WalletResponse


class PaymentResponse(BaseModel):
    transaction_id: int
    recipient: str
    currency: str
    amount: Money
    wallet: WalletResponse


class TransactionItem(BaseModel):
    id: int
    transaction_type: str
    currency: str
    amount: Money
    from_user_id: str | None
    to_user_id: str | None
    from_username: str | None
    to_username: str | None
    description: str | None
    created_at: str

    @classmethod
    def from_record(cls, t: TransactionRecord) -> "TransactionItem":
        return cls(
            id=t.id,
            transaction_type=t.transaction_type,
            currency=t.currency,
            amount=t.amount,
            from_user_id=t.from_user_id,
            to_user_id=t.to_user_id,
            from_username=t.from_username,
            to_username=t.to_username,
            description=t.description,
            created_at=t.created_at.isoformat() if t.created_at else "",
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    limit: int
    offset: int
