"""Domain models for ag_wallet: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.ag_common.enums import Currency


@dataclass
class Wallet:
    user_id: str
    agon: Decimal
    stoneworks_dollar: Decimal
    agon_escrow: Decimal

    def balance(self, currency: Currency) -> Decimal:
        if currency is Currency.AGON:
            return self.agon
        return self.stoneworks_dollar


@dataclass
class TransactionRecord:
    id: int
    transaction_type: str
    currency: str
    amount: Decimal
    from_user_id: str | None = None
    to_user_id: str | None = None
    from_username: str | None = None
    to_username: str | None = None
    description: str | None = None
    created_at: datetime | None = None
