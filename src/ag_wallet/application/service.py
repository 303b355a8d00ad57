"""WalletApplicationService: wallet reads, 1:1 swaps and user-to-user payments.

Mutating operations own their DB transaction: commit on success, rollback
and re-raise on any error.
"""

import logging
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency, TransactionType
from src.ag_common.errors import (
    InvalidAmountError,
    RecipientNotFoundError,
    SameCurrencySwapError,
    SelfPaymentError,
    WalletNotFoundError,
)
from src.ag_common.money import is_positive_finite, quantize
from src.ag_wallet.application.schemas import (
    PaymentResponse,
    SwapResponse,
    TransactionItem,
    TransactionListResponse,
    WalletResponse,
)
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import log_activity, write_transaction
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

_FIND_USER_BY_NAME_SQL = text("SELECT id, username FROM users WHERE username = :username")


class WalletApplicationService:
    def __init__(self, repo: WalletRepositoryProtocol | None = None) -> None:
        self._repo: WalletRepositoryProtocol = repo or WalletRepository()

    async def get_wallet(self, db: AsyncSession, user_id: str) -> WalletResponse:
        wallet = await self._repo.get_wallet(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return WalletResponse.from_wallet(wallet)

    async def swap(
        self,
        db: AsyncSession,
        user_id: str,
        from_currency: Currency,
        to_currency: Currency,
        amount: Decimal,
    ) -> SwapResponse:
        if not is_positive_finite(amount):
            raise InvalidAmountError()
        if from_currency == to_currency:
            raise SameCurrencySwapError()
        amount = quantize(amount)

        try:
            await self._repo.debit(db, user_id, from_currency, amount)
            wallet = await self._repo.credit(db, user_id, to_currency, amount)
            await write_transaction(
                db,
                TransactionType.SWAP,
                from_currency,
                amount,
                from_user_id=user_id,
                description=f"Swapped {amount} {from_currency.value} to {to_currency.value}",
            )
            await log_activity(
                db,
                user_id,
                "swap",
                {"from": from_currency.value, "to": to_currency.value, "amount": amount},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return SwapResponse(
            from_currency=from_currency.value,
            to_currency=to_currency.value,
            amount=amount,
            wallet=WalletResponse.from_wallet(wallet),
        )

    async def send_payment(
        self,
        db: AsyncSession,
        sender_id: str,
        sender_username: str,
        recipient_username: str,
        currency: Currency,
        amount: Decimal,
        description: str | None = None,
    ) -> PaymentResponse:
        if not is_positive_finite(amount):
            raise InvalidAmountError()
        amount = quantize(amount)

        recipient = (
            await db.execute(_FIND_USER_BY_NAME_SQL, {"username": recipient_username})
        ).fetchone()
        if recipient is None:
            raise RecipientNotFoundError(recipient_username)
        recipient_id = str(recipient.id)
        if recipient_id == sender_id:
            raise SelfPaymentError()

        memo = description or f"Payment to {recipient.username}"
        try:
            await self._repo.lock_wallets(db, [sender_id, recipient_id])
            wallet = await self._repo.debit(db, sender_id, currency, amount)
            await self._repo.credit(db, recipient_id, currency, amount)
            transaction_id = await write_transaction(
                db,
                TransactionType.PAYMENT,
                currency,
                amount,
                from_user_id=sender_id,
                to_user_id=recipient_id,
                description=memo,
            )
            await log_activity(
                db,
                sender_id,
                "payment_sent",
                {"to": recipient.username, "currency": currency.value, "amount": amount},
            )
            await log_activity(
                db,
                recipient_id,
                "payment_received",
                {"from": sender_username, "currency": currency.value, "amount": amount},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Payment %s %s from %s to %s", amount, currency.value, sender_username, recipient.username
        )
        return PaymentResponse(
            transaction_id=transaction_id,
            recipient=recipient.username,
            currency=currency.value,
            amount=amount,
            wallet=WalletResponse.from_wallet(wallet),
        )

    async def list_transactions(
        self, db: AsyncSession, user_id: str, limit: int, offset: int
    ) -> TransactionListResponse:
        records = await self._repo.list_transactions(db, user_id, limit, offset)
        return TransactionListResponse(
            items=[TransactionItem.from_record(r) for r in records],
            limit=limit,
            offset=offset,
        )
