"""TradingService: leveraged long/short paper positions settled in Agon.

Opening debits the full margin and stores margin minus commission. Closing
returns ``max(0, margin + pnl)``; a position can never owe more than its
margin. Prices are fetched before the DB transaction starts so no row lock
is held across an HTTP call.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.enums import Currency, PositionStatus, PositionType, TransactionType
from src.ag_common.errors import InvalidTradeError, PositionNotFoundError, WalletNotFoundError
from src.ag_common.money import ZERO, is_positive_finite, money_display, quantize
from src.ag_trading.application.schemas import (
    AssetInfoResponse,
    ClosePositionResponse,
    OpenPositionResponse,
    PositionItem,
    PriceHistoryResponse,
    PriceItem,
    PricePointItem,
    TradingStatsResponse,
)
from src.ag_trading.domain.repository import PositionRepositoryProtocol
from src.ag_trading.domain.trading_math import (
    MAX_LEVERAGE,
    MIN_LEVERAGE,
    commission_rate,
    liquidation_price,
    pnl,
    position_quantity,
)
from src.ag_trading.infrastructure.persistence import PositionRepository
from src.ag_trading.infrastructure.price_feed import PriceFeed, get_asset, get_price_feed
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import log_activity, write_transaction
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

QUANTITY_PLACES = Decimal("0.000000000001")


class TradingService:
    def __init__(
        self,
        repo: PositionRepositoryProtocol | None = None,
        wallets: WalletRepositoryProtocol | None = None,
        feed: PriceFeed | None = None,
    ) -> None:
        self._repo: PositionRepositoryProtocol = repo or PositionRepository()
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()
        self._feed = feed

    @property
    def feed(self) -> PriceFeed:
        return self._feed or get_price_feed()

    async def open_position(
        self,
        db: AsyncSession,
        user_id: str,
        coin_id: str,
        position_type: PositionType,
        leverage: int,
        margin: Decimal,
    ) -> OpenPositionResponse:
        asset = get_asset(coin_id)
        if not MIN_LEVERAGE <= leverage <= MAX_LEVERAGE:
            raise InvalidTradeError(f"Leverage must be between {MIN_LEVERAGE}x and {MAX_LEVERAGE}x")
        if not is_positive_finite(margin):
            raise InvalidTradeError("Margin must be positive")
        margin = quantize(margin)

        rate = commission_rate(leverage)
        commission = quantize(margin * rate)
        net_margin = margin - commission

        entry_price = (await self.feed.get_price(asset.id)).price
        quantity = position_quantity(net_margin, leverage, entry_price).quantize(QUANTITY_PLACES)
        liq_price = quantize(liquidation_price(entry_price, leverage, position_type))

        try:
            wallet = await self._wallets.debit(db, user_id, Currency.AGON, margin)
            position = await self._repo.insert(
                db,
                user_id,
                asset.id,
                position_type,
                leverage,
                quantity,
                entry_price,
                liq_price,
                net_margin,
            )
            await write_transaction(
                db,
                TransactionType.CRYPTO_TRADE,
                Currency.AGON,
                margin,
                from_user_id=user_id,
                description=(
                    f"Opened {position_type.value} position on {asset.id} with {leverage}x leverage"
                ),
            )
            await log_activity(
                db,
                user_id,
                "crypto_position_opened",
                {
                    "position_id": position.id,
                    "coin_id": asset.id,
                    "position_type": position_type.value,
                    "leverage": leverage,
                    "margin": margin,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Position %s opened: user=%s %s %s %sx margin=%s @ %s",
            position.id,
            user_id,
            position_type.value,
            asset.id,
            leverage,
            margin,
            entry_price,
        )
        return OpenPositionResponse(
            position=PositionItem.from_position(position),
            commission=commission,
            commission_rate=rate,
            new_balance=wallet.agon,
        )

    async def close_position(
        self, db: AsyncSession, user_id: str, position_id: int
    ) -> ClosePositionResponse:
        existing = await self._repo.get(db, position_id, user_id)
        if existing is None or not existing.is_open:
            raise PositionNotFoundError(position_id)
        close_price = (await self.feed.get_price(existing.coin_id)).price

        try:
            position = await self._repo.lock_open(db, position_id, user_id)
            if position is None:
                raise PositionNotFoundError(position_id)
            realized = quantize(
                pnl(
                    position.position_type,
                    position.entry_price,
                    close_price,
                    position.margin_agon,
                    position.leverage,
                )
            )
            final_return = max(ZERO, position.margin_agon + realized)

            closed = await self._repo.close(db, position.id, close_price, realized)
            if final_return > 0:
                wallet = await self._wallets.credit(db, user_id, Currency.AGON, final_return)
            else:
                current = await self._wallets.get_wallet(db, user_id)
                if current is None:
                    raise WalletNotFoundError(user_id)
                wallet = current
            outcome = "Profit" if realized >= 0 else "Loss"
            await write_transaction(
                db,
                TransactionType.CRYPTO_TRADE,
                Currency.AGON,
                final_return,
                to_user_id=user_id,
                description=(
                    f"Closed {position.position_type.value} position on {position.coin_id}: "
                    f"{outcome} {money_display(abs(realized))}"
                ),
            )
            await log_activity(
                db,
                user_id,
                "crypto_position_closed",
                {
                    "position_id": position.id,
                    "coin_id": position.coin_id,
                    "pnl": realized,
                    "return": final_return,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Position %s closed: user=%s pnl=%s returned=%s", position_id, user_id, realized, final_return
        )
        return ClosePositionResponse(
            position=PositionItem.from_position(closed),
            close_price=close_price,
            realized_pnl=realized,
            final_return=final_return,
            new_balance=wallet.agon,
        )

    async def list_positions(
        self, db: AsyncSession, user_id: str, status: str = "open"
    ) -> list[PositionItem]:
        if status == "all":
            positions = await self._repo.list_for_user(db, user_id, None)
        elif status in (PositionStatus.OPEN.value, PositionStatus.CLOSED.value):
            positions = await self._repo.list_for_user(db, user_id, PositionStatus(status))
        else:
            raise InvalidTradeError("status must be open, closed or all")

        open_coins = sorted({p.coin_id for p in positions if p.is_open})
        prices = await self.feed.get_prices(open_coins) if open_coins else {}
        return [
            PositionItem.from_position(
                p, prices[p.coin_id].price if p.coin_id in prices else None
            )
            for p in positions
        ]

    async def get_position(self, db: AsyncSession, user_id: str, position_id: int) -> PositionItem:
        position = await self._repo.get(db, position_id, user_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        current_price = None
        if position.is_open:
            prices = await self.feed.get_prices([position.coin_id])
            if position.coin_id in prices:
                current_price = prices[position.coin_id].price
        return PositionItem.from_position(position, current_price)

    async def stats(self, db: AsyncSession, user_id: str) -> TradingStatsResponse:
        return TradingStatsResponse.from_stats(await self._repo.stats(db, user_id))

    async def prices(self, asset_ids: list[str] | None = None) -> dict[str, PriceItem]:
        quotes = await self.feed.get_prices(asset_ids)
        return {asset_id: PriceItem.from_quote(q) for asset_id, q in quotes.items()}

    async def price_history(self, asset_id: str, days: int) -> PriceHistoryResponse:
        points = await self.feed.get_history(asset_id, days)
        return PriceHistoryResponse(
            coin_id=asset_id,
            days=days,
            prices=[PricePointItem.from_point(p) for p in points],
        )

    async def asset_info(self, asset_id: str) -> AssetInfoResponse:
        return AssetInfoResponse.from_info(await self.feed.get_asset_info(asset_id))
