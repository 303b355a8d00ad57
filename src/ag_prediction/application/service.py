"""PredictionService: market reads, order execution and the user portfolio.

Orders execute against the latest cached quote (buys lift the ask, sells hit
the bid); the platform is the counterparty. One order is one DB transaction
that locks, in order: the market row, the user's wallet, the position row.
Locking the market serializes orders with settlement and keeps the per-side
exposure sum exact.
"""

import logging
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_common.datetime_utils import utc_now
from src.ag_common.enums import (
    Currency,
    MarketStatus,
    OrderAction,
    PredictionSide,
    TransactionType,
)
from src.ag_common.errors import (
    ExposureLimitError,
    InsufficientPositionError,
    InvalidOrderError,
    MarketNotActiveError,
    MarketNotFoundError,
    NoQuoteAvailableError,
    WalletNotFoundError,
)
from src.ag_common.money import ZERO, quantize
from src.ag_prediction.application.schemas import (
    MarketDetailResponse,
    MarketItem,
    OrderResponse,
    PortfolioResponse,
    PortfolioTotals,
    PositionItem,
    QuoteItem,
    TradeItem,
)
from src.ag_prediction.domain.models import OrderFill, PredictionPosition
from src.ag_prediction.domain.pricing import (
    MAX_PLATFORM_EXPOSURE,
    exceeds_exposure,
    execution_price,
    exposure_after_buy,
    mark_price,
    realized_on_sell,
    trade_fee,
    validate_quantity,
    weighted_average,
)
from src.ag_prediction.domain.repository import PredictionRepositoryProtocol
from src.ag_prediction.infrastructure.persistence import PredictionRepository
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import first_admin_id, log_activity, write_transaction
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_POINTS = 100
MAX_HISTORY_POINTS = 5000
PORTFOLIO_TRADE_LIMIT = 50
FEE_DESCRIPTION = "Prediction market trading fee"


class PredictionService:
    def __init__(
        self,
        repo: PredictionRepositoryProtocol | None = None,
        wallets: WalletRepositoryProtocol | None = None,
    ) -> None:
        self._repo: PredictionRepositoryProtocol = repo or PredictionRepository()
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_markets(self, db: AsyncSession) -> list[MarketItem]:
        markets = await self._repo.list_markets(db)
        return [MarketItem.from_market(m) for m in markets]

    async def get_market(
        self, db: AsyncSession, market_id: int, days: int | None = None
    ) -> MarketDetailResponse:
        market = await self._repo.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)

        if days is not None:
            since = utc_now() - timedelta(days=days)
            quotes = await self._repo.quote_history(db, market_id, since, MAX_HISTORY_POINTS)
        else:
            quotes = await self._repo.quote_history(db, market_id, None, DEFAULT_HISTORY_POINTS)

        return MarketDetailResponse(
            market=MarketItem.from_market(market),
            quotes=[q for q in (QuoteItem.from_quote(x) for x in quotes) if q is not None],
            last_quote=QuoteItem.from_quote(market.last_quote),
        )

    async def get_portfolio(self, db: AsyncSession, user_id: str) -> PortfolioResponse:
        wallet = await self._wallets.get_wallet(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        positions = await self._repo.user_open_positions(db, user_id)
        trades = await self._repo.recent_trades(db, user_id, PORTFOLIO_TRADE_LIMIT)
        realized = await self._repo.user_realized_pnl(db, user_id)

        items: list[PositionItem] = []
        total_value = ZERO
        total_unrealized = ZERO
        for p in positions:
            item = _marked_position(p)
            total_value += item.market_value or ZERO
            total_unrealized += item.unrealized_pnl or ZERO
            items.append(item)

        totals = PortfolioTotals(
            cash=wallet.agon,
            market_value=quantize(total_value),
            equity=quantize(wallet.agon + total_value),
            unrealized_pnl=quantize(total_unrealized),
            realized_pnl=quantize(realized),
            total_pnl=quantize(realized + total_unrealized),
        )
        return PortfolioResponse(
            positions=items,
            trades=[TradeItem.from_record(t) for t in trades],
            totals=totals,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def place_order(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: int,
        side: PredictionSide,
        action: OrderAction,
        quantity: Decimal,
    ) -> OrderResponse:
        try:
            validate_quantity(quantity)
        except ValueError as e:
            raise InvalidOrderError(str(e)) from e
        quantity = quantize(quantity)

        try:
            fill = await self._execute(db, user_id, market_id, side, action, quantity)
            await log_activity(
                db,
                user_id,
                f"prediction_{action.value}",
                {
                    "market_id": market_id,
                    "side": side.value,
                    "quantity": quantity,
                    "price": fill.exec_price,
                    "cost": fill.cost_agon,
                    "fee": fill.fee,
                },
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Prediction %s: user=%s market=%s %s x%s @ %s",
            action.value,
            user_id,
            market_id,
            side.value,
            quantity,
            fill.exec_price,
        )
        return OrderResponse(
            order_id=fill.order_id,
            side=fill.side.value,
            action=fill.action,
            quantity=fill.quantity,
            avg_price=fill.exec_price,
            cost_agon=fill.cost_agon,
            fee=fill.fee,
            new_balance=fill.new_balance,
            position=PositionItem.from_position(fill.position),
        )

    async def _execute(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: int,
        side: PredictionSide,
        action: OrderAction,
        quantity: Decimal,
    ) -> OrderFill:
        market = await self._repo.lock_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        if market.status is not MarketStatus.ACTIVE:
            raise MarketNotActiveError(market_id)

        quote = await self._repo.latest_quote(db, market_id)
        if quote is None:
            raise NoQuoteAvailableError(market_id)

        price = execution_price(quote, side, action)
        base_cost = quantize(quantity * price)
        fee = trade_fee(base_cost, action)
        # What the wallet actually moves: base plus fee on buys, base on sells
        total_cost = base_cost + fee

        await self._wallets.lock_wallets(db, [user_id])
        position = await self._repo.lock_position(db, user_id, market_id, side)

        if action is OrderAction.BUY:
            old_quantity = position.quantity if position else ZERO
            old_avg = position.avg_price if position else ZERO
            new_quantity = old_quantity + quantity
            new_avg = weighted_average(old_quantity, old_avg, quantity, price)
            existing = await self._repo.side_exposure(db, market_id, side)
            after = exposure_after_buy(existing, old_quantity, old_avg, new_quantity, new_avg)
            if exceeds_exposure(after):
                raise ExposureLimitError(MAX_PLATFORM_EXPOSURE)

            wallet = await self._wallets.debit(db, user_id, Currency.AGON, total_cost)
            position = await self._repo.upsert_position(
                db, user_id, market_id, side, new_quantity, new_avg
            )
            if fee > 0:
                await self._collect_fee(db, user_id, fee)
        else:
            if position is None or position.quantity <= 0:
                raise InsufficientPositionError("No position to sell")
            if position.quantity < quantity:
                raise InsufficientPositionError(f"have {position.quantity}, need {quantity}")
            realized = realized_on_sell(quantity, price, position.avg_price)
            position = await self._repo.reduce_position(db, position.id, quantity, realized)
            wallet = await self._wallets.credit(db, user_id, Currency.AGON, total_cost)

        order_id = await self._repo.insert_order(
            db, user_id, market_id, side, action.value, quantity, price, total_cost, fee
        )
        await self._repo.insert_trade(
            db, order_id, user_id, market_id, side, quantity, price, total_cost
        )
        return OrderFill(
            order_id=order_id,
            side=side,
            action=action.value,
            quantity=quantity,
            exec_price=price,
            cost_agon=total_cost,
            fee=fee,
            new_balance=wallet.agon,
            position=position,
        )

    async def _collect_fee(self, db: AsyncSession, user_id: str, fee: Decimal) -> None:
        admin_id = await first_admin_id(db)
        if admin_id is not None:
            await self._wallets.credit(db, admin_id, Currency.AGON, fee)
        await write_transaction(
            db,
            TransactionType.FEE,
            Currency.AGON,
            fee,
            from_user_id=user_id,
            to_user_id=admin_id,
            description=FEE_DESCRIPTION,
        )


def _marked_position(p: PredictionPosition) -> PositionItem:
    price = mark_price(p.last_quote, p.side)
    market_value = quantize(p.quantity * price)
    cost = quantize(p.cost_basis)
    item = PositionItem.from_position(p)
    item.current_price = price
    item.market_value = market_value
    item.cost = cost
    item.unrealized_pnl = market_value - cost
    return item
