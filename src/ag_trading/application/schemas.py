"""Pydantic schemas for leveraged trading. Margin is in Agon."""

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from src.ag_common.datetime_utils import isoformat_or_none
from src.ag_common.money import Money
from src.ag_trading.domain.models import (
    AssetInfo,
    CryptoPosition,
    PricePoint,
    PriceQuote,
    TradingStats,
)
from src.ag_trading.domain.trading_math import MAX_LEVERAGE, MIN_LEVERAGE, pnl

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class OpenPositionRequest(BaseModel):
    coin_id: str = Field(..., min_length=1, max_length=32, alias="coinId")
    position_type: Literal["long", "short"] = Field(..., alias="positionType")
    leverage: int = Field(..., ge=MIN_LEVERAGE, le=MAX_LEVERAGE)
    margin_agon: Decimal = Field(..., gt=0, allow_inf_nan=False, alias="marginAgon")

    model_config = {"populate_by_name": True}


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PositionItem(BaseModel):
    id: int
    coin_id: str
    position_type: str
    leverage: int
    quantity: Money
    entry_price: Money
    liquidation_price: Money
    margin_agon: Money
    status: str
    opened_at: str | None
    closed_at: str | None
    closed_price: Money | None
    realized_pnl: Money | None
    total_maintenance_fees: Money
    # Marked to market for open positions when a price is available
    current_price: Money | None = None
    unrealized_pnl: Money | None = None
    total_value: Money | None = None
    pnl_percentage: Money | None = None

    @classmethod
    def from_position(
        cls, p: CryptoPosition, current_price: Decimal | None = None
    ) -> "PositionItem":
        item = cls(
            id=p.id,
            coin_id=p.coin_id,
            position_type=p.position_type.value,
            leverage=p.leverage,
            quantity=p.quantity,
            entry_price=p.entry_price,
            liquidation_price=p.liquidation_price,
            margin_agon=p.margin_agon,
            status=p.status.value,
            opened_at=isoformat_or_none(p.opened_at),
            closed_at=isoformat_or_none(p.closed_at),
            closed_price=p.closed_price,
            realized_pnl=p.realized_pnl,
            total_maintenance_fees=p.total_maintenance_fees,
        )
        if p.is_open and current_price is not None:
            unrealized = pnl(p.position_type, p.entry_price, current_price, p.margin_agon, p.leverage)
            item.current_price = current_price
            item.unrealized_pnl = unrealized
            item.total_value = p.margin_agon + unrealized
            if p.margin_agon > 0:
                item.pnl_percentage = unrealized / p.margin_agon * 100
        return item


class OpenPositionResponse(BaseModel):
    position: PositionItem
    commission: Money
    commission_rate: Money
    new_balance: Money


class ClosePositionResponse(BaseModel):
    position: PositionItem
    close_price: Money
    realized_pnl: Money
    final_return: Money
    new_balance: Money


class TradingStatsResponse(BaseModel):
    open_positions: int
    closed_positions: int
    total_margin: Money
    total_profit: Money
    total_loss: Money
    net_pnl: Money
    winning_trades: int
    losing_trades: int
    win_rate: Money

    @classmethod
    def from_stats(cls, s: TradingStats) -> "TradingStatsResponse":
        return cls(
            open_positions=s.open_positions,
            closed_positions=s.closed_positions,
            total_margin=s.total_margin,
            total_profit=s.total_profit,
            total_loss=s.total_loss,
            net_pnl=s.net_pnl,
            winning_trades=s.winning_trades,
            losing_trades=s.losing_trades,
            win_rate=round(s.win_rate, 2),
        )


class PriceItem(BaseModel):
    id: str
    symbol: str
    name: str
    asset_type: str
    price: Money
    change_24h: Money
    last_updated: str

    @classmethod
    def from_quote(cls, q: PriceQuote) -> "PriceItem":
        return cls(
            id=q.asset_id,
            symbol=q.symbol,
            name=q.name,
            asset_type=q.asset_type,
            price=q.price,
            change_24h=q.change_24h,
            last_updated=q.last_updated.isoformat(),
        )


class PricePointItem(BaseModel):
    timestamp: str
    price: Money

    @classmethod
    def from_point(cls, p: PricePoint) -> "PricePointItem":
        return cls(timestamp=p.timestamp.isoformat(), price=p.price)


class PriceHistoryResponse(BaseModel):
    coin_id: str
    days: int
    prices: list[PricePointItem]


class AssetInfoResponse(BaseModel):
    id: str
    symbol: str
    name: str
    asset_type: str
    currency: str
    exchange: str
    current_price: Money
    previous_close: Money | None
    price_change_24h: Money
    price_change_percentage_24h: Money
    high_24h: Money | None
    low_24h: Money | None
    volume: Money | None
    fifty_two_week_high: Money | None
    fifty_two_week_low: Money | None

    @classmethod
    def from_info(cls, i: AssetInfo) -> "AssetInfoResponse":
        return cls(
            id=i.asset_id,
            symbol=i.symbol,
            name=i.name,
            asset_type=i.asset_type,
            currency=i.currency,
            exchange=i.exchange,
            current_price=i.current_price,
            previous_close=i.previous_close,
            price_change_24h=i.price_change_24h,
            price_change_percentage_24h=i.price_change_percentage_24h,
            high_24h=i.high_24h,
            low_24h=i.low_24h,
            volume=i.volume,
            fifty_two_week_high=i.fifty_two_week_high,
            fifty_two_week_low=i.fifty_two_week_low,
        )
