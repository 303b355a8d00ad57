"""Pydantic schemas for the prediction market API (user and admin)."""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.ag_common.datetime_utils import isoformat_or_none
from src.ag_common.enums import OrderAction, PredictionSide, ResolutionOutcome
from src.ag_common.money import Money
from src.ag_prediction.domain.models import (
    PredictionMarket,
    PredictionPosition,
    Quote,
    SettlementSummary,
    TradeRecord,
)
from src.ag_prediction.domain.pricing import MAX_ORDER_SIZE

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PlaceOrderRequest(BaseModel):
    side: PredictionSide
    action: OrderAction
    quantity: Decimal = Field(..., gt=0, le=MAX_ORDER_SIZE, allow_inf_nan=False)


class WhitelistMarketRequest(BaseModel):
    pm_market_id: str = Field(..., min_length=1, max_length=128)


class MarketStatusRequest(BaseModel):
    status: Literal["active", "paused"]


class TriggerSettlementRequest(BaseModel):
    outcome: ResolutionOutcome


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class QuoteItem(BaseModel):
    yes_bid: Money
    yes_ask: Money
    no_bid: Money
    no_ask: Money
    src_timestamp: str | None
    created_at: str | None

    @classmethod
    def from_quote(cls, q: Quote | None) -> "QuoteItem | None":
        if q is None:
            return None
        return cls(
            yes_bid=q.yes_bid,
            yes_ask=q.yes_ask,
            no_bid=q.no_bid,
            no_ask=q.no_ask,
            src_timestamp=isoformat_or_none(q.src_timestamp),
            created_at=isoformat_or_none(q.created_at),
        )


class MarketItem(BaseModel):
    id: int
    pm_market_id: str
    question: str
    status: str
    yes_token_id: str | None
    no_token_id: str | None
    end_date: str | None
    metadata: dict[str, Any]
    resolution: str | None
    created_at: str | None
    last_quote: QuoteItem | None

    @classmethod
    def from_market(cls, m: PredictionMarket) -> "MarketItem":
        return cls(
            id=m.id,
            pm_market_id=m.pm_market_id,
            question=m.question,
            status=m.status.value,
            yes_token_id=m.yes_token_id,
            no_token_id=m.no_token_id,
            end_date=isoformat_or_none(m.end_date),
            metadata=m.metadata,
            resolution=m.resolution,
            created_at=isoformat_or_none(m.created_at),
            last_quote=QuoteItem.from_quote(m.last_quote),
        )


class MarketDetailResponse(BaseModel):
    market: MarketItem
    quotes: list[QuoteItem]
    last_quote: QuoteItem | None


class PositionItem(BaseModel):
    id: int
    market_id: int
    question: str | None
    market_status: str | None
    side: str
    quantity: Money
    avg_price: Money
    realized_pnl: Money
    current_price: Money | None = None
    market_value: Money | None = None
    cost: Money | None = None
    unrealized_pnl: Money | None = None

    @classmethod
    def from_position(cls, p: PredictionPosition) -> "PositionItem":
        return cls(
            id=p.id,
            market_id=p.market_id,
            question=p.question,
            market_status=p.market_status,
            side=p.side.value,
            quantity=p.quantity,
            avg_price=p.avg_price,
            realized_pnl=p.realized_pnl,
        )


class TradeItem(BaseModel):
    id: int
    order_id: int
    market_id: int
    question: str | None
    side: str
    action: str
    quantity: Money
    exec_price: Money
    cost_agon: Money
    created_at: str | None

    @classmethod
    def from_record(cls, t: TradeRecord) -> "TradeItem":
        return cls(
            id=t.id,
            order_id=t.order_id,
            market_id=t.market_id,
            question=t.question,
            side=t.side,
            action=t.action,
            quantity=t.quantity,
            exec_price=t.exec_price,
            cost_agon=t.cost_agon,
            created_at=isoformat_or_none(t.created_at),
        )


class PortfolioTotals(BaseModel):
    cash: Money
    market_value: Money
    equity: Money
    unrealized_pnl: Money
    realized_pnl: Money
    total_pnl: Money


class PortfolioResponse(BaseModel):
    positions: list[PositionItem]
    trades: list[TradeItem]
    totals: PortfolioTotals


class OrderResponse(BaseModel):
    filled: bool = True
    order_id: int
    side: str
    action: str
    quantity: Money
    avg_price: Money
    cost_agon: Money
    fee: Money
    new_balance: Money
    position: PositionItem


class SettlementLineItem(BaseModel):
    user_id: str
    side: str
    quantity: Money
    payout: Money
    profit: Money


class SettlementResponse(BaseModel):
    market_id: int
    outcome: str
    positions_settled: int
    total_payout: Money
    lines: list[SettlementLineItem]

    @classmethod
    def from_summary(cls, s: SettlementSummary) -> "SettlementResponse":
        return cls(
            market_id=s.market_id,
            outcome=s.outcome,
            positions_settled=s.positions_settled,
            total_payout=s.total_payout,
            lines=[
                SettlementLineItem(
                    user_id=line.user_id,
                    side=line.side.value,
                    quantity=line.quantity,
                    payout=line.payout,
                    profit=line.profit,
                )
                for line in s.lines
            ],
        )


# ---------------------------------------------------------------------------
# Admin response schemas
# ---------------------------------------------------------------------------


class AvailableMarketItem(BaseModel):
    pm_market_id: str
    question: str | None
    end_date: str | None
    volume: Money
    liquidity: Money | None
    yes_token_id: str | None
    no_token_id: str | None
    metadata: dict[str, Any]
    is_whitelisted: bool


class WhitelistedMarketItem(BaseModel):
    id: int
    pm_market_id: str
    question: str
    status: str


class AvailableMarketsStats(BaseModel):
    total_available: int
    total_whitelisted: int
    available_to_add: int


class AvailableMarketsResponse(BaseModel):
    markets: list[AvailableMarketItem]
    whitelisted_markets: list[WhitelistedMarketItem]
    stats: AvailableMarketsStats
    error: str | None = None


class RepairTokensResponse(BaseModel):
    market_id: int
    yes_token_id: str
    no_token_id: str
    repaired: bool
    initial_quote: QuoteItem | None = None


class TopMarketItem(BaseModel):
    id: int
    question: str
    status: str
    volume: Money
    unique_traders: int


class MarketExposureItem(BaseModel):
    id: int
    question: str
    yes_exposure: Money
    no_exposure: Money
    yes_quantity: Money
    no_quantity: Money
    max_exposure: Money


class PlatformExposure(BaseModel):
    max_exposure: Money
    yes_exposure: Money
    no_exposure: Money


class PlatformStatsResponse(BaseModel):
    total_markets: int
    active_positions: int
    total_volume: Money
    active_users: int
    total_fees: Money
    platform_exposure: PlatformExposure
    top_markets: list[TopMarketItem]
    exposure_by_market: list[MarketExposureItem]
