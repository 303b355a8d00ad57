"""Domain models for ag_prediction: pure dataclasses."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from src.ag_common.enums import MarketStatus, PredictionSide


@dataclass
class Quote:
    yes_bid: Decimal
    yes_ask: Decimal
    no_bid: Decimal
    no_ask: Decimal
    src_timestamp: datetime
    created_at: datetime | None = None

    def bid(self, side: PredictionSide) -> Decimal:
        return self.yes_bid if side is PredictionSide.YES else self.no_bid

    def ask(self, side: PredictionSide) -> Decimal:
        return self.yes_ask if side is PredictionSide.YES else self.no_ask


@dataclass
class PredictionMarket:
    id: int
    pm_market_id: str
    question: str
    status: MarketStatus
    yes_token_id: str | None = None
    no_token_id: str | None = None
    end_date: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    resolution: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_quote: Quote | None = None

    @property
    def has_tokens(self) -> bool:
        return bool(self.yes_token_id) and bool(self.no_token_id)


@dataclass
class PredictionPosition:
    id: int
    user_id: str
    market_id: int
    side: PredictionSide
    quantity: Decimal
    avg_price: Decimal
    realized_pnl: Decimal
    updated_at: datetime | None = None
    # Portfolio view extras
    question: str | None = None
    market_status: str | None = None
    last_quote: Quote | None = None

    @property
    def cost_basis(self) -> Decimal:
        return self.quantity * self.avg_price


@dataclass
class TradeRecord:
    id: int
    order_id: int
    market_id: int
    side: str
    action: str
    quantity: Decimal
    exec_price: Decimal
    cost_agon: Decimal
    created_at: datetime | None = None
    question: str | None = None


@dataclass
class OrderFill:
    order_id: int
    side: PredictionSide
    action: str
    quantity: Decimal
    exec_price: Decimal
    cost_agon: Decimal
    fee: Decimal
    new_balance: Decimal
    position: PredictionPosition


@dataclass
class SettlementLine:
    user_id: str
    side: PredictionSide
    quantity: Decimal
    payout: Decimal
    profit: Decimal


@dataclass
class SettlementSummary:
    market_id: int
    outcome: str
    positions_settled: int
    total_payout: Decimal
    lines: list[SettlementLine] = field(default_factory=list)
