"""Domain models for ag_trading."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.ag_common.enums import PositionStatus, PositionType


@dataclass(frozen=True)
class Asset:
    id: str
    symbol: str
    name: str
    asset_type: str


@dataclass
class PriceQuote:
    asset_id: str
    symbol: str
    name: str
    asset_type: str
    price: Decimal
    change_24h: Decimal
    last_updated: datetime


@dataclass(frozen=True)
class PricePoint:
    timestamp: datetime
    price: Decimal


@dataclass
class AssetInfo:
    asset_id: str
    symbol: str
    name: str
    asset_type: str
    currency: str
    exchange: str
    current_price: Decimal
    previous_close: Decimal | None
    price_change_24h: Decimal
    price_change_percentage_24h: Decimal
    high_24h: Decimal | None = None
    low_24h: Decimal | None = None
    volume: Decimal | None = None
    fifty_two_week_high: Decimal | None = None
    fifty_two_week_low: Decimal | None = None


@dataclass
class CryptoPosition:
    id: int
    user_id: str
    coin_id: str
    position_type: PositionType
    leverage: int
    quantity: Decimal
    entry_price: Decimal
    liquidation_price: Decimal
    margin_agon: Decimal
    status: PositionStatus
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    closed_price: Decimal | None = None
    realized_pnl: Decimal | None = None
    last_maintenance_fee_at: datetime | None = None
    total_maintenance_fees: Decimal = Decimal("0")

    @property
    def is_open(self) -> bool:
        return self.status is PositionStatus.OPEN


@dataclass
class TradingStats:
    open_positions: int
    closed_positions: int
    total_margin: Decimal
    total_profit: Decimal
    total_loss: Decimal
    net_pnl: Decimal
    winning_trades: int
    losing_trades: int

    @property
    def win_rate(self) -> Decimal:
        """Percentage of closed positions that made a profit."""
        if self.closed_positions == 0:
            return Decimal("0")
        return Decimal(self.winning_trades) * 100 / self.closed_positions


@dataclass
class MaintenanceReport:
    charged: int = 0
    failed: int = 0
    total_fees: Decimal = Decimal("0")
