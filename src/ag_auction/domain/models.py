"""Domain models for ag_auction: pure dataclasses."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from src.ag_common.enums import AuctionStatus


@dataclass
class Auction:
    id: int
    seller_id: str
    item_name: str
    rarity: str
    starting_price: Decimal
    end_date: datetime
    status: AuctionStatus
    item_description: str | None = None
    durability: int | None = None
    current_bid: Decimal | None = None
    highest_bidder_id: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    # Joined display fields, absent on locked reads
    seller_username: str | None = None
    highest_bidder_username: str | None = None
    bid_count: int = 0

    @property
    def has_winner(self) -> bool:
        return self.highest_bidder_id is not None and self.current_bid is not None


@dataclass
class Bid:
    id: int
    auction_id: int
    bidder_id: str
    amount: Decimal
    is_active: bool
    created_at: datetime | None = None
    bidder_username: str | None = None


@dataclass
class BidderView:
    """An active bid of one user plus the auction it sits on."""

    bid: Bid
    auction: Auction

    @property
    def is_winning(self) -> bool:
        return self.auction.highest_bidder_id == self.bid.bidder_id


@dataclass
class ReleaseResult:
    auction_id: int
    seller_id: str
    bidder_id: str
    gross: Decimal
    net_to_seller: Decimal
    commission: Decimal
    commission_recipient_id: str | None
