"""Pydantic schemas for the auction API."""

from decimal import Decimal

from pydantic import BaseModel, Field

from src.ag_auction.domain.models import Auction, Bid, BidderView, ReleaseResult
from src.ag_auction.domain.rules import MAX_AUCTION_DAYS, MIN_AUCTION_DAYS
from src.ag_common.enums import Rarity
from src.ag_common.money import Money

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateAuctionRequest(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=255)
    item_description: str | None = Field(None, max_length=2000)
    rarity: Rarity
    durability: int | None = Field(None, ge=0)
    starting_price: Decimal = Field(..., gt=0, allow_inf_nan=False)
    days_until_end: int = Field(..., ge=MIN_AUCTION_DAYS, le=MAX_AUCTION_DAYS)


class PlaceBidRequest(BaseModel):
    amount: Decimal = Field(..., allow_inf_nan=False)


class ReportIssueRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AuctionItem(BaseModel):
    id: int
    seller_id: str
    seller_username: str | None
    item_name: str
    item_description: str | None
    rarity: str
    durability: int | None
    starting_price: Money
    current_bid: Money | None
    highest_bidder_id: str | None
    highest_bidder_username: str | None
    bid_count: int
    end_date: str
    status: str
    created_at: str | None
    completed_at: str | None

    @classmethod
    def from_auction(cls, a: Auction) -> "AuctionItem":
        return cls(
            id=a.id,
            seller_id=a.seller_id,
            seller_username=a.seller_username,
            item_name=a.item_name,
            item_description=a.item_description,
            rarity=a.rarity,
            durability=a.durability,
            starting_price=a.starting_price,
            current_bid=a.current_bid,
            highest_bidder_id=a.highest_bidder_id,
            highest_bidder_username=a.highest_bidder_username,
            bid_count=a.bid_count,
            end_date=a.end_date.isoformat(),
            status=a.status.value,
            created_at=a.created_at.isoformat() if a.created_at else None,
            completed_at=a.completed_at.isoformat() if a.completed_at else None,
        )


class BidItem(BaseModel):
    id: int
    bidder_id: str
    bidder_username: str | None
    amount: Money
    is_active: bool
    created_at: str | None

    @classmethod
    def from_bid(cls, b: Bid) -> "BidItem":
        return cls(
            id=b.id,
            bidder_id=b.bidder_id,
            bidder_username=b.bidder_username,
            amount=b.amount,
            is_active=b.is_active,
            created_at=b.created_at.isoformat() if b.created_at else None,
        )


class AuctionDetailResponse(BaseModel):
    auction: AuctionItem
    bids: list[BidItem]
    minimum_bid: Money | None


class PlaceBidResponse(BaseModel):
    auction_id: int
    bid_id: int
    amount: Money
    refunded_bidder_id: str | None
    refunded_amount: Money | None


class MyBidItem(BaseModel):
    bid_id: int
    amount: Money
    is_winning: bool
    auction: AuctionItem

    @classmethod
    def from_view(cls, v: BidderView) -> "MyBidItem":
        return cls(
            bid_id=v.bid.id,
            amount=v.bid.amount,
            is_winning=v.is_winning,
            auction=AuctionItem.from_auction(v.auction),
        )


class ReleaseResponse(BaseModel):
    auction_id: int
    gross: Money
    net_to_seller: Money
    commission: Money
    commission_recipient_id: str | None

    @classmethod
    def from_result(cls, r: ReleaseResult) -> "ReleaseResponse":
        return cls(
            auction_id=r.auction_id,
            gross=r.gross,
            net_to_seller=r.net_to_seller,
            commission=r.commission,
            commission_recipient_id=r.commission_recipient_id,
        )
