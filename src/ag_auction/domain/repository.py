"""Repository Protocol for auctions and bids."""

from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_auction.domain.models import Auction, Bid, BidderView
from src.ag_common.enums import AuctionStatus


class AuctionRepositoryProtocol(Protocol):
    async def create(
        self,
        db: AsyncSession,
        seller_id: str,
        item_name: str,
        item_description: str | None,
        rarity: str,
        durability: int | None,
        starting_price: Decimal,
        end_date: datetime,
    ) -> Auction: ...

    async def get(self, db: AsyncSession, auction_id: int) -> Auction | None: ...

    async def lock(self, db: AsyncSession, auction_id: int) -> Auction | None: ...

    async def list_by_status(
        self, db: AsyncSession, status: AuctionStatus | None, limit: int
    ) -> list[Auction]: ...

    async def list_by_seller(self, db: AsyncSession, seller_id: str) -> list[Auction]: ...

    async def list_pending_release(self, db: AsyncSession) -> list[Auction]: ...

    async def list_bids(self, db: AsyncSession, auction_id: int, limit: int) -> list[Bid]: ...

    async def list_active_bids_by_bidder(
        self, db: AsyncSession, bidder_id: str
    ) -> list[BidderView]: ...

    async def close_expired(self, db: AsyncSession) -> list[Auction]: ...

    async def set_highest_bid(
        self, db: AsyncSession, auction_id: int, amount: Decimal, bidder_id: str
    ) -> None: ...

    async def deactivate_bids(self, db: AsyncSession, auction_id: int, bidder_id: str) -> None: ...

    async def insert_bid(
        self, db: AsyncSession, auction_id: int, bidder_id: str, amount: Decimal
    ) -> Bid: ...

    async def set_status(self, db: AsyncSession, auction_id: int, status: AuctionStatus) -> None: ...

    async def mark_completed(self, db: AsyncSession, auction_id: int) -> None: ...

    async def force_end(self, db: AsyncSession, auction_id: int) -> None: ...
