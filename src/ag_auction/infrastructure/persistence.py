"""AuctionRepository: raw SQL over auctions and bids.

Mutating flows first take ``lock()`` (SELECT ... FOR UPDATE) on the auction
row, so concurrent bids, confirmations and releases on one auction run one
at a time. Transactions are owned by the application service.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_auction.domain.models import Auction, Bid, BidderView
from src.ag_common.enums import AuctionStatus
from src.ag_common.errors import InternalError

_AUCTION_COLUMNS = """
    a.id, a.seller_id, a.item_name, a.item_description, a.rarity, a.durability,
    a.starting_price, a.current_bid, a.highest_bidder_id, a.end_date, a.status,
    a.created_at, a.completed_at
"""

_AUCTION_VIEW_SELECT = f"""
    SELECT {_AUCTION_COLUMNS},
           s.username AS seller_username,
           hb.username AS highest_bidder_username,
           (SELECT COUNT(*) FROM bids b WHERE b.auction_id = a.id) AS bid_count
    FROM auctions a
    JOIN users s ON s.id = a.seller_id
    LEFT JOIN users hb ON hb.id = a.highest_bidder_id
"""

_INSERT_AUCTION_SQL = text("""
    INSERT INTO auctions
        (seller_id, item_name, item_description, rarity, durability,
         starting_price, end_date, status)
    VALUES
        (:seller_id, :item_name, :item_description, :rarity, :durability,
         :starting_price, :end_date, 'active')
    RETURNING id, seller_id, item_name, item_description, rarity, durability,
              starting_price, current_bid, highest_bidder_id, end_date, status,
              created_at, completed_at
""")

_GET_AUCTION_SQL = text(_AUCTION_VIEW_SELECT + " WHERE a.id = :auction_id")

_LOCK_AUCTION_SQL = text(f"""
    SELECT {_AUCTION_COLUMNS}
    FROM auctions a
    WHERE a.id = :auction_id
    FOR UPDATE
""")

_LIST_BY_STATUS_SQL = text(_AUCTION_VIEW_SELECT + """
    WHERE (CAST(:status AS TEXT) IS NULL OR a.status = CAST(:status AS TEXT))
    ORDER BY a.end_date ASC, a.id ASC
    LIMIT :limit
""")

_LIST_BY_SELLER_SQL = text(_AUCTION_VIEW_SELECT + """
    WHERE a.seller_id = :seller_id
    ORDER BY a.created_at DESC
""")

_LIST_PENDING_RELEASE_SQL = text(_AUCTION_VIEW_SELECT + """
    WHERE a.status IN ('ended', 'disputed') AND a.highest_bidder_id IS NOT NULL
    ORDER BY a.status DESC, a.end_date ASC
""")

_LIST_BIDS_SQL = text("""
    SELECT b.id, b.auction_id, b.bidder_id, b.amount, b.is_active, b.created_at,
           u.username AS bidder_username
    FROM bids b
    JOIN users u ON u.id = b.bidder_id
    WHERE b.auction_id = :auction_id
    ORDER BY b.created_at DESC, b.id DESC
    LIMIT :limit
""")

_LIST_ACTIVE_BIDS_BY_BIDDER_SQL = text(f"""
    SELECT b.id AS bid_id, b.bidder_id, b.amount, b.is_active, b.created_at AS bid_created_at,
           {_AUCTION_COLUMNS},
           s.username AS seller_username
    FROM bids b
    JOIN auctions a ON a.id = b.auction_id
    JOIN users s ON s.id = a.seller_id
    WHERE b.bidder_id = :bidder_id AND b.is_active = TRUE
    ORDER BY b.created_at DESC
""")

_CLOSE_EXPIRED_SQL = text("""
    UPDATE auctions
    SET status = 'ended'
    WHERE status = 'active' AND end_date <= NOW()
    RETURNING id, seller_id, item_name, item_description, rarity, durability,
              starting_price, current_bid, highest_bidder_id, end_date, status,
              created_at, completed_at
""")

_SET_HIGHEST_BID_SQL = text("""
    UPDATE auctions
    SET current_bid = :amount, highest_bidder_id = :bidder_id
    WHERE id = :auction_id
""")

_DEACTIVATE_BIDS_SQL = text("""
    UPDATE bids SET is_active = FALSE
    WHERE auction_id = :auction_id AND bidder_id = :bidder_id AND is_active = TRUE
""")

_INSERT_BID_SQL = text("""
    INSERT INTO bids (auction_id, bidder_id, amount, is_active)
    VALUES (:auction_id, :bidder_id, :amount, TRUE)
    RETURNING id, auction_id, bidder_id, amount, is_active, created_at
""")

_SET_STATUS_SQL = text("UPDATE auctions SET status = :status WHERE id = :auction_id")

_MARK_COMPLETED_SQL = text("""
    UPDATE auctions
    SET status = 'completed', completed_at = NOW()
    WHERE id = :auction_id
""")

_FORCE_END_SQL = text("""
    UPDATE auctions
    SET status = 'ended', end_date = NOW()
    WHERE id = :auction_id
""")


def _opt_str(value: object) -> str | None:
    return str(value) if value is not None else None


def _row_to_auction(row: object, with_view: bool = False) -> Auction:
    auction = Auction(
        id=row.id,  # type: ignore[attr-defined]
        seller_id=str(row.seller_id),  # type: ignore[attr-defined]
        item_name=row.item_name,  # type: ignore[attr-defined]
        item_description=row.item_description,  # type: ignore[attr-defined]
        rarity=row.rarity,  # type: ignore[attr-defined]
        durability=row.durability,  # type: ignore[attr-defined]
        starting_price=row.starting_price,  # type: ignore[attr-defined]
        current_bid=row.current_bid,  # type: ignore[attr-defined]
        highest_bidder_id=_opt_str(row.highest_bidder_id),  # type: ignore[attr-defined]
        end_date=row.end_date,  # type: ignore[attr-defined]
        status=AuctionStatus(row.status),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        completed_at=row.completed_at,  # type: ignore[attr-defined]
    )
    if with_view:
        auction.seller_username = row.seller_username  # type: ignore[attr-defined]
        auction.highest_bidder_username = row.highest_bidder_username  # type: ignore[attr-defined]
        auction.bid_count = int(row.bid_count or 0)  # type: ignore[attr-defined]
    return auction


def _row_to_bid(row: object) -> Bid:
    return Bid(
        id=row.id,  # type: ignore[attr-defined]
        auction_id=row.auction_id,  # type: ignore[attr-defined]
        bidder_id=str(row.bidder_id),  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        is_active=row.is_active,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        bidder_username=getattr(row, "bidder_username", None),
    )


class AuctionRepository:
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
    ) -> Auction:
        row = (
            await db.execute(
                _INSERT_AUCTION_SQL,
                {
                    "seller_id": seller_id,
                    "item_name": item_name,
                    "item_description": item_description,
                    "rarity": rarity,
                    "durability": durability,
                    "starting_price": starting_price,
                    "end_date": end_date,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Auction insert returned no rows")
        return _row_to_auction(row)

    async def get(self, db: AsyncSession, auction_id: int) -> Auction | None:
        row = (await db.execute(_GET_AUCTION_SQL, {"auction_id": auction_id})).fetchone()
        return _row_to_auction(row, with_view=True) if row else None

    async def lock(self, db: AsyncSession, auction_id: int) -> Auction | None:
        row = (await db.execute(_LOCK_AUCTION_SQL, {"auction_id": auction_id})).fetchone()
        return _row_to_auction(row) if row else None

    async def list_by_status(
        self, db: AsyncSession, status: AuctionStatus | None, limit: int
    ) -> list[Auction]:
        rows = (
            await db.execute(
                _LIST_BY_STATUS_SQL,
                {"status": status.value if status else None, "limit": limit},
            )
        ).fetchall()
        return [_row_to_auction(r, with_view=True) for r in rows]

    async def list_by_seller(self, db: AsyncSession, seller_id: str) -> list[Auction]:
        rows = (await db.execute(_LIST_BY_SELLER_SQL, {"seller_id": seller_id})).fetchall()
        return [_row_to_auction(r, with_view=True) for r in rows]

    async def list_pending_release(self, db: AsyncSession) -> list[Auction]:
        rows = (await db.execute(_LIST_PENDING_RELEASE_SQL)).fetchall()
        return [_row_to_auction(r, with_view=True) for r in rows]

    async def list_bids(self, db: AsyncSession, auction_id: int, limit: int) -> list[Bid]:
        rows = (
            await db.execute(_LIST_BIDS_SQL, {"auction_id": auction_id, "limit": limit})
        ).fetchall()
        return [_row_to_bid(r) for r in rows]

    async def list_active_bids_by_bidder(
        self, db: AsyncSession, bidder_id: str
    ) -> list[BidderView]:
        rows = (
            await db.execute(_LIST_ACTIVE_BIDS_BY_BIDDER_SQL, {"bidder_id": bidder_id})
        ).fetchall()
        views = []
        for r in rows:
            auction = _row_to_auction(r)
            auction.seller_username = r.seller_username
            bid = Bid(
                id=r.bid_id,
                auction_id=r.id,
                bidder_id=str(r.bidder_id),
                amount=r.amount,
                is_active=r.is_active,
                created_at=r.bid_created_at,
            )
            views.append(BidderView(bid=bid, auction=auction))
        return views

    async def close_expired(self, db: AsyncSession) -> list[Auction]:
        rows = (await db.execute(_CLOSE_EXPIRED_SQL)).fetchall()
        return [_row_to_auction(r) for r in rows]

    async def set_highest_bid(
        self, db: AsyncSession, auction_id: int, amount: Decimal, bidder_id: str
    ) -> None:
        await db.execute(
            _SET_HIGHEST_BID_SQL,
            {"auction_id": auction_id, "amount": amount, "bidder_id": bidder_id},
        )

    async def deactivate_bids(self, db: AsyncSession, auction_id: int, bidder_id: str) -> None:
        await db.execute(_DEACTIVATE_BIDS_SQL, {"auction_id": auction_id, "bidder_id": bidder_id})

    async def insert_bid(
        self, db: AsyncSession, auction_id: int, bidder_id: str, amount: Decimal
    ) -> Bid:
        row = (
            await db.execute(
                _INSERT_BID_SQL,
                {"auction_id": auction_id, "bidder_id": bidder_id, "amount": amount},
            )
        ).fetchone()
        if row is None:
            raise InternalError("Bid insert returned no rows")
        return _row_to_bid(row)

    async def set_status(self, db: AsyncSession, auction_id: int, status: AuctionStatus) -> None:
        await db.execute(_SET_STATUS_SQL, {"auction_id": auction_id, "status": status.value})

    async def mark_completed(self, db: AsyncSession, auction_id: int) -> None:
        await db.execute(_MARK_COMPLETED_SQL, {"auction_id": auction_id})

    async def force_end(self, db: AsyncSession, auction_id: int) -> None:
        await db.execute(_FORCE_END_SQL, {"auction_id": auction_id})
