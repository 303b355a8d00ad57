"""AuctionApplicationService: escrow-backed auction house.

Lifecycle per auction:

    active ──(end_date passes / admin force-end)──▶ ended ──▶ completed
       │                                              │           ▲
       └──(seller cancels, no bids)──▶ cancelled      └─▶ disputed┘ (admin release)

Funds: a bid moves Agon from the bidder's ``agon`` to ``agon_escrow``; being
outbid moves it back. Release debits the winner's escrow by the gross bid
and pays the seller 95% and the platform account 5%.

Every mutating method is one DB transaction with the auction row locked
(SELECT ... FOR UPDATE). The status check under that lock is what makes
confirm/release safe to call twice.
"""

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from src.ag_auction.application.schemas import (
    AuctionDetailResponse,
    AuctionItem,
    BidItem,
    CreateAuctionRequest,
    MyBidItem,
    PlaceBidResponse,
    ReleaseResponse,
)
from src.ag_auction.domain.models import Auction, ReleaseResult
from src.ag_auction.domain.repository import AuctionRepositoryProtocol
from src.ag_auction.domain.rules import (
    can_release,
    commission_split,
    is_expired,
    minimum_bid,
    validate_duration,
)
from src.ag_auction.infrastructure.persistence import AuctionRepository
from src.ag_common.datetime_utils import days_from_now, utc_now
from src.ag_common.enums import AuctionStatus, Currency, TransactionType
from src.ag_common.errors import (
    AuctionNotActiveError,
    AuctionNotFoundError,
    BidTooLowError,
    InvalidAmountError,
    InvalidAuctionInputError,
    InvalidAuctionStateError,
    NotAuctionSellerError,
    NotAuctionWinnerError,
    SelfBidError,
)
from src.ag_common.money import is_positive_finite, quantize
from src.ag_wallet.domain.repository import WalletRepositoryProtocol
from src.ag_wallet.infrastructure.ledger import first_admin_id, log_activity, write_transaction
from src.ag_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
DETAIL_BID_LIMIT = 20


class AuctionApplicationService:
    def __init__(
        self,
        repo: AuctionRepositoryProtocol | None = None,
        wallets: WalletRepositoryProtocol | None = None,
    ) -> None:
        self._repo: AuctionRepositoryProtocol = repo or AuctionRepository()
        self._wallets: WalletRepositoryProtocol = wallets or WalletRepository()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_auction(
        self, db: AsyncSession, seller_id: str, req: CreateAuctionRequest
    ) -> AuctionItem:
        if not is_positive_finite(req.starting_price):
            raise InvalidAuctionInputError("Starting price must be greater than 0")
        try:
            validate_duration(req.days_until_end)
        except ValueError as exc:
            raise InvalidAuctionInputError(str(exc)) from None

        try:
            auction = await self._repo.create(
                db,
                seller_id=seller_id,
                item_name=req.item_name.strip(),
                item_description=req.item_description,
                rarity=req.rarity.value,
                durability=req.durability,
                starting_price=quantize(req.starting_price),
                end_date=days_from_now(req.days_until_end),
            )
            await log_activity(
                db,
                seller_id,
                "auction_created",
                {"auction_id": auction.id, "item_name": auction.item_name, "rarity": auction.rarity},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return AuctionItem.from_auction(auction)

    async def place_bid(
        self, db: AsyncSession, bidder_id: str, auction_id: int, amount: Decimal
    ) -> PlaceBidResponse:
        """Escrow the bid and refund the previous high bidder, atomically.

        Any rejection leaves balances and the auction untouched: the refund
        and the new hold share one transaction.
        """
        if not is_positive_finite(amount):
            raise InvalidAmountError("Bid amount must be greater than 0")
        amount = quantize(amount)

        try:
            auction = await self._repo.lock(db, auction_id)
            if auction is None:
                raise AuctionNotFoundError(auction_id)
            if auction.status != AuctionStatus.ACTIVE:
                raise AuctionNotActiveError()
            if is_expired(auction.end_date, utc_now()):
                raise AuctionNotActiveError("Auction has ended")
            if auction.seller_id == bidder_id:
                raise SelfBidError()

            required = minimum_bid(auction.current_bid, auction.starting_price)
            if amount < required:
                raise BidTooLowError(required)

            previous_bidder = auction.highest_bidder_id
            previous_amount = auction.current_bid
            if previous_bidder is not None and previous_amount is not None:
                await self._wallets.release_escrow(db, previous_bidder, previous_amount)
                await self._repo.deactivate_bids(db, auction_id, previous_bidder)
                await log_activity(
                    db,
                    previous_bidder,
                    "bid_refunded",
                    {
                        "auction_id": auction_id,
                        "item_name": auction.item_name,
                        "amount": previous_amount,
                        "outbid_by_self": previous_bidder == bidder_id,
                    },
                )

            await self._wallets.hold_escrow(db, bidder_id, amount)
            await self._repo.set_highest_bid(db, auction_id, amount, bidder_id)
            bid = await self._repo.insert_bid(db, auction_id, bidder_id, amount)
            await log_activity(
                db,
                bidder_id,
                "bid_placed",
                {"auction_id": auction_id, "item_name": auction.item_name, "amount": amount},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        return PlaceBidResponse(
            auction_id=auction_id,
            bid_id=bid.id,
            amount=amount,
            refunded_bidder_id=previous_bidder,
            refunded_amount=previous_amount,
        )

    async def close_expired_auctions(self, db: AsyncSession) -> int:
        """Flip every expired active auction to ended. Returns how many."""
        try:
            closed = await self._sweep_expired(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return len(closed)

    async def confirm_delivery(
        self, db: AsyncSession, user_id: str, auction_id: int
    ) -> ReleaseResponse:
        """Winning bidder confirms receipt: release escrow to the seller."""
        try:
            await self._sweep_expired(db)
            auction = await self._lock_existing(db, auction_id)
            if auction.highest_bidder_id != user_id:
                raise NotAuctionWinnerError()
            if not can_release(auction.status, by_admin=False):
                raise InvalidAuctionStateError(
                    f"Cannot confirm delivery for an auction in status {auction.status.value}"
                )
            result = await self._release_escrow(db, auction, "delivery_confirmed")
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ReleaseResponse.from_result(result)

    async def auto_release_escrow(
        self, db: AsyncSession, admin_id: str, auction_id: int
    ) -> ReleaseResponse:
        """Admin releases escrow for an ended or disputed auction."""
        try:
            await self._sweep_expired(db)
            auction = await self._lock_existing(db, auction_id)
            if not can_release(auction.status, by_admin=True):
                raise InvalidAuctionStateError(
                    f"Cannot release escrow for an auction in status {auction.status.value}"
                )
            result = await self._release_escrow(db, auction, "escrow_auto_released")
            await log_activity(
                db,
                admin_id,
                "admin_auto_release_escrow",
                {"auction_id": auction_id, "gross": result.gross},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return ReleaseResponse.from_result(result)

    async def report_delivery_issue(
        self, db: AsyncSession, user_id: str, auction_id: int, reason: str | None
    ) -> AuctionItem:
        """Winning bidder flags a problem; only an admin can then release."""
        try:
            await self._sweep_expired(db)
            auction = await self._lock_existing(db, auction_id)
            if auction.highest_bidder_id != user_id:
                raise NotAuctionWinnerError()
            if auction.status != AuctionStatus.ENDED:
                raise InvalidAuctionStateError(
                    f"Cannot report an issue for an auction in status {auction.status.value}"
                )
            await self._repo.set_status(db, auction_id, AuctionStatus.DISPUTED)
            meta = {"auction_id": auction_id, "item_name": auction.item_name, "reason": reason}
            await log_activity(db, user_id, "delivery_issue_reported", meta)
            await log_activity(db, auction.seller_id, "delivery_dispute_opened", meta)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        auction.status = AuctionStatus.DISPUTED
        logger.info("Auction %s disputed by winner %s", auction_id, user_id)
        return AuctionItem.from_auction(auction)

    async def cancel_auction(self, db: AsyncSession, user_id: str, auction_id: int) -> AuctionItem:
        try:
            auction = await self._lock_existing(db, auction_id)
            if auction.seller_id != user_id:
                raise NotAuctionSellerError()
            if auction.status != AuctionStatus.ACTIVE:
                raise InvalidAuctionStateError("Only active auctions can be cancelled")
            if auction.highest_bidder_id is not None:
                raise InvalidAuctionStateError("Cannot cancel an auction that has bids")
            await self._repo.set_status(db, auction_id, AuctionStatus.CANCELLED)
            await log_activity(
                db,
                user_id,
                "auction_cancelled",
                {"auction_id": auction_id, "item_name": auction.item_name},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        auction.status = AuctionStatus.CANCELLED
        return AuctionItem.from_auction(auction)

    async def force_end_auction(
        self, db: AsyncSession, admin_id: str, auction_id: int
    ) -> AuctionItem:
        try:
            auction = await self._lock_existing(db, auction_id)
            if auction.status != AuctionStatus.ACTIVE:
                raise InvalidAuctionStateError("Only active auctions can be force-ended")
            await self._repo.force_end(db, auction_id)
            await log_activity(
                db,
                admin_id,
                "admin_force_end_auction",
                {"auction_id": auction_id, "item_name": auction.item_name},
            )
            if auction.highest_bidder_id is not None:
                await log_activity(
                    db,
                    auction.highest_bidder_id,
                    "auction_won",
                    {"auction_id": auction_id, "item_name": auction.item_name, "amount": auction.current_bid},
                )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        auction.status = AuctionStatus.ENDED
        auction.end_date = utc_now()
        return AuctionItem.from_auction(auction)

    # ------------------------------------------------------------------
    # Queries (each runs the expiry sweep first)
    # ------------------------------------------------------------------

    async def list_auctions(
        self,
        db: AsyncSession,
        status: AuctionStatus | None = AuctionStatus.ACTIVE,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[AuctionItem]:
        await self.close_expired_auctions(db)
        auctions = await self._repo.list_by_status(db, status, limit)
        return [AuctionItem.from_auction(a) for a in auctions]

    async def get_auction(self, db: AsyncSession, auction_id: int) -> AuctionDetailResponse:
        await self.close_expired_auctions(db)
        auction = await self._repo.get(db, auction_id)
        if auction is None:
            raise AuctionNotFoundError(auction_id)
        bids = await self._repo.list_bids(db, auction_id, DETAIL_BID_LIMIT)
        next_min = (
            minimum_bid(auction.current_bid, auction.starting_price)
            if auction.status == AuctionStatus.ACTIVE
            else None
        )
        return AuctionDetailResponse(
            auction=AuctionItem.from_auction(auction),
            bids=[BidItem.from_bid(b) for b in bids],
            minimum_bid=next_min,
        )

    async def my_auctions(self, db: AsyncSession, user_id: str) -> list[AuctionItem]:
        await self.close_expired_auctions(db)
        auctions = await self._repo.list_by_seller(db, user_id)
        return [AuctionItem.from_auction(a) for a in auctions]

    async def my_bids(self, db: AsyncSession, user_id: str) -> list[MyBidItem]:
        await self.close_expired_auctions(db)
        views = await self._repo.list_active_bids_by_bidder(db, user_id)
        return [MyBidItem.from_view(v) for v in views]

    async def list_pending_release(self, db: AsyncSession) -> list[AuctionItem]:
        await self.close_expired_auctions(db)
        auctions = await self._repo.list_pending_release(db)
        return [AuctionItem.from_auction(a) for a in auctions]

    # ------------------------------------------------------------------
    # Internals (run inside the caller's transaction)
    # ------------------------------------------------------------------

    async def _lock_existing(self, db: AsyncSession, auction_id: int) -> Auction:
        auction = await self._repo.lock(db, auction_id)
        if auction is None:
            raise AuctionNotFoundError(auction_id)
        return auction

    async def _sweep_expired(self, db: AsyncSession) -> list[Auction]:
        closed = await self._repo.close_expired(db)
        for auction in closed:
            if auction.highest_bidder_id is not None:
                await log_activity(
                    db,
                    auction.highest_bidder_id,
                    "auction_won",
                    {
                        "auction_id": auction.id,
                        "item_name": auction.item_name,
                        "amount": auction.current_bid,
                    },
                )
        if closed:
            logger.info("Closed %d expired auctions", len(closed))
        return closed

    async def _release_escrow(
        self, db: AsyncSession, auction: Auction, bidder_action: str
    ) -> ReleaseResult:
        if not auction.has_winner:
            raise InvalidAuctionStateError("Auction has no winning bid to release")
        bidder_id = str(auction.highest_bidder_id)
        gross: Decimal = auction.current_bid  # type: ignore[assignment]

        admin_id = await first_admin_id(db)
        net, commission = commission_split(gross, has_platform_account=admin_id is not None)

        await self._wallets.consume_escrow(db, bidder_id, gross)
        await self._wallets.credit(db, auction.seller_id, Currency.AGON, net)
        if admin_id is not None and commission > 0:
            await self._wallets.credit(db, admin_id, Currency.AGON, commission)
        await self._repo.mark_completed(db, auction.id)

        await write_transaction(
            db,
            TransactionType.AUCTION,
            Currency.AGON,
            net,
            from_user_id=bidder_id,
            to_user_id=auction.seller_id,
            description=f"Auction sale: {auction.item_name}",
        )
        if admin_id is not None and commission > 0:
            await write_transaction(
                db,
                TransactionType.COMMISSION,
                Currency.AGON,
                commission,
                from_user_id=auction.seller_id,
                to_user_id=admin_id,
                description=f"Auction commission: {auction.item_name}",
            )

        meta = {
            "auction_id": auction.id,
            "item_name": auction.item_name,
            "gross": gross,
            "net": net,
            "commission": commission,
        }
        await log_activity(db, auction.seller_id, "auction_completed", meta)
        await log_activity(db, bidder_id, bidder_action, meta)
        if admin_id is not None and commission > 0:
            await log_activity(db, admin_id, "auction_commission_received", meta)

        logger.info(
            "Escrow released for auction %s: gross=%s net=%s commission=%s",
            auction.id,
            gross,
            net,
            commission,
        )
        return ReleaseResult(
            auction_id=auction.id,
            seller_id=auction.seller_id,
            bidder_id=bidder_id,
            gross=gross,
            net_to_seller=net,
            commission=commission,
            commission_recipient_id=admin_id if commission > 0 else None,
        )
