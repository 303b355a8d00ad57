"""Unit tests for AuctionApplicationService (mocked repositories)."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from src.ag_auction.application.schemas import CreateAuctionRequest
from src.ag_auction.application.service import AuctionApplicationService
from src.ag_auction.domain.models import Auction, Bid
from src.ag_common.datetime_utils import utc_now
from src.ag_common.enums import AuctionStatus, Currency, Rarity, TransactionType
from src.ag_common.errors import (
    AuctionNotActiveError,
    AuctionNotFoundError,
    BidTooLowError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidAuctionStateError,
    NotAuctionSellerError,
    NotAuctionWinnerError,
    SelfBidError,
)

_SVC = "src.ag_auction.application.service"


def _auction(
    status: AuctionStatus = AuctionStatus.ACTIVE,
    current_bid: str | None = None,
    bidder: str | None = None,
    ends_in: timedelta = timedelta(days=1),
) -> Auction:
    return Auction(
        id=1,
        seller_id="seller",
        item_name="Diamond Sword",
        rarity="Rare",
        starting_price=Decimal("100"),
        end_date=utc_now() + ends_in,
        status=status,
        current_bid=Decimal(current_bid) if current_bid else None,
        highest_bidder_id=bidder,
    )


@pytest.fixture
def repo() -> AsyncMock:
    mock = AsyncMock()
    mock.close_expired.return_value = []
    mock.insert_bid.return_value = Bid(
        id=9, auction_id=1, bidder_id="bidder", amount=Decimal("0"), is_active=True
    )
    return mock


@pytest.fixture
def wallets() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def service(repo: AsyncMock, wallets: AsyncMock) -> AuctionApplicationService:
    return AuctionApplicationService(repo=repo, wallets=wallets)


@pytest.fixture(autouse=True)
def ledger():
    with (
        patch(f"{_SVC}.log_activity", new_callable=AsyncMock) as log_activity,
        patch(f"{_SVC}.write_transaction", new_callable=AsyncMock) as write_tx,
        patch(f"{_SVC}.first_admin_id", new_callable=AsyncMock, return_value="admin") as admin,
    ):
        yield {"log_activity": log_activity, "write_transaction": write_tx, "first_admin_id": admin}


class TestCreateAuction:
    async def test_creates_and_commits(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.create.return_value = _auction()
        req = CreateAuctionRequest(
            item_name="  Diamond Sword ",
            rarity=Rarity.RARE,
            starting_price=Decimal("100"),
            days_until_end=7,
        )
        item = await service.create_auction(db, "seller", req)
        assert item.status == "active"
        kwargs = repo.create.await_args.kwargs
        assert kwargs["item_name"] == "Diamond Sword"
        assert kwargs["rarity"] == "Rare"
        db.commit.assert_awaited_once()


class TestPlaceBid:
    async def test_first_bid_escrows(
        self, service: AuctionApplicationService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction()
        resp = await service.place_bid(db, "bidder", 1, Decimal("100"))

        wallets.hold_escrow.assert_awaited_once_with(db, "bidder", Decimal("100.000000"))
        wallets.release_escrow.assert_not_awaited()
        assert resp.refunded_bidder_id is None
        assert resp.bid_id == 9
        db.commit.assert_awaited_once()

    async def test_outbid_refunds_previous(
        self, service: AuctionApplicationService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(current_bid="150", bidder="alice")
        resp = await service.place_bid(db, "bob", 1, Decimal("151"))

        wallets.release_escrow.assert_awaited_once_with(db, "alice", Decimal("150"))
        repo.deactivate_bids.assert_awaited_once_with(db, 1, "alice")
        wallets.hold_escrow.assert_awaited_once_with(db, "bob", Decimal("151.000000"))
        assert resp.refunded_bidder_id == "alice"
        assert resp.refunded_amount == Decimal("150")

    async def test_bid_below_minimum(
        self, service: AuctionApplicationService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(current_bid="150", bidder="alice")
        with pytest.raises(BidTooLowError, match="151"):
            await service.place_bid(db, "bob", 1, Decimal("150.5"))
        wallets.release_escrow.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_seller_cannot_bid(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction()
        with pytest.raises(SelfBidError):
            await service.place_bid(db, "seller", 1, Decimal("200"))

    async def test_expired_auction_rejects(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(ends_in=timedelta(seconds=-5))
        with pytest.raises(AuctionNotActiveError, match="ended"):
            await service.place_bid(db, "bob", 1, Decimal("200"))

    async def test_not_active_rejects(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(status=AuctionStatus.CANCELLED)
        with pytest.raises(AuctionNotActiveError):
            await service.place_bid(db, "bob", 1, Decimal("200"))

    async def test_missing_auction(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = None
        with pytest.raises(AuctionNotFoundError):
            await service.place_bid(db, "bob", 1, Decimal("200"))

    async def test_non_positive_amount(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        with pytest.raises(InvalidAmountError):
            await service.place_bid(db, "bob", 1, Decimal("0"))
        repo.lock.assert_not_awaited()

    async def test_insufficient_funds_rolls_back_refund(
        self, service: AuctionApplicationService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(current_bid="150", bidder="alice")
        wallets.hold_escrow.side_effect = InsufficientBalanceError("agon", Decimal("500"))
        with pytest.raises(InsufficientBalanceError):
            await service.place_bid(db, "bob", 1, Decimal("500"))
        repo.set_highest_bid.assert_not_awaited()
        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()


class TestConfirmDelivery:
    async def test_release_pays_seller_and_platform(
        self,
        service: AuctionApplicationService,
        repo: AsyncMock,
        wallets: AsyncMock,
        db: AsyncMock,
        ledger: dict,
    ) -> None:
        repo.lock.return_value = _auction(
            status=AuctionStatus.ENDED, current_bid="200", bidder="bob"
        )
        resp = await service.confirm_delivery(db, "bob", 1)

        wallets.consume_escrow.assert_awaited_once_with(db, "bob", Decimal("200"))
        wallets.credit.assert_any_await(db, "seller", Currency.AGON, Decimal("190.00"))
        wallets.credit.assert_any_await(db, "admin", Currency.AGON, Decimal("10.00"))
        repo.mark_completed.assert_awaited_once_with(db, 1)
        types = [c.args[1] for c in ledger["write_transaction"].await_args_list]
        assert types == [TransactionType.AUCTION, TransactionType.COMMISSION]
        assert resp.net_to_seller + resp.commission == Decimal("200")

    async def test_without_admin_seller_gets_all(
        self,
        service: AuctionApplicationService,
        repo: AsyncMock,
        wallets: AsyncMock,
        db: AsyncMock,
        ledger: dict,
    ) -> None:
        ledger["first_admin_id"].return_value = None
        repo.lock.return_value = _auction(
            status=AuctionStatus.ENDED, current_bid="200", bidder="bob"
        )
        await service.confirm_delivery(db, "bob", 1)
        wallets.credit.assert_awaited_once_with(db, "seller", Currency.AGON, Decimal("200"))

    async def test_second_confirm_rejected(
        self, service: AuctionApplicationService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(
            status=AuctionStatus.COMPLETED, current_bid="200", bidder="bob"
        )
        with pytest.raises(InvalidAuctionStateError):
            await service.confirm_delivery(db, "bob", 1)
        wallets.consume_escrow.assert_not_awaited()

    async def test_only_winner_confirms(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(
            status=AuctionStatus.ENDED, current_bid="200", bidder="bob"
        )
        with pytest.raises(NotAuctionWinnerError):
            await service.confirm_delivery(db, "mallory", 1)

    async def test_disputed_needs_admin(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(
            status=AuctionStatus.DISPUTED, current_bid="200", bidder="bob"
        )
        with pytest.raises(InvalidAuctionStateError):
            await service.confirm_delivery(db, "bob", 1)


class TestAdminRelease:
    async def test_admin_releases_disputed(
        self, service: AuctionApplicationService, repo: AsyncMock, wallets: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(
            status=AuctionStatus.DISPUTED, current_bid="100", bidder="bob"
        )
        resp = await service.auto_release_escrow(db, "admin", 1)
        assert resp.commission == Decimal("5.00")
        wallets.consume_escrow.assert_awaited_once()

    async def test_no_winner_cannot_release(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(status=AuctionStatus.ENDED)
        with pytest.raises(InvalidAuctionStateError, match="no winning bid"):
            await service.auto_release_escrow(db, "admin", 1)


class TestReportIssue:
    async def test_marks_disputed(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(
            status=AuctionStatus.ENDED, current_bid="100", bidder="bob"
        )
        item = await service.report_delivery_issue(db, "bob", 1, "never arrived")
        repo.set_status.assert_awaited_once_with(db, 1, AuctionStatus.DISPUTED)
        assert item.status == "disputed"


class TestCancel:
    async def test_seller_cancels_without_bids(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction()
        item = await service.cancel_auction(db, "seller", 1)
        assert item.status == "cancelled"

    async def test_cannot_cancel_with_bids(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(current_bid="120", bidder="bob")
        with pytest.raises(InvalidAuctionStateError, match="has bids"):
            await service.cancel_auction(db, "seller", 1)

    async def test_non_seller_rejected(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction()
        with pytest.raises(NotAuctionSellerError):
            await service.cancel_auction(db, "bob", 1)


class TestForceEnd:
    async def test_ends_active_auction(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(current_bid="120", bidder="bob")
        item = await service.force_end_auction(db, "admin", 1)
        repo.force_end.assert_awaited_once_with(db, 1)
        assert item.status == "ended"

    async def test_rejects_non_active(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.lock.return_value = _auction(status=AuctionStatus.ENDED)
        with pytest.raises(InvalidAuctionStateError):
            await service.force_end_auction(db, "admin", 1)


class TestQueries:
    async def test_sweep_logs_winner(
        self,
        service: AuctionApplicationService,
        repo: AsyncMock,
        db: AsyncMock,
        ledger: dict,
    ) -> None:
        repo.close_expired.return_value = [
            _auction(status=AuctionStatus.ENDED, current_bid="120", bidder="bob")
        ]
        repo.list_by_status.return_value = []
        await service.list_auctions(db)
        action = ledger["log_activity"].await_args.args[2]
        assert action == "auction_won"

    async def test_detail_minimum_bid_only_when_active(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.get.return_value = _auction(current_bid="120", bidder="bob")
        repo.list_bids.return_value = []
        detail = await service.get_auction(db, 1)
        assert detail.minimum_bid == Decimal("121")

        repo.get.return_value = _auction(status=AuctionStatus.ENDED)
        detail = await service.get_auction(db, 1)
        assert detail.minimum_bid is None

    async def test_detail_missing(
        self, service: AuctionApplicationService, repo: AsyncMock, db: AsyncMock
    ) -> None:
        repo.get.return_value = None
        with pytest.raises(AuctionNotFoundError):
            await service.get_auction(db, 99)
