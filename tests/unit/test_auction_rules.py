"""Tests for ag_auction.domain.rules: pure functions."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.ag_auction.domain.rules import (
    can_release,
    commission_split,
    is_expired,
    minimum_bid,
    validate_duration,
)
from src.ag_common.enums import AuctionStatus


class TestMinimumBid:
    def test_no_bids_is_starting_price(self) -> None:
        assert minimum_bid(None, Decimal("100")) == Decimal("100")

    def test_current_plus_one(self) -> None:
        assert minimum_bid(Decimal("150"), Decimal("100")) == Decimal("151")

    def test_never_below_starting_price(self) -> None:
        assert minimum_bid(Decimal("10"), Decimal("100")) == Decimal("100")


class TestCommissionSplit:
    def test_five_percent(self) -> None:
        net, fee = commission_split(Decimal("200"))
        assert fee == Decimal("10.00")
        assert net == Decimal("190.00")

    def test_rounds_half_up_and_conserves(self) -> None:
        gross = Decimal("10.10")
        net, fee = commission_split(gross)
        # 10.10 * 0.05 = 0.505 -> 0.51
        assert fee == Decimal("0.51")
        assert net + fee == gross

    def test_no_platform_account_keeps_all(self) -> None:
        net, fee = commission_split(Decimal("99"), has_platform_account=False)
        assert net == Decimal("99")
        assert fee == 0


class TestLifecycle:
    def test_is_expired_at_boundary(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert is_expired(now, now)
        assert not is_expired(now + timedelta(seconds=1), now)

    def test_winner_may_release_only_ended(self) -> None:
        assert can_release(AuctionStatus.ENDED, by_admin=False)
        assert not can_release(AuctionStatus.DISPUTED, by_admin=False)
        assert not can_release(AuctionStatus.ACTIVE, by_admin=False)

    def test_admin_may_release_disputed(self) -> None:
        assert can_release(AuctionStatus.DISPUTED, by_admin=True)
        assert can_release(AuctionStatus.ENDED, by_admin=True)
        assert not can_release(AuctionStatus.COMPLETED, by_admin=True)

    def test_validate_duration(self) -> None:
        validate_duration(1)
        validate_duration(30)
        with pytest.raises(ValueError, match="between 1 and 30"):
            validate_duration(0)
        with pytest.raises(ValueError):
            validate_duration(31)
