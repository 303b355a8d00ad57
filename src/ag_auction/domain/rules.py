"""Pure auction rules: minimum bid, commission split, lifecycle transitions.

No I/O here; the application service applies these under row locks.
"""

from datetime import datetime
from decimal import Decimal

from src.ag_common.enums import AuctionStatus
from src.ag_common.money import ZERO, round_cents

COMMISSION_RATE = Decimal("0.05")
MIN_BID_INCREMENT = Decimal("1")
MIN_AUCTION_DAYS = 1
MAX_AUCTION_DAYS = 30

# Statuses from which escrow may be released, by who releases it
_WINNER_RELEASABLE = frozenset({AuctionStatus.ENDED})
_ADMIN_RELEASABLE = frozenset({AuctionStatus.ENDED, AuctionStatus.DISPUTED})


def minimum_bid(current_bid: Decimal | None, starting_price: Decimal) -> Decimal:
    """Lowest acceptable next bid: max(current + 1, starting_price)."""
    if current_bid is None:
        return starting_price
    return max(current_bid + MIN_BID_INCREMENT, starting_price)


def commission_split(gross: Decimal, has_platform_account: bool = True) -> tuple[Decimal, Decimal]:
    """Split a winning bid into (net_to_seller, commission).

    Commission is 5% rounded half-up to 2 dp; the seller gets the remainder,
    so the two always sum to ``gross``. With no platform account the seller
    keeps everything.
    """
    if not has_platform_account:
        return gross, ZERO
    commission = round_cents(gross * COMMISSION_RATE)
    return gross - commission, commission


def is_expired(end_date: datetime, now: datetime) -> bool:
    return end_date <= now


def can_release(status: AuctionStatus, by_admin: bool) -> bool:
    allowed = _ADMIN_RELEASABLE if by_admin else _WINNER_RELEASABLE
    return status in allowed


def validate_duration(days: int) -> None:
    if not MIN_AUCTION_DAYS <= days <= MAX_AUCTION_DAYS:
        raise ValueError(
            f"Auction duration must be between {MIN_AUCTION_DAYS} and {MAX_AUCTION_DAYS} days"
        )
