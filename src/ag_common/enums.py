"""Global enums. Values must match the DB CHECK constraints exactly."""

from enum import Enum


class Currency(str, Enum):
    AGON = "agon"
    STONEWORKS_DOLLAR = "stoneworks_dollar"


class TransactionType(str, Enum):
    PAYMENT = "payment"
    SWAP = "swap"
    AUCTION = "auction"
    COMMISSION = "commission"
    FEE = "fee"
    PREDICTION_PAYOUT = "prediction_payout"
    PREDICTION_REFUND = "prediction_refund"
    GAME = "game"
    CRYPTO_TRADE = "crypto_trade"
    MAINTENANCE_FEE = "maintenance_fee"
    ADMIN_ADJUST = "admin_adjust"
    SIGNUP_BONUS = "signup_bonus"


class AuctionStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    DISPUTED = "disputed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Rarity(str, Enum):
    COMMON = "Common"
    UNCOMMON = "Uncommon"
    RARE = "Rare"
    EPIC = "Epic"
    LEGENDARY = "Legendary"
    MYTHIC = "Mythic"


class MarketStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    RESOLVED = "resolved"


class PredictionSide(str, Enum):
    YES = "yes"
    NO = "no"


class OrderAction(str, Enum):
    BUY = "buy"
    SELL = "sell"


class ResolutionOutcome(str, Enum):
    YES = "yes"
    NO = "no"
    INVALID = "invalid"


class GameType(str, Enum):
    COINFLIP = "coinflip"
    BLACKJACK = "blackjack"
    PLINKO = "plinko"
    CRASH = "crash"


class PositionType(str, Enum):
    LONG = "long"
    SHORT = "short"


class PositionStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
