"""Error codes and domain exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Wallet/Payment
  3xxx: Auction
  4xxx: Prediction market
  5xxx: Games
  6xxx: Trading
  7xxx: Admin
  9xxx: System
"""

from decimal import Decimal


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidInviteCodeError(AppError):
    def __init__(self, detail: str = "Invalid invite code") -> None:
        super().__init__(1005, detail, 400)


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Admin access required", 403)


class UserNotFoundError(AppError):
    def __init__(self, username_or_id: str) -> None:
        super().__init__(1007, f"User not found: {username_or_id}", 404)


class SearchQueryRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1008, "Search query is required", 400)


# --- 2xxx: Wallet/Payment ---

class InsufficientBalanceError(AppError):
    def __init__(self, currency: str, required: Decimal, available: Decimal | None = None) -> None:
        msg = f"Insufficient {currency} balance: required {required}"
        if available is not None:
            msg += f", available {available}"
        super().__init__(2001, msg, 422)


class WalletNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Wallet not found for user {user_id}", 404)


class InvalidCurrencyError(AppError):
    def __init__(self, currency: str) -> None:
        super().__init__(2003, f"Invalid currency: {currency}", 400)


class InvalidAmountError(AppError):
    def __init__(self, detail: str = "Amount must be greater than 0") -> None:
        super().__init__(2004, detail, 400)


class SameCurrencySwapError(AppError):
    def __init__(self) -> None:
        super().__init__(2005, "Cannot swap a currency to itself", 400)


class SelfPaymentError(AppError):
    def __init__(self) -> None:
        super().__init__(2006, "Cannot send payment to yourself", 400)


class RecipientNotFoundError(AppError):
    def __init__(self, username: str) -> None:
        super().__init__(2007, f"Recipient not found: {username}", 404)


# --- 3xxx: Auction ---

class AuctionNotFoundError(AppError):
    def __init__(self, auction_id: int) -> None:
        super().__init__(3001, f"Auction not found: {auction_id}", 404)


class AuctionNotActiveError(AppError):
    def __init__(self, detail: str = "Auction is not active") -> None:
        super().__init__(3002, detail, 400)


class BidTooLowError(AppError):
    def __init__(self, minimum: Decimal) -> None:
        super().__init__(3003, f"Bid must be at least {minimum}", 400)


class SelfBidError(AppError):
    def __init__(self) -> None:
        super().__init__(3004, "Cannot bid on your own auction", 400)


class NotAuctionWinnerError(AppError):
    def __init__(self) -> None:
        super().__init__(3005, "Only the winning bidder can do this", 403)


class NotAuctionSellerError(AppError):
    def __init__(self) -> None:
        super().__init__(3006, "Only the seller can do this", 403)


class InvalidAuctionStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3007, detail, 400)


class InvalidAuctionInputError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3008, detail, 400)


# --- 4xxx: Prediction market ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: int | str) -> None:
        super().__init__(4001, f"Market not found: {market_id}", 404)


class MarketNotActiveError(AppError):
    def __init__(self, market_id: int | str) -> None:
        super().__init__(4002, f"Market is not active: {market_id}", 400)


class NoQuoteAvailableError(AppError):
    def __init__(self, market_id: int | str) -> None:
        super().__init__(4003, f"No quotes available for market {market_id}", 400)


class ExposureLimitError(AppError):
    def __init__(self, limit: Decimal) -> None:
        super().__init__(
            4004,
            f"Order would exceed the platform exposure limit of {limit} Agon",
            400,
        )


class InsufficientPositionError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4005, f"Insufficient position: {detail}", 400)


class InvalidOrderError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(4006, detail, 400)


class MarketAlreadyExistsError(AppError):
    def __init__(self, pm_market_id: str) -> None:
        super().__init__(4007, f"Market already whitelisted: {pm_market_id}", 409)


class MarketAlreadyResolvedError(AppError):
    def __init__(self, market_id: int) -> None:
        super().__init__(4008, f"Market already resolved: {market_id}", 400)


class OpenPositionsError(AppError):
    def __init__(self, count: int) -> None:
        super().__init__(4009, f"Cannot remove market with {count} open positions", 400)


# --- 5xxx: Games ---

class InvalidBetError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5001, detail, 400)


class GameNotFoundError(AppError):
    def __init__(self, detail: str = "Game not found or expired") -> None:
        super().__init__(5002, detail, 404)


class GameStateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5003, detail, 400)


# --- 6xxx: Trading ---

class UnsupportedAssetError(AppError):
    def __init__(self, asset_id: str) -> None:
        super().__init__(6001, f"Unsupported asset: {asset_id}", 400)


class PriceUnavailableError(AppError):
    def __init__(self, asset_id: str) -> None:
        super().__init__(6002, f"Price unavailable for {asset_id}", 503)


class PositionNotFoundError(AppError):
    def __init__(self, position_id: int) -> None:
        super().__init__(6003, f"Position not found: {position_id}", 404)


class InvalidTradeError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(6004, detail, 400)


# --- 7xxx: Admin ---

class InviteCodeExistsError(AppError):
    def __init__(self, code: str) -> None:
        super().__init__(7001, f"Invite code already exists: {code}", 409)


class InviteCodeNotFoundError(AppError):
    def __init__(self, code_id: int) -> None:
        super().__init__(7002, f"Invite code not found: {code_id}", 404)


class InviteCodeUsedError(AppError):
    def __init__(self) -> None:
        super().__init__(7003, "Cannot delete a used invite code", 400)


class NegativeBalanceError(AppError):
    def __init__(self, currency: str) -> None:
        super().__init__(7004, f"Adjustment would make {currency} balance negative", 400)


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class ExternalServiceError(AppError):
    def __init__(self, service: str, detail: str) -> None:
        self.service = service
        super().__init__(9003, f"{service} request failed: {detail}", 502)
