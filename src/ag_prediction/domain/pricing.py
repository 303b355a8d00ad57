"""Pricing and risk rules for the prediction market exchange.

Prices are probabilities in [0, 1]; one share pays 1 Agon if its side wins.
"""

from decimal import Decimal

from src.ag_common.enums import OrderAction, PredictionSide
from src.ag_common.money import ZERO, clamp, quantize
from src.ag_prediction.domain.models import Quote

MAX_ORDER_SIZE = Decimal("1000")
TRADE_FEE_RATE = Decimal("0.01")
MAX_PLATFORM_EXPOSURE = Decimal("10000")
QUOTE_MARKUP = Decimal("0.005")
MAX_SYNC_FAILURES = 5
QUOTE_HISTORY_LIMIT = 1000
DEFAULT_MARK_PRICE = Decimal("0.5")

ONE = Decimal("1")
PRICE_PLACES = Decimal("0.000001")


def apply_markup(bid: Decimal, ask: Decimal, markup: Decimal = QUOTE_MARKUP) -> tuple[Decimal, Decimal]:
    """Widen a raw book: bid * (1 - m), ask * (1 + m), both clamped to [0, 1]."""
    marked_bid = clamp(bid * (ONE - markup), ZERO, ONE)
    marked_ask = clamp(ask * (ONE + markup), ZERO, ONE)
    return marked_bid.quantize(PRICE_PLACES), marked_ask.quantize(PRICE_PLACES)


def execution_price(quote: Quote, side: PredictionSide, action: OrderAction) -> Decimal:
    """Buys lift the ask, sells hit the bid."""
    return quote.ask(side) if action is OrderAction.BUY else quote.bid(side)


def trade_fee(base_cost: Decimal, action: OrderAction) -> Decimal:
    if action is not OrderAction.BUY:
        return ZERO
    return quantize(base_cost * TRADE_FEE_RATE)


def position_exposure(quantity: Decimal, avg_price: Decimal) -> Decimal:
    """Platform liability of one position: the winnings it could still pay."""
    return quantity * (ONE - avg_price)


def exposure_after_buy(
    existing: Decimal,
    old_quantity: Decimal,
    old_avg: Decimal,
    new_quantity: Decimal,
    new_avg: Decimal,
) -> Decimal:
    """Side exposure once the buyer's position is rewritten as (new_quantity, new_avg).

    ``new_avg`` is the rounded average that gets stored, so the result matches
    what the side sum reads back after the trade.
    """
    return (
        existing
        - position_exposure(old_quantity, old_avg)
        + position_exposure(new_quantity, new_avg)
    )


def exceeds_exposure(exposure: Decimal) -> bool:
    return exposure > MAX_PLATFORM_EXPOSURE


def weighted_average(
    old_quantity: Decimal, old_avg: Decimal, quantity: Decimal, price: Decimal
) -> Decimal:
    total = old_quantity + quantity
    if total <= 0:
        return ZERO
    return ((old_quantity * old_avg + quantity * price) / total).quantize(PRICE_PLACES)


def realized_on_sell(quantity: Decimal, price: Decimal, avg_price: Decimal) -> Decimal:
    return quantize(quantity * (price - avg_price))


def mark_price(quote: Quote | None, side: PredictionSide) -> Decimal:
    """Mid of the side's bid/ask, or 0.5 when no quote exists yet."""
    if quote is None:
        return DEFAULT_MARK_PRICE
    return (quote.bid(side) + quote.ask(side)) / 2


def validate_quantity(quantity: Decimal) -> None:
    if not quantity.is_finite() or quantity <= 0:
        raise ValueError("Quantity must be greater than 0")
    if quantity > MAX_ORDER_SIZE:
        raise ValueError(f"Quantity must not exceed {MAX_ORDER_SIZE}")
