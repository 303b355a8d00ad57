"""52-card deck and blackjack hand scoring."""

import random
from dataclasses import asdict, dataclass

SUITS = ("♠", "♥", "♦", "♣")
RANKS = ("A", "2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K")
BLACKJACK = 21
DEALER_STANDS_ON = 17


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "Card":
        return cls(rank=data["rank"], suit=data["suit"])


def new_deck() -> list[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]


def shuffled_deck(rng: random.Random) -> list[Card]:
    deck = new_deck()
    rng.shuffle(deck)
    return deck


def card_value(card: Card) -> int:
    if card.rank == "A":
        return 11
    if card.rank in ("J", "Q", "K"):
        return 10
    return int(card.rank)


def hand_value(hand: list[Card]) -> int:
    """Best total: each ace counts 11 until the hand would bust, then 1."""
    total = sum(card_value(c) for c in hand)
    aces = sum(1 for c in hand if c.rank == "A")
    while total > BLACKJACK and aces:
        total -= 10
        aces -= 1
    return total


def is_blackjack(hand: list[Card]) -> bool:
    return len(hand) == 2 and hand_value(hand) == BLACKJACK


def is_bust(hand: list[Card]) -> bool:
    return hand_value(hand) > BLACKJACK
