"""Plinko payout tables and ball physics.

Each table has ``rows + 1`` slots, symmetric around the middle. The ball
makes ``rows`` independent left/right bounces, so landing follows a
binomial distribution centred on the middle slot.
"""

import random
from decimal import Decimal

HOUSE_EDGE_FACTOR = Decimal("0.95")
VALID_ROWS = (8, 12, 16)
VALID_RISKS = ("low", "medium", "high")


def _table(*values: str) -> list[Decimal]:
    return [Decimal(v) for v in values]


MULTIPLIERS: dict[str, dict[int, list[Decimal]]] = {
    "low": {
        8: _table("5.6", "2.1", "1.1", "1.0", "0.5", "1.0", "1.1", "2.1", "5.6"),
        12: _table("10", "3", "1.6", "1.4", "1.1", "1.0", "0.5", "1.0", "1.1", "1.4", "1.6", "3", "10"),
        16: _table(
            "16", "9", "2", "1.4", "1.4", "1.2", "1.1", "1.0", "0.5",
            "1.0", "1.1", "1.2", "1.4", "1.4", "2", "9", "16",
        ),
    },
    "medium": {
        8: _table("13", "3", "1.3", "0.7", "0.4", "0.7", "1.3", "3", "13"),
        12: _table("33", "11", "4", "2", "1.1", "0.6", "0.3", "0.6", "1.1", "2", "4", "11", "33"),
        16: _table(
            "110", "41", "10", "5", "3", "1.5", "1.0", "0.5", "0.3",
            "0.5", "1.0", "1.5", "3", "5", "10", "41", "110",
        ),
    },
    "high": {
        8: _table("29", "4", "1.5", "0.3", "0.2", "0.3", "1.5", "4", "29"),
        12: _table("170", "24", "8.1", "2", "0.7", "0.2", "0.2", "0.2", "0.7", "2", "8.1", "24", "170"),
        16: _table(
            "1000", "130", "26", "9", "4", "2", "0.2", "0.2", "0.2",
            "0.2", "0.2", "2", "4", "9", "26", "130", "1000",
        ),
    },
}


def drop_ball(rows: int, rng: random.Random) -> int:
    """Number of rightward bounces over ``rows`` pegs."""
    return sum(1 for _ in range(rows) if rng.random() < 0.5)


def landing_slot(rights: int, rows: int, slot_count: int) -> int:
    middle = slot_count // 2
    slot = middle + (rights - rows // 2)
    return max(0, min(slot_count - 1, slot))

