"""In-memory doubles for the game services: scripted RNG and a dict-backed state store."""

import copy
import random
from collections.abc import Callable, Iterable
from typing import Any

import pytest


class ScriptedRandom(random.Random):
    """random() returns the given values in order."""

    def __init__(self, values: Iterable[float]) -> None:
        super().__init__(0)
        self._values = list(values)

    def random(self) -> float:
        return self._values.pop(0)


class InMemoryStateStore:
    """Same surface as GameStateStore, without Redis or TTLs."""

    def __init__(self) -> None:
        self.values: dict[str, dict[str, Any]] = {}
        self.hashes: dict[str, dict[str, dict[str, Any]]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        value = self.values.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        self.values[key] = copy.deepcopy(value)

    async def put_if_absent(self, key: str, value: dict[str, Any]) -> bool:
        if key in self.values:
            return False
        self.values[key] = copy.deepcopy(value)
        return True

    async def claim(self, key: str) -> bool:
        return self.values.pop(key, None) is not None

    async def hash_put_if_absent(self, key: str, field: str, value: dict[str, Any]) -> bool:
        bucket = self.hashes.setdefault(key, {})
        if field in bucket:
            return False
        bucket[field] = copy.deepcopy(value)
        return True

    async def hash_get(self, key: str, field: str) -> dict[str, Any] | None:
        return copy.deepcopy(self.hashes.get(key, {}).get(field))

    async def hash_all(self, key: str) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self.hashes.get(key, {}))

    async def hash_claim(self, key: str, field: str) -> bool:
        return self.hashes.get(key, {}).pop(field, None) is not None


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def scripted_rng() -> Callable[..., ScriptedRandom]:
    return lambda *values: ScriptedRandom(values)
