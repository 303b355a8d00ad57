"""Unit tests for GameStateStore against a mocked redis client."""

import json
from unittest.mock import AsyncMock

import pytest

from src.ag_games.infrastructure.state_store import GameStateStore


@pytest.fixture
def redis() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def store(redis: AsyncMock) -> GameStateStore:
    return GameStateStore(redis_factory=AsyncMock(return_value=redis), ttl_seconds=60)


class TestGameStateStore:
    async def test_put_sets_ttl(self, store: GameStateStore, redis: AsyncMock) -> None:
        await store.put("k", {"a": 1})
        redis.set.assert_awaited_once_with("k", json.dumps({"a": 1}), ex=60)

    async def test_get_missing(self, store: GameStateStore, redis: AsyncMock) -> None:
        redis.get.return_value = None
        assert await store.get("k") is None

    async def test_get_decodes(self, store: GameStateStore, redis: AsyncMock) -> None:
        redis.get.return_value = '{"a": 1}'
        assert await store.get("k") == {"a": 1}

    async def test_put_if_absent_uses_nx(self, store: GameStateStore, redis: AsyncMock) -> None:
        redis.set.return_value = None
        assert await store.put_if_absent("k", {}) is False
        assert redis.set.await_args.kwargs["nx"] is True

    async def test_claim_true_only_when_deleted(
        self, store: GameStateStore, redis: AsyncMock
    ) -> None:
        redis.delete.return_value = 1
        assert await store.claim("k") is True
        redis.delete.return_value = 0
        assert await store.claim("k") is False

    async def test_hash_put_refreshes_expiry(
        self, store: GameStateStore, redis: AsyncMock
    ) -> None:
        redis.hsetnx.return_value = 1
        assert await store.hash_put_if_absent("h", "u1", {"x": "1"}) is True
        redis.expire.assert_awaited_once_with("h", 60)

    async def test_hash_all_decodes(self, store: GameStateStore, redis: AsyncMock) -> None:
        redis.hgetall.return_value = {"u1": '{"amount": "5"}'}
        assert await store.hash_all("h") == {"u1": {"amount": "5"}}

    async def test_hash_claim(self, store: GameStateStore, redis: AsyncMock) -> None:
        redis.hdel.return_value = 0
        assert await store.hash_claim("h", "u1") is False
