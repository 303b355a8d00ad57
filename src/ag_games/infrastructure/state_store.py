"""Server-side game state in Redis.

Keys expire after ``GAME_STATE_TTL_SECONDS``. Completing a game "claims" its
state by deleting it; only the caller whose delete removed the key may pay
out, which makes finishing a hand or cashing out a bet single-shot.
"""

import json
from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as aioredis

from config.settings import settings
from src.ag_common.redis_client import get_redis


class GameStateStore:
    def __init__(
        self,
        redis_factory: Callable[[], Awaitable[aioredis.Redis]] | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        self._redis_factory = redis_factory or get_redis
        self._ttl = ttl_seconds or settings.GAME_STATE_TTL_SECONDS

    async def get(self, key: str) -> dict[str, Any] | None:
        redis = await self._redis_factory()
        raw = await redis.get(key)
        return json.loads(raw) if raw else None

    async def put(self, key: str, value: dict[str, Any]) -> None:
        redis = await self._redis_factory()
        await redis.set(key, json.dumps(value), ex=self._ttl)

    async def put_if_absent(self, key: str, value: dict[str, Any]) -> bool:
        redis = await self._redis_factory()
        return bool(await redis.set(key, json.dumps(value), ex=self._ttl, nx=True))

    async def claim(self, key: str) -> bool:
        """Delete ``key``; True only for the caller that actually removed it."""
        redis = await self._redis_factory()
        return bool(await redis.delete(key))

    # -- hashes (crash round bets) ----------------------------------------

    async def hash_put_if_absent(self, key: str, field: str, value: dict[str, Any]) -> bool:
        redis = await self._redis_factory()
        added = await redis.hsetnx(key, field, json.dumps(value))
        await redis.expire(key, self._ttl)
        return bool(added)

    async def hash_get(self, key: str, field: str) -> dict[str, Any] | None:
        redis = await self._redis_factory()
        raw = await redis.hget(key, field)
        return json.loads(raw) if raw else None

    async def hash_all(self, key: str) -> dict[str, dict[str, Any]]:
        redis = await self._redis_factory()
        raw = await redis.hgetall(key)
        return {f: json.loads(v) for f, v in raw.items()}

    async def hash_claim(self, key: str, field: str) -> bool:
        redis = await self._redis_factory()
        return bool(await redis.hdel(key, field))
