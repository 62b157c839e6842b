"""Short-lived cache of the latest leaderboard entries."""
import json
import logging
import time
from typing import Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..engine.errors import CacheError
from ..models import LeaderboardEntry, entries_from_payload, entries_to_payload

log = logging.getLogger(__name__)


@runtime_checkable
class LeaderboardCache(Protocol):
    async def get(self, key: str) -> list[LeaderboardEntry] | None:
        ...

    async def set(self, key: str, entries: list[LeaderboardEntry], ttl_seconds: int) -> None:
        ...


class RedisCache:
    """JSON-encoded entry lists in Redis with a per-write TTL.

    Connection and protocol failures surface as ``CacheError``; a corrupt
    payload is treated as a miss.
    """

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> list[LeaderboardEntry] | None:
        try:
            raw = await self.client.get(key)
        except RedisError as e:
            raise CacheError(f"cache read failed: {e}") from e
        if raw is None:
            return None
        try:
            return entries_from_payload(json.loads(raw))
        except (ValueError, TypeError, KeyError) as e:
            log.warning("Discarding corrupt cache entry %s: %s", key, e)
            return None

    async def set(self, key: str, entries: list[LeaderboardEntry], ttl_seconds: int) -> None:
        payload = json.dumps(entries_to_payload(entries), ensure_ascii=False)
        try:
            await self.client.set(key, payload, ex=max(1, int(ttl_seconds)))
        except RedisError as e:
            raise CacheError(f"cache write failed: {e}") from e

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except RedisError as e:
            log.warning("Failed to close Redis connection cleanly: %s", e)


class MemoryCache:
    """Process-local cache with the same contract; used when no Redis URL is configured."""

    def __init__(self, clock=None):
        self._clock = clock or time.monotonic
        self._data: dict[str, tuple[float, list[LeaderboardEntry]]] = {}

    async def get(self, key: str) -> list[LeaderboardEntry] | None:
        item = self._data.get(key)
        if item is None:
            return None
        expires_at, entries = item
        if self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return list(entries)

    async def set(self, key: str, entries: list[LeaderboardEntry], ttl_seconds: int) -> None:
        self._data[key] = (self._clock() + ttl_seconds, list(entries))

    async def close(self) -> None:
        self._data.clear()
