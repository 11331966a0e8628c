"""Redis implementation of the snapshot store."""

from __future__ import annotations

from typing import Any, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from .store import SnapshotStore


class RedisSnapshotStore(SnapshotStore):
    """Persist snapshots as plain Redis string values."""

    def __init__(self, url: str = "redis://localhost:6379/0", prefix: str = "setupflow:") -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisSnapshotStore")
        self.url = url
        self.prefix = prefix
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.from_url(self.url, decode_responses=True)
        await self._redis.ping()

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        client = await self._client()
        return await client.get(f"{self.prefix}{key}")

    async def set(self, key: str, value: str) -> None:
        client = await self._client()
        await client.set(f"{self.prefix}{key}", value)

    async def remove(self, key: str) -> None:
        client = await self._client()
        await client.delete(f"{self.prefix}{key}")
