"""Counter store abstraction for usage tracking.

CounterStore is an ABC so tests can inject an in-memory fake without a real
Redis server. RedisCounterStore uses redis.asyncio; every Redis failure is
re-raised as StoreUnavailableError so callers deal with one error type.
"""

import logging
from abc import ABC, abstractmethod

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from quotahub.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


class CounterStore(ABC):
    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically add 1 and return the new value (absent key counts as 0)."""

    @abstractmethod
    async def increment_by(self, key: str, amount: int) -> int:
        ...

    @abstractmethod
    async def increment_by_float(self, key: str, amount: float) -> float:
        ...

    @abstractmethod
    async def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    async def get_many(self, keys: list[str]) -> list[str | None]:
        ...

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        ...

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None


class RedisCounterStore(CounterStore):
    def __init__(self, url: str) -> None:
        self._redis: aioredis.Redis = aioredis.from_url(url, decode_responses=True)

    async def increment(self, key: str) -> int:
        try:
            return int(await self._redis.incr(key))
        except RedisError as exc:
            raise StoreUnavailableError(f"Counter store increment failed for '{key}'") from exc

    async def increment_by(self, key: str, amount: int) -> int:
        try:
            return int(await self._redis.incrby(key, amount))
        except RedisError as exc:
            raise StoreUnavailableError(f"Counter store increment failed for '{key}'") from exc

    async def increment_by_float(self, key: str, amount: float) -> float:
        try:
            return float(await self._redis.incrbyfloat(key, amount))
        except RedisError as exc:
            raise StoreUnavailableError(f"Counter store increment failed for '{key}'") from exc

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(key)
        except RedisError as exc:
            raise StoreUnavailableError(f"Counter store read failed for '{key}'") from exc

    async def get_many(self, keys: list[str]) -> list[str | None]:
        if not keys:
            return []
        try:
            return list(await self._redis.mget(keys))
        except RedisError as exc:
            raise StoreUnavailableError("Counter store multi-read failed") from exc

    async def expire(self, key: str, seconds: int) -> None:
        try:
            await self._redis.expire(key, seconds)
        except RedisError as exc:
            raise StoreUnavailableError(f"Counter store expire failed for '{key}'") from exc

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as exc:
            logger.warning("Counter store ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._redis.aclose()
