"""Tests for RedisCounterStore error translation.

The redis client is replaced with an AsyncMock; from_url() does not connect.
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from quotahub.errors import StoreUnavailableError
from quotahub.usage.counter_store import RedisCounterStore


def _store() -> tuple[RedisCounterStore, AsyncMock]:
    store = RedisCounterStore("redis://localhost:6379/0")
    client = AsyncMock()
    store._redis = client
    return store, client


class TestRedisCounterStore:
    async def test_increment_returns_new_value(self):
        store, client = _store()
        client.incr = AsyncMock(return_value=3)
        assert await store.increment("k") == 3
        client.incr.assert_called_once_with("k")

    async def test_increment_by_float(self):
        store, client = _store()
        client.incrbyfloat = AsyncMock(return_value="2.5")
        assert await store.increment_by_float("k", 2.5) == 2.5

    async def test_get_many_skips_round_trip_for_no_keys(self):
        store, client = _store()
        assert await store.get_many([]) == []
        client.mget.assert_not_called()

    @pytest.mark.parametrize("method,args", [
        ("increment", ("k",)),
        ("increment_by", ("k", 2)),
        ("get", ("k",)),
        ("get_many", (["a", "b"],)),
        ("expire", ("k", 60)),
    ])
    async def test_redis_errors_become_store_unavailable(self, method, args):
        store, client = _store()
        for name in ("incr", "incrby", "get", "mget", "expire"):
            setattr(client, name, AsyncMock(side_effect=RedisConnectionError("down")))
        with pytest.raises(StoreUnavailableError):
            await getattr(store, method)(*args)

    async def test_ping_failure_reports_false(self):
        store, client = _store()
        client.ping = AsyncMock(side_effect=RedisConnectionError("down"))
        assert await store.ping() is False
