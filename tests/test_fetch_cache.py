"""Tests for the fetch-state cache backends."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tubefeed.config import Settings
from tubefeed.feed.cache import (
    FetchState,
    InMemoryFetchStateCache,
    RedisFetchStateCache,
    SourceState,
    get_fetch_cache,
)

from conftest import at, make_video


@pytest.fixture
def videos():
    return [make_video("v2", at(2)), make_video("v1", at(1))]


@pytest.fixture
def sources():
    return {
        "UCa": SourceState(playlist_id="UUa", cursor="next", exhausted=False),
        "UCb": SourceState(playlist_id="UUb", cursor=None, exhausted=True),
    }


class TestInMemoryCache:
    """Tests for the process-local backend."""

    @pytest.mark.asyncio
    async def test_round_trip(self, videos, sources):
        cache = InMemoryFetchStateCache(ttl_seconds=300)

        await cache.put("user-1", videos, sources)
        entry = await cache.get("user-1")

        assert [v.video_id for v in entry.videos] == ["v2", "v1"]
        assert entry.sources["UCa"].cursor == "next"
        assert entry.sources["UCb"].exhausted is True
        assert await cache.get("user-2") is None

    @pytest.mark.asyncio
    async def test_entry_expires(self, videos, sources):
        cache = InMemoryFetchStateCache(ttl_seconds=300)

        with patch("tubefeed.feed.cache.time.monotonic", return_value=1000.0):
            await cache.put("user-1", videos, sources)
        with patch("tubefeed.feed.cache.time.monotonic", return_value=1299.0):
            assert await cache.get("user-1") is not None
        with patch("tubefeed.feed.cache.time.monotonic", return_value=1300.0):
            assert await cache.get("user-1") is None

    @pytest.mark.asyncio
    async def test_put_resets_timestamp(self, videos, sources):
        cache = InMemoryFetchStateCache(ttl_seconds=300)

        with patch("tubefeed.feed.cache.time.monotonic", return_value=1000.0):
            await cache.put("user-1", videos, sources)
        with patch("tubefeed.feed.cache.time.monotonic", return_value=1200.0):
            await cache.put("user-1", videos, sources)
        with patch("tubefeed.feed.cache.time.monotonic", return_value=1450.0):
            assert await cache.get("user-1") is not None

    @pytest.mark.asyncio
    async def test_invalidate(self, videos, sources):
        cache = InMemoryFetchStateCache()

        await cache.put("user-1", videos, sources)
        await cache.invalidate("user-1")
        await cache.invalidate("never-cached")

        assert await cache.get("user-1") is None

    @pytest.mark.asyncio
    async def test_stored_sources_are_copies(self, videos, sources):
        cache = InMemoryFetchStateCache()

        await cache.put("user-1", videos, sources)
        sources["UCa"].cursor = "mutated"

        entry = await cache.get("user-1")
        assert entry.sources["UCa"].cursor == "next"


class TestRedisCache:
    """Tests for the Redis backend."""

    @pytest.mark.asyncio
    async def test_put_uses_setex(self, videos, sources):
        redis = MagicMock()
        redis.setex = AsyncMock()
        cache = RedisFetchStateCache(redis, ttl_seconds=120)

        await cache.put("user-1", videos, sources)

        key, ttl, payload = redis.setex.call_args[0]
        assert key == "tubefeed:fetch:user-1"
        assert ttl == 120
        restored = FetchState.model_validate_json(payload)
        assert [v.video_id for v in restored.videos] == ["v2", "v1"]
        assert restored.sources["UCa"].playlist_id == "UUa"

    @pytest.mark.asyncio
    async def test_get_hit(self, videos, sources):
        payload = FetchState(videos=videos, sources=sources).model_dump_json().encode()
        redis = MagicMock()
        redis.get = AsyncMock(return_value=payload)
        cache = RedisFetchStateCache(redis)

        entry = await cache.get("user-1")

        redis.get.assert_awaited_once_with("tubefeed:fetch:user-1")
        assert entry.sources["UCb"].exhausted is True
        assert entry.videos[0].published_at == at(2)

    @pytest.mark.asyncio
    async def test_get_miss(self):
        redis = MagicMock()
        redis.get = AsyncMock(return_value=None)
        cache = RedisFetchStateCache(redis)

        assert await cache.get("user-1") is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_dropped(self):
        redis = MagicMock()
        redis.get = AsyncMock(return_value=b"{not json")
        redis.delete = AsyncMock()
        cache = RedisFetchStateCache(redis)

        assert await cache.get("user-1") is None
        redis.delete.assert_awaited_once_with("tubefeed:fetch:user-1")

    @pytest.mark.asyncio
    async def test_invalidate(self):
        redis = MagicMock()
        redis.delete = AsyncMock()
        cache = RedisFetchStateCache(redis)

        await cache.invalidate("user-1")

        redis.delete.assert_awaited_once_with("tubefeed:fetch:user-1")


class TestFactory:
    """Tests for get_fetch_cache."""

    def test_memory_backend(self):
        settings = Settings(fetch_cache_backend="memory", fetch_cache_ttl_seconds=60)
        cache = get_fetch_cache(settings)
        assert isinstance(cache, InMemoryFetchStateCache)
        assert cache.ttl_seconds == 60

    def test_redis_backend(self):
        settings = Settings(fetch_cache_backend="redis")
        cache = get_fetch_cache(settings, redis=MagicMock())
        assert isinstance(cache, RedisFetchStateCache)

    def test_redis_backend_needs_client(self):
        settings = Settings(fetch_cache_backend="redis")
        with pytest.raises(ValueError):
            get_fetch_cache(settings)
