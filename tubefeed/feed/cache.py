"""Per-user fetch-state cache for the feed aggregator.

An entry holds the merged video buffer plus, for every channel, the uploads
playlist id, the next page cursor and whether the channel is exhausted. The
cache is a performance optimization only: losing an entry costs upstream
calls, never correctness.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from pydantic import BaseModel, Field
from redis.asyncio import Redis

from tubefeed.config import Settings
from tubefeed.youtube.models import Video

logger = logging.getLogger(__name__)


class SourceState(BaseModel):
    """Pagination state of one channel within a cache entry."""

    playlist_id: str | None = None
    cursor: str | None = None
    exhausted: bool = False


class FetchState(BaseModel):
    """A user's buffered feed and per-channel pagination state."""

    videos: list[Video] = Field(default_factory=list)
    sources: dict[str, SourceState] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FetchStateCache(ABC):
    """Keyed, expiring store of :class:`FetchState` per user."""

    def __init__(self, ttl_seconds: int = 300):
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def get(self, user_id: str) -> FetchState | None:
        """Return the user's entry, or None if absent or expired."""

    @abstractmethod
    async def put(
        self, user_id: str, videos: list[Video], sources: dict[str, SourceState]
    ) -> None:
        """Replace the user's entry and reset its timestamp."""

    @abstractmethod
    async def invalidate(self, user_id: str) -> None:
        """Drop the user's entry.

        Must be called whenever the user's channel list or enabled set changes.
        """


class InMemoryFetchStateCache(FetchStateCache):
    """Process-local cache backed by a dict."""

    def __init__(self, ttl_seconds: int = 300):
        super().__init__(ttl_seconds)
        self._entries: dict[str, tuple[float, FetchState]] = {}

    async def get(self, user_id: str) -> FetchState | None:
        cached = self._entries.get(user_id)
        if cached is None:
            return None
        stored_at, state = cached
        if time.monotonic() - stored_at >= self.ttl_seconds:
            del self._entries[user_id]
            return None
        return state

    async def put(
        self, user_id: str, videos: list[Video], sources: dict[str, SourceState]
    ) -> None:
        state = FetchState(
            videos=list(videos),
            sources={cid: s.model_copy() for cid, s in sources.items()},
        )
        self._entries[user_id] = (time.monotonic(), state)

    async def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)


def _key(user_id: str) -> str:
    """Generate Redis key for a user's fetch state."""
    return f"tubefeed:fetch:{user_id}"


class RedisFetchStateCache(FetchStateCache):
    """Cache shared between instances through Redis, expired with SETEX."""

    def __init__(self, redis: Redis, ttl_seconds: int = 300):
        super().__init__(ttl_seconds)
        self.redis = redis

    async def get(self, user_id: str) -> FetchState | None:
        if cached_data := await self.redis.get(_key(user_id)):
            try:
                return FetchState.model_validate_json(cached_data)
            except ValueError:
                logger.warning(f"Discarding unreadable fetch state for user {user_id}")
                await self.redis.delete(_key(user_id))
        return None

    async def put(
        self, user_id: str, videos: list[Video], sources: dict[str, SourceState]
    ) -> None:
        state = FetchState(videos=list(videos), sources=dict(sources))
        await self.redis.setex(_key(user_id), self.ttl_seconds, state.model_dump_json())

    async def invalidate(self, user_id: str) -> None:
        await self.redis.delete(_key(user_id))


def get_fetch_cache(settings: Settings, redis: Redis | None = None) -> FetchStateCache:
    """
    Factory function to get the configured fetch-state cache.

    Args:
        settings: Application settings
        redis: Redis client, required for the redis backend

    Returns:
        Configured cache instance
    """
    if settings.fetch_cache_backend == "memory":
        return InMemoryFetchStateCache(settings.fetch_cache_ttl_seconds)
    elif settings.fetch_cache_backend == "redis":
        if redis is None:
            raise ValueError("A Redis client is required for the redis fetch cache")
        return RedisFetchStateCache(redis, settings.fetch_cache_ttl_seconds)
    else:
        raise ValueError(f"Unknown fetch cache backend: {settings.fetch_cache_backend}")
