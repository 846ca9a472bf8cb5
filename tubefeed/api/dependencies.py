"""FastAPI dependencies for API routers."""

from fastapi import Depends, HTTPException
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.auth.credentials import get_user_access_token
from tubefeed.auth.session import require_user
from tubefeed.config import get_settings
from tubefeed.db.models import User
from tubefeed.db.session import get_session, get_sessionmaker
from tubefeed.feed.aggregator import FeedAggregator
from tubefeed.feed.cache import FetchStateCache, get_fetch_cache as build_fetch_cache
from tubefeed.feed.refresh import RefreshDriver
from tubefeed.youtube.client import YouTubeClient

_redis_client: Redis | None = None
_fetch_cache: FetchStateCache | None = None


def _redis() -> Redis:
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )
    return _redis_client


def get_fetch_cache() -> FetchStateCache:
    """Dependency returning the process-wide fetch-state cache."""
    global _fetch_cache
    if _fetch_cache is None:
        settings = get_settings()
        redis = _redis() if settings.fetch_cache_backend == "redis" else None
        _fetch_cache = build_fetch_cache(settings, redis)
    return _fetch_cache


async def get_youtube_client(
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
) -> YouTubeClient:
    """Build a YouTube client authorized for the current user.

    Uses the user's OAuth access token when one can be obtained, otherwise
    the shared API key.

    Raises:
        HTTPException: 503 if neither credential is available
    """
    settings = get_settings()
    access_token = await get_user_access_token(db, user)
    try:
        return YouTubeClient(
            api_key=settings.youtube_api_key or None,
            access_token=access_token,
            timeout=settings.youtube_http_timeout_seconds,
        )
    except ValueError:
        raise HTTPException(status_code=503, detail="YouTube API is not configured")


async def get_aggregator(
    client: YouTubeClient = Depends(get_youtube_client),
    cache: FetchStateCache = Depends(get_fetch_cache),
) -> FeedAggregator:
    """Dependency returning a feed aggregator for the current request."""
    settings = get_settings()
    return FeedAggregator(
        client,
        cache,
        page_size=settings.page_size,
        source_page_size=settings.source_page_size,
        max_rounds=settings.max_fill_rounds,
        source_timeout=settings.source_timeout_seconds,
    )


async def get_refresh_driver(
    client: YouTubeClient = Depends(get_youtube_client),
) -> RefreshDriver:
    """Dependency returning a refresh driver for the current request."""
    settings = get_settings()
    return RefreshDriver(
        client,
        get_sessionmaker(),
        page_size=settings.refresh_page_size,
        max_pages=settings.refresh_max_pages,
    )
