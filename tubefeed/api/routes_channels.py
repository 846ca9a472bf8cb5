"""Channel management endpoints for the tubefeed API."""

import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.api.dependencies import get_fetch_cache, get_youtube_client
from tubefeed.auth.session import require_user
from tubefeed.db import crud
from tubefeed.db.models import User, UserChannel
from tubefeed.db.session import get_session
from tubefeed.feed.cache import FetchStateCache
from tubefeed.youtube.client import YouTubeClient
from tubefeed.youtube.errors import QuotaExceeded, UpstreamError

logger = logging.getLogger(__name__)

# YouTube channel IDs start with UC and are 24 characters (alphanumeric, -, _)
CHANNEL_ID_PATTERN = re.compile(r"^UC[\w-]{22}$")

router = APIRouter(prefix="/api/channels", tags=["channels"])
limiter = Limiter(key_func=get_remote_address)


class AddChannelRequest(BaseModel):
    """Request model for adding a channel."""

    channel_id: str


class SetEnabledRequest(BaseModel):
    """Request model for enabling or disabling a channel."""

    enabled: bool


def _channel_dict(ch: UserChannel) -> dict:
    return {
        "id": ch.id,
        "channel_id": ch.channel_id,
        "channel_title": ch.channel_title,
        "description": ch.description or "",
        "thumbnail": ch.thumbnail or "",
        "enabled": ch.enabled,
        "last_fetched_at": ch.last_fetched_at.isoformat() if ch.last_fetched_at else None,
        "added_at": ch.added_at.isoformat() if ch.added_at else None,
    }


@router.get("")
@limiter.limit("60/minute")
async def list_channels(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """List the user's channels, newest first."""
    channels = await crud.list_user_channels(db, user.id)
    return {"channels": [_channel_dict(ch) for ch in channels]}


@router.get("/search")
@limiter.limit("30/minute")
async def search_channels(
    request: Request,
    q: str = Query(default="", description="Search text"),
    client: YouTubeClient = Depends(get_youtube_client),
):
    """Search YouTube channels by name."""
    if not q.strip():
        raise HTTPException(status_code=400, detail="Query is required")

    try:
        results = await client.search_channels(q.strip())
    except QuotaExceeded:
        raise HTTPException(
            status_code=429,
            detail="YouTube API quota exceeded. Please try again tomorrow.",
        )
    except UpstreamError:
        logger.error("Channel search failed", exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to search channels")

    return {"channels": [r.model_dump() for r in results]}


@router.post("", status_code=201)
@limiter.limit("30/minute")
async def add_channel(
    request: Request,
    body: AddChannelRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    client: YouTubeClient = Depends(get_youtube_client),
    cache: FetchStateCache = Depends(get_fetch_cache),
):
    """
    Add a channel to the user's list.

    Channel metadata is looked up on YouTube. The user's cached feed is
    invalidated so the new channel shows up on the next request.
    """
    if not CHANNEL_ID_PATTERN.match(body.channel_id):
        raise HTTPException(
            status_code=400,
            detail="Invalid channel_id format. Must be a valid YouTube channel ID (UC...)",
        )

    if await crud.get_user_channel(db, user.id, body.channel_id):
        raise HTTPException(status_code=400, detail="Channel already added")

    try:
        info = await client.get_channel(body.channel_id)
    except QuotaExceeded:
        raise HTTPException(
            status_code=429,
            detail="YouTube API quota exceeded. Please try again tomorrow.",
        )
    except UpstreamError:
        logger.error(f"Failed to look up channel {body.channel_id}", exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to get channel details")

    if info is None:
        raise HTTPException(status_code=404, detail="Channel not found")

    channel = await crud.add_user_channel(db, user.id, info)
    await cache.invalidate(user.id)
    return _channel_dict(channel)


@router.delete("/{channel_id}", status_code=204)
@limiter.limit("30/minute")
async def delete_channel(
    request: Request,
    channel_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    cache: FetchStateCache = Depends(get_fetch_cache),
):
    """Remove a channel and its stored videos."""
    removed = await crud.delete_user_channel(db, user.id, channel_id)
    await cache.invalidate(user.id)
    if not removed:
        raise HTTPException(status_code=404, detail="Channel not found")


@router.patch("/{channel_id}")
@limiter.limit("60/minute")
async def set_channel_enabled(
    request: Request,
    channel_id: str,
    body: SetEnabledRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    cache: FetchStateCache = Depends(get_fetch_cache),
):
    """Enable or disable a channel in the user's feeds."""
    if not await crud.set_channel_enabled(db, user.id, channel_id, body.enabled):
        raise HTTPException(status_code=404, detail="Channel not found")

    await cache.invalidate(user.id)
    return {"channel_id": channel_id, "enabled": body.enabled}
