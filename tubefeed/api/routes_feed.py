"""Feed endpoints for the tubefeed API."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.api.dependencies import get_aggregator
from tubefeed.auth.session import require_user
from tubefeed.config import get_settings
from tubefeed.db import crud
from tubefeed.db.models import StoredVideo, User
from tubefeed.db.session import get_session
from tubefeed.feed.aggregator import (
    FeedAggregator,
    FeedType,
    FeedUnavailable,
    InvalidFeedRequest,
    parse_feed_type,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/videos", tags=["feed"])
limiter = Limiter(key_func=get_remote_address)


def _parse_type(value: str) -> FeedType:
    try:
        return parse_feed_type(value)
    except InvalidFeedRequest as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("")
@limiter.limit("120/minute")
async def get_feed(
    request: Request,
    page: int = Query(default=1, description="1-based page number"),
    type: str = Query(default="all", description="all, videos or shorts"),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
    aggregator: FeedAggregator = Depends(get_aggregator),
):
    """
    Aggregated feed of the user's enabled channels.

    Pages are served from the per-user fetch cache; more upstream pages are
    pulled only when the requested page reaches past what is buffered.
    Videos marked as not interested are left out.

    Returns:
        JSON response with items, has_more, total (a lower bound that grows
        as more is fetched), page, quota_exceeded and partial
    """
    if page < 1:
        raise HTTPException(status_code=400, detail="page must be >= 1")
    feed_type = _parse_type(type)

    channel_ids = await crud.list_enabled_channel_ids(db, user.id)
    hidden = await crud.get_not_interested_ids(db, user.id)

    try:
        result = await aggregator.get_page(
            user.id, channel_ids, page=page, feed_type=feed_type, exclude_ids=hidden
        )
    except FeedUnavailable:
        logger.error(f"Feed unavailable for user {user.id}")
        raise HTTPException(status_code=502, detail="Failed to fetch videos")

    return result.model_dump(mode="json")


def _stored_video_dict(v: StoredVideo) -> dict:
    return {
        "video_id": v.video_id,
        "channel_id": v.channel_id,
        "channel_title": v.channel_title,
        "title": v.title,
        "description": v.description or "",
        "thumbnail": v.thumbnail or "",
        "published_at": v.published_at.isoformat(),
        "duration": v.duration or "",
        "is_short": v.is_short,
    }


@router.get("/stored")
@limiter.limit("120/minute")
async def get_stored_feed(
    request: Request,
    page: int = Query(default=1, description="1-based page number"),
    type: str = Query(default="all", description="all, videos or shorts"),
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Feed read straight from videos stored by channel refreshes.

    A plain offset/limit query over the user's enabled channels.
    """
    if page < 1:
        raise HTTPException(status_code=400, detail="page must be >= 1")
    feed_type = _parse_type(type)
    page_size = get_settings().page_size

    shorts = None if feed_type is FeedType.ALL else feed_type is FeedType.SHORTS
    channel_ids = await crud.list_enabled_channel_ids(db, user.id)
    hidden = await crud.get_not_interested_ids(db, user.id)

    videos, total = await crud.list_stored_videos(
        db,
        user.id,
        channel_ids,
        shorts=shorts,
        exclude_ids=hidden,
        offset=(page - 1) * page_size,
        limit=page_size,
    )

    return {
        "items": [_stored_video_dict(v) for v in videos],
        "has_more": page * page_size < total,
        "total": total,
        "page": page,
    }
