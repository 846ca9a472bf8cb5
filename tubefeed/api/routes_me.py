"""User profile endpoints for the tubefeed API."""

from fastapi import APIRouter, Depends, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.auth.session import require_user
from tubefeed.db import crud
from tubefeed.db.models import User
from tubefeed.db.session import get_session

router = APIRouter(prefix="/api", tags=["user"])
limiter = Limiter(key_func=get_remote_address)


@router.get("/me")
@limiter.limit("60/minute")
async def get_current_user_profile(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Get the current user's profile and channel counts.

    Rate limit: 60 requests per minute per IP.
    """
    channels = await crud.list_user_channels(db, user.id)
    return {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "created_at": user.created_at.isoformat(),
        "channel_count": len(channels),
        "enabled_channel_count": sum(1 for ch in channels if ch.enabled),
    }
