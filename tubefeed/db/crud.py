"""CRUD utilities for database operations."""

from collections.abc import Collection, Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.db.models import (
    ContinueWatching,
    NotInterested,
    StoredVideo,
    User,
    UserChannel,
    WatchLater,
    uid,
)
from tubefeed.youtube.models import ChannelInfo, Video

# Rows per INSERT statement; keeps SQLite under its bound-parameter limit
INSERT_CHUNK_SIZE = 500


def _utc_naive(dt: datetime) -> datetime:
    """Convert to naive UTC for DateTime columns."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Get a user by their ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def update_user_access_token(
    db: AsyncSession, user: User, access_token_enc: bytes, expires_at: datetime
) -> None:
    """Store a freshly issued (encrypted) access token on the user."""
    user.access_token_enc = access_token_enc
    user.access_token_expires_at = _utc_naive(expires_at)
    await db.commit()


# Channels


async def list_user_channels(
    db: AsyncSession, user_id: str, enabled_only: bool = False
) -> list[UserChannel]:
    """List all channels for a user.

    Args:
        db: Database session
        user_id: The user's ID
        enabled_only: If True, only return enabled channels

    Returns:
        List of UserChannel objects, newest first
    """
    query = select(UserChannel).where(UserChannel.user_id == user_id)
    if enabled_only:
        query = query.where(UserChannel.enabled)
    result = await db.execute(
        query.order_by(UserChannel.added_at.desc(), UserChannel.channel_title)
    )
    return list(result.scalars().all())


async def list_enabled_channel_ids(db: AsyncSession, user_id: str) -> list[str]:
    """Return the channel IDs the user has enabled."""
    result = await db.execute(
        select(UserChannel.channel_id)
        .where(UserChannel.user_id == user_id, UserChannel.enabled)
        .order_by(UserChannel.channel_id)
    )
    return list(result.scalars().all())


async def get_user_channel(
    db: AsyncSession, user_id: str, channel_id: str
) -> UserChannel | None:
    """Get one of the user's channels by YouTube channel ID."""
    result = await db.execute(
        select(UserChannel).where(
            UserChannel.user_id == user_id,
            UserChannel.channel_id == channel_id,
        )
    )
    return result.scalar_one_or_none()


async def add_user_channel(
    db: AsyncSession, user_id: str, info: ChannelInfo
) -> UserChannel:
    """Add a channel for a user from its YouTube metadata."""
    channel = UserChannel(
        user_id=user_id,
        channel_id=info.channel_id,
        channel_title=info.title,
        description=info.description,
        thumbnail=info.thumbnail,
    )
    db.add(channel)
    await db.commit()
    await db.refresh(channel)
    return channel


async def delete_user_channel(db: AsyncSession, user_id: str, channel_id: str) -> bool:
    """Remove a channel (and its stored videos) from the user's list.

    Returns:
        True if a channel was removed
    """
    result = await db.execute(
        delete(UserChannel).where(
            UserChannel.user_id == user_id,
            UserChannel.channel_id == channel_id,
        )
    )
    await db.execute(
        delete(StoredVideo).where(
            StoredVideo.user_id == user_id,
            StoredVideo.channel_id == channel_id,
        )
    )
    await db.commit()
    return result.rowcount > 0


async def set_channel_enabled(
    db: AsyncSession, user_id: str, channel_id: str, enabled: bool
) -> bool:
    """Enable or disable a channel.

    Returns:
        True if the channel exists
    """
    result = await db.execute(
        update(UserChannel)
        .where(
            UserChannel.user_id == user_id,
            UserChannel.channel_id == channel_id,
        )
        .values(enabled=enabled)
    )
    await db.commit()
    return result.rowcount > 0


async def set_channel_playlist_id(
    db: AsyncSession, channel_pk: str, playlist_id: str
) -> None:
    """Persist a resolved uploads playlist id so it is never resolved again."""
    await db.execute(
        update(UserChannel)
        .where(UserChannel.id == channel_pk)
        .values(uploads_playlist_id=playlist_id)
    )
    await db.commit()


async def mark_channel_fetched(
    db: AsyncSession, channel_pk: str, when: datetime | None = None
) -> None:
    """Record a successful refresh of a channel."""
    when = when or datetime.now(timezone.utc)
    await db.execute(
        update(UserChannel)
        .where(UserChannel.id == channel_pk)
        .values(last_fetched_at=_utc_naive(when))
    )
    await db.commit()


# Stored videos


async def find_known_video_ids(
    db: AsyncSession, user_id: str, channel_id: str
) -> set[str]:
    """Get the IDs of every stored video of a channel."""
    result = await db.execute(
        select(StoredVideo.video_id).where(
            StoredVideo.user_id == user_id,
            StoredVideo.channel_id == channel_id,
        )
    )
    return set(result.scalars().all())


async def find_most_recent_video(
    db: AsyncSession, user_id: str, channel_id: str
) -> StoredVideo | None:
    """Get the most recently published stored video of a channel."""
    result = await db.execute(
        select(StoredVideo)
        .where(
            StoredVideo.user_id == user_id,
            StoredVideo.channel_id == channel_id,
        )
        .order_by(StoredVideo.published_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _insert_ignoring_conflicts(db: AsyncSession, model=StoredVideo):
    """Return the dialect's INSERT construct with ON CONFLICT DO NOTHING.

    Every per-user video table is unique on (user_id, video_id).
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model).on_conflict_do_nothing(
            index_elements=["user_id", "video_id"]
        )
    elif dialect == "sqlite":
        return sqlite.insert(model).on_conflict_do_nothing(
            index_elements=["user_id", "video_id"]
        )
    else:
        raise ValueError(f"Unsupported database dialect: {dialect}")


async def insert_videos_ignoring_duplicates(
    db: AsyncSession, user_id: str, videos: Sequence[Video]
) -> None:
    """Bulk insert videos, skipping any the user already has.

    Concurrent refreshes of the same channel may race to insert the same
    video; the unique (user_id, video_id) constraint turns the loser's row
    into a no-op instead of an error.
    """
    if not videos:
        return

    rows = [
        {
            "id": uid(),
            "user_id": user_id,
            "video_id": v.video_id,
            "channel_id": v.channel_id,
            "channel_title": v.channel_title,
            "title": v.title,
            "description": v.description or None,
            "thumbnail": v.thumbnail or None,
            "published_at": _utc_naive(v.published_at),
            "duration": v.duration or None,
            "is_short": v.is_short,
        }
        for v in videos
    ]

    for start in range(0, len(rows), INSERT_CHUNK_SIZE):
        stmt = _insert_ignoring_conflicts(db).values(rows[start : start + INSERT_CHUNK_SIZE])
        await db.execute(stmt)
    await db.commit()


async def list_stored_videos(
    db: AsyncSession,
    user_id: str,
    channel_ids: Collection[str],
    shorts: bool | None = None,
    exclude_ids: Collection[str] = (),
    offset: int = 0,
    limit: int = 12,
) -> tuple[list[StoredVideo], int]:
    """Offset/limit read of stored videos, newest first.

    Args:
        db: Database session
        user_id: The user's ID
        channel_ids: Channels to include
        shorts: True for shorts only, False for long-form only, None for both
        exclude_ids: Video IDs to leave out
        offset: Rows to skip
        limit: Maximum rows to return

    Returns:
        Tuple of (page of videos, total matching count)
    """
    if not channel_ids:
        return [], 0

    conditions = [
        StoredVideo.user_id == user_id,
        StoredVideo.channel_id.in_(list(channel_ids)),
    ]
    if shorts is not None:
        conditions.append(StoredVideo.is_short == shorts)
    if exclude_ids:
        conditions.append(StoredVideo.video_id.not_in(list(exclude_ids)))

    total = await db.scalar(select(func.count()).select_from(StoredVideo).where(*conditions))
    result = await db.execute(
        select(StoredVideo)
        .where(*conditions)
        .order_by(StoredVideo.published_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


# Watch later


async def list_watch_later(db: AsyncSession, user_id: str) -> list[WatchLater]:
    """List the user's watch-later videos, most recently added first."""
    result = await db.execute(
        select(WatchLater)
        .where(WatchLater.user_id == user_id)
        .order_by(WatchLater.created_at.desc())
    )
    return list(result.scalars().all())


async def add_watch_later(
    db: AsyncSession, user_id: str, video: dict
) -> WatchLater | None:
    """Add a video to watch later.

    Safe under concurrent adds of the same video: exactly one caller gets
    the new row, the others get None.

    Returns:
        The new row, or None if the video is already saved
    """
    stmt = _insert_ignoring_conflicts(db, WatchLater).values(
        id=uid(), user_id=user_id, **video
    )
    result = await db.execute(stmt)
    await db.commit()
    if result.rowcount == 0:
        return None

    row = await db.execute(
        select(WatchLater).where(
            WatchLater.user_id == user_id,
            WatchLater.video_id == video["video_id"],
        )
    )
    return row.scalar_one()


async def remove_watch_later(db: AsyncSession, user_id: str, video_id: str) -> bool:
    """Remove a video from watch later."""
    result = await db.execute(
        delete(WatchLater).where(
            WatchLater.user_id == user_id,
            WatchLater.video_id == video_id,
        )
    )
    await db.commit()
    return result.rowcount > 0


# Continue watching


async def list_continue_watching(
    db: AsyncSession, user_id: str, limit: int = 50
) -> list[ContinueWatching]:
    """List partially watched videos, most recently watched first."""
    result = await db.execute(
        select(ContinueWatching)
        .where(ContinueWatching.user_id == user_id)
        .order_by(ContinueWatching.last_watched_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def upsert_continue_watching(
    db: AsyncSession, user_id: str, video: dict, position_seconds: int = 0
) -> ContinueWatching:
    """Record playback progress for a video (upsert)."""
    result = await db.execute(
        select(ContinueWatching).where(
            ContinueWatching.user_id == user_id,
            ContinueWatching.video_id == video["video_id"],
        )
    )
    item = result.scalar_one_or_none()
    now = datetime.now(timezone.utc).replace(tzinfo=None)

    if item:
        for field, value in video.items():
            setattr(item, field, value)
        item.position_seconds = position_seconds
        item.last_watched_at = now
    else:
        item = ContinueWatching(
            user_id=user_id,
            position_seconds=position_seconds,
            last_watched_at=now,
            **video,
        )
        db.add(item)

    await db.commit()
    await db.refresh(item)
    return item


async def remove_continue_watching(db: AsyncSession, user_id: str, video_id: str) -> bool:
    """Remove a video from continue watching."""
    result = await db.execute(
        delete(ContinueWatching).where(
            ContinueWatching.user_id == user_id,
            ContinueWatching.video_id == video_id,
        )
    )
    await db.commit()
    return result.rowcount > 0


# Not interested


async def get_not_interested_ids(db: AsyncSession, user_id: str) -> set[str]:
    """Get all video IDs the user marked as not interested."""
    result = await db.execute(
        select(NotInterested.video_id).where(NotInterested.user_id == user_id)
    )
    return set(result.scalars().all())


async def add_not_interested(db: AsyncSession, user_id: str, video_id: str) -> None:
    """Mark a video as not interested (idempotent, also under concurrency)."""
    await db.execute(
        _insert_ignoring_conflicts(db, NotInterested).values(
            id=uid(), user_id=user_id, video_id=video_id
        )
    )
    await db.commit()


async def remove_not_interested(db: AsyncSession, user_id: str, video_id: str) -> bool:
    """Unmark a video as not interested."""
    result = await db.execute(
        delete(NotInterested).where(
            NotInterested.user_id == user_id,
            NotInterested.video_id == video_id,
        )
    )
    await db.commit()
    return result.rowcount > 0
