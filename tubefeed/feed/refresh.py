"""Incremental refresh of stored videos from channel uploads.

Unlike the aggregator, the refresh driver writes to the database and never
touches the fetch-state cache. Uploads playlists are ordered newest first, so
a refresh walks pages from the start and stops at the first video it already
has: everything after that point is known too.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tubefeed.db import crud
from tubefeed.db.models import UserChannel
from tubefeed.youtube.errors import QuotaExceeded, UpstreamError
from tubefeed.youtube.models import Video

from .aggregator import SourceClient

logger = logging.getLogger(__name__)


class UnknownChannel(LookupError):
    """The user does not follow the requested channel."""


@dataclass
class RefreshResult:
    """Outcome of refreshing a single channel."""

    channel_id: str
    new_count: int = 0
    quota_exceeded: bool = False
    error: str | None = None
    latest_published_at: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BulkRefreshResult:
    """Aggregated outcome of refreshing every enabled channel."""

    total_new: int = 0
    channels: int = 0
    quota_exceeded: bool = False
    failed: list[str] = field(default_factory=list)


class RefreshDriver:
    """Pull new uploads for a user's channels into the database."""

    def __init__(
        self,
        client: SourceClient,
        sessionmaker: async_sessionmaker[AsyncSession],
        page_size: int = 50,
        max_pages: int = 20,
    ):
        self.client = client
        self.sessionmaker = sessionmaker
        self.page_size = page_size
        self.max_pages = max_pages

    async def _walk(
        self,
        db: AsyncSession,
        user_id: str,
        channel: UserChannel,
        since: datetime | None = None,
    ) -> int:
        """Page through a channel's uploads and store what is new.

        With ``since`` unset this is an incremental refresh: stop at the first
        known video. With ``since`` set this is a backfill: skip known videos
        and stop at the first one published before ``since``.

        Returns:
            Number of videos staged for insertion
        """
        known = await crud.find_known_video_ids(db, user_id, channel.channel_id)
        playlist_id = channel.uploads_playlist_id
        playlist_saved = playlist_id is not None
        cursor: str | None = None
        staged: list[Video] = []

        for _ in range(self.max_pages):
            page = await self.client.list_page(
                channel.channel_id, self.page_size, cursor, playlist_id
            )

            if page.playlist_id and not playlist_saved:
                await crud.set_channel_playlist_id(db, channel.id, page.playlist_id)
                playlist_saved = True
            playlist_id = page.playlist_id

            done = False
            for video in page.videos:
                if since is not None and video.published_at < since:
                    done = True
                    break
                if video.video_id in known:
                    if since is None:
                        done = True
                        break
                    continue
                staged.append(video)
                known.add(video.video_id)

            cursor = page.next_cursor
            if done or not cursor or not page.videos:
                break
        else:
            logger.warning(
                f"Stopped refreshing channel {channel.channel_id} after {self.max_pages} pages"
            )

        await crud.insert_videos_ignoring_duplicates(db, user_id, staged)
        await crud.mark_channel_fetched(db, channel.id)
        return len(staged)

    async def _run(
        self, user_id: str, channel_id: str, since: datetime | None = None
    ) -> RefreshResult:
        async with self.sessionmaker() as db:
            channel = await crud.get_user_channel(db, user_id, channel_id)
            if channel is None:
                raise UnknownChannel(channel_id)

            try:
                new_count = await self._walk(db, user_id, channel, since)
            except QuotaExceeded:
                logger.warning(f"Quota exceeded refreshing channel {channel_id}")
                return RefreshResult(channel_id, quota_exceeded=True, error="quota exceeded")
            except UpstreamError as e:
                logger.error(f"Failed to refresh channel {channel_id}: {e}")
                return RefreshResult(channel_id, error=str(e))

            latest = await crud.find_most_recent_video(db, user_id, channel_id)

        logger.info(f"Refreshed channel {channel_id} for user {user_id}: {new_count} new")
        return RefreshResult(
            channel_id,
            new_count=new_count,
            latest_published_at=latest.published_at if latest else None,
        )

    async def refresh_channel(self, user_id: str, channel_id: str) -> RefreshResult:
        """Fetch uploads newer than the newest stored video of a channel.

        Raises:
            UnknownChannel: If the user does not follow the channel
        """
        return await self._run(user_id, channel_id)

    async def backfill_channel(
        self, user_id: str, channel_id: str, since: datetime
    ) -> RefreshResult:
        """Fetch every upload published at or after ``since``.

        Raises:
            UnknownChannel: If the user does not follow the channel
        """
        return await self._run(user_id, channel_id, since)

    async def _refresh_isolated(self, user_id: str, channel_id: str) -> RefreshResult:
        try:
            return await self.refresh_channel(user_id, channel_id)
        except Exception as e:
            logger.error(f"Unexpected error refreshing channel {channel_id}", exc_info=True)
            return RefreshResult(channel_id, error=str(e) or type(e).__name__)

    async def refresh_all(self, user_id: str) -> BulkRefreshResult:
        """Refresh every enabled channel in parallel.

        One channel failing never affects the others.
        """
        async with self.sessionmaker() as db:
            channel_ids = await crud.list_enabled_channel_ids(db, user_id)

        if not channel_ids:
            return BulkRefreshResult()

        results = await asyncio.gather(
            *(self._refresh_isolated(user_id, cid) for cid in channel_ids)
        )

        summary = BulkRefreshResult(channels=len(channel_ids))
        for res in results:
            summary.total_new += res.new_count
            if res.quota_exceeded:
                summary.quota_exceeded = True
            if not res.ok:
                summary.failed.append(res.channel_id)
        return summary
