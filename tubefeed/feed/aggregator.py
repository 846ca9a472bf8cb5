"""Feed aggregator that merges paged uploads from many channels.

The aggregator keeps a per-user buffer of videos in the fetch-state cache and
grows it on demand: when a requested page reaches past what is buffered, every
channel that still has pages is asked for its next one, in parallel, for a
bounded number of rounds. Results are merged by video id and kept sorted
newest first, so page N is always a plain slice of the filtered buffer.
"""

import asyncio
import logging
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from pydantic import BaseModel

from tubefeed.youtube.errors import QuotaExceeded, SourceNotFound, TransientUpstreamError
from tubefeed.youtube.models import Video, VideoPage

from .cache import FetchStateCache, SourceState
from .merge import merge_by_identity

logger = logging.getLogger(__name__)


class FeedType(str, Enum):
    """Which items a feed page contains."""

    ALL = "all"
    VIDEOS = "videos"  # long-form only
    SHORTS = "shorts"  # short-form only


class InvalidFeedRequest(ValueError):
    """Malformed page or type parameters; rejected before any upstream call."""


class FeedUnavailable(Exception):
    """Nothing is buffered and every channel failed with a non-quota error."""


class SourceClient(Protocol):
    """The part of the YouTube client the aggregator and refresh driver use."""

    async def list_page(
        self,
        channel_id: str,
        page_size: int = ...,
        cursor: str | None = None,
        playlist_id: str | None = None,
    ) -> VideoPage: ...


@dataclass
class SourceFetchResult:
    """Outcome of fetching one channel in a fan-out round."""

    channel_id: str
    page: VideoPage | None = None
    error: Exception | None = None


class FeedPage(BaseModel):
    """One page of the aggregated feed.

    ``total`` is the number of matching items buffered so far. It grows as
    more upstream pages are fetched, so treat it as a lower bound.
    """

    items: list[Video]
    has_more: bool
    total: int
    page: int
    quota_exceeded: bool = False
    partial: bool = False


def parse_feed_type(value: str | FeedType) -> FeedType:
    """Convert a query-string value to a FeedType.

    Raises:
        InvalidFeedRequest: If the value is not a known type
    """
    try:
        return FeedType(value)
    except ValueError:
        raise InvalidFeedRequest(f"Unknown feed type: {value!r}") from None


def sort_newest_first(videos: list[Video]) -> None:
    """Sort a buffer in place by publish time, newest first."""
    videos.sort(key=lambda v: v.published_at, reverse=True)


def filter_videos(
    videos: Sequence[Video], feed_type: FeedType, exclude_ids: Collection[str] = ()
) -> list[Video]:
    """Apply the type filter and drop excluded (not interested) ids."""
    return [
        v
        for v in videos
        if v.video_id not in exclude_ids
        and (
            feed_type is FeedType.ALL
            or (feed_type is FeedType.SHORTS) == v.is_short
        )
    ]


class FeedAggregator:
    """Paginated, cached view over the uploads of a user's channels."""

    def __init__(
        self,
        client: SourceClient,
        cache: FetchStateCache,
        page_size: int = 12,
        source_page_size: int = 20,
        max_rounds: int = 3,
        source_timeout: float = 20.0,
    ):
        self.client = client
        self.cache = cache
        self.page_size = page_size
        self.source_page_size = source_page_size
        self.max_rounds = max_rounds
        self.source_timeout = source_timeout

    async def _fetch_source(self, channel_id: str, state: SourceState) -> SourceFetchResult:
        """Fetch the next page of one channel, capturing any failure."""
        try:
            page = await asyncio.wait_for(
                self.client.list_page(
                    channel_id,
                    self.source_page_size,
                    state.cursor,
                    state.playlist_id,
                ),
                timeout=self.source_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Timed out fetching channel {channel_id}")
            return SourceFetchResult(
                channel_id, error=TransientUpstreamError(f"Timed out fetching {channel_id}")
            )
        except QuotaExceeded as e:
            logger.warning(f"Quota exceeded fetching channel {channel_id}")
            return SourceFetchResult(channel_id, error=e)
        except SourceNotFound as e:
            logger.info(f"Channel {channel_id} not found upstream, marking exhausted")
            return SourceFetchResult(channel_id, error=e)
        except Exception as e:
            logger.error(f"Failed to get videos for channel {channel_id}", exc_info=True)
            return SourceFetchResult(channel_id, error=e)
        return SourceFetchResult(channel_id, page=page)

    async def get_page(
        self,
        user_id: str,
        channel_ids: Sequence[str],
        page: int = 1,
        feed_type: str | FeedType = FeedType.ALL,
        exclude_ids: Collection[str] = (),
    ) -> FeedPage:
        """Return one page of the merged feed, fetching upstream as needed.

        Args:
            user_id: Owner of the cache entry
            channel_ids: The user's enabled channels
            page: 1-based page number
            feed_type: all, videos (long-form) or shorts
            exclude_ids: Video ids to hide (not interested)

        Returns:
            FeedPage with the slice, has_more, and the buffered total

        Raises:
            InvalidFeedRequest: For a page below 1 or an unknown type
            FeedUnavailable: If nothing could be fetched from any channel
        """
        if not isinstance(page, int) or page < 1:
            raise InvalidFeedRequest(f"Page must be a positive integer, got {page!r}")
        feed_type = parse_feed_type(feed_type)

        if not channel_ids:
            return FeedPage(items=[], has_more=False, total=0, page=page)

        channel_ids = list(dict.fromkeys(channel_ids))
        entry = await self.cache.get(user_id)
        if entry is not None and set(entry.sources) == set(channel_ids):
            videos = list(entry.videos)
            sources = {cid: s.model_copy() for cid, s in entry.sources.items()}
        else:
            if entry is not None:
                logger.info(f"Channel set changed for user {user_id}, rebuilding feed buffer")
            videos = []
            sources = {cid: SourceState() for cid in channel_ids}

        end = page * self.page_size
        succeeded = 0
        failed = 0
        quota_hit = False

        for round_no in range(1, self.max_rounds + 1):
            active = [cid for cid, s in sources.items() if not s.exhausted]
            if not active:
                break
            if videos and len(filter_videos(videos, feed_type, exclude_ids)) >= end:
                break

            results = await asyncio.gather(
                *(self._fetch_source(cid, sources[cid]) for cid in active)
            )

            incoming: list[Video] = []
            for res in results:
                if res.page is not None:
                    succeeded += 1
                    sources[res.channel_id] = SourceState(
                        playlist_id=res.page.playlist_id,
                        cursor=res.page.next_cursor,
                        exhausted=res.page.next_cursor is None,
                    )
                    incoming.extend(res.page.videos)
                elif isinstance(res.error, SourceNotFound):
                    sources[res.channel_id] = sources[res.channel_id].model_copy(
                        update={"exhausted": True}
                    )
                else:
                    failed += 1
                    quota_hit = quota_hit or isinstance(res.error, QuotaExceeded)

            videos, added = merge_by_identity(videos, incoming, key=lambda v: v.video_id)
            sort_newest_first(videos)
            await self.cache.put(user_id, videos, sources)

            logger.debug(
                f"Feed round {round_no} for user {user_id}: "
                f"{len(active)} channels, {added} new, {len(videos)} buffered"
            )
            if added == 0:
                break

        if not videos and succeeded == 0 and failed > 0 and not quota_hit:
            raise FeedUnavailable("Failed to fetch videos from every channel")

        filtered = filter_videos(videos, feed_type, exclude_ids)
        items = filtered[(page - 1) * self.page_size : end]
        has_more = end < len(filtered) or any(not s.exhausted for s in sources.values())

        return FeedPage(
            items=items,
            has_more=has_more,
            total=len(filtered),
            page=page,
            quota_exceeded=quota_hit,
            partial=failed > 0,
        )
