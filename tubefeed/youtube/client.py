"""YouTube Data API v3 client for channel uploads and metadata."""

import logging
from typing import Any

import httpx

from tubefeed.feed.classifier import is_short_form

from .errors import QuotaExceeded, SourceNotFound, TransientUpstreamError, UpstreamError
from .models import ChannelInfo, Video, VideoPage

logger = logging.getLogger(__name__)

# Error reasons the API uses when it refuses a call for budget reasons
QUOTA_REASONS = frozenset(
    {"quotaExceeded", "rateLimitExceeded", "userRateLimitExceeded", "dailyLimitExceeded"}
)


def _error_reason(response: httpx.Response) -> str | None:
    """Extract ``error.errors[0].reason`` from an API error body, if any."""
    try:
        data = response.json()
    except ValueError:
        return None
    errors = (data.get("error") or {}).get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("reason")
    return None


def _thumbnail(snippet: dict[str, Any]) -> str:
    thumbs = snippet.get("thumbnails") or {}
    for size in ("high", "medium", "default"):
        url = (thumbs.get(size) or {}).get("url")
        if url:
            return url
    return ""


class YouTubeClient:
    """Client for the parts of the YouTube Data API v3 the feed needs.

    Requests are authorized with the user's OAuth access token when one is
    available, otherwise with the shared API key. The client holds no state
    besides those credentials; callers cache resolved playlist ids themselves.
    """

    BASE = "https://www.googleapis.com/youtube/v3"

    def __init__(
        self,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float = 15.0,
    ):
        """Initialize the client.

        Args:
            api_key: Shared YouTube Data API key
            access_token: Optional OAuth 2.0 access token for the current user
            timeout: Per-request timeout in seconds

        Raises:
            ValueError: If neither credential is provided
        """
        if not api_key and not access_token:
            raise ValueError("YouTube API key not configured")

        self._headers: dict[str, str] = {}
        self._auth_params: dict[str, str] = {}
        if access_token:
            self._headers["Authorization"] = f"Bearer {access_token}"
        else:
            self._auth_params["key"] = api_key  # type: ignore[assignment]
        self._timeout = timeout

    async def _get(
        self, client: httpx.AsyncClient, resource: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        """GET a resource and classify any failure.

        Raises:
            QuotaExceeded: 429, or 403 with a quota/rate-limit reason
            SourceNotFound: 404
            TransientUpstreamError: network errors, timeouts, 5xx and
                unreadable success bodies
            UpstreamError: any other non-success status
        """
        try:
            r = await client.get(
                f"{self.BASE}/{resource}",
                headers=self._headers,
                params={**params, **self._auth_params},
            )
        except httpx.TimeoutException as e:
            raise TransientUpstreamError(f"Timed out calling {resource}") from e
        except httpx.TransportError as e:
            raise TransientUpstreamError(f"Network error calling {resource}: {e}") from e

        if r.status_code < 400:
            try:
                data = r.json()
            except ValueError as e:
                raise TransientUpstreamError(
                    f"Malformed response from {resource}", r.status_code
                ) from e
            if not isinstance(data, dict):
                raise TransientUpstreamError(
                    f"Unexpected response shape from {resource}", r.status_code
                )
            return data

        reason = _error_reason(r)
        if r.status_code == 429 or (r.status_code == 403 and reason in QUOTA_REASONS):
            raise QuotaExceeded(
                "YouTube API quota exceeded. Please try again tomorrow.", r.status_code
            )
        if r.status_code == 404:
            raise SourceNotFound(f"{resource} not found ({reason})", r.status_code)
        if r.status_code >= 500:
            raise TransientUpstreamError(
                f"YouTube API error {r.status_code} on {resource}", r.status_code
            )
        raise UpstreamError(
            f"YouTube API rejected {resource}: {r.status_code} ({reason})", r.status_code
        )

    async def _resolve_uploads_playlist(
        self, client: httpx.AsyncClient, channel_id: str
    ) -> str:
        data = await self._get(
            client, "channels", {"part": "contentDetails", "id": channel_id}
        )
        items = data.get("items") or []
        if not items:
            raise SourceNotFound(f"Channel {channel_id} not found")
        try:
            return items[0]["contentDetails"]["relatedPlaylists"]["uploads"]
        except (KeyError, TypeError) as e:
            raise SourceNotFound(f"Channel {channel_id} has no uploads playlist") from e

    async def resolve_uploads_playlist(self, channel_id: str) -> str:
        """Resolve the uploads playlist id of a channel.

        Costs one API call. Callers should keep the result and pass it back
        to :meth:`list_page`.

        Raises:
            SourceNotFound: If the channel does not exist
        """
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._resolve_uploads_playlist(client, channel_id)

    async def _fetch_durations(
        self, client: httpx.AsyncClient, video_ids: list[str]
    ) -> dict[str, str]:
        """Fetch contentDetails.duration for a batch of ids in one request.

        Quota denials propagate. Any other failure degrades to no durations,
        which classifies every item on the page as long-form.
        """
        try:
            data = await self._get(
                client,
                "videos",
                {"part": "contentDetails", "id": ",".join(video_ids)},
            )
        except QuotaExceeded:
            raise
        except UpstreamError as e:
            logger.warning(f"Failed to fetch durations for {len(video_ids)} videos: {e}")
            return {}

        return {
            it["id"]: (it.get("contentDetails") or {}).get("duration", "")
            for it in data.get("items", [])
        }

    async def list_page(
        self,
        channel_id: str,
        page_size: int = 20,
        cursor: str | None = None,
        playlist_id: str | None = None,
    ) -> VideoPage:
        """Fetch one page of a channel's uploads, newest first.

        Args:
            channel_id: YouTube channel ID
            page_size: Items per page (max 50)
            cursor: Opaque page token from a previous page, None for the start
            playlist_id: Uploads playlist id if already known

        Returns:
            VideoPage with the playlist id used, the classified videos and
            the next cursor (None when the playlist is exhausted)
        """
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            if not playlist_id:
                playlist_id = await self._resolve_uploads_playlist(client, channel_id)

            params: dict[str, Any] = {
                "part": "snippet",
                "playlistId": playlist_id,
                "maxResults": page_size,
            }
            if cursor:
                params["pageToken"] = cursor

            data = await self._get(client, "playlistItems", params)
            entries = data.get("items") or []

            video_ids = [
                e["snippet"]["resourceId"]["videoId"]
                for e in entries
                if (e.get("snippet") or {}).get("resourceId", {}).get("videoId")
            ]
            durations = await self._fetch_durations(client, video_ids) if video_ids else {}

        videos: list[Video] = []
        for e in entries:
            snippet = e.get("snippet") or {}
            video_id = snippet.get("resourceId", {}).get("videoId")
            published = snippet.get("publishedAt")
            if not video_id or not published:
                continue
            duration = durations.get(video_id, "")
            videos.append(
                Video(
                    video_id=video_id,
                    channel_id=snippet.get("channelId") or channel_id,
                    channel_title=snippet.get("channelTitle", ""),
                    title=snippet.get("title", ""),
                    description=snippet.get("description", ""),
                    thumbnail=_thumbnail(snippet),
                    published_at=published,
                    duration=duration,
                    is_short=is_short_form(duration),
                )
            )

        return VideoPage(
            playlist_id=playlist_id,
            videos=videos,
            next_cursor=data.get("nextPageToken") or None,
        )

    async def get_channel(self, channel_id: str) -> ChannelInfo | None:
        """Fetch channel metadata, or None if the channel does not exist."""
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            data = await self._get(
                client, "channels", {"part": "snippet,statistics", "id": channel_id}
            )

        items = data.get("items") or []
        if not items:
            return None

        channel = items[0]
        snippet = channel.get("snippet", {})
        return ChannelInfo(
            channel_id=channel.get("id") or channel_id,
            title=snippet.get("title", ""),
            description=snippet.get("description", ""),
            thumbnail=_thumbnail(snippet),
            subscriber_count=channel.get("statistics", {}).get("subscriberCount"),
        )

    async def search_channels(self, query: str, max_results: int = 10) -> list[ChannelInfo]:
        """Search channels by free text."""
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            data = await self._get(
                client,
                "search",
                {"part": "snippet", "type": "channel", "q": query, "maxResults": max_results},
            )

        results: list[ChannelInfo] = []
        for it in data.get("items", []):
            snippet = it.get("snippet", {})
            channel_id = snippet.get("channelId") or it.get("id", {}).get("channelId")
            if not channel_id:
                continue
            results.append(
                ChannelInfo(
                    channel_id=channel_id,
                    title=snippet.get("title", ""),
                    description=snippet.get("description", ""),
                    thumbnail=_thumbnail(snippet),
                )
            )
        return results
