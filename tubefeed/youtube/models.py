"""Pydantic models for YouTube videos and channels."""

from datetime import datetime

from pydantic import BaseModel


class Video(BaseModel):
    """A single upload (long-form video or short) from a channel."""

    video_id: str
    channel_id: str
    channel_title: str = ""
    title: str
    description: str = ""
    thumbnail: str = ""
    published_at: datetime
    duration: str = ""
    is_short: bool = False


class ChannelInfo(BaseModel):
    """Channel metadata as returned by channels.list or search.list."""

    channel_id: str
    title: str
    description: str = ""
    thumbnail: str = ""
    subscriber_count: str | None = None


class VideoPage(BaseModel):
    """One page of a channel's uploads playlist."""

    playlist_id: str
    videos: list[Video]
    next_cursor: str | None = None
