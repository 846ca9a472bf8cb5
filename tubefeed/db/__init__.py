"""Database module for tubefeed."""

from tubefeed.db.models import (
    Base,
    ContinueWatching,
    NotInterested,
    StoredVideo,
    User,
    UserChannel,
    WatchLater,
)
from tubefeed.db.session import get_engine, get_session, get_sessionmaker

__all__ = [
    "Base",
    "ContinueWatching",
    "NotInterested",
    "StoredVideo",
    "User",
    "UserChannel",
    "WatchLater",
    "get_session",
    "get_engine",
    "get_sessionmaker",
]
