"""YouTube Data API access for tubefeed."""

from .client import YouTubeClient
from .errors import QuotaExceeded, SourceNotFound, TransientUpstreamError, UpstreamError
from .models import ChannelInfo, Video, VideoPage

__all__ = [
    "ChannelInfo",
    "QuotaExceeded",
    "SourceNotFound",
    "TransientUpstreamError",
    "UpstreamError",
    "Video",
    "VideoPage",
    "YouTubeClient",
]
