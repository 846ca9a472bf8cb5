"""Feed aggregation, caching and refresh for tubefeed."""

from .classifier import SHORT_FORM_MAX_SECONDS, is_short_form, parse_duration_seconds
from .cache import (
    FetchState,
    FetchStateCache,
    InMemoryFetchStateCache,
    RedisFetchStateCache,
    SourceState,
    get_fetch_cache,
)
from .merge import merge_by_identity
from .aggregator import (
    FeedAggregator,
    FeedPage,
    FeedType,
    FeedUnavailable,
    InvalidFeedRequest,
    parse_feed_type,
)
from .refresh import BulkRefreshResult, RefreshDriver, RefreshResult, UnknownChannel

__all__ = [
    "SHORT_FORM_MAX_SECONDS",
    "BulkRefreshResult",
    "FeedAggregator",
    "FeedPage",
    "FeedType",
    "FeedUnavailable",
    "FetchState",
    "FetchStateCache",
    "InMemoryFetchStateCache",
    "InvalidFeedRequest",
    "RedisFetchStateCache",
    "RefreshDriver",
    "RefreshResult",
    "SourceState",
    "UnknownChannel",
    "get_fetch_cache",
    "is_short_form",
    "merge_by_identity",
    "parse_duration_seconds",
    "parse_feed_type",
]
