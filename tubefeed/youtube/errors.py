"""Error taxonomy for YouTube Data API failures."""


class UpstreamError(Exception):
    """Base class for failures talking to the YouTube Data API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class QuotaExceeded(UpstreamError):
    """The API refused the call because the quota or rate budget is spent.

    Callers should stop fanning out further requests and return whatever
    they already have.
    """


class TransientUpstreamError(UpstreamError):
    """Network error, timeout or 5xx. Safe to retry on a later request."""


class SourceNotFound(UpstreamError):
    """The channel or its uploads playlist does not exist. Not retryable."""
