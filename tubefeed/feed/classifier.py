"""Short-form classification from ISO 8601 video durations."""

import re

# YouTube Shorts are capped at three minutes
SHORT_FORM_MAX_SECONDS = 180

_DURATION_RE = re.compile(
    r"P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?"
)


def parse_duration_seconds(duration: str | None) -> float | None:
    """Parse a ``P#DT#H#M#S`` duration into total seconds.

    The whole string must be a duration. Missing components count as zero,
    but at least one must be present: a bare ``"PT"`` carries no length and
    is treated as unknown. Seconds may be fractional.

    Args:
        duration: ISO 8601 duration as returned by videos.list contentDetails

    Returns:
        Total seconds, or None if the value is empty or does not match
    """
    if not duration:
        return None

    match = _DURATION_RE.fullmatch(duration.strip())
    if not match or not any(match.groups()):
        return None

    days, hours, minutes, seconds = match.groups()
    return (
        int(days or 0) * 86400
        + int(hours or 0) * 3600
        + int(minutes or 0) * 60
        + float(seconds or 0)
    )


def is_short_form(duration: str | None) -> bool:
    """Return True if the duration is 180 seconds or less.

    Unparseable or absent durations are never short-form.
    """
    total = parse_duration_seconds(duration)
    if total is None:
        return False
    return total <= SHORT_FORM_MAX_SECONDS
