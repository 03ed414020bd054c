"""Common formatting utilities for cherryplan classes."""

import re
from datetime import datetime, timezone
from typing import Union

from .exceptions import InvalidCommitError


def format_short_date(date_value: Union[str, datetime, None]) -> str:
    """
    Extract short date (YYYY-MM-DD) from a datetime or a git date string.

    Handles strings like:
    - "2025-08-18 14:04:26 -0700"
    - "2025-08-27T23:19:01+00:00"
    """
    if not date_value:
        return ""

    if isinstance(date_value, datetime):
        return date_value.strftime("%Y-%m-%d")

    date_match = re.match(r"(\d{4}-\d{2}-\d{2})", date_value)
    if date_match:
        return date_match.group(1)
    return date_value[:10]


def format_short_sha(sha: str) -> str:
    """
    Format SHA to 8-character abbreviated format for display.

    Args:
        sha: Full or partial SHA string

    Returns:
        8-character SHA or original if shorter than 8 chars
    """
    if not sha:
        return ""
    return sha[:8] if len(sha) >= 8 else sha


def format_confidence(confidence: float) -> str:
    """Format a 0-100 confidence score for tables."""
    return f"{confidence:.1f}%"


def parse_commit_date(value: Union[str, datetime, None]) -> datetime:
    """Parse a git commit date into a timezone-aware datetime.

    Naive values are assumed to be UTC so that timestamps from different
    sources can always be subtracted from each other.

    Raises:
        InvalidCommitError: if the value is not a recognizable date
    """
    if value is None or value == "":
        return datetime.fromtimestamp(0, tz=timezone.utc)

    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            # git's default "%ci" format: "2025-08-18 14:04:26 -0700"
            try:
                parsed = datetime.strptime(text, "%Y-%m-%d %H:%M:%S %z")
            except ValueError as e:
                raise InvalidCommitError(f"Unrecognized commit date: {value!r}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
