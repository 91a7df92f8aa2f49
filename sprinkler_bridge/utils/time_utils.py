"""
Unified time utilities for the sprinkler bridge.

Wall-clock timestamps are used for published status messages,
the monotonic clock for ordering polls against local commands.
"""

import time

from datetime import datetime, timezone


def now(utc: bool = False) -> datetime:
    """Return current datetime without microseconds."""
    if utc:
        return datetime.now(timezone.utc).replace(microsecond=0)
    return datetime.now().replace(microsecond=0)


def now_iso(utc: bool = False) -> str:
    """Return current time as ISO8601 string without microseconds."""
    return now(utc=utc).isoformat()


def monotonic() -> float:
    """Return a monotonic timestamp in seconds, unaffected by wall-clock changes."""
    return time.monotonic()


def format_duration(seconds: int) -> str:
    """Format a duration in seconds as M:SS (or H:MM:SS for an hour and more)."""
    minutes, secs = divmod(max(int(seconds), 0), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
