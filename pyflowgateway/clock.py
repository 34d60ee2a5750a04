"""
Device clock helpers.

The gateway reports ``millis()`` samples from a 32-bit counter that wraps back
to zero roughly every 49.7 days. A ``last_update`` of 0 means the counter was
never read and is treated as "never" by every helper here.
"""
import datetime
import logging
from typing import Optional

from dateutil import tz

log = logging.getLogger(__name__)

MILLIS_MAX = 0xFFFFFFFF
NEVER = "Never"
NOT_AVAILABLE = "N/A"


def elapsed_since(last_update: int, current: int) -> Optional[int]:
    """
    Milliseconds elapsed between two device clock samples.

    Handles a single wrap of the 32-bit counter. Returns None when
    last_update is 0 (never updated).
    """
    if not last_update:
        return None
    if current >= last_update:
        return current - last_update
    # Counter wrapped once between the two samples
    return (MILLIS_MAX - last_update) + current


def format_elapsed(elapsed_ms: int) -> str:
    seconds = elapsed_ms // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h ago"
    elif hours > 0:
        return f"{hours}h {minutes % 60}m ago"
    elif minutes > 0:
        return f"{minutes}m {seconds % 60}s ago"
    return f"{seconds}s ago"


def format_time_since(last_update: int, current: int) -> str:
    """Human readable time since last_update, e.g. '1m 30s ago' or 'Never'"""
    elapsed = elapsed_since(last_update, current)
    if elapsed is None:
        return NEVER
    return format_elapsed(elapsed)


def format_uptime(uptime_seconds: int) -> str:
    hours = uptime_seconds // 3600
    minutes = (uptime_seconds % 3600) // 60
    return f"{hours}h {minutes}m"


def format_timestamp(unix_time: Optional[int]) -> str:
    """
    Format a flow counter trigger timestamp as 'DD/MM/YYYY, HH:MM:SS'.

    Flow counters stamp events with local wall-clock seconds, so the value is
    broken down as if it were UTC and no timezone conversion is applied.
    """
    if not unix_time:
        return NOT_AVAILABLE
    try:
        dt = datetime.datetime.fromtimestamp(unix_time, tz=tz.UTC)
    except (OverflowError, OSError, ValueError) as exc:
        log.debug(f"Invalid flow counter timestamp {unix_time}: {exc}")
        return NOT_AVAILABLE
    return dt.strftime("%d/%m/%Y, %H:%M:%S")
