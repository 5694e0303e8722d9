"""Time source for the lending engine."""

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, truncated to whole seconds."""
    return datetime.now(UTC).replace(tzinfo=None, microsecond=0)
