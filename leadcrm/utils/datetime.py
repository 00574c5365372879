"""Time utilities with timezone-aware defaults."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

SECONDS_PER_DAY = 86_400


def utc_now() -> datetime:
    """Return current UTC time with tzinfo."""

    return datetime.now(timezone.utc)


def local_now(tz_name: str) -> datetime:
    """Return the current wall-clock time in the given IANA timezone."""

    return utc_now().astimezone(ZoneInfo(tz_name))


def seconds_since_midnight(moment: datetime) -> int:
    """Seconds elapsed since the start of ``moment``'s own day."""

    return moment.hour * 3600 + moment.minute * 60 + moment.second


__all__ = ["SECONDS_PER_DAY", "local_now", "seconds_since_midnight", "utc_now"]
