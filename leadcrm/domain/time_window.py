"""Time-of-day windows used to gate SMS delivery."""

from __future__ import annotations

import re
from dataclasses import dataclass

from leadcrm.services.exceptions import InvalidWindow
from leadcrm.utils.datetime import SECONDS_PER_DAY

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def clock_to_seconds(value: str) -> int:
    """Convert an ``HH:MM`` wall-clock string to seconds since midnight."""

    match = _CLOCK_RE.match(value or "")
    if match is None:
        raise InvalidWindow(f"Expected HH:MM time, got {value!r}.")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidWindow(f"Time {value!r} is out of range.")
    return hours * 3600 + minutes * 60


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Start/end of a daily window in seconds since midnight.

    ``start_second > end_second`` encodes a window that crosses midnight,
    e.g. 20:00-02:00. Equal bounds describe an empty window.
    """

    start_second: int
    end_second: int

    def __post_init__(self) -> None:
        for name in ("start_second", "end_second"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidWindow(f"{name} must be an integer, got {value!r}.")
            if not 0 <= value < SECONDS_PER_DAY:
                raise InvalidWindow(f"{name}={value} is outside [0, {SECONDS_PER_DAY}).")

    @classmethod
    def from_clock(cls, start: str, end: str) -> TimeWindow:
        return cls(clock_to_seconds(start), clock_to_seconds(end))

    @property
    def crosses_midnight(self) -> bool:
        return self.start_second > self.end_second

    def contains(self, instant_second: int) -> bool:
        if self.start_second < self.end_second:
            return self.start_second <= instant_second < self.end_second
        if self.start_second > self.end_second:
            return instant_second >= self.start_second or instant_second < self.end_second
        return False


__all__ = ["TimeWindow", "clock_to_seconds"]
