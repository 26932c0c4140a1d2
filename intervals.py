"""Half-open time intervals ``[start, end)`` used for booking conflict checks."""
from datetime import datetime

import pytz

from errors import InvalidInterval


def ensure_utc(dt: datetime) -> datetime:
    """Naive timestamps are taken to be UTC; aware ones are converted to UTC."""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


class TimeInterval:
    __slots__ = ("start", "end")

    def __init__(self, start: datetime, end: datetime):
        start = ensure_utc(start)
        end = ensure_utc(end)
        if start >= end:
            raise InvalidInterval("Reservation end time must be after start time.")
        self.start = start
        self.end = end

    def __eq__(self, other):
        if not isinstance(other, TimeInterval):
            return NotImplemented
        return self.start == other.start and self.end == other.end

    def __hash__(self):
        return hash((self.start, self.end))

    def __repr__(self):
        return f"TimeInterval({self.start.isoformat()}, {self.end.isoformat()})"


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    # Touching intervals (a.end == b.start) share no instant
    return a.start < b.end and b.start < a.end


def contains(outer: TimeInterval, inner: TimeInterval) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end


def duration_hours(interval: TimeInterval) -> float:
    return (interval.end - interval.start).total_seconds() / 3600
