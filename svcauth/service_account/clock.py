"""Clock collaborator. Everything time-based reads ``now()`` so tests can move time."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def as_utc(instant: datetime) -> datetime:
    """Naive datetimes are treated as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def epoch_seconds(instant: datetime) -> int:
    """Whole seconds since the Unix epoch."""
    return int(as_utc(instant).timestamp())


def from_epoch_seconds(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
