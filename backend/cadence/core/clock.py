"""Clock abstraction so scheduling code never reads wall time directly."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from cadence.core.config import settings


class Clock:
    """Wall clock in the scheduler's configured timezone."""

    def __init__(self, tz_name: str | None = None) -> None:
        self.tz = ZoneInfo(tz_name or settings.scheduler_timezone)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().astimezone(self.tz).date()


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; `advance` moves it forward."""

    def __init__(self, instant: datetime | date, tz_name: str = "UTC") -> None:
        super().__init__(tz_name)
        if not isinstance(instant, datetime):
            instant = datetime(instant.year, instant.month, instant.day, 12, tzinfo=self.tz)
        elif instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.tz)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, **kwargs) -> None:
        self._instant = self._instant + timedelta(**kwargs)


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency; tests override it with a FrozenClock."""
    return system_clock
