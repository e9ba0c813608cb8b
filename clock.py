from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from config import PICKUP_TIMEZONE


class Clock:
    """Supplies "now" and the pickup region's calendar day."""

    def __init__(self, zone: Optional[tzinfo] = None):
        self.zone = zone or ZoneInfo(PICKUP_TIMEZONE)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().astimezone(self.zone).date()


class FixedClock(Clock):
    """A clock frozen at one instant, for deterministic tests and replays."""

    def __init__(self, instant: datetime, zone: Optional[tzinfo] = None):
        super().__init__(zone)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def advance(self, **delta) -> None:
        self.instant += timedelta(**delta)


_clock = Clock()


def get_clock() -> Clock:
    return _clock
