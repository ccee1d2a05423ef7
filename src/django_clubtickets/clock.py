"""Clock abstraction for "today" and "now" in the venue's reference time zone.

Cart date rules compare against the calendar date where the clubs operate,
not the server's date. Services take a :class:`Clock` so tests can pin the
current moment with :class:`FixedClock`.
"""

import zoneinfo
from datetime import date, datetime

from django.utils import timezone

from django_clubtickets.settings import get_config


class Clock:
    """Wall clock that resolves dates in the configured reference time zone."""

    def __init__(self, tz_name: str | None = None) -> None:
        self._tz_name = tz_name

    @property
    def tzinfo(self) -> zoneinfo.ZoneInfo:
        return zoneinfo.ZoneInfo(self._tz_name or get_config().timezone)

    def now(self) -> datetime:
        """Return the current aware datetime."""
        return timezone.now()

    def today(self) -> date:
        """Return the current calendar date in the reference time zone."""
        return self.now().astimezone(self.tzinfo).date()


class FixedClock(Clock):
    """A clock frozen at a given instant.

    Accepts either an aware datetime or a plain date; a date is pinned to
    noon in the reference time zone so ``today()`` returns it unchanged.
    """

    def __init__(self, moment: datetime | date, tz_name: str | None = None) -> None:
        super().__init__(tz_name)
        if not isinstance(moment, datetime):
            moment = datetime(moment.year, moment.month, moment.day, 12, tzinfo=self.tzinfo)
        elif timezone.is_naive(moment):
            moment = moment.replace(tzinfo=self.tzinfo)
        self._moment = moment

    def now(self) -> datetime:
        return self._moment
