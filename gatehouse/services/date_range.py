# gatehouse/services/date_range.py
"""
Symbolic date-range selectors → concrete [start, end) window + bucket layout.

The same DateRange drives the server-side subscription filters and the
client-side histogram indexing, so both always agree on the window.
All times are local wall-clock.

  selector   start                          end
  today      today 00:00                    today 23:59:59.999
  thisWeek   most recent Sunday 00:00       open (now)
  lastWeek   previous week's Sunday 00:00   following Sunday 00:00
  7d / 30d   today 00:00 minus 7 / 30 days  open (now)
  thisMonth  1st of month 00:00             open (now)
  custom     start date 00:00               end date 23:59:59.999
  recent     unbounded, most recent N entries (histograms anchor on today)
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from gatehouse.config import settings
from gatehouse.services.errors import DateRangeError
from gatehouse.store.base import SubscriptionFilters, ENTRIES, DRIVERS

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
END_OF_DAY = time(23, 59, 59, 999000)

SELECTORS = ("today", "thisWeek", "lastWeek", "7d", "30d", "thisMonth", "custom", "recent")


def _midnight(d: Union[date, datetime]) -> datetime:
    if isinstance(d, datetime):
        d = d.date()
    return datetime.combine(d, time.min)


@dataclass(frozen=True)
class DateRange:
    selector: str
    start: Optional[datetime]
    end: Optional[datetime]          # None = open-ended (runs up to "now")
    now: datetime
    limit: Optional[int] = None      # entries page size, "recent" mode only

    @property
    def bucket_start(self) -> datetime:
        return self.start if self.start is not None else _midnight(self.now)

    @property
    def bucket_end(self) -> datetime:
        return self.end if self.end is not None else max(self.now, self.bucket_start)

    @property
    def hourly_bucket_count(self) -> int:
        return max(24, math.ceil((self.bucket_end - self.bucket_start) / HOUR))

    @property
    def daily_bucket_count(self) -> int:
        return max(1, math.ceil((self.bucket_end - self.bucket_start) / DAY))

    def hour_index(self, t: Optional[datetime]) -> Optional[int]:
        return self._index(t, HOUR, self.hourly_bucket_count)

    def day_index(self, t: Optional[datetime]) -> Optional[int]:
        return self._index(t, DAY, self.daily_bucket_count)

    def _index(self, t, width, count):
        if t is None:
            return None
        idx = (t - self.bucket_start) // width
        return idx if 0 <= idx < count else None

    def filters_for(self, collection: str) -> SubscriptionFilters:
        """Server-side filters for one collection under this range."""
        if collection == DRIVERS:
            return SubscriptionFilters()
        if self.selector == "recent":
            return SubscriptionFilters(limit=self.limit) if collection == ENTRIES else SubscriptionFilters()
        return SubscriptionFilters(start=self.start, end=self.end)


def resolve_date_range(selector: str, now: Optional[datetime] = None,
                       custom_start: Optional[Union[date, datetime]] = None,
                       custom_end: Optional[Union[date, datetime]] = None,
                       recent_limit: Optional[int] = None) -> DateRange:
    """Translate a selector into a DateRange. Deterministic given `now`."""
    now = now or datetime.now()
    today = _midnight(now)

    if selector == "today":
        return DateRange(selector, today, datetime.combine(today.date(), END_OF_DAY), now)

    if selector == "thisWeek":
        # weekday(): Monday=0 … Sunday=6
        sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        return DateRange(selector, sunday, None, now)

    if selector == "lastWeek":
        this_sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        start = this_sunday - timedelta(days=7)
        return DateRange(selector, start, start + timedelta(days=7), now)

    if selector == "7d":
        return DateRange(selector, today - timedelta(days=7), None, now)

    if selector == "30d":
        return DateRange(selector, today - timedelta(days=30), None, now)

    if selector == "thisMonth":
        return DateRange(selector, today.replace(day=1), None, now)

    if selector == "custom":
        if custom_start is None or custom_end is None:
            raise DateRangeError("custom range requires both a start and an end date")
        start = _midnight(custom_start)
        end_day = custom_end.date() if isinstance(custom_end, datetime) else custom_end
        end = datetime.combine(end_day, END_OF_DAY)
        if end < start:
            raise DateRangeError(f"custom range ends ({end_day}) before it starts ({start.date()})")
        return DateRange(selector, start, end, now)

    if selector == "recent":
        limit = recent_limit if recent_limit is not None else settings.RECENT_ENTRIES_LIMIT
        return DateRange(selector, None, None, now, limit=limit)

    raise DateRangeError(f"Unknown date range {selector!r}; expected one of {', '.join(SELECTORS)}")
