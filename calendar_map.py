# Date <-> grid column mapping. Whole-day granularity, no time of day.

from __future__ import annotations
from typing import Iterable, Optional
from dataclasses import dataclass
import datetime as dt
import math

DATE_FMT = "%Y-%m-%d"

LEAD_DAYS = 30
TRAIL_DAYS = 60
EMPTY_BEFORE_DAYS = 7
EMPTY_AFTER_DAYS = 21


def parse_date(s: str) -> dt.date:
    return dt.datetime.strptime(str(s).strip()[:10], DATE_FMT).date()


def format_date(d: dt.date) -> str:
    return d.strftime(DATE_FMT)


def date_to_column(day: dt.date, range_start: dt.date) -> int:
    return (day - range_start).days


def column_to_date(index: int, range_start: dt.date) -> dt.date:
    return range_start + dt.timedelta(days=int(index))


def pixel_to_column(pixel_offset: float, cell_width: float) -> int:
    # Halves round up, like the host's Math.round (Python's round() is banker's).
    cell_width = max(1e-6, float(cell_width))
    return int(math.floor(float(pixel_offset) / cell_width + 0.5))


@dataclass(frozen=True)
class CalendarRange:
    start: dt.date
    end: dt.date  # inclusive

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, day: dt.date) -> bool:
        return self.start <= day <= self.end

    def column_of(self, day: dt.date) -> int:
        return date_to_column(day, self.start)

    def date_at(self, index: int) -> dt.date:
        return column_to_date(index, self.start)

    def dates(self):
        for i in range(self.days):
            yield self.start + dt.timedelta(days=i)


def compute_range(items: Iterable, today: Optional[dt.date] = None,
                  lead_days: int = LEAD_DAYS, trail_days: int = TRAIL_DAYS,
                  empty_before: int = EMPTY_BEFORE_DAYS,
                  empty_after: int = EMPTY_AFTER_DAYS) -> CalendarRange:
    """Visible span: padded around the items, or a fixed window around today."""
    earliest: Optional[dt.date] = None
    latest: Optional[dt.date] = None
    for it in items:
        if earliest is None or it.start_date < earliest:
            earliest = it.start_date
        if latest is None or it.end_date > latest:
            latest = it.end_date
    if earliest is None or latest is None:
        today = today or dt.date.today()
        return CalendarRange(today - dt.timedelta(days=empty_before),
                             today + dt.timedelta(days=empty_after))
    return CalendarRange(earliest - dt.timedelta(days=lead_days),
                         latest + dt.timedelta(days=trail_days))
