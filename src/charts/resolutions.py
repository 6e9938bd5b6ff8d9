"""
Resolution tiers for chart buckets.

Each resolution defines:
- bucket_start: the date that identifies the bucket containing a given date
- shift: move a bucket start by a number of buckets
- partitions: whether its buckets fit exactly into the buckets of another tier
"""

import datetime
from enum import Enum


class Resolution(Enum):
    DAY = "DAY"
    WEEK = "WEEK"
    MONTH = "MONTH"
    YEAR = "YEAR"

    def bucket_start(self, date: datetime.date) -> datetime.date:
        if isinstance(date, datetime.datetime):
            date = date.date()
        match self:
            case Resolution.DAY:
                return date
            case Resolution.WEEK:
                return date - datetime.timedelta(days=date.weekday())
            case Resolution.MONTH:
                return date.replace(day=1)
            case Resolution.YEAR:
                return date.replace(month=1, day=1)

    def shift(self, date: datetime.date, buckets: int) -> datetime.date:
        """Move the bucket containing `date` by `buckets` (negative goes back in time)."""
        start = self.bucket_start(date)
        match self:
            case Resolution.DAY:
                return start + datetime.timedelta(days=buckets)
            case Resolution.WEEK:
                return start + datetime.timedelta(weeks=buckets)
            case Resolution.MONTH:
                months = start.year * 12 + (start.month - 1) + buckets
                return datetime.date(months // 12, months % 12 + 1, 1)
            case Resolution.YEAR:
                return start.replace(year=start.year + buckets)

    def partitions(self, coarser: "Resolution") -> bool:
        """True when every bucket of `self` lies inside exactly one bucket of `coarser`.

        Weeks straddle month and year boundaries, so they only partition into themselves.
        """
        if self is coarser or self is Resolution.DAY:
            return True
        return self is Resolution.MONTH and coarser is Resolution.YEAR


RESOLUTIONS = tuple(Resolution)
