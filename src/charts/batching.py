import datetime
from dataclasses import dataclass

from charts.models import DateRange
from charts.resolutions import Resolution


@dataclass(frozen=True)
class BatchWindow:
    """Trailing span of `length` buckets of `unit`, the current bucket included"""

    length: int
    unit: Resolution

    def __post_init__(self) -> None:
        if self.length < 1:
            raise ValueError(f"Batch window must cover at least one bucket, got {self.length}")

    def start(self, today: datetime.date) -> datetime.date:
        return self.unit.shift(today, -(self.length - 1))


@dataclass(frozen=True)
class BatchPolicy:
    """How much trailing history an update cycle re-pulls.

    Raw data near "now" may still be revised, so every cycle recomputes the last `window` buckets.
    Older buckets are final and never revisited, unless the chart fell behind: then the cycle
    starts from the last persisted bucket to close the gap.
    """

    window: BatchWindow

    def update_range(
        self,
        now: datetime.datetime,
        resolution: Resolution,
        last_bucket: datetime.date | None,
    ) -> DateRange | None:
        """Return the range to recompute, aligned to `resolution`, or None for full history."""
        if last_bucket is None:
            return None
        today = utc_date(now)
        start = resolution.bucket_start(min(last_bucket, self.window.start(today)))
        return DateRange(start, today)


def utc_date(now: datetime.datetime) -> datetime.date:
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(datetime.timezone.utc).date()


BATCH_30_DAYS = BatchPolicy(BatchWindow(30, Resolution.DAY))
BATCH_30_WEEKS = BatchPolicy(BatchWindow(30, Resolution.WEEK))
BATCH_36_MONTHS = BatchPolicy(BatchWindow(36, Resolution.MONTH))
BATCH_30_YEARS = BatchPolicy(BatchWindow(30, Resolution.YEAR))
