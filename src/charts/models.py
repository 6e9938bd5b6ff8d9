import datetime
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeAlias, TypeVar

from charts.resolutions import Resolution


class ChartType(Enum):
    LINE = "LINE"
    COUNTER = "COUNTER"


@dataclass(frozen=True)
class ChartMetadata:
    name: str
    resolution: Resolution
    chart_type: ChartType


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of bucket dates"""

    start: datetime.date
    end: datetime.date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Invalid range, {self.start=} > {self.end=}")

    def __contains__(self, date: datetime.date) -> bool:
        return self.start <= date <= self.end

    def to_timestamps(self) -> tuple[datetime.datetime, datetime.datetime]:
        """Half-open range covering every day of the range, as naive UTC timestamps (the blocks
        table stores `timestamp without time zone`)."""
        start = datetime.datetime.combine(self.start, datetime.time.min)
        end = datetime.datetime.combine(self.end + datetime.timedelta(days=1), datetime.time.min)
        return start, end


V = TypeVar("V")


@dataclass(frozen=True)
class Point(Generic[V]):
    date: datetime.date
    value: V

    def to_tuple(self) -> tuple[datetime.date, Any]:
        """Convert to tuple for database insertion"""
        return (self.date, self.value)


Series: TypeAlias = list[Point[V]]
