"""Composable pipeline stages.

A chart's pipeline is a small tree of stages declared once at definition time, e.g.

    Format(WeightedAverage(Parse("averageBlockRewards"), Parse("newBlocks"), Resolution.WEEK))

Every stage pulls the points of one update window. Leaves read the source of record
(`charts.remote.RemoteSource`) or another chart's persisted series (`Parse`); inner stages reduce
or format what their children return.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Generic, TypeVar

import asyncpg

from charts.codec import FLOAT, ValueCodec
from charts.errors import ReductionError
from charts.models import DateRange, Point, Series
from charts.reduce import check_partition, sum_lower_resolution, weighted_average
from charts.resolutions import Resolution
from charts.store import ChartStore

logger = logging.getLogger(__name__)


@dataclass
class ChartContext:
    """Resources an update cycle runs against"""

    store: ChartStore
    source: asyncpg.Pool | None = None


Out = TypeVar("Out")


class Stage(ABC, Generic[Out]):
    @abstractmethod
    async def pull(self, context: ChartContext, window: DateRange | None) -> Series[Out]:
        """Return the points of `window` (full history when None), ascending by date."""
        raise NotImplementedError

    def dependencies(self) -> tuple[str, ...]:
        """Names of the charts this stage reads."""
        return ()


@dataclass(frozen=True)
class Parse(Stage[Decimal]):
    """Read another chart's persisted series and parse it for computation"""

    chart: str
    codec: ValueCodec = FLOAT

    async def pull(self, context: ChartContext, window: DateRange | None) -> Series[Decimal]:
        updated_at = await context.store.last_updated_at(self.chart)
        if updated_at is None:
            raise ReductionError(f"Dependency {self.chart!r} has not been updated yet")
        if window is not None and updated_at.date() < window.end:
            logger.warning(
                "Dependency %s was last updated at %s, reading it for window ending %s",
                self.chart,
                updated_at,
                window.end,
            )
        points = await context.store.get(self.chart, window)
        return [Point(p.date, self.codec.parse(p.value)) for p in points]

    def dependencies(self) -> tuple[str, ...]:
        return (self.chart,)


@dataclass(frozen=True)
class WeightedAverage(Stage[Decimal]):
    """Average `values` into `resolution` buckets, weighting each point by `weights`"""

    values: Stage[Decimal]
    weights: Stage[Decimal]
    resolution: Resolution
    fine_resolution: Resolution = Resolution.DAY

    def __post_init__(self) -> None:
        check_partition(self.fine_resolution, self.resolution)

    async def pull(self, context: ChartContext, window: DateRange | None) -> Series[Decimal]:
        values = await self.values.pull(context, window)
        weights = await self.weights.pull(context, window)
        return weighted_average(values, weights, self.resolution)

    def dependencies(self) -> tuple[str, ...]:
        return self.values.dependencies() + self.weights.dependencies()


@dataclass(frozen=True)
class Sum(Stage[Decimal]):
    """Sum `values` into `resolution` buckets, for counters"""

    values: Stage[Decimal]
    resolution: Resolution
    fine_resolution: Resolution = Resolution.DAY

    def __post_init__(self) -> None:
        check_partition(self.fine_resolution, self.resolution)

    async def pull(self, context: ChartContext, window: DateRange | None) -> Series[Decimal]:
        return sum_lower_resolution(await self.values.pull(context, window), self.resolution)

    def dependencies(self) -> tuple[str, ...]:
        return self.values.dependencies()


@dataclass(frozen=True)
class Format(Stage[str]):
    """Turn computed values into the exact text that gets persisted"""

    inner: Stage[Decimal]
    codec: ValueCodec = FLOAT

    async def pull(self, context: ChartContext, window: DateRange | None) -> Series[str]:
        points = await self.inner.pull(context, window)
        return [Point(p.date, self.codec.stringify(p.value)) for p in points]

    def dependencies(self) -> tuple[str, ...]:
        return self.inner.dependencies()
