import datetime
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal

from charts.chart import ChartDefinition
from charts.codec import DECIMAL
from charts.errors import SourceUnavailable
from charts.lines import ALL_CHARTS
from charts.lines.average_block_rewards import AVERAGE_BLOCK_REWARDS
from charts.lines.new_blocks import NEW_BLOCKS
from charts.models import DateRange, Point
from charts.stages import ChartContext, Format, Stage
from charts.store import MemoryChartStore


def d(text: str) -> datetime.date:
    return datetime.date.fromisoformat(text)


def at(text: str) -> datetime.datetime:
    """Noon UTC of the given day"""
    return datetime.datetime.combine(d(text), datetime.time(12), datetime.timezone.utc)


def points(*pairs: tuple[str, str]) -> list[Point[str]]:
    return [Point(d(date), value) for date, value in pairs]


def decimal_points(*pairs: tuple[str, str | int]) -> list[Point[Decimal]]:
    return [Point(d(date), Decimal(value)) for date, value in pairs]


def as_pairs(series: list[Point[str]]) -> list[tuple[str, str]]:
    return [(p.date.isoformat(), p.value) for p in series]


@dataclass(eq=False)
class FakeSource(Stage[Decimal]):
    """Stands in for the source of record: serves `data`, remembers the windows it was asked for"""

    data: dict[str, str | int] = field(default_factory=dict)
    windows: list[DateRange | None] = field(default_factory=list)
    fail: bool = False

    async def pull(self, context: ChartContext, window: DateRange | None) -> list[Point[Decimal]]:
        self.windows.append(window)
        if self.fail:
            raise SourceUnavailable("connection refused")
        return [
            Point(d(date), Decimal(value))
            for date, value in sorted(self.data.items())
            if window is None or d(date) in window
        ]


def with_fake_sources(rewards: FakeSource, blocks: FakeSource) -> list[ChartDefinition]:
    """Every production chart, with the two daily charts reading fakes instead of the database"""
    fakes = {
        AVERAGE_BLOCK_REWARDS.name: replace(AVERAGE_BLOCK_REWARDS, pipeline=Format(rewards)),
        NEW_BLOCKS.name: replace(NEW_BLOCKS, pipeline=Format(blocks, codec=DECIMAL)),
    }
    return [fakes.get(definition.name, definition) for definition in ALL_CHARTS]


class FailingStore(MemoryChartStore):
    """Memory store whose commits to the `failing` charts raise `error`"""

    def __init__(self, error: Exception, failing: set[str]) -> None:
        super().__init__()
        self.error = error
        self.failing = failing

    async def commit(
        self, name: str, points: Sequence[Point[str]], updated_at: datetime.datetime
    ) -> None:
        if name in self.failing:
            raise self.error
        await super().commit(name, points, updated_at)
