import asyncio
import datetime
import logging
from dataclasses import dataclass

from charts.batching import BatchPolicy
from charts.errors import UpdateError
from charts.models import ChartMetadata, ChartType, DateRange, Series
from charts.resolutions import Resolution
from charts.stages import ChartContext, Stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartDefinition:
    """Static description of a chart: what it is, how it is computed, how much it re-pulls"""

    metadata: ChartMetadata
    pipeline: Stage[str]
    batch: BatchPolicy

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def dependencies(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(self.pipeline.dependencies()))


class Chart:
    """A chart definition bound to the store and source it updates against.

    `update` is single-flight: a trigger arriving while a cycle runs waits for it and then runs
    its own (idempotent) cycle. `get` never waits for `update`.
    """

    def __init__(self, definition: ChartDefinition, context: ChartContext) -> None:
        self.definition = definition
        self.context = context
        self._lock = asyncio.Lock()

    def __repr__(self) -> str:
        return f"Chart({self.name!r})"

    @property
    def name(self) -> str:
        return self.definition.metadata.name

    @property
    def resolution(self) -> Resolution:
        return self.definition.metadata.resolution

    @property
    def chart_type(self) -> ChartType:
        return self.definition.metadata.chart_type

    @property
    def is_updating(self) -> bool:
        return self._lock.locked()

    async def get(self, range: DateRange | None = None) -> Series[str]:
        return await self.context.store.get(self.name, range)

    async def update(
        self, now: datetime.datetime | None = None, force_full: bool = False
    ) -> Series[str]:
        """Recompute the batch window ending at `now` and commit it.

        Returns the points written. Raises `UpdateError` when the cycle fails, in which case the
        persisted series is unchanged.
        """
        if now is None:
            now = datetime.datetime.now(datetime.timezone.utc)
        if self._lock.locked():
            logger.debug("Update of %s already running, waiting for it", self.name)
        async with self._lock:
            return await self._run_cycle(now, force_full)

    async def reset(self) -> None:
        async with self._lock:
            await self.context.store.reset(self.name)

    async def _run_cycle(self, now: datetime.datetime, force_full: bool) -> Series[str]:
        store = self.context.store
        try:
            last = None if force_full else await store.last_point(self.name)
            window = self.definition.batch.update_range(
                now, self.resolution, last.date if last else None
            )
            logger.info("Updating %s for %s", self.name, window or "full history")
            points = await self.definition.pipeline.pull(self.context, window)
            if window is not None:
                points = [p for p in points if p.date in window]
            await store.commit(self.name, points, now)
        except Exception as exc:
            logger.warning("Update of %s failed: %r", self.name, exc)
            raise UpdateError(self.name, exc) from exc
        logger.info("Updated %s, %d points written", self.name, len(points))
        return points
