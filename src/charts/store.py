"""Persisted chart series.

Key: (chart name, bucket date) -> exact text value. Writes of one update cycle are committed
atomically; reads return the last committed series and never wait for an update.
"""

import datetime
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

import asyncpg

from charts.errors import ChartNotFound
from charts.iter_utils import batch_upsert
from charts.models import ChartMetadata, DateRange, Point, Series
from charts.settings import get_settings

logger = logging.getLogger(__name__)


class ChartStore(ABC):
    @abstractmethod
    async def register(self, metadata: ChartMetadata) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get(self, name: str, range: DateRange | None = None) -> Series[str]:
        """Persisted points of `name` inside `range` (all of them when None), ascending."""
        raise NotImplementedError

    @abstractmethod
    async def last_point(self, name: str) -> Point[str] | None:
        raise NotImplementedError

    @abstractmethod
    async def last_updated_at(self, name: str) -> datetime.datetime | None:
        raise NotImplementedError

    @abstractmethod
    async def commit(
        self, name: str, points: Sequence[Point[str]], updated_at: datetime.datetime
    ) -> None:
        """Upsert `points` by date and stamp the chart as updated, all or nothing."""
        raise NotImplementedError

    @abstractmethod
    async def reset(self, name: str) -> None:
        raise NotImplementedError


class MemoryChartStore(ChartStore):
    def __init__(self) -> None:
        self._metadata: dict[str, ChartMetadata] = {}
        self._series: dict[str, dict[datetime.date, str]] = {}
        self._updated_at: dict[str, datetime.datetime] = {}

    async def register(self, metadata: ChartMetadata) -> None:
        self._metadata[metadata.name] = metadata
        self._series.setdefault(metadata.name, {})

    async def get(self, name: str, range: DateRange | None = None) -> Series[str]:
        series = self._series.get(name, {})
        return [
            Point(date, series[date])
            for date in sorted(series)
            if range is None or date in range
        ]

    async def last_point(self, name: str) -> Point[str] | None:
        series = self._series.get(name)
        if not series:
            return None
        date = max(series)
        return Point(date, series[date])

    async def last_updated_at(self, name: str) -> datetime.datetime | None:
        return self._updated_at.get(name)

    async def commit(
        self, name: str, points: Sequence[Point[str]], updated_at: datetime.datetime
    ) -> None:
        if name not in self._metadata:
            raise ChartNotFound(name)
        # Copy-on-write, readers keep seeing the previous dict until the swap
        series = dict(self._series[name])
        series.update((p.date, p.value) for p in points)
        self._series[name] = series
        self._updated_at[name] = updated_at

    async def reset(self, name: str) -> None:
        if name not in self._metadata:
            raise ChartNotFound(name)
        self._series[name] = {}
        self._updated_at.pop(name, None)


class PostgresChartStore(ChartStore):
    """Stores charts in the `charts` and `chart_data` tables (see charts/migrations)"""

    def __init__(self, pool: asyncpg.Pool, batch_size: int | None = None) -> None:
        self.pool = pool
        self.batch_size = batch_size or get_settings().BATCH_SIZE

    async def register(self, metadata: ChartMetadata) -> None:
        async with self.pool.acquire() as connection:
            await connection.execute(
                """
                    INSERT INTO charts (name, resolution, chart_type)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (name) DO UPDATE
                        SET resolution = EXCLUDED.resolution, chart_type = EXCLUDED.chart_type
                """,
                metadata.name,
                metadata.resolution.value,
                metadata.chart_type.value,
            )

    async def get(self, name: str, range: DateRange | None = None) -> Series[str]:
        async with self.pool.acquire() as connection:
            if range is None:
                rows = await connection.fetch(
                    """
                        SELECT cd.date, cd.value
                        FROM chart_data cd
                            INNER JOIN charts c ON cd.chart_id = c.id
                        WHERE c.name = $1
                        ORDER BY cd.date ASC
                    """,
                    name,
                )
            else:
                rows = await connection.fetch(
                    """
                        SELECT cd.date, cd.value
                        FROM chart_data cd
                            INNER JOIN charts c ON cd.chart_id = c.id
                        WHERE c.name = $1 AND cd.date >= $2 AND cd.date <= $3
                        ORDER BY cd.date ASC
                    """,
                    name,
                    range.start,
                    range.end,
                )
        return [Point(row["date"], row["value"]) for row in rows]

    async def last_point(self, name: str) -> Point[str] | None:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                """
                    SELECT cd.date, cd.value
                    FROM chart_data cd
                        INNER JOIN charts c ON cd.chart_id = c.id
                    WHERE c.name = $1
                    ORDER BY cd.date DESC
                    LIMIT 1
                """,
                name,
            )
        return Point(row["date"], row["value"]) if row else None

    async def last_updated_at(self, name: str) -> datetime.datetime | None:
        async with self.pool.acquire() as connection:
            return await connection.fetchval(
                "SELECT last_updated_at FROM charts WHERE name = $1", name
            )

    async def commit(
        self, name: str, points: Sequence[Point[str]], updated_at: datetime.datetime
    ) -> None:
        async with self.pool.acquire() as connection, connection.transaction():
            chart_id = await self._chart_id(connection, name)
            written = await batch_upsert(
                connection,
                "chart_data",
                [(chart_id, *p.to_tuple()) for p in points],
                columns=("chart_id", "date", "value"),
                conflict_columns=("chart_id", "date"),
                update_columns=("value",),
                batch_size=self.batch_size,
            )
            await connection.execute(
                "UPDATE charts SET last_updated_at = $2 WHERE id = $1", chart_id, updated_at
            )
        logger.debug("Committed %d points to %s", written, name)

    async def reset(self, name: str) -> None:
        async with self.pool.acquire() as connection, connection.transaction():
            chart_id = await self._chart_id(connection, name)
            await connection.execute("DELETE FROM chart_data WHERE chart_id = $1", chart_id)
            await connection.execute(
                "UPDATE charts SET last_updated_at = NULL WHERE id = $1", chart_id
            )

    @staticmethod
    async def _chart_id(connection: asyncpg.Connection, name: str) -> int:
        chart_id = await connection.fetchval(
            "SELECT id FROM charts WHERE name = $1 FOR UPDATE", name
        )
        if chart_id is None:
            raise ChartNotFound(name)
        return chart_id
