"""Pull points from the source of record (the blocks database)"""

import asyncio
import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

import asyncpg

from charts.errors import TRANSIENT_ERRORS, ChartError, SourceDataError, SourceUnavailable
from charts.iter_utils import async_iterator_to_list, cursor_to_async_iterator, sort_and_deduplicate
from charts.models import DateRange, Point, Series
from charts.settings import get_settings
from charts.stages import ChartContext, Stage

logger = logging.getLogger(__name__)


class NullPolicy(Enum):
    """What a NULL value of a bucket becomes. Changes weighted rollups, so every source picks one"""

    ZERO = "ZERO"
    SKIP = "SKIP"


@dataclass(frozen=True)
class RangeQuery:
    """Aggregate query returning `(date, value)` rows.

    `sql` carries a `{filter}` placeholder that becomes a range condition on `filter_column`, or
    nothing for the full history. Range parameters are numbered after `params`.
    """

    sql: str
    filter_column: str
    params: tuple[Any, ...] = ()

    def statement(self, range: DateRange | None) -> tuple[str, list[Any]]:
        params = list(self.params)
        if range is None:
            return self.sql.format(filter=""), params
        start, end = range.to_timestamps()
        first = len(params) + 1
        condition = (
            f"AND {self.filter_column} >= ${first} AND {self.filter_column} < ${first + 1}"
        )
        return self.sql.format(filter=condition), [*params, start, end]


@dataclass(frozen=True)
class RemoteSource(Stage[Decimal]):
    query: RangeQuery
    null_policy: NullPolicy

    async def pull(self, context: ChartContext, window: DateRange | None) -> Series[Decimal]:
        if context.source is None:
            raise SourceUnavailable("No source of record configured")
        settings = get_settings()
        sql, params = self.query.statement(window)
        try:
            async with asyncio.timeout(settings.SOURCE_TIMEOUT):
                async with context.source.acquire() as connection:
                    async with connection.transaction(readonly=True):
                        cursor = connection.cursor(sql, *params, prefetch=settings.PREFETCH_COUNT)
                        points = await async_iterator_to_list(
                            cursor_to_async_iterator(cursor, self.to_point)
                        )
        except ChartError:
            raise
        except TRANSIENT_ERRORS as exc:
            raise SourceUnavailable(f"Source of record unavailable: {exc!r}") from exc
        except asyncpg.PostgresError as exc:
            raise SourceDataError(f"Query failed: {exc}") from exc
        logger.debug("Pulled %d rows for %s", len(points), window or "full history")
        return sort_and_deduplicate(p for p in points if p is not None)

    def to_point(self, record: asyncpg.Record) -> Point[Decimal] | None:
        if len(record) != 2:
            raise SourceDataError(f"Expected (date, value) rows, got {len(record)} columns")
        date, value = record[0], record[1]
        if isinstance(date, datetime.datetime):
            date = date.date()
        if not isinstance(date, datetime.date):
            raise SourceDataError(f"Expected a date, got {date!r}")
        if value is None:
            if self.null_policy is NullPolicy.SKIP:
                return None
            return Point(date, Decimal(0))
        return Point(date, to_decimal(value))


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise SourceDataError(f"Expected a number, got {value!r}")
    if isinstance(value, float):
        # repr gives the shortest text that round-trips, not the binary expansion
        result = Decimal(repr(value))
    elif isinstance(value, (int, Decimal)):
        result = Decimal(value)
    else:
        raise SourceDataError(f"Expected a number, got {value!r}")
    if not result.is_finite():
        raise SourceDataError(f"Expected a finite number, got {value!r}")
    return result
