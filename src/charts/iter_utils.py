"""Utilities for streaming/iterating over database records"""

import datetime
from collections.abc import AsyncIterator, Callable, Iterable
from decimal import Decimal
from typing import Any, Sequence, TypeVar

import asyncpg
from asyncpg.cursor import CursorFactory

from charts.models import Point, Series

T = TypeVar("T")
V = TypeVar("V")


async def cursor_to_async_iterator(
    cursor: CursorFactory, convert: Callable[[asyncpg.Record], T]
) -> AsyncIterator[T]:
    async for record in cursor:
        yield convert(record)


async def async_iterator_to_list(async_iterator: AsyncIterator[T]) -> list[T]:
    result = []
    async for item in async_iterator:
        result.append(item)
    return result


def sort_and_deduplicate(points: Iterable[Point[V]]) -> Series[V]:
    """Sort points by date, keeping the last point seen for each date."""
    by_date: dict[datetime.date, Point[V]] = {}
    for point in points:
        by_date[point.date] = point
    return [by_date[date] for date in sorted(by_date)]


async def batch_upsert(
    connection: asyncpg.Connection,
    table_name: str,
    records: Sequence[tuple[Any, ...]],
    columns: Sequence[str],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
    batch_size: int = 10_000,
) -> int:
    """Insert records in batches, overwriting `update_columns` of rows that already exist.

    Args:
        connection: Database connection, expected to be inside a transaction
        table_name: Table name to insert into
        records: Tuples ordered like `columns`
        columns: Column names for insertion
        conflict_columns: Unique key used to detect existing rows
        update_columns: Columns replaced on conflict
        batch_size: Number of records per statement

    Returns:
        Number of records written
    """
    total = 0
    for offset in range(0, len(records), batch_size):
        batch = records[offset : offset + batch_size]
        await _batch_upsert(
            connection, table_name, batch, columns, conflict_columns, update_columns
        )
        total += len(batch)
    return total


async def _batch_upsert(
    connection: asyncpg.Connection,
    table_name: str,
    records: Sequence[tuple[Any, ...]],
    columns: Sequence[str],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
) -> None:
    if not records:
        return

    column_names = ", ".join(f'"{col}"' for col in columns)
    # Use unnest to insert multiple rows from arrays
    unnest_expr = ", ".join(
        f"unnest(${i+1}::{_infer_array_type(records[0][i])}[])" for i in range(len(columns))
    )
    conflict_names = ", ".join(f'"{col}"' for col in conflict_columns)
    updates = ", ".join(f'"{col}" = EXCLUDED."{col}"' for col in update_columns)

    query = f"""
        INSERT INTO {table_name} ({column_names})
        SELECT {unnest_expr}
        ON CONFLICT ({conflict_names}) DO UPDATE SET {updates}
    """

    # Transpose records: list of tuples -> tuple of lists
    columns_data = tuple([record[i] for record in records] for i in range(len(columns)))

    await connection.execute(query, *columns_data)


def _infer_array_type(value: Any) -> str:
    """Infer PostgreSQL array type from Python value."""
    if isinstance(value, datetime.datetime):
        return "timestamptz"
    elif isinstance(value, datetime.date):
        return "date"
    elif isinstance(value, Decimal):
        return "numeric"
    elif isinstance(value, bool):
        return "boolean"
    elif isinstance(value, int):
        return "bigint"
    elif isinstance(value, float):
        return "float8"
    else:
        return "text"
