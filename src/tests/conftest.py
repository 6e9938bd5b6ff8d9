import asyncio
import datetime
import hashlib
import os
from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable, Generator

import asyncpg
import pytest
import pytest_asyncio
from testcontainers.postgres import PostgresContainer

from charts.lines.average_block_rewards import ETH
from charts.migrate import run_all_migrations
from charts.stages import ChartContext
from charts.store import ChartStore, MemoryChartStore, PostgresChartStore

# Disable ryuk to avoid port conflicts
os.environ.setdefault("TESTCONTAINERS_RYUK_DISABLED", "true")

SOURCE_SCHEMA = """
    CREATE TABLE IF NOT EXISTS blocks (
        hash BYTEA PRIMARY KEY,
        number BIGINT NOT NULL,
        "timestamp" TIMESTAMP NOT NULL,
        consensus BOOLEAN NOT NULL
    );
    CREATE TABLE IF NOT EXISTS block_rewards (
        block_hash BYTEA NOT NULL REFERENCES blocks (hash),
        address_hash BYTEA NOT NULL,
        reward NUMERIC(100)
    );
"""


async def _migrate(url: str) -> None:
    conn: asyncpg.Connection = await asyncpg.connect(url)
    try:
        await conn.execute(SOURCE_SCHEMA)
        await run_all_migrations(conn)
    finally:
        await conn.close()


@pytest.fixture(scope="session")
def postgres() -> Generator[PostgresContainer, None, None]:
    container = PostgresContainer("postgres:16", driver=None)
    try:
        container.start()
    except Exception as exc:  # no docker daemon
        pytest.skip(f"PostgreSQL container unavailable: {exc}")
    try:
        asyncio.run(_migrate(container.get_connection_url()))
        yield container
    finally:
        container.stop()


@pytest_asyncio.fixture
async def pool(postgres: PostgresContainer) -> AsyncGenerator[asyncpg.Pool, None]:
    pool: asyncpg.Pool = await asyncpg.create_pool(postgres.get_connection_url())
    try:
        yield pool
        await pool.execute("TRUNCATE TABLE block_rewards, blocks, chart_data, charts CASCADE")
    finally:
        await pool.close()


@pytest.fixture
def memory_store() -> MemoryChartStore:
    return MemoryChartStore()


@pytest.fixture
def memory_context(memory_store: MemoryChartStore) -> ChartContext:
    return ChartContext(store=memory_store)


@pytest.fixture(params=["memory", "postgres"])
def store(request: pytest.FixtureRequest) -> ChartStore:
    """Every ChartStore engine, so they are held to the same contract"""
    if request.param == "memory":
        return MemoryChartStore()
    pool = request.getfixturevalue("pool")
    return PostgresChartStore(pool, batch_size=2)


@pytest_asyncio.fixture
async def make_blocks(pool: asyncpg.Pool) -> Callable[[str], Awaitable[None]]:
    '''
    Usage:

        async def test_foo(make_blocks):
            await make_blocks("""
                         2022-11-09, 2022-11-10
                blocks:           1,          3
                rewards:          0,          2
            """)

    This will create one consensus block on 2022-11-09 with a reward of 0 ETH and three on
    2022-11-10 with a reward of 2 ETH each. An empty rewards cell records NULL rewards.
    '''
    counter = 0

    async def fn(text: str) -> None:
        nonlocal counter
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        dates = [datetime.date.fromisoformat(d.strip()) for d in lines[0].split(",")]
        rows = {}
        for line in lines[1:]:
            identifier, values = [t.strip() for t in line.split(":")]
            rows[identifier] = [v.strip() for v in values.split(",")]

        for date, blocks_str, reward_str in zip(dates, rows["blocks"], rows["rewards"]):
            for i in range(int(blocks_str)):
                counter += 1
                block_hash = hashlib.sha256(str(counter).encode()).digest()
                timestamp = datetime.datetime.combine(date, datetime.time(12, i % 60))
                await pool.execute(
                    'INSERT INTO blocks (hash, number, "timestamp", consensus) '
                    "VALUES ($1, $2, $3, true)",
                    block_hash,
                    counter,
                    timestamp,
                )
                await pool.execute(
                    "INSERT INTO block_rewards (block_hash, address_hash, reward) "
                    "VALUES ($1, $2, $3)",
                    block_hash,
                    b"\x00" * 20,
                    Decimal(reward_str) * ETH if reward_str else None,
                )

    return fn
