import asyncio
import logging
from pathlib import Path

import asyncpg
from jinja2 import Template

from charts.models import ChartType
from charts.resolutions import RESOLUTIONS
from charts.settings import get_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


async def run_all_migrations(connection: asyncpg.Connection) -> None:
    """Run all chart store migrations."""
    migration_files = sorted(
        f for f in MIGRATIONS_DIR.iterdir() if f.suffix == ".sql" or f.name.endswith(".sql.j2")
    )
    logger.info("Found %d migration files", len(migration_files))
    for migration_file in migration_files:
        logger.info("Running migration: %s", migration_file.name)
        content = migration_file.read_text()
        if migration_file.suffix == ".j2":
            template = Template(content)
            content = template.render(RESOLUTIONS=RESOLUTIONS, CHART_TYPES=tuple(ChartType))
        await connection.execute(content)
    logger.info("All migrations completed successfully")


async def drop(connection: asyncpg.Connection) -> None:
    """Drop the chart store tables, leaving the source of record alone."""
    logger.info("Dropping chart tables")
    await connection.execute("DROP TABLE IF EXISTS chart_data, charts CASCADE")


async def reset() -> None:
    """Drop the chart tables and run all migrations."""
    connection = await asyncpg.connect(get_settings().DATABASE_URL)
    try:
        async with connection.transaction():
            await drop(connection)
            await run_all_migrations(connection)
    finally:
        await connection.close()


async def main() -> None:
    connection = await asyncpg.connect(get_settings().DATABASE_URL)
    try:
        await run_all_migrations(connection)
    finally:
        await connection.close()


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().LOG_LEVEL)
    asyncio.run(main())
