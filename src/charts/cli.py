#!/usr/bin/env python3
"""
Charts CLI
Incremental chart updates over the blocks database
"""

import argparse
import asyncio
import datetime
import logging
import sys

import asyncpg
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from charts.graph import ChartGraph
from charts.lines import ALL_CHARTS
from charts.migrate import reset, run_all_migrations
from charts.models import DateRange
from charts.settings import get_settings
from charts.stages import ChartContext
from charts.store import PostgresChartStore

console = Console()


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with nested subcommands"""
    parser = argparse.ArgumentParser(
        description="""
╭─────────────────────────────────────────────────────────────────╮
│ Charts                                                          │
│ Incremental time-series charts with weighted rollups            │
╰─────────────────────────────────────────────────────────────────╯
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ===== DB COMMAND GROUP =====
    db_parser = subparsers.add_parser("db", help="Chart store management")
    db_subparsers = db_parser.add_subparsers(dest="db_command", help="Database operations")
    db_subparsers.add_parser("migrate", help="Create the chart tables")
    db_subparsers.add_parser("reset", help="Drop and recreate the chart tables")

    # ===== UPDATE =====
    update_parser = subparsers.add_parser("update", help="Run one update cycle")
    update_parser.add_argument(
        "--chart",
        action="append",
        choices=[c.name for c in ALL_CHARTS],
        help="Chart to update, together with its dependents (repeatable, default: all)",
    )
    update_parser.add_argument(
        "--force-full", action="store_true", help="Recompute from full history"
    )

    # ===== GET =====
    get_parser = subparsers.add_parser("get", help="Show a chart's persisted points")
    get_parser.add_argument("name", choices=[c.name for c in ALL_CHARTS])
    get_parser.add_argument("--from", dest="start", type=datetime.date.fromisoformat)
    get_parser.add_argument("--to", dest="end", type=datetime.date.fromisoformat)

    # ===== RUN =====
    run_parser = subparsers.add_parser("run", help="Update all charts periodically")
    run_parser.add_argument(
        "--interval",
        type=float,
        default=get_settings().UPDATE_INTERVAL,
        help="Seconds between update cycles",
    )

    return parser


async def create_graph() -> tuple[ChartGraph, list[asyncpg.Pool]]:
    settings = get_settings()
    pool = await asyncpg.create_pool(settings.DATABASE_URL)
    pools = [pool]
    if settings.source_database_url == settings.DATABASE_URL:
        source = pool
    else:
        source = await asyncpg.create_pool(settings.source_database_url)
        pools.append(source)
    graph = ChartGraph(ALL_CHARTS, ChartContext(store=PostgresChartStore(pool), source=source))
    await graph.register()
    return graph, pools


async def handle_db_commands(args: argparse.Namespace) -> None:
    """Handle database management commands"""
    if args.db_command == "migrate":
        connection = await asyncpg.connect(get_settings().DATABASE_URL)
        try:
            await run_all_migrations(connection)
        finally:
            await connection.close()
    elif args.db_command == "reset":
        await reset()
    else:
        console.print("Error: No database command specified. Use 'charts db --help'.")
        sys.exit(1)
    console.print("[green]✓[/green] Done")


async def handle_update_command(args: argparse.Namespace, graph: ChartGraph) -> None:
    failures = await graph.update_all(force_full=args.force_full, only=args.chart)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("chart")
    table.add_column("resolution")
    table.add_column("status")
    for name in graph.order():
        chart = graph[name]
        if name in failures:
            status = f"[red]✗[/red] {escape(str(failures[name].cause))}"
        else:
            status = "[green]✓[/green]"
        table.add_row(name, chart.resolution.name, status)
    console.print(table)
    if failures:
        sys.exit(1)


async def handle_get_command(args: argparse.Namespace, graph: ChartGraph) -> None:
    chart = graph[args.name]
    range = None
    if args.start or args.end:
        range = DateRange(args.start or datetime.date.min, args.end or datetime.date.max)
    points = await chart.get(range)

    table = Table(show_header=True, header_style="bold magenta", title=chart.name)
    table.add_column("date")
    table.add_column("value", justify="right")
    for point in points:
        table.add_row(point.date.isoformat(), point.value)
    console.print(table)


async def run(args: argparse.Namespace) -> None:
    if args.command == "db":
        await handle_db_commands(args)
        return

    graph, pools = await create_graph()
    try:
        if args.command == "update":
            await handle_update_command(args, graph)
        elif args.command == "get":
            await handle_get_command(args, graph)
        elif args.command == "run":
            console.print(f"Updating {len(graph.charts)} charts every {args.interval}s")
            await graph.run_periodically(args.interval)
    finally:
        for pool in pools:
            await pool.close()


def main() -> None:
    parser = create_parser()
    args = parser.parse_args()

    # If no command provided, show help
    if not args.command:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("Interrupted")


if __name__ == "__main__":
    main()
