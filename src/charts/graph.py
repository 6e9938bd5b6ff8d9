"""Chart dependency graph.

Charts form a DAG (daily -> weekly/monthly -> yearly). `update_all` walks it in topological
order: every chart whose dependencies finished is updated concurrently with its siblings, and a
chart whose dependency failed is skipped for the cycle.
"""

import asyncio
import datetime
import graphlib
import logging
from collections.abc import Iterable

from charts.chart import Chart, ChartDefinition
from charts.errors import ChartNotFound, DependencyCycleError, ReductionError, UpdateError
from charts.stages import ChartContext

logger = logging.getLogger(__name__)


class ChartGraph:
    def __init__(self, definitions: Iterable[ChartDefinition], context: ChartContext) -> None:
        self.context = context
        self.charts: dict[str, Chart] = {}
        for definition in definitions:
            if definition.name in self.charts:
                raise ValueError(f"Duplicate chart {definition.name!r}")
            self.charts[definition.name] = Chart(definition, context)

        self.dependencies: dict[str, tuple[str, ...]] = {}
        for name, chart in self.charts.items():
            for dependency in chart.definition.dependencies:
                if dependency not in self.charts:
                    raise ChartNotFound(f"{name!r} depends on unknown chart {dependency!r}")
            self.dependencies[name] = chart.definition.dependencies

        try:
            self._order = tuple(graphlib.TopologicalSorter(self.dependencies).static_order())
        except graphlib.CycleError as exc:
            raise DependencyCycleError(f"Charts depend on each other: {exc.args[1]}") from exc

    def __getitem__(self, name: str) -> Chart:
        try:
            return self.charts[name]
        except KeyError:
            raise ChartNotFound(name) from None

    def order(self) -> tuple[str, ...]:
        """Chart names, every dependency before its dependents"""
        return self._order

    def dependents(self, name: str) -> set[str]:
        """Every chart that (transitively) reads `name`"""
        result: set[str] = set()
        pending = [name]
        while pending:
            current = pending.pop()
            for other, dependencies in self.dependencies.items():
                if current in dependencies and other not in result:
                    result.add(other)
                    pending.append(other)
        return result

    async def register(self) -> None:
        for name in self._order:
            await self.context.store.register(self.charts[name].definition.metadata)

    async def update_all(
        self,
        now: datetime.datetime | None = None,
        force_full: bool = False,
        only: Iterable[str] | None = None,
    ) -> dict[str, UpdateError]:
        """Update charts in dependency order. Returns the failures, keyed by chart name.

        With `only`, the named charts and everything depending on them are updated.
        """
        if now is None:
            now = datetime.datetime.now(datetime.timezone.utc)
        selected = set(self.charts)
        if only is not None:
            selected = set()
            for name in only:
                if name not in self.charts:
                    raise ChartNotFound(name)
                selected |= {name} | self.dependents(name)

        sorter = graphlib.TopologicalSorter(self.dependencies)
        sorter.prepare()
        failures: dict[str, UpdateError] = {}

        async def run(name: str) -> str:
            failed = [d for d in self.dependencies[name] if d in failures]
            if failed:
                logger.warning("Skipping %s, dependencies failed: %s", name, ", ".join(failed))
                cause = ReductionError(f"Dependencies failed: {', '.join(failed)}")
                failures[name] = UpdateError(name, cause)
            elif name in selected:
                try:
                    await self.charts[name].update(now, force_full=force_full)
                except UpdateError as exc:
                    failures[name] = exc
                except Exception as exc:
                    logger.exception("Update of %s raised outside its cycle", name)
                    failures[name] = UpdateError(name, exc)
            return name

        pending: set[asyncio.Task[str]] = set()
        try:
            while sorter.is_active():
                for name in sorter.get_ready():
                    pending.add(asyncio.create_task(run(name), name=f"update-{name}"))
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    sorter.done(task.result())
        finally:
            # Cancelled mid-walk
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        if failures:
            logger.error("%d of %d charts failed to update", len(failures), len(selected))
        return failures

    async def run_periodically(self, interval: float) -> None:
        """Update every chart each `interval` seconds, until cancelled."""
        while True:
            failures = await self.update_all()
            for error in failures.values():
                logger.error("%s (retryable=%s)", error, error.retryable)
            await asyncio.sleep(interval)
