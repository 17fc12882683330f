from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass

import pyarrow as pa

from batchline.core import settings
from batchline.core.errors import ConnectivityError
from batchline.ingestion.domain import RunContext, SplitTask
from batchline.ingestion.driver_registry import DriverHandle, DriverRegistry, table_exists
from batchline.ingestion.source_config import SourceConfig
from batchline.ingestion.split_planner import plan_splits
from batchline.ingestion.split_reader import query_bounds, read_split

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportRunConfig:
    max_parallel_splits: int = settings.MAX_PARALLEL_SPLITS


class ImportOrchestrator:
    """
    Coordinates one source run: validate -> check table -> bound -> plan -> read.

    Every split task opens its own connection; tasks share nothing once planned.
    A failed task fails the run after the tasks already in flight have finished.
    """

    def __init__(
        self,
        *,
        registry: DriverRegistry,
        source: SourceConfig,
        config: ImportRunConfig,
    ):
        self.registry = registry
        self.source = source
        self.config = config

    def _resolve(self) -> DriverHandle:
        return self.registry.resolve_driver(self.source.jdbc_plugin_type, self.source.jdbc_plugin_name)

    def prepare(self, ctx: RunContext) -> list[SplitTask]:
        source = self.source
        source.validate_settings()
        self.registry.validate_pipeline(source.jdbc_plugin_type, source.jdbc_plugin_name)

        logger.debug(
            "pluginType = %s; pluginName = %s; connectionString = %s; importQuery = %s; boundingQuery = %s",
            source.jdbc_plugin_type, source.jdbc_plugin_name, source.connection_string,
            source.import_query, source.bounding_query,
        )

        if source.table_name:
            exists = table_exists(
                self._resolve(),
                source.table_name,
                connection_string=source.connection_string,
                user=source.user,
                password=source.password,
            )
            if not exists:
                raise ConnectivityError(
                    f"Table {source.table_name} does not exist. Please check that the 'tableName' property "
                    f"has been set correctly, and that the connection string {source.connection_string} "
                    f"points to a valid database."
                )

        spec = source.to_import_spec(logical_time_millis=ctx.logical_time_millis)

        bounds = None
        if not spec.is_single_split:
            driver = self._resolve()
            try:
                bounds = query_bounds(
                    driver,
                    spec.bounding_query,
                    connection_string=source.connection_string,
                    user=source.user,
                    password=source.password,
                )
            finally:
                driver.release()

        return plan_splits(spec, bounds)

    def run(self, ctx: RunContext) -> pa.Table:
        tasks = self.prepare(ctx)
        driver = self._resolve()
        max_workers = max(1, min(self.config.max_parallel_splits, len(tasks)))

        results: dict[int, pa.Table] = {}
        failures: list[tuple[SplitTask, BaseException]] = []

        try:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                in_flight: dict[Future[pa.Table], SplitTask] = {
                    executor.submit(
                        read_split,
                        driver,
                        task,
                        connection_string=self.source.connection_string,
                        user=self.source.user,
                        password=self.source.password,
                        field_case=self.source.field_case,
                    ): task
                    for task in tasks
                }

                while in_flight:
                    done, _ = wait(in_flight.keys(), return_when=FIRST_COMPLETED)
                    for fut in done:
                        task = in_flight.pop(fut)
                        if fut.cancelled():
                            continue
                        try:
                            results[task.index] = fut.result()
                        except Exception as e:
                            logger.exception("Split %s failed: %s", task.index, task.resolved_query)
                            failures.append((task, e))
                            for pending in in_flight:
                                pending.cancel()
        finally:
            driver.release()

        if failures:
            raise failures[0][1]

        tables = [results[index] for index in sorted(results)]
        combined = tables[0] if len(tables) == 1 else pa.concat_tables(tables, promote_options="default")
        logger.info("Import run %s complete: %s splits, %s rows.", ctx.run_id, len(tables), combined.num_rows)
        return combined
