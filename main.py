import argparse
from datetime import datetime, timezone
from logging.config import dictConfig

from batchline.core.settings import (
    CONFIG_BASE_DIRECTORY_PATH,
    LOG_FOLDER,
    LOGGING_CONFIG,
    OUTPUT_ROOT_DIR,
    PARTITION_LEDGER_PATH,
)
from batchline.ingestion.domain import RunContext
from batchline.ingestion.driver_registry import DriverRegistry
from batchline.pipeline_config import load_pipeline_configs_from_directory
from batchline.runner import run_pipeline
from batchline.sink.key_store import DuckDBPartitionKeyStore
from batchline.sink.partition_writer import PartitionWriter

LOG_FOLDER.mkdir(parents=True, exist_ok=True)
dictConfig(LOGGING_CONFIG)


def parse_logical_time(value: str | None) -> int:
    """ISO-8601 timestamp (naive means UTC) -> epoch millis; defaults to now."""
    moment = datetime.fromisoformat(value) if value else datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


def main():
    parser = argparse.ArgumentParser(description="Run every configured pipeline once.")
    parser.add_argument("--logical-time", help="logical start time, e.g. 2016-01-01T00:00:00Z")
    args = parser.parse_args()

    logical_time_millis = parse_logical_time(args.logical_time)
    ctx = RunContext(run_id=f"run_{logical_time_millis}", logical_time_millis=logical_time_millis)

    registry = DriverRegistry.with_builtin_drivers()
    writer = PartitionWriter(output_root=OUTPUT_ROOT_DIR)
    PARTITION_LEDGER_PATH.parent.mkdir(parents=True, exist_ok=True)

    for pipeline in load_pipeline_configs_from_directory(str(CONFIG_BASE_DIRECTORY_PATH)):
        with DuckDBPartitionKeyStore(
            duckdb_path=str(PARTITION_LEDGER_PATH),
            dataset_name=pipeline.sink.name,
            run_id=ctx.run_id,
        ) as key_store:
            run_pipeline(pipeline, ctx, registry=registry, key_store=key_store, writer=writer)


if __name__ == "__main__":
    main()
