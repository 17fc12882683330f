import logging
from pathlib import Path

from batchline.ingestion.domain import RunContext
from batchline.ingestion.driver_registry import DriverRegistry
from batchline.ingestion.orchestrator import ImportOrchestrator, ImportRunConfig
from batchline.pipeline_config import PipelineSpec
from batchline.sink.key_store import PartitionKeyStore
from batchline.sink.partition_path import compute_key
from batchline.sink.partition_writer import PartitionWriter

logger = logging.getLogger(__name__)


def run_pipeline(
    pipeline: PipelineSpec,
    ctx: RunContext,
    *,
    registry: DriverRegistry,
    key_store: PartitionKeyStore,
    writer: PartitionWriter,
    config: ImportRunConfig | None = None,
) -> Path:
    """
    Run one pipeline for one logical time and return the written partition directory.

    Configuration is validated before any connection is opened. The partition is
    claimed only after every split was read, so a failed read leaves nothing claimed.
    """
    pipeline.validate_settings()
    logger.info("Running pipeline %s (run %s, logical time %s)", pipeline.name, ctx.run_id, ctx.logical_time_millis)

    orchestrator = ImportOrchestrator(registry=registry, source=pipeline.source, config=config or ImportRunConfig())
    table = orchestrator.run(ctx)

    partition = compute_key(pipeline.sink.to_partition_spec(), ctx.logical_time_millis, key_store)
    return writer.write(table, partition, claim_token=ctx.run_id)
