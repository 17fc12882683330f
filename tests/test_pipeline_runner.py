"""
Pipeline files and complete runs: YAML -> split import -> partitioned Parquet.
"""

import logging
import textwrap

import pyarrow.parquet as pq
import pytest

from batchline.core.errors import ConfigurationError, ConnectivityError, PartitionConflictError
from batchline.ingestion.domain import RunContext
from batchline.ingestion.driver_registry import DriverRegistry
from batchline.pipeline_config import load_pipeline_config, load_pipeline_configs_from_directory
from batchline.runner import run_pipeline
from batchline.sink.key_store import DuckDBPartitionKeyStore, InMemoryPartitionKeyStore
from batchline.sink.partition_writer import PartitionWriter


def _pipeline_yaml(name: str, connection_string: str, **sink_extra: str) -> str:
    sink_lines = "".join(f"\n  {key}: {value!r}" for key, value in sink_extra.items())
    return textwrap.dedent(f"""\
        name: {name}
        source:
          jdbcPluginName: duckdb
          connectionString: {connection_string!r}
          tableName: orders
          importQuery: "SELECT * FROM orders WHERE $CONDITIONS"
          boundingQuery: "SELECT MIN(id), MAX(id) FROM orders"
          splitBy: id
          numSplits: 4
          columnNameCase: lower
        sink:
          name: orders""") + sink_lines + "\n"


@pytest.fixture
def config_dir(tmp_path, duckdb_path):
    directory = tmp_path / "configs"
    directory.mkdir()
    (directory / "orders.yaml").write_text(
        _pipeline_yaml("orders_daily", duckdb_path, filePathFormat="yyyy-MM-dd", partitionOffset="1d")
    )
    return directory


@pytest.fixture
def ctx(to_millis) -> RunContext:
    return RunContext(run_id="run_20160101", logical_time_millis=to_millis(2016, 1, 1))


class TestLoadPipelineConfigs:
    def test_loads_yaml(self, config_dir):
        [pipeline] = load_pipeline_configs_from_directory(str(config_dir))
        assert pipeline.name == "orders_daily"
        assert pipeline.source.num_splits == 4
        assert pipeline.sink.partition_offset == "1d"
        pipeline.validate_settings()

    def test_files_load_in_sorted_order(self, config_dir, duckdb_path):
        (config_dir / "a_refunds.yaml").write_text(_pipeline_yaml("refunds_daily", duckdb_path))
        names = [p.name for p in load_pipeline_configs_from_directory(str(config_dir))]
        assert names == ["refunds_daily", "orders_daily"]

    def test_duplicate_names(self, config_dir, duckdb_path):
        (config_dir / "copy.yaml").write_text(_pipeline_yaml("orders_daily", duckdb_path))
        with pytest.raises(ConfigurationError, match="Duplicate"):
            load_pipeline_configs_from_directory(str(config_dir))

    def test_unknown_key(self, tmp_path, duckdb_path):
        path = tmp_path / "bad.yaml"
        path.write_text(_pipeline_yaml("orders_daily", duckdb_path, compression="gzip"))
        with pytest.raises(ConfigurationError, match="bad.yaml"):
            load_pipeline_config(str(path))

    def test_malformed_yaml(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("name: [unclosed\n")
        with pytest.raises(ConfigurationError, match="broken.yaml"):
            load_pipeline_configs_from_directory(str(tmp_path))

    def test_empty_directory(self, tmp_path, caplog):
        with caplog.at_level(logging.WARNING):
            assert load_pipeline_configs_from_directory(str(tmp_path)) == []
        assert "No pipeline configuration files" in caplog.text


class TestRunPipeline:
    def test_writes_one_partition(self, config_dir, ctx, tmp_path):
        [pipeline] = load_pipeline_configs_from_directory(str(config_dir))
        writer = PartitionWriter(output_root=tmp_path / "datasets")

        final_dir = run_pipeline(
            pipeline, ctx,
            registry=DriverRegistry.with_builtin_drivers(),
            key_store=InMemoryPartitionKeyStore(),
            writer=writer,
        )

        assert final_dir == tmp_path / "datasets" / "orders" / "2015-12-31"
        table = pq.read_table(final_dir / "part-00000.parquet")
        assert table.num_rows == 100
        assert "customer_name" in table.column_names

    def test_rerun_of_same_logical_time_conflicts(self, config_dir, ctx, tmp_path):
        [pipeline] = load_pipeline_configs_from_directory(str(config_dir))
        writer = PartitionWriter(output_root=tmp_path / "datasets")
        registry = DriverRegistry.with_builtin_drivers()
        ledger = str(tmp_path / "partitions.duckdb")

        with DuckDBPartitionKeyStore(duckdb_path=ledger, dataset_name="orders", run_id=ctx.run_id) as store:
            run_pipeline(pipeline, ctx, registry=registry, key_store=store, writer=writer)

        with DuckDBPartitionKeyStore(duckdb_path=ledger, dataset_name="orders", run_id="rerun") as store:
            with pytest.raises(PartitionConflictError):
                run_pipeline(pipeline, ctx, registry=registry, key_store=store, writer=writer)

    def test_failed_read_claims_nothing(self, tmp_path, ctx, duckdb_path):
        path = tmp_path / "missing_table.yaml"
        path.write_text(_pipeline_yaml("orders_daily", duckdb_path).replace("tableName: orders", "tableName: refunds"))
        pipeline = load_pipeline_config(str(path))
        store = InMemoryPartitionKeyStore()

        with pytest.raises(ConnectivityError):
            run_pipeline(
                pipeline, ctx,
                registry=DriverRegistry.with_builtin_drivers(),
                key_store=store,
                writer=PartitionWriter(output_root=tmp_path / "datasets"),
            )
        assert len(store) == 0
