"""Parquet partition output through a temporary directory."""

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from batchline.core.errors import ConfigurationError, PartitionConflictError
from batchline.sink.partition_path import PartitionKey
from batchline.sink.partition_writer import PartitionWriter

PARTITION = PartitionKey(key="2015-01-01/20-42", path="orders/2015-01-01/20-42", adjusted_time_millis=1_420_144_920_000)


@pytest.fixture
def writer(tmp_path) -> PartitionWriter:
    return PartitionWriter(output_root=tmp_path / "datasets")


@pytest.fixture
def table() -> pa.Table:
    return pa.table({"id": [1, 2, 3], "amount": [1.5, 3.0, 4.5]})


class TestWrite:
    def test_writes_parquet_under_partition_path(self, writer, table, tmp_path):
        final_dir = writer.write(table, PARTITION, claim_token="run_1")

        assert final_dir == tmp_path / "datasets" / "orders" / "2015-01-01" / "20-42"
        assert pq.read_table(final_dir / "part-00000.parquet").equals(table)

    def test_tmp_area_is_cleaned_up(self, writer, table):
        writer.write(table, PARTITION, claim_token="run_1")
        assert not writer.tmp_root.exists()

    def test_existing_partition_is_never_replaced(self, writer, table):
        final_dir = writer.write(table, PARTITION, claim_token="run_1")

        with pytest.raises(PartitionConflictError):
            writer.write(pa.table({"id": [9]}), PARTITION, claim_token="run_2")
        assert pq.read_table(final_dir / "part-00000.parquet").num_rows == 3

    def test_empty_table(self, writer):
        empty = pa.table({"id": pa.array([], type=pa.int64())})
        final_dir = writer.write(empty, PARTITION, claim_token="run_1")
        assert pq.read_table(final_dir / "part-00000.parquet").num_rows == 0

    def test_failed_write_leaves_nothing_behind(self, writer, monkeypatch):
        def broken_write_table(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(pq, "write_table", broken_write_table)
        with pytest.raises(OSError, match="disk full"):
            writer.write(pa.table({"id": [1]}), PARTITION, claim_token="run_1")

        assert not writer.get_partition_directory_for(PARTITION).exists()
        assert not writer.tmp_root.exists()


class TestPartitionDirectory:
    def test_nested_under_output_root(self, writer, tmp_path):
        assert writer.get_partition_directory_for(PARTITION) == tmp_path / "datasets" / "orders" / "2015-01-01" / "20-42"

    def test_absolute_partition_path_is_rejected(self, writer, table, tmp_path):
        outside = tmp_path / "outside"
        partition = PartitionKey(key="k", path=str(outside / "k"), adjusted_time_millis=0)

        with pytest.raises(ConfigurationError, match="escapes the output root"):
            writer.write(table, partition, claim_token="run_1")
        assert not outside.exists()

    def test_parent_segments_are_rejected(self, writer, table, tmp_path):
        partition = PartitionKey(key="k", path="../escape/k", adjusted_time_millis=0)

        with pytest.raises(ConfigurationError, match="escapes the output root"):
            writer.write(table, partition, claim_token="run_1")
        assert not (tmp_path / "escape").exists()
