from __future__ import annotations

from dataclasses import dataclass
import logging
import os
import shutil
import time
import uuid
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq

from batchline.core import settings
from batchline.core.errors import ConfigurationError, PartitionConflictError
from batchline.sink.partition_path import PartitionKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionWriter:
    """Filesystem layout for partitioned output.

    Layout:
      output_root/
        _tmp/              -> Working area for partitions being written
        <partition path>/  -> Completed partitions, e.g. orders/2015-01-01/20-42/
          part-00000.parquet
    """

    output_root: Path
    tmp_dirname: str = "_tmp"
    file_name: str = settings.PARTITION_FILE_NAME

    # ----------------------------
    # Paths
    # ----------------------------
    @property
    def tmp_root(self) -> Path:
        return self.output_root / self.tmp_dirname

    def get_partition_directory_for(self, partition: PartitionKey) -> Path:
        root = self.output_root.resolve()
        candidate = (root / partition.path).resolve()
        if root not in candidate.parents:
            raise ConfigurationError(f"Partition path '{partition.path}' escapes the output root {self.output_root}")
        return self.output_root / partition.path

    def get_tmp_partition_directory_for(self, partition: PartitionKey, *, claim_token: str) -> Path:
        return self.tmp_root / claim_token / f"{partition.adjusted_time_millis}_{uuid.uuid4().hex[:12]}"

    # ----------------------------
    # IO
    # ----------------------------
    def write(self, table: pa.Table, partition: PartitionKey, *, claim_token: str) -> Path:
        """
        Write table as the content of partition and return the partition directory.

        Never replaces an existing partition directory.
        """
        final_dir = self.get_partition_directory_for(partition)
        if final_dir.exists():
            raise PartitionConflictError(f"Partition directory already exists: {final_dir}")

        tmp_dir = self.get_tmp_partition_directory_for(partition, claim_token=claim_token)
        try:
            tmp_dir.mkdir(parents=True, exist_ok=True)
            pq.write_table(table, tmp_dir / self.file_name, compression="snappy")
            self._promote(tmp_dir=tmp_dir, final_dir=final_dir)
        except Exception:
            logger.exception("Writing partition %s failed", partition.path)
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise
        finally:
            self._prune_empty_parents(tmp_dir.parent)

        logger.info("Wrote %s rows to partition %s", table.num_rows, final_dir)
        return final_dir

    def _promote(self, *, tmp_dir: Path, final_dir: Path) -> None:
        """
        Move a finished tmp directory into place.
        Retries briefly on PermissionError for transient file locks.
        """
        final_dir.parent.mkdir(parents=True, exist_ok=True)
        if final_dir.exists():
            raise PartitionConflictError(f"Partition directory already exists: {final_dir}")

        max_retries = 10
        for i in range(max_retries):
            try:
                os.replace(tmp_dir, final_dir)
                return
            except PermissionError:
                if i == max_retries - 1:
                    raise
                time.sleep(0.05 * (i + 1))

    # ----------------------------
    # Cleanup helpers
    # ----------------------------
    def _prune_empty_parents(self, start_dir: Path) -> int:
        """
        Walk upward deleting empty dirs until output_root is reached.
        Returns number of dirs removed.
        """
        removed = 0
        current = start_dir

        while True:
            if not current.exists() or not current.is_dir():
                break
            if current == self.output_root:
                break
            try:
                current.relative_to(self.output_root)
            except ValueError:
                break

            try:
                if any(current.iterdir()):
                    break
                current.rmdir()
                removed += 1
            except OSError:
                break

            current = current.parent

        return removed
