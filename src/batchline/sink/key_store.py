import logging
import threading
from datetime import datetime, timezone
from typing import Protocol

import duckdb

logger = logging.getLogger(__name__)


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PartitionKeyStore(Protocol):
    def claim(self, partition_path: str) -> bool:
        """Register partition_path; False if it was already registered. Must be atomic."""
        ...

    def __contains__(self, partition_path: object) -> bool:
        ...


class InMemoryPartitionKeyStore:
    """
    Thread-safe set of claimed partition paths for a single process.

    When given an existing set, the store mutates that set so callers keep
    seeing the paths claimed through it.
    """

    def __init__(self, keys: set[str] | None = None):
        self._keys: set[str] = keys if keys is not None else set()
        self._lock = threading.Lock()

    def claim(self, partition_path: str) -> bool:
        with self._lock:
            if partition_path in self._keys:
                return False
            self._keys.add(partition_path)
            return True

    def __contains__(self, partition_path: object) -> bool:
        with self._lock:
            return partition_path in self._keys

    def __len__(self) -> int:
        with self._lock:
            return len(self._keys)


class DuckDBPartitionKeyStore:
    """
    Persistent ledger of claimed partitions backed by a DuckDB file.

    The ledger is the authority on which partitions exist for a dataset:
      - one row per (dataset_name, partition_path)
      - a claim is a single INSERT guarded by the primary key, so two runs
        racing for the same path cannot both succeed

    Tables:
      partition_claims
    """

    def __init__(self, *, duckdb_path: str, dataset_name: str, run_id: str | None = None):
        self._duckdb_path = duckdb_path
        self._dataset_name = dataset_name
        self._run_id = run_id

        self._connection: duckdb.DuckDBPyConnection | None = None
        self._lock = threading.Lock()

    def __enter__(self) -> "DuckDBPartitionKeyStore":
        if self._connection is not None:
            raise RuntimeError("Store connection already open")

        self._connection = duckdb.connect(self._duckdb_path)
        self._bootstrap()

        logger.debug("Partition ledger connected. dataset=%s duckdb=%s", self._dataset_name, self._duckdb_path)
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            self._connection = None

    def _require_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            raise RuntimeError("Store is not connected; use it as a context manager")
        return self._connection

    # ----------------------------
    # Public API
    # ----------------------------
    def claim(self, partition_path: str) -> bool:
        conn = self._require_connection()
        with self._lock:
            try:
                conn.execute(
                    """
                    INSERT INTO partition_claims (dataset_name, partition_path, run_id, claimed_at_utc)
                    VALUES (?, ?, ?, ?)
                    """,
                    [self._dataset_name, partition_path, self._run_id, utc_now_naive()],
                )
                claimed = True
            except duckdb.ConstraintException:
                claimed = False

        logger.debug("Claim %s for dataset %s: %s", partition_path, self._dataset_name, claimed)
        return claimed

    def __contains__(self, partition_path: object) -> bool:
        conn = self._require_connection()
        with self._lock:
            row = conn.execute(
                "SELECT 1 FROM partition_claims WHERE dataset_name = ? AND partition_path = ? LIMIT 1",
                [self._dataset_name, partition_path],
            ).fetchone()
        return row is not None

    def get_claimed_paths(self) -> set[str]:
        conn = self._require_connection()
        with self._lock:
            rows = conn.execute(
                "SELECT partition_path FROM partition_claims WHERE dataset_name = ?",
                [self._dataset_name],
            ).fetchall()
        return {r[0] for r in rows}

    # ----------------------------
    # Bootstrap
    # ----------------------------
    def _bootstrap(self) -> None:
        conn = self._require_connection()
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS partition_claims (
              dataset_name     VARCHAR   NOT NULL,
              partition_path   VARCHAR   NOT NULL,
              run_id           VARCHAR,
              claimed_at_utc   TIMESTAMP NOT NULL,
              PRIMARY KEY (dataset_name, partition_path)
            );
            """
        )
