"""
Root conftest.py: small on-disk source databases shared by the test suites.

Both databases hold an `orders` table. The DuckDB one has ids 1..100 with a
mixed-case column, the SQLite one stores its dates as ISO text the way many
SQLite schemas do.
"""

import sqlite3
from datetime import datetime, timezone

import duckdb
import pytest

DUCKDB_ORDER_COUNT = 100
SQLITE_ORDER_COUNT = 30


@pytest.fixture
def duckdb_path(tmp_path) -> str:
    path = tmp_path / "shop.duckdb"
    conn = duckdb.connect(str(path))
    try:
        conn.execute(
            "CREATE TABLE orders (id INTEGER, order_day DATE, amount DOUBLE, Customer_Name VARCHAR)"
        )
        conn.execute(
            f"""
            INSERT INTO orders
            SELECT i, DATE '2015-12-01' + CAST(i % 31 AS INTEGER), i * 1.5, 'customer_' || i
            FROM range(1, {DUCKDB_ORDER_COUNT + 1}) t(i)
            """
        )
    finally:
        conn.close()
    return str(path)


@pytest.fixture
def sqlite_path(tmp_path) -> str:
    path = tmp_path / "shop.sqlite"
    conn = sqlite3.connect(path)
    try:
        conn.execute("CREATE TABLE orders (id INTEGER PRIMARY KEY, created TEXT, amount REAL)")
        conn.executemany(
            "INSERT INTO orders VALUES (?, ?, ?)",
            [(i, f"2015-01-{i:02d}", i * 2.0) for i in range(1, SQLITE_ORDER_COUNT + 1)],
        )
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture
def to_millis():
    """Factory fixture: UTC wall time -> epoch milliseconds."""
    def _to_millis(*args: int) -> int:
        return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)
    return _to_millis
