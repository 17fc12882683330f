"""
Driver registry: plugin identifier -> database driver.

Drivers are registered explicitly and looked up by "<pluginType>.<pluginName>"
(for example "jdbc.duckdb"). A driver opens DB-API connections, answers
catalog questions and fetches query results as Arrow tables.

Two checks guard a run:
  - validate_pipeline(): design time, the referenced driver must be registered
  - table_exists():      run time, the configured table must be reachable
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol

import duckdb
import pyarrow as pa

from batchline.core import settings
from batchline.core.errors import ConfigurationError, ConnectivityError, DriverNotFoundError
from batchline.core.sql import remove_sql_identifier_quotes, sql_identifier_quote

logger = logging.getLogger(__name__)


class Driver(Protocol):
    def connect(self, connection_string: str, user: str | None = None, password: str | None = None) -> Any:
        ...

    def has_table(self, connection: Any, table_name: str) -> bool:
        ...

    def fetch_arrow(self, connection: Any, query: str) -> pa.Table:
        ...

    def release(self) -> None:
        ...


def _split_table_name(table_name: str) -> tuple[str | None, str]:
    schema, _, table = table_name.rpartition(".")
    return (remove_sql_identifier_quotes(schema) if schema else None), remove_sql_identifier_quotes(table)


class DuckDBDriver:
    """DuckDB databases; the connection string is a database file path or ':memory:'."""

    def connect(self, connection_string: str, user: str | None = None, password: str | None = None) -> Any:
        if user is not None or password is not None:
            logger.debug("DuckDB ignores user/password settings.")
        return duckdb.connect(database=connection_string)

    def has_table(self, connection: Any, table_name: str) -> bool:
        schema, table = _split_table_name(table_name)
        sql = "SELECT 1 FROM information_schema.tables WHERE lower(table_name) = lower(?)"
        params: list[Any] = [table]
        if schema is not None:
            sql += " AND lower(table_schema) = lower(?)"
            params.append(schema)
        return connection.execute(sql + " LIMIT 1", params).fetchone() is not None

    def fetch_arrow(self, connection: Any, query: str) -> pa.Table:
        return connection.execute(query).fetch_arrow_table()

    def release(self) -> None:
        pass


class SQLiteDriver:
    """SQLite databases through the standard library DB-API driver; the file must already exist."""

    def connect(self, connection_string: str, user: str | None = None, password: str | None = None) -> Any:
        if user is not None or password is not None:
            logger.debug("SQLite ignores user/password settings.")
        if connection_string == ":memory:" or connection_string.startswith("file:"):
            return sqlite3.connect(connection_string, uri=True, check_same_thread=False)
        uri = Path(connection_string).absolute().as_uri() + "?mode=rw"
        return sqlite3.connect(uri, uri=True, check_same_thread=False)

    def has_table(self, connection: Any, table_name: str) -> bool:
        schema, table = _split_table_name(table_name)
        master = f"{sql_identifier_quote(schema)}.sqlite_master" if schema else "sqlite_master"
        cursor = connection.execute(
            f"SELECT 1 FROM {master} WHERE type IN ('table', 'view') AND lower(name) = lower(?) LIMIT 1",
            [table],
        )
        try:
            return cursor.fetchone() is not None
        finally:
            cursor.close()

    def fetch_arrow(self, connection: Any, query: str) -> pa.Table:
        cursor = connection.execute(query)
        try:
            names = [column[0] for column in cursor.description or ()]
            rows = cursor.fetchall()
        finally:
            cursor.close()
        columns = list(zip(*rows)) if rows else [() for _ in names]
        return pa.Table.from_arrays([pa.array(list(values)) for values in columns], names=names)

    def release(self) -> None:
        pass


@dataclass(frozen=True)
class DriverHandle:
    """A resolved driver together with the plugin identifier it was resolved from."""
    plugin_id: str
    driver: Driver

    def connect(self, connection_string: str, user: str | None = None, password: str | None = None) -> Any:
        return self.driver.connect(connection_string, user=user, password=password)

    def has_table(self, connection: Any, table_name: str) -> bool:
        return self.driver.has_table(connection, table_name)

    def fetch_arrow(self, connection: Any, query: str) -> pa.Table:
        return self.driver.fetch_arrow(connection, query)

    def release(self) -> None:
        self.driver.release()


class DriverRegistry:
    def __init__(self, factories: dict[str, Callable[[], Driver]] | None = None):
        self._factories: dict[str, Callable[[], Driver]] = dict(factories or {})

    @classmethod
    def with_builtin_drivers(cls) -> "DriverRegistry":
        registry = cls()
        registry.register(settings.DEFAULT_JDBC_PLUGIN_TYPE, "duckdb", DuckDBDriver)
        registry.register(settings.DEFAULT_JDBC_PLUGIN_TYPE, "sqlite", SQLiteDriver)
        return registry

    @staticmethod
    def plugin_key(plugin_type: str, plugin_name: str) -> str:
        return f"{plugin_type}.{plugin_name}"

    def register(self, plugin_type: str, plugin_name: str, factory: Callable[[], Driver]) -> None:
        key = self.plugin_key(plugin_type, plugin_name)
        if key in self._factories:
            raise ValueError(f"A driver is already registered as '{key}'")
        self._factories[key] = factory

    def is_registered(self, plugin_type: str, plugin_name: str) -> bool:
        return self.plugin_key(plugin_type, plugin_name) in self._factories

    def validate_pipeline(self, plugin_type: str, plugin_name: str) -> None:
        if not self.is_registered(plugin_type, plugin_name):
            raise ConfigurationError(
                f"Unable to find plugin '{plugin_name}' of type '{plugin_type}'. "
                f"Registered drivers: {', '.join(sorted(self._factories)) or 'none'}."
            )

    def resolve_driver(self, plugin_type: str, plugin_name: str) -> DriverHandle:
        key = self.plugin_key(plugin_type, plugin_name)
        factory = self._factories.get(key)
        if factory is None:
            raise DriverNotFoundError(f"No driver registered as '{key}'")

        logger.debug("Resolved driver %s", key)
        return DriverHandle(plugin_id=f"{settings.SOURCE_PLUGIN_STAGE}.{key}", driver=factory())


def table_exists(
    driver: DriverHandle,
    table_name: str,
    *,
    connection_string: str,
    user: str | None = None,
    password: str | None = None,
) -> bool:
    """
    Check the catalog for table_name.

    Returns False only when the table is confirmed absent; raises
    ConnectivityError if the check itself fails. The connection is closed and
    the driver released on every path.
    """
    try:
        try:
            connection = driver.connect(connection_string, user=user, password=password)
        except Exception as e:
            raise ConnectivityError(
                f"Could not connect to '{connection_string}' using driver {driver.plugin_id}: {e}"
            ) from e

        try:
            exists = driver.has_table(connection, table_name)
        except Exception as e:
            raise ConnectivityError(f"Could not check whether table '{table_name}' exists: {e}") from e
        finally:
            connection.close()
    finally:
        driver.release()

    logger.info("Table %s %s at %s", table_name, "found" if exists else "not found", connection_string)
    return exists
