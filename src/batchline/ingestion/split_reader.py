import logging
from typing import Any

import pyarrow as pa

from batchline.core.errors import ConnectivityError, ValidationError
from batchline.ingestion.domain import SplitTask
from batchline.ingestion.driver_registry import DriverHandle
from batchline.ingestion.field_case import FieldCase, normalize_table

logger = logging.getLogger(__name__)


def fetch_bounds(connection: Any, bounding_query: str) -> tuple[Any, Any]:
    """Run the bounding query and return the (min, max) pair from its first row."""
    cursor = connection.cursor()
    try:
        cursor.execute(bounding_query)
        row = cursor.fetchone()
    finally:
        cursor.close()

    if row is None or len(row) < 2:
        raise ValidationError(
            f"Bounding query must return one row with the min and max of the split column: {bounding_query}"
        )

    logger.debug("Bounding query returned min=%r max=%r", row[0], row[1])
    return row[0], row[1]


def _open(driver: DriverHandle, connection_string: str, user: str | None, password: str | None) -> Any:
    try:
        return driver.connect(connection_string, user=user, password=password)
    except Exception as e:
        raise ConnectivityError(
            f"Could not connect to '{connection_string}' using driver {driver.plugin_id}: {e}"
        ) from e


def query_bounds(
    driver: DriverHandle,
    bounding_query: str,
    *,
    connection_string: str,
    user: str | None = None,
    password: str | None = None,
) -> tuple[Any, Any]:
    connection = _open(driver, connection_string, user, password)
    try:
        return fetch_bounds(connection, bounding_query)
    finally:
        connection.close()


def read_split(
    driver: DriverHandle,
    task: SplitTask,
    *,
    connection_string: str,
    user: str | None = None,
    password: str | None = None,
    field_case: FieldCase = FieldCase.NONE,
) -> pa.Table:
    """Execute one split task on its own connection and return its rows."""
    connection = _open(driver, connection_string, user, password)
    try:
        table = driver.fetch_arrow(connection, task.resolved_query)
    finally:
        connection.close()

    logger.debug("Split %s returned %s rows", task.index, table.num_rows)
    return normalize_table(table, field_case)
