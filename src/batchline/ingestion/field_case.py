import logging
from enum import Enum
from typing import Any, Mapping

import pyarrow as pa

from batchline.core.errors import SchemaMismatchError

logger = logging.getLogger(__name__)


class FieldCase(str, Enum):
    UPPER = "upper"
    LOWER = "lower"
    NONE = "none"

    @classmethod
    def parse(cls, value: "str | FieldCase | None") -> "FieldCase":
        """Blank means pass-through; matching is case-insensitive."""
        if isinstance(value, FieldCase):
            return value
        if value is None or not value.strip():
            return cls.NONE
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise SchemaMismatchError(
                f"Unsupported column name case '{value}'. Expected one of: "
                f"{', '.join(member.value for member in cls)}."
            ) from None

    def apply(self, name: str) -> str:
        if self is FieldCase.UPPER:
            return name.upper()
        if self is FieldCase.LOWER:
            return name.lower()
        return name


def normalize(record: Mapping[str, Any], policy: "str | FieldCase | None") -> dict[str, Any]:
    """
    Return a copy of record with its field names recased.

    If two names collapse to the same recased name, the later field wins.
    """
    case = FieldCase.parse(policy)
    return {case.apply(name): value for name, value in record.items()}


def normalize_table(table: pa.Table, policy: "str | FieldCase | None") -> pa.Table:
    """Table counterpart of normalize(), with the same later-field-wins rule on collisions."""
    case = FieldCase.parse(policy)
    if case is FieldCase.NONE:
        return table

    names = [case.apply(name) for name in table.column_names]
    renamed = table.rename_columns(names)

    # first position, last column
    last_index: dict[str, int] = {}
    for i, name in enumerate(names):
        last_index[name] = i
    if len(last_index) == len(names):
        return renamed

    logger.warning("Columns %s collapse to the same name under %s case; keeping the later column.",
                   table.column_names, case.value)
    return pa.Table.from_arrays([renamed.column(i) for i in last_index.values()], names=list(last_index))
