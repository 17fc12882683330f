from datetime import date, datetime
from decimal import Decimal
from typing import Any


def sql_quote(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def sql_identifier_quote(identifier: str) -> str:
    escaped = identifier.replace('"', '""')
    return f'"{escaped}"'


def remove_sql_identifier_quotes(identifier: str) -> str:
    if identifier.startswith('"') and identifier.endswith('"'):
        unescaped = identifier[1:-1].replace('""', '"')
        return unescaped
    return identifier


def sql_literal(value: Any) -> str:
    """
    Render a split boundary as a SQL literal.

    Numbers are emitted bare; dates and timestamps as quoted ISO strings, which
    every supported engine compares against its native date/time columns.
    """
    if isinstance(value, bool):
        raise TypeError(f"Boolean values cannot be used as SQL range bounds: {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value)
    if isinstance(value, Decimal):
        return str(value)
    # datetime is a subclass of date, so it must be checked first
    if isinstance(value, datetime):
        return sql_quote(value.isoformat(sep=" "))
    if isinstance(value, date):
        return sql_quote(value.isoformat())
    if isinstance(value, str):
        return sql_quote(value)
    raise TypeError(f"Unsupported SQL literal type: {type(value).__name__}")
