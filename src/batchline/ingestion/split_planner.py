"""
Split planning: one import query + (min, max) of a split column -> N queries.

The import query carries a $CONDITIONS placeholder. Each planned task replaces
it with a range predicate over the split column. Together the tasks read every
row with a non-NULL split value exactly once, with no coordination between
them once planned:

    importQuery:  SELECT * FROM orders WHERE $CONDITIONS
    bounds:       (1, 100), numSplits = 4, splitBy = id

    task 0:  ... WHERE (id < 26)
    task 1:  ... WHERE (id >= 26 AND id < 51)
    task 2:  ... WHERE (id >= 51 AND id < 76)
    task 3:  ... WHERE (id >= 76)

DOMAINS
-------
Boundaries for integers and dates are whole values; the ranges hold counts of
values that differ by at most one, the larger ones first. Floats, decimals and
timestamps are divided arithmetically, timestamps in whole microseconds.

Every range except the last is half-open [lo, next_lo), and the last is closed
at the maximum. The bound types say nothing certain about the column (a NUMERIC
column can have integral bounds and fractional rows), so no range leaves a gap
between itself and the next one.

EDGES
-----
With BoundaryMode.OPEN_EDGES (the default) the first task has no lower bound
and the last has no upper bound, so rows that arrive between the bounding query
and the reads are still picked up. BoundaryMode.CLOSED bounds every task on
both sides, using the bounding-query values exactly as returned.
"""
import logging
import math
import numbers
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Sequence

from batchline.core import settings
from batchline.core.errors import ConfigurationError, ValidationError
from batchline.core.sql import sql_literal
from batchline.ingestion.domain import BoundaryMode, ImportSpec, SplitRange, SplitTask

logger = logging.getLogger(__name__)

_MICROSECOND = timedelta(microseconds=1)


# ----------------------------
# Bound coercion
# ----------------------------
def coerce_bound(value: Any) -> int | float | Decimal | date | datetime:
    """
    Normalise one bounding-query value to a type the planner can divide.

    Strings are parsed as integer, decimal, ISO date or ISO datetime, in that
    order, since some drivers return dates and numerics as text.
    """
    if value is None:
        raise ValidationError("Bounding query returned a NULL bound; the table may be empty "
                              "or the split column may contain only NULLs.")
    if isinstance(value, bool):
        raise ValidationError(f"Boolean bound {value!r} cannot be used to split a query.")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValidationError(f"Non-finite bound {value!r} cannot be used to split a query.")
        return value
    if isinstance(value, numbers.Real):
        result = float(value)
        if not math.isfinite(result):
            raise ValidationError(f"Non-finite bound {value!r} cannot be used to split a query.")
        return result
    if isinstance(value, (date, datetime)):
        return value
    if isinstance(value, str):
        return _parse_bound_text(value)
    raise ValidationError(f"Unsupported bound type {type(value).__name__}: {value!r}")


def _parse_bound_text(text: str) -> int | Decimal | date | datetime:
    candidate = text.strip()
    try:
        return int(candidate)
    except ValueError:
        pass
    try:
        parsed = Decimal(candidate)
        if parsed.is_finite():
            return parsed
    except InvalidOperation:
        pass
    try:
        return date.fromisoformat(candidate)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(candidate)
    except ValueError:
        pass
    raise ValidationError(f"Could not parse bound '{text}' as a number, date or timestamp.")


def _promote_pair(lower: Any, upper: Any) -> tuple[Any, Any]:
    if type(lower) is type(upper):
        return lower, upper

    numeric = (int, float, Decimal)
    if isinstance(lower, numeric) and isinstance(upper, numeric):
        if isinstance(lower, Decimal) or isinstance(upper, Decimal):
            return Decimal(str(lower)), Decimal(str(upper))
        return float(lower), float(upper)

    raise ValidationError(
        f"Bounds have incompatible types: {type(lower).__name__} and {type(upper).__name__}"
    )


# ----------------------------
# Interval arithmetic
# ----------------------------
def _split_offsets(total: int, split_count: int) -> list[int]:
    """Boundary offsets 0..total for total > 0 units divided into split_count parts."""
    count = min(split_count, total)
    width, remainder = divmod(total, count)

    offsets = [0]
    for i in range(count):
        offsets.append(offsets[-1] + width + (1 if i < remainder else 0))
    return offsets


def _split_discrete(lower: int, upper: int, split_count: int) -> list[int]:
    """Range starts over the upper - lower + 1 whole values, followed by upper."""
    starts = _split_offsets(upper - lower + 1, split_count)[:-1]
    return [lower + offset for offset in starts] + [upper]


def _split_continuous(lower: Any, upper: Any, split_count: int) -> list[Any]:
    """Strictly increasing boundaries from lower to upper (both included)."""
    if isinstance(lower, datetime):
        total = (upper - lower) // _MICROSECOND
        return [lower + offset * _MICROSECOND for offset in _split_offsets(total, split_count)]

    width = (upper - lower) / split_count
    boundaries = [lower]
    for i in range(1, split_count):
        point = lower + width * i
        # degenerate spans can round two boundaries together
        if boundaries[-1] < point < upper:
            boundaries.append(point)
    boundaries.append(upper)
    return boundaries


def compute_split_ranges(lower: Any, upper: Any, split_count: int) -> list[SplitRange]:
    """
    Divide [lower, upper] into at most split_count contiguous, non-overlapping ranges.

    Fewer ranges are returned when the domain holds fewer distinct values than
    split_count; a single range is returned when lower == upper.
    """
    if split_count < 1:
        raise ValidationError(f"Split count must be a positive integer, got {split_count}")

    raw_lower = lower if isinstance(lower, str) else None
    raw_upper = upper if isinstance(upper, str) else None

    lower, upper = _promote_pair(coerce_bound(lower), coerce_bound(upper))
    try:
        if lower > upper:
            raise ValidationError(f"Bounding query returned min {lower!r} greater than max {upper!r}")
    except TypeError as e:
        raise ValidationError(f"Bounds {lower!r} and {upper!r} cannot be compared: {e}") from e

    if lower == upper:
        return [SplitRange(lower=lower, upper=upper, is_first=True, is_last=True,
                           raw_lower=raw_lower, raw_upper=raw_upper)]

    if isinstance(lower, int):
        boundaries = _split_discrete(lower, upper, split_count)
    elif isinstance(lower, date) and not isinstance(lower, datetime):
        boundaries = [
            date.fromordinal(ordinal)
            for ordinal in _split_discrete(lower.toordinal(), upper.toordinal(), split_count)
        ]
    else:
        boundaries = _split_continuous(lower, upper, split_count)

    last = len(boundaries) - 2
    return [
        SplitRange(
            lower=lo,
            upper=hi,
            is_first=i == 0,
            is_last=i == last,
            upper_inclusive=i == last,
            raw_lower=raw_lower if i == 0 else None,
            raw_upper=raw_upper if i == last else None,
        )
        for i, (lo, hi) in enumerate(zip(boundaries, boundaries[1:]))
    ]


# ----------------------------
# Query rendering
# ----------------------------
def build_range_predicate(
    column: str,
    split_range: SplitRange,
    boundary_mode: BoundaryMode = BoundaryMode.OPEN_EDGES,
) -> str:
    # A lone range is bounded on both sides whatever the mode.
    collapsed = split_range.is_first and split_range.is_last
    open_edges = boundary_mode is BoundaryMode.OPEN_EDGES and not collapsed

    clauses: list[str] = []
    if not (open_edges and split_range.is_first):
        lower = split_range.raw_lower if split_range.raw_lower is not None else split_range.lower
        clauses.append(f"{column} >= {sql_literal(lower)}")
    if not (open_edges and split_range.is_last):
        upper = split_range.raw_upper if split_range.raw_upper is not None else split_range.upper
        upper_op = "<=" if split_range.upper_inclusive else "<"
        clauses.append(f"{column} {upper_op} {sql_literal(upper)}")

    return "(" + " AND ".join(clauses) + ")"


def resolve_query(import_query: str, condition: str) -> str:
    return import_query.replace(settings.CONDITIONS_TOKEN, condition)


def plan_splits(spec: ImportSpec, bounds: Sequence[Any] | None = None) -> list[SplitTask]:
    """
    Turn an import spec and the bounding-query row into independent split tasks.

    bounds is the (min, max) row returned by the bounding query; it is ignored
    for a single split.
    """
    split_count = spec.effective_split_count

    if split_count == 1:
        query = resolve_query(spec.import_query, f"({settings.ALWAYS_TRUE_CONDITION})")
        logger.info("Planned a single split; bounding query skipped.")
        return [SplitTask(resolved_query=query)]

    if not spec.split_column:
        raise ValidationError("A split column is required when the split count is not 1.")
    if settings.CONDITIONS_TOKEN not in spec.import_query:
        raise ConfigurationError(
            f"Import Query {spec.import_query} must contain the string '{settings.CONDITIONS_TOKEN}'."
        )
    if bounds is None or len(bounds) < 2:
        raise ValidationError(f"Bounding query must return a (min, max) row, got {bounds!r}")

    ranges = compute_split_ranges(bounds[0], bounds[1], split_count)
    tasks = [
        SplitTask(
            resolved_query=resolve_query(
                spec.import_query,
                build_range_predicate(spec.split_column, split_range, spec.boundary_mode),
            ),
            index=i,
            split_range=split_range,
        )
        for i, split_range in enumerate(ranges)
    ]

    logger.info(
        "Planned %s splits on %s over [%s, %s] (%s requested, %s edges).",
        len(tasks), spec.split_column, ranges[0].lower, ranges[-1].upper,
        split_count, spec.boundary_mode.value,
    )
    return tasks
