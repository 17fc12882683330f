from dataclasses import dataclass
from enum import Enum
from typing import Any

from batchline.core import settings


class BoundaryMode(str, Enum):
    """
    How the outermost split ranges are bounded.

    OPEN_EDGES: the first range has no lower bound and the last range has no
      upper bound, so rows written after the bounding query ran are still read.
    CLOSED: every range is bounded on both sides by the bounding-query values.
    """
    OPEN_EDGES = "open_edges"
    CLOSED = "closed"


@dataclass(frozen=True)
class ImportSpec:
    """
    Immutable description of one import, built from a validated source config.

    import_query:   query containing the $CONDITIONS placeholder
    bounding_query: query returning (min, max) of split_column
    split_count:    None means DEFAULT_NUM_SPLITS when a split column is set, else 1
    """
    import_query: str
    bounding_query: str | None = None
    split_column: str | None = None
    split_count: int | None = None
    boundary_mode: BoundaryMode = BoundaryMode.OPEN_EDGES

    @property
    def effective_split_count(self) -> int:
        if self.split_count is not None:
            return self.split_count
        if not self.split_column:
            return 1
        return settings.DEFAULT_NUM_SPLITS

    @property
    def is_single_split(self) -> bool:
        return self.effective_split_count == 1


@dataclass(frozen=True)
class SplitRange:
    """
    One contiguous interval of the split column's domain.

    lower is always inclusive. upper is the next range's lower bound and is
    exclusive, except on the last range where it is the bounding maximum.

    raw_lower / raw_upper hold the bounding-query text on the outer edges when
    the driver returned text, so edge predicates compare against the stored value.
    """
    lower: Any
    upper: Any
    is_first: bool
    is_last: bool
    upper_inclusive: bool = True
    raw_lower: str | None = None
    raw_upper: str | None = None


@dataclass(frozen=True)
class SplitTask:
    """One independently executable query."""
    resolved_query: str
    index: int = 0
    split_range: SplitRange | None = None


@dataclass(frozen=True)
class RunContext:
    """Per-run context."""
    run_id: str
    logical_time_millis: int
