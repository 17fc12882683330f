"""
Partition path derivation for time-partitioned output.

A run's partition is derived from its logical start time, never from the wall
clock, so re-running a schedule slot always targets the same partition:

    adjusted_time = logical_time - partition_offset

    filePathFormat set:    <basePath>/<adjusted_time formatted in timeZone>
                           e.g. "yyyy-MM-dd/HH-mm" -> orders/2015-01-01/20-42
    filePathFormat unset:  <basePath>/<adjusted_time as epoch millis>
                           e.g. orders/1420144920000

The partition path is the identity used for uniqueness. A path that was already
claimed (by an earlier run, or by a concurrent one) is a PartitionConflictError;
the generator never picks an alternative path, because writing anywhere else
would hide the collision and writing to the same place would overwrite data.
"""
import logging
import threading
from collections.abc import MutableSet
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from batchline.core import settings
from batchline.core.errors import PartitionConflictError
from batchline.sink.durations import parse_duration
from batchline.sink.key_store import PartitionKeyStore
from batchline.sink.time_format import format_datetime

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Guards check-and-register for callers that pass a bare set instead of a store.
_SET_LOCK = threading.Lock()


@dataclass(frozen=True)
class PartitionSpec:
    base_path: str
    path_format: str | None = None
    time_zone_id: str | None = None
    offset_duration: str | None = None


@dataclass(frozen=True)
class PartitionKey:
    """
    key:   the formatted time (or epoch millis) identifying the partition
    path:  base_path joined with key; the identity registered for uniqueness
    """
    key: str
    path: str
    adjusted_time_millis: int

    @property
    def adjusted_time(self) -> datetime:
        return EPOCH + timedelta(milliseconds=self.adjusted_time_millis)


def resolve_time_zone(time_zone_id: str | None) -> ZoneInfo:
    if time_zone_id is None or not time_zone_id.strip():
        return ZoneInfo(settings.DEFAULT_TIME_ZONE)
    try:
        return ZoneInfo(time_zone_id.strip())
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone '%s'; formatting partitions in %s.",
                       time_zone_id, settings.DEFAULT_TIME_ZONE)
        return ZoneInfo(settings.DEFAULT_TIME_ZONE)


def adjust_logical_time(logical_time_millis: int, offset_duration: str | None) -> int:
    return logical_time_millis - parse_duration(offset_duration)


def join_partition_path(base_path: str, key: str) -> str:
    base = base_path.rstrip("/")
    return f"{base}/{key}" if base else key


def derive_key(spec: PartitionSpec, logical_time_millis: int) -> PartitionKey:
    """Compute the partition for a run without registering it."""
    adjusted = adjust_logical_time(logical_time_millis, spec.offset_duration)

    if spec.path_format:
        zone = resolve_time_zone(spec.time_zone_id)
        moment = (EPOCH + timedelta(milliseconds=adjusted)).astimezone(zone)
        key = format_datetime(moment, spec.path_format)
    else:
        key = str(adjusted)

    return PartitionKey(key=key, path=join_partition_path(spec.base_path, key), adjusted_time_millis=adjusted)


def compute_key(
    spec: PartitionSpec,
    logical_time_millis: int,
    used_keys: PartitionKeyStore | MutableSet[str],
) -> PartitionKey:
    partition = derive_key(spec, logical_time_millis)

    if isinstance(used_keys, MutableSet):
        with _SET_LOCK:
            claimed = partition.path not in used_keys
            if claimed:
                used_keys.add(partition.path)
    else:
        claimed = used_keys.claim(partition.path)

    if not claimed:
        logger.error("Partition %s already exists (logical time %s, adjusted %s).",
                     partition.path, logical_time_millis, partition.adjusted_time_millis)
        raise PartitionConflictError(
            f"Partition '{partition.path}' already exists. Each run must write to a unique partition; "
            f"check filePathFormat and partitionOffset for the dataset."
        )

    logger.info("Claimed partition %s", partition.path)
    return partition
