import logging
from pathlib import PurePosixPath, PureWindowsPath

from pydantic import Field

from batchline.core.errors import ConfigurationError, ValidationError
from batchline.core.models import StrictBaseModel
from batchline.sink.durations import parse_duration
from batchline.sink.partition_path import PartitionSpec
from batchline.sink.time_format import compile_pattern

logger = logging.getLogger(__name__)


class SinkConfig(StrictBaseModel):
    """
    Time-partitioned dataset sink.

    name:            dataset written to; also the default base path
    basePath:        base path of the partitioned dataset, relative to the output root
                     and without '..' segments
    filePathFormat:  date/time pattern for the partition path, e.g. 'yyyy-MM-dd/HH-mm'.
                     Supported letters: G y M L d D E F u a H k K h m s S z Z X.
                     The week-based Y, w and W are rejected.
                     Unset means the partition is named by its epoch milliseconds.
    timeZone:        zone used to format the path; only valid with filePathFormat.
                     Blank or unknown zones fall back to UTC.
    partitionOffset: amount subtracted from the logical start time, e.g. '1d'
                     so a run at midnight Jan 1 writes the Dec 31 partition.
    """
    name: str
    base_path: str | None = Field(default=None, alias="basePath")
    file_path_format: str | None = Field(default=None, alias="filePathFormat")
    time_zone: str | None = Field(default=None, alias="timeZone")
    partition_offset: str | None = Field(default=None, alias="partitionOffset")

    def validate_settings(self) -> None:
        if not self.name:
            raise ConfigurationError("The name setting must be set for a partitioned sink.")

        if self.time_zone and not self.file_path_format:
            raise ConfigurationError("The filePathFormat setting must be set in order to set timeZone.")

        if self.partition_offset is not None:
            try:
                parse_duration(self.partition_offset)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid partitionOffset: {e}") from e

        base_path = self.effective_base_path
        if PurePosixPath(base_path).is_absolute() or PureWindowsPath(base_path).anchor:
            raise ConfigurationError(f"basePath '{base_path}' must be relative to the output root.")
        if ".." in PureWindowsPath(base_path).parts:
            raise ConfigurationError(f"basePath '{base_path}' must not contain '..' segments.")

        if self.file_path_format:
            try:
                compile_pattern(self.file_path_format)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid filePathFormat: {e}") from e

    @property
    def effective_base_path(self) -> str:
        return self.base_path or self.name

    def to_partition_spec(self) -> PartitionSpec:
        return PartitionSpec(
            base_path=self.effective_base_path,
            path_format=self.file_path_format or None,
            time_zone_id=self.time_zone or None,
            offset_duration=self.partition_offset,
        )
