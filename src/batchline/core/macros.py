import logging
import re
from datetime import timedelta

from batchline.core.errors import ValidationError
from batchline.sink.partition_path import EPOCH, adjust_logical_time, resolve_time_zone
from batchline.sink.time_format import format_datetime

logger = logging.getLogger(__name__)

DEFAULT_MACRO_PATTERN = "yyyy-MM-dd'T'HH-mm-ss"

_LOGICAL_START_TIME = re.compile(r"\$\{logicalStartTime\(([^)]*)\)\}")


def substitute_macros(text: str | None, logical_time_millis: int) -> str | None:
    """
    Replace ${logicalStartTime(format,offset,timeZone)} with the run's logical start time.

    All arguments are optional: format defaults to yyyy-MM-dd'T'HH-mm-ss, offset
    (same syntax as partitionOffset) to zero and timeZone to UTC. For example
    "WHERE day = '${logicalStartTime(yyyy-MM-dd,1d)}'" selects yesterday's rows.
    """
    if text is None:
        return None

    def replace(match: re.Match[str]) -> str:
        args = [arg.strip() for arg in match.group(1).split(",")]
        if len(args) > 3:
            raise ValidationError(
                f"logicalStartTime takes at most 3 arguments (format, offset, timeZone): {match.group(0)}"
            )
        pattern = args[0] or DEFAULT_MACRO_PATTERN
        offset = args[1] if len(args) > 1 else None
        zone = resolve_time_zone(args[2] if len(args) > 2 else None)

        adjusted = adjust_logical_time(logical_time_millis, offset)
        moment = (EPOCH + timedelta(milliseconds=adjusted)).astimezone(zone)
        return format_datetime(moment, pattern)

    substituted = _LOGICAL_START_TIME.sub(replace, text)
    if substituted != text:
        logger.debug("Substituted macros: %s -> %s", text, substituted)
    return substituted
