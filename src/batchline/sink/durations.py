import re

from batchline.core.errors import ValidationError

_DURATION_PATTERN = re.compile(r"([0-9]+)([smhd])")

UNIT_MILLIS: dict[str, int] = {
    "s": 1_000,
    "m": 60 * 1_000,
    "h": 60 * 60 * 1_000,
    "d": 24 * 60 * 60 * 1_000,
}


def parse_duration(duration: str | None) -> int:
    """
    Parse an offset such as "90m" or "1d" into milliseconds.

    The syntax is <integer><unit> with unit one of s, m, h, d. No whitespace,
    no sign and no combined units. A missing or blank duration means zero.
    """
    if duration is None or not duration.strip():
        return 0

    match = _DURATION_PATTERN.fullmatch(duration)
    if not match:
        raise ValidationError(
            f"Invalid duration '{duration}'. Expected a number followed by one of "
            f"{', '.join(UNIT_MILLIS)} (for example '30m' or '1d')."
        )

    amount, unit = match.groups()
    return int(amount) * UNIT_MILLIS[unit]
