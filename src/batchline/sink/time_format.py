"""
Date/time pattern formatting for partition paths and query macros.

Patterns use the conventional letter syntax ("yyyy-MM-dd/HH-mm"): a run of the
same letter is one field, its length selects padding or text width, text inside
single quotes is copied literally and '' is a literal quote. Any other
non-letter character is copied as is.

Supported letters:

    G  era (AD/BC)                 a  AM/PM marker
    y  year (yy = two digits)      H  hour 0-23
    M  month (MMM = Jan,           k  hour 1-24
       MMMM = January)             K  hour 0-11
    L  same as M                   h  hour 1-12
    d  day of month                m  minute
    D  day of year                 s  second
    E  day name (EEE / EEEE)       S  millisecond
    F  day-of-week in month        z  zone abbreviation
    u  day number (1 = Monday)     Z  offset as +HHMM
                                   X  offset as +HH, +HHMM or +HH:MM (Z for UTC)

Names are rendered in English regardless of the process locale.
The week-based letters Y, w and W are not supported and are rejected.
"""
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

from batchline.core.errors import ValidationError

PATTERN_LETTERS = frozenset("GyMLdDEFuaHkKhmsSzZX")

_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True)
class PatternToken:
    """One field (letter repeated count times) or a run of literal text."""
    letter: str | None
    count: int = 0
    text: str = ""


@lru_cache(maxsize=128)
def compile_pattern(pattern: str) -> tuple[PatternToken, ...]:
    tokens: list[PatternToken] = []
    literal: list[str] = []

    def flush_literal() -> None:
        if literal:
            tokens.append(PatternToken(letter=None, text="".join(literal)))
            literal.clear()

    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]

        if ch == "'":
            if i + 1 < n and pattern[i + 1] == "'":
                literal.append("'")
                i += 2
                continue
            start = i + 1
            while True:
                close = pattern.find("'", start)
                if close == -1:
                    raise ValidationError(f"Unterminated quote in date pattern '{pattern}'")
                literal.append(pattern[start:close])
                # '' inside a quoted section is an escaped quote
                if close + 1 < n and pattern[close + 1] == "'":
                    literal.append("'")
                    start = close + 2
                    continue
                i = close + 1
                break
            continue

        if ch.isascii() and ch.isalpha():
            if ch not in PATTERN_LETTERS:
                raise ValidationError(f"Illegal pattern character '{ch}' in date pattern '{pattern}'")
            flush_literal()
            j = i
            while j < n and pattern[j] == ch:
                j += 1
            tokens.append(PatternToken(letter=ch, count=j - i))
            i = j
            continue

        literal.append(ch)
        i += 1

    flush_literal()
    return tuple(tokens)


def format_datetime(moment: datetime, pattern: str) -> str:
    return "".join(
        token.text if token.letter is None else _format_field(token.letter, token.count, moment)
        for token in compile_pattern(pattern)
    )


def _pad(value: int, width: int) -> str:
    return str(value).zfill(width)


def _format_offset(moment: datetime, *, colon: bool, minutes: bool, zulu: bool) -> str:
    offset = moment.utcoffset()
    total_minutes = 0 if offset is None else int(offset.total_seconds() // 60)
    if zulu and total_minutes == 0:
        return "Z"
    sign = "-" if total_minutes < 0 else "+"
    hours, mins = divmod(abs(total_minutes), 60)
    if not minutes:
        return f"{sign}{hours:02d}"
    separator = ":" if colon else ""
    return f"{sign}{hours:02d}{separator}{mins:02d}"


def _format_field(letter: str, count: int, moment: datetime) -> str:
    if letter == "G":
        return "AD"
    if letter == "y":
        if count == 2:
            return _pad(moment.year % 100, 2)
        return _pad(moment.year, count)
    if letter in ("M", "L"):
        if count >= 4:
            return _MONTH_NAMES[moment.month - 1]
        if count == 3:
            return _MONTH_NAMES[moment.month - 1][:3]
        return _pad(moment.month, count)
    if letter == "d":
        return _pad(moment.day, count)
    if letter == "D":
        return _pad(moment.timetuple().tm_yday, count)
    if letter == "E":
        name = _DAY_NAMES[moment.weekday()]
        return name if count >= 4 else name[:3]
    if letter == "F":
        return _pad((moment.day - 1) // 7 + 1, count)
    if letter == "u":
        return _pad(moment.isoweekday(), count)
    if letter == "a":
        return "AM" if moment.hour < 12 else "PM"
    if letter == "H":
        return _pad(moment.hour, count)
    if letter == "k":
        return _pad(moment.hour or 24, count)
    if letter == "K":
        return _pad(moment.hour % 12, count)
    if letter == "h":
        return _pad(moment.hour % 12 or 12, count)
    if letter == "m":
        return _pad(moment.minute, count)
    if letter == "s":
        return _pad(moment.second, count)
    if letter == "S":
        return _pad(moment.microsecond // 1000, count)
    if letter == "z":
        return moment.tzname() or ""
    if letter == "Z":
        return _format_offset(moment, colon=False, minutes=True, zulu=False)
    if letter == "X":
        return _format_offset(moment, colon=count >= 3, minutes=count >= 2, zulu=True)
    raise ValidationError(f"Illegal pattern character '{letter}'")
