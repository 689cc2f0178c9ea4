"""
Value normalization between drivers and the presentation/transport layer.

Every cell returned by `query`/`query_with_params` passes through
`normalize_value`:

1. None stays None.
2. Byte strings decode as UTF-8.
3. Native date/time values format as `YYYY-MM-DD HH:MM:SS` (wall clock as
   returned by the driver, timezone dropped).
4. Text that looks like a date-time is canonicalized: ISO `T` becomes a
   space, `Z`/offset/zone suffixes are stripped, fractional seconds are
   truncated. Text with any other word after the clock is left alone.
5. Anything else passes through.

All functions here are idempotent: normalizing a normalized value yields the
same value.
"""
import datetime
import logging
import re
from typing import Any

import dateutil.parser

logger = logging.getLogger(__name__)

CANONICAL_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'
CANONICAL_DATE_FORMAT = '%Y-%m-%d'

_DATE_TOKEN = re.compile(r'^\d{4}-\d{1,2}-\d{1,2}$')
_CLOCK_TOKEN = re.compile(r'^(\d{1,2}:\d{2}(?::\d{2})?)(?:\.\d+)?(?:Z|[+-]\d{2}(?::?\d{2})?)?$')
_ISO_T = re.compile(r'^\d{4}-\d{1,2}-\d{1,2}T\d')
_OFFSET_TOKEN = re.compile(r'^[+-]\d{2}:?\d{2}$')
_ZONE_TOKEN = re.compile(r'^[A-Z]{2,5}$')

_DATE_ONLY = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_DATE_TIME = re.compile(r'^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$')
_RFC1123 = re.compile(r'^[A-Za-z]{3}, \d{1,2} [A-Za-z]{3} \d{4} \d{2}:\d{2}:\d{2} \S+$')
_ZONED_TIME_STRING = re.compile(
    r'^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})(?:\.\d+)? [+-]\d{4}(?: \S+)*$')


def looks_like_datetime(text: str) -> bool:
    """Cheap pre-check: contains both '-' and ':'.
    """
    return '-' in text and ':' in text


def normalize_datetime_text(text: str) -> str:
    """Canonicalize a date-time-looking string to `YYYY-MM-DD HH:MM:SS`.

    The first token (after ISO `T` replacement) must be a date and the second
    a clock time with an optional fraction and offset. Any further tokens must
    be offsets, or zone abbreviations following an offset. Anything else is
    returned unchanged, so free text that merely starts with a timestamp
    survives.

    >>> normalize_datetime_text('2024-01-02 03:04:05.678+00')
    '2024-01-02 03:04:05'
    >>> normalize_datetime_text('2025-04-28 15:00:13.727014 +0800 +0800')
    '2025-04-28 15:00:13'
    >>> normalize_datetime_text('2025-04-28T15:00:13Z')
    '2025-04-28 15:00:13'
    >>> normalize_datetime_text('2024-01-02 10:00 standup: room 3')
    '2024-01-02 10:00 standup: room 3'
    """
    if not looks_like_datetime(text):
        return text

    value = text.strip()
    if _ISO_T.match(value):
        value = value.replace('T', ' ', 1)

    parts = value.split()
    if len(parts) < 2 or not _DATE_TOKEN.match(parts[0]):
        return text
    clock = _CLOCK_TOKEN.match(parts[1])
    if not clock or not _only_zone_suffixes(parts[2:]):
        return text
    return f'{parts[0]} {clock.group(1)}'


def _only_zone_suffixes(tokens: list[str]) -> bool:
    seen_offset = False
    for token in tokens:
        if _OFFSET_TOKEN.match(token):
            seen_offset = True
        elif not (seen_offset and _ZONE_TOKEN.match(token)):
            return False
    return True


def normalize_value(value: Any) -> Any:
    """Normalize one driver-returned cell.
    """
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return normalize_datetime_text(bytes(value).decode('utf-8', errors='replace'))
    if isinstance(value, datetime.datetime):
        return value.strftime(CANONICAL_DATETIME_FORMAT)
    if isinstance(value, datetime.date):
        return value.strftime(CANONICAL_DATE_FORMAT)
    if isinstance(value, datetime.time):
        return value.strftime('%H:%M:%S')
    if isinstance(value, str):
        return normalize_datetime_text(value)
    return value


def normalize_row(row: dict[str, Any]) -> dict[str, Any]:
    """Normalize every cell of a row, preserving key order.
    """
    return {key: normalize_value(val) for key, val in row.items()}


def render_cell(value: Any) -> str:
    """Render a cell for file export.

    None renders empty; everything else is stringified and the date-time
    truncation reapplied, for drivers that bypass normalization.
    """
    if value is None:
        return ''
    normalized = normalize_value(value)
    return normalize_datetime_text(str(normalized))


def is_canonical_date(text: str) -> bool:
    """True for a valid `YYYY-MM-DD` or `YYYY-MM-DD HH:MM:SS`.
    """
    if _DATE_ONLY.match(text):
        fmt = CANONICAL_DATE_FORMAT
    elif _DATE_TIME.match(text):
        fmt = CANONICAL_DATETIME_FORMAT
    else:
        return False
    try:
        datetime.datetime.strptime(text, fmt)
    except ValueError:
        return False
    return True


def _parse_explicit(value: str) -> datetime.datetime | None:
    """Try RFC 3339, RFC 1123 and `date time.fraction +hhmm zone` layouts.
    """
    if match := _ZONED_TIME_STRING.match(value):
        try:
            return datetime.datetime.strptime(match.group(1), CANONICAL_DATETIME_FORMAT)
        except ValueError:
            return None
    if _RFC1123.match(value):
        try:
            return dateutil.parser.parse(value, ignoretz=True)
        except (ValueError, OverflowError):
            return None
    try:
        return dateutil.parser.isoparse(value)
    except (ValueError, OverflowError):
        return None


def coerce_datetime_text(value: str) -> str | None:
    """Coerce a file cell to a literal every supported dialect accepts.

    Returns `YYYY-MM-DD` or `YYYY-MM-DD HH:MM:SS`, or None when the value
    cannot be understood as a date or date-time.
    """
    text = value.strip()
    canonical = normalize_datetime_text(text)
    if is_canonical_date(canonical):
        return canonical
    if len(canonical) > 19 and is_canonical_date(canonical[:19]):
        return canonical[:19]

    parsed = _parse_explicit(text)
    if parsed is None:
        return None
    return parsed.strftime(CANONICAL_DATETIME_FORMAT)
