"""
Conversion between absolute instants and spreadsheet wall-clock times.

Locally every timesheet time is an ISO-8601 UTC instant
(``2024-03-04T09:00:00.000Z``) so durations can be computed. The remote
spreadsheet stores a calendar date plus an ``HH:MM`` string instead. Both
directions fail soft: bad input never raises.
"""

import re
import zoneinfo
from datetime import datetime, timezone, tzinfo
from typing import Optional

INSTANT_SEPARATOR = 'T'
EMPTY_MARKERS = ('', '-', 'null')

_WALL_CLOCK_RE = re.compile(r'^(\d{1,2}):(\d{2})(?::(\d{2}))?$')
_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def resolve_timezone(name: Optional[str] = None) -> tzinfo:
    """Return the named IANA zone, or the system local zone"""
    if name:
        try:
            return zoneinfo.ZoneInfo(name)
        except (zoneinfo.ZoneInfoNotFoundError, ValueError):
            pass
    return datetime.now().astimezone().tzinfo


def format_instant(dt: datetime) -> str:
    """Render an aware datetime as a millisecond-precision UTC instant"""
    if dt.tzinfo is None:
        dt = dt.astimezone()
    utc = dt.astimezone(timezone.utc)
    return utc.strftime('%Y-%m-%dT%H:%M:%S.') + f"{utc.microsecond // 1000:03d}Z"


def parse_instant(text) -> Optional[datetime]:
    """Parse an ISO-8601 instant, return None if invalid"""
    if not text or not isinstance(text, str):
        return None
    try:
        dt = datetime.fromisoformat(text.strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class TimeCodec:
    """Bridges instants and (date, wall-clock) pairs in one time zone"""

    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or resolve_timezone()

    def to_wall_clock(self, instant) -> str:
        if instant is None or instant == '':
            return ''
        text = str(instant)
        if INSTANT_SEPARATOR not in text:
            # Already wall-clock
            return text
        dt = parse_instant(text)
        if dt is None:
            return ''
        return dt.astimezone(self.tz).strftime('%H:%M')

    def to_instant(self, date_str, value) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        if text in EMPTY_MARKERS:
            return None
        if INSTANT_SEPARATOR in text:
            return text

        match = _WALL_CLOCK_RE.match(text)
        day = self.calendar_date(date_str)
        if not match or day is None:
            return None
        hour, minute, second = int(match.group(1)), int(match.group(2)), int(match.group(3) or 0)
        try:
            local = datetime.strptime(day, '%Y-%m-%d').replace(
                hour=hour, minute=minute, second=second, tzinfo=self.tz)
        except ValueError:
            return None
        return format_instant(local)

    def date_of(self, instant) -> str:
        """Calendar date of an instant in this codec's zone ('' if unparseable)"""
        dt = parse_instant(instant)
        if dt is None:
            return ''
        return dt.astimezone(self.tz).strftime('%Y-%m-%d')

    def calendar_date(self, date_str) -> Optional[str]:
        if not date_str:
            return None
        text = str(date_str).strip()
        if INSTANT_SEPARATOR in text:
            # Sheets hands dates back as midnight instants; the local date is what was typed
            dt = parse_instant(text)
            if dt is None:
                text = text.split(INSTANT_SEPARATOR, 1)[0]
            else:
                text = dt.astimezone(self.tz).strftime('%Y-%m-%d')
        if not _DATE_RE.match(text):
            return None
        return text


_default_codec: Optional[TimeCodec] = None


def get_codec() -> TimeCodec:
    """Get the process-wide codec in the system time zone"""
    global _default_codec
    if _default_codec is None:
        _default_codec = TimeCodec()
    return _default_codec


def to_wall_clock(instant) -> str:
    """Convert an instant to ``HH:MM`` in the system zone"""
    return get_codec().to_wall_clock(instant)


def to_instant(date_str, value) -> Optional[str]:
    """Combine a calendar date and a wall-clock time into an instant"""
    return get_codec().to_instant(date_str, value)
