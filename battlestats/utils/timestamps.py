"""
Timestamp utilities for battle report records.

Stored records were produced by several client versions that disagree on the
unit of their timestamps (seconds, milliseconds or microseconds). Everything
here converts to canonical UTC epoch milliseconds.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Union

from battlestats.constants import TimestampConstants
from battlestats.utils.numbers import to_optional_number

Millis = Union[int, float]


def normalize_timestamp_millis(value: Any) -> Optional[Millis]:
    """
    Convert a timestamp of unknown unit into epoch milliseconds.

    Magnitude rules, applied in order:
    - non-numeric, non-finite or non-positive -> None
    - value >= 1e14 -> microseconds, divided by 1000
    - value < 1e12 -> seconds, multiplied by 1000
    - otherwise already milliseconds, returned unchanged

    Args:
        value: Raw timestamp field from a record

    Returns:
        Epoch milliseconds, or None if the value cannot be recovered

    Examples:
        1700000000 -> 1700000000000
        1700000000000 -> 1700000000000
        1700000000000000 -> 1700000000000
    """
    numeric = to_optional_number(value)
    if numeric is None or numeric <= 0:
        return None

    if numeric >= TimestampConstants.MICROSECONDS_THRESHOLD:
        if isinstance(numeric, int):
            return numeric // 1000
        return math.trunc(numeric / 1000)

    if numeric < TimestampConstants.SECONDS_THRESHOLD:
        if isinstance(numeric, int):
            return numeric * 1000
        return math.trunc(numeric * 1000)

    return numeric


def extract_duration_millis(start: Any, end: Any) -> Millis:
    """
    Compute end - start in normalized milliseconds.

    Unrecoverable endpoints and negative spans both yield 0.
    """
    start_millis = normalize_timestamp_millis(start)
    end_millis = normalize_timestamp_millis(end)

    if start_millis is None or end_millis is None:
        return 0

    return max(0, end_millis - start_millis)


def utc_millis(year: int, month: int = 1, day: int = 1) -> int:
    """Epoch milliseconds of UTC midnight on the given date."""
    moment = datetime(year, month, day, tzinfo=timezone.utc)
    return int(moment.timestamp()) * 1000


def utc_year_of(millis: Millis) -> int:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).year


def format_day_key(millis: Millis) -> str:
    """Format epoch milliseconds as a UTC day key (YYYY-MM-DD)."""
    moment = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"


def format_month_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def format_duration_short(start: Any, end: Any) -> str:
    """
    Format the span between two raw timestamps.

    Returns:
        Formatted duration (e.g., "1d 2h 3m 4s" or "45s"), "0s" when unknown
    """
    start_millis = normalize_timestamp_millis(start)
    end_millis = normalize_timestamp_millis(end)

    if start_millis is None or end_millis is None:
        return "0s"

    remaining = max(0, int((end_millis - start_millis) // 1000))

    days, remaining = divmod(remaining, 86_400)
    hours, remaining = divmod(remaining, 3600)
    minutes, seconds = divmod(remaining, 60)

    parts: List[str] = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if seconds > 0:
        parts.append(f"{seconds}s")

    return " ".join(parts) if parts else "0s"


@dataclass(frozen=True)
class DateRange:
    """Half-open UTC window [start_millis, end_millis)."""
    start_millis: int
    end_millis: int
    year: int

    def contains(self, millis: Optional[Millis]) -> bool:
        return millis is not None and self.start_millis <= millis < self.end_millis


def parse_date_start(value: Optional[str]) -> Optional[int]:
    """
    Parse a YYYY-MM-DD string as UTC midnight at the start of that day.

    Raises:
        ValueError: If the string is present but not a valid date
    """
    if not value:
        return None
    parsed = datetime.strptime(value.strip(), "%Y-%m-%d").replace(tzinfo=timezone.utc)
    return int(parsed.timestamp()) * 1000


def parse_date_end(value: Optional[str]) -> Optional[int]:
    """Parse a YYYY-MM-DD string as the last millisecond of that UTC day."""
    start = parse_date_start(value)
    if start is None:
        return None
    return start + TimestampConstants.MILLIS_PER_DAY - 1


def year_range(year: int) -> DateRange:
    """The [Jan 1, Jan 1 of next year) window for a year."""
    return DateRange(
        start_millis=utc_millis(year, 1, 1),
        end_millis=utc_millis(year + 1, 1, 1),
        year=year
    )


def resolve_date_range(start_param: Optional[str], end_param: Optional[str],
                       fallback_year: int) -> DateRange:
    """
    Resolve the reporting window for a request.

    An explicit start/end pair (inclusive end day) wins when the resulting
    range is non-empty. Otherwise the whole fallback year is used.

    Raises:
        ValueError: If a supplied date string is not YYYY-MM-DD
    """
    start_millis = parse_date_start(start_param)
    end_inclusive = parse_date_end(end_param)

    if start_millis is not None and end_inclusive is not None:
        end_exclusive = end_inclusive + 1
        if end_exclusive > start_millis:
            return DateRange(
                start_millis=start_millis,
                end_millis=end_exclusive,
                year=utc_year_of(start_millis)
            )

    return year_range(fallback_year)
