"""
Query parameter parsing for the route boundary.

Every function here turns a raw string parameter into a typed engine input
or raises InvalidParameterError before any store query is issued.
"""

import math
from datetime import datetime, timezone
from typing import Optional, Tuple

from battlestats.config import Config
from battlestats.constants import LoadoutConstants
from battlestats.utils.exceptions import InvalidParameterError
from battlestats.utils.numbers import to_optional_number
from battlestats.utils.timestamps import DateRange, resolve_date_range


def _parse_integer(name: str, value) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    numeric = to_optional_number(value)
    if numeric is None or numeric != math.trunc(numeric):
        raise InvalidParameterError(name, f"expected an integer, got {value!r}")
    return int(numeric)


def parse_governor_id(value) -> int:
    governor_id = _parse_integer("governorId", value)
    if governor_id is None or governor_id <= 0:
        raise InvalidParameterError("governorId", "must be a positive integer")
    return governor_id


def resolve_year(year_param=None, now: Optional[datetime] = None) -> int:
    """
    Resolve the reporting year of a request.

    An explicit year wins. Otherwise FALLBACK_YEAR is used when configured,
    else the current UTC year.
    """
    year = _parse_integer("year", year_param)
    if year is not None:
        if year < 1970 or year > 9998:
            raise InvalidParameterError("year", "out of range")
        return year

    fallback = Config.get_fallback_year()
    if fallback is not None:
        return fallback

    return (now or datetime.now(timezone.utc)).year


def resolve_request_range(year_param=None, start_param: Optional[str] = None,
                          end_param: Optional[str] = None,
                          now: Optional[datetime] = None) -> DateRange:
    """
    Resolve year/start/end parameters into a half-open millisecond window.

    Raises:
        InvalidParameterError: If the year or a date string is malformed
    """
    year = resolve_year(year_param, now)
    try:
        return resolve_date_range(start_param, end_param, year)
    except ValueError:
        raise InvalidParameterError("range", "dates must be formatted YYYY-MM-DD")


def parse_granularity(value: Optional[str], default: str = LoadoutConstants.GRANULARITY_EXACT,
                      allow_overall: bool = False) -> str:
    """
    Parse a loadout granularity token.

    A missing token means default. "overall" is only accepted where the
    caller groups across all loadouts.
    """
    if value is None or not value.strip():
        return default

    token = value.strip().lower()
    allowed = LoadoutConstants.GRANULARITIES
    if allow_overall:
        allowed = allowed + (LoadoutConstants.GRANULARITY_OVERALL,)

    if token not in allowed:
        raise InvalidParameterError("granularity", f"expected one of {', '.join(allowed)}")
    return token


def parse_pairing(primary_param, secondary_param) -> Tuple[int, int]:
    """
    Parse a commander pairing; the secondary may be 0 for a solo primary.

    Raises:
        InvalidParameterError: If the primary is missing or not positive, or
            the secondary is negative
    """
    try:
        primary = _parse_integer("primary", primary_param)
        secondary = _parse_integer("secondary", secondary_param)
    except InvalidParameterError:
        raise InvalidParameterError("pairing", "commander ids must be integers")

    if primary is None or primary <= 0:
        raise InvalidParameterError("pairing", "primary commander id must be positive")
    if secondary is None or secondary < 0:
        raise InvalidParameterError("pairing", "secondary commander id must not be negative")
    return primary, secondary


def parse_page_size(value) -> Optional[int]:
    """A missing page size means the configured default."""
    page_size = _parse_integer("pageSize", value)
    if page_size is not None and page_size < 1:
        raise InvalidParameterError("pageSize", "must be at least 1")
    return page_size
