"""
Numeric coercion guards for raw record fields.

Every value read out of a stored record goes through these helpers so that a
missing, non-numeric or non-finite field contributes 0 instead of
propagating NaN or Infinity into aggregates.
"""

import math
from typing import Any, Optional, Union

Number = Union[int, float]


def to_optional_number(value: Any) -> Optional[Number]:
    """
    Coerce a raw field to a finite number.

    Integers and floats pass through, numeric strings are parsed. Booleans,
    None, containers and non-finite values yield None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return value if math.isfinite(value) else None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None

    return None


def to_finite_number(value: Any, default: Number = 0) -> Number:
    """Coerce a raw field to a finite number, falling back to default."""
    numeric = to_optional_number(value)
    return default if numeric is None else numeric


def normalize_commander_id(value: Any) -> int:
    """Coerce a raw commander or player id to an int, 0 when unusable."""
    return math.trunc(to_finite_number(value))