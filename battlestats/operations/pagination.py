"""
Cursor pagination over results sorted by (event time desc, id desc).

Pages are fetched one row past the page size to learn whether more rows
exist, so no count query or OFFSET is ever needed. The insertion id breaks
ties between rows sharing an event time, which keeps page boundaries stable.
"""

import base64
import binascii
import json
import logging
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple, TypeVar

from battlestats.config import Config
from battlestats.constants import PaginationConstants
from battlestats.data_models.pagination import CursorPage
from battlestats.utils.exceptions import InvalidCursorError, InvalidParameterError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReportCursor(NamedTuple):
    """Position of a boundary row in the (time desc, id desc) ordering"""
    timestamp: float
    id: int

    def encode(self) -> str:
        """Encode cursor to a url-safe base64 string for client use"""
        data = {'t': self.timestamp, 'id': self.id}
        json_str = json.dumps(data, separators=(',', ':'))
        return base64.urlsafe_b64encode(json_str.encode()).decode()

    @classmethod
    def decode(cls, cursor_str: str) -> 'ReportCursor':
        """
        Decode cursor from a base64 string

        Raises:
            InvalidCursorError: If the token is not a cursor this module produced
        """
        try:
            padded = cursor_str + '=' * (-len(cursor_str) % 4)
            json_str = base64.urlsafe_b64decode(padded.encode()).decode()
            data = json.loads(json_str)
        except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as e:
            logger.warning(f"Failed to decode cursor: {e}")
            raise InvalidCursorError(str(cursor_str))

        if not isinstance(data, dict):
            raise InvalidCursorError(cursor_str)

        timestamp, row_id = data.get('t'), data.get('id')
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise InvalidCursorError(cursor_str, "cursor time must be a number")
        if isinstance(row_id, bool) or not isinstance(row_id, int):
            raise InvalidCursorError(cursor_str, "cursor id must be an integer")

        return cls(timestamp=timestamp, id=row_id)

    def sort_key(self) -> Tuple[float, int]:
        return (self.timestamp, self.id)


def clamp_page_size(page_size: Optional[int]) -> int:
    """Clamp a requested page size into [1, MAX_PAGE_SIZE]; None means the default."""
    if page_size is None:
        page_size = Config.DEFAULT_PAGE_SIZE
    upper = min(Config.MAX_PAGE_SIZE, PaginationConstants.ABSOLUTE_MAX_PAGE_SIZE)
    return max(1, min(page_size, upper))


def resolve_cursor(after: Optional[str], before: Optional[str]) -> Tuple[Optional[ReportCursor], str]:
    """
    Decode the request cursor and the direction it implies.

    Raises:
        InvalidParameterError: If both cursors are supplied
        InvalidCursorError: If the supplied cursor is malformed
    """
    if after and before:
        raise InvalidParameterError("cursor", "only one of after or before may be supplied")
    if before:
        return ReportCursor.decode(before), PaginationConstants.DIRECTION_BACKWARD
    if after:
        return ReportCursor.decode(after), PaginationConstants.DIRECTION_FORWARD
    return None, PaginationConstants.DIRECTION_FORWARD


def build_page(rows: List[T], page_size: int, direction: str, cursor: Optional[ReportCursor],
               cursor_of: Callable[[T], ReportCursor]) -> CursorPage[T]:
    """
    Turn an over-fetched slice into a page.

    Args:
        rows: Up to page_size + 1 rows in fetch order (descending when going
            forward, ascending when going backward)
        page_size: Requested page size
        direction: Fetch direction
        cursor: Cursor the request resumed from, None on the first page
        cursor_of: Extracts a row's cursor

    Returns:
        Page whose items are always in forward (descending) order
    """
    has_more = len(rows) > page_size
    items = list(rows[:page_size])

    if direction == PaginationConstants.DIRECTION_BACKWARD:
        items.reverse()

    next_cursor = None
    previous_cursor = None
    if items:
        if direction == PaginationConstants.DIRECTION_FORWARD:
            if has_more:
                next_cursor = cursor_of(items[-1]).encode()
            if cursor is not None:
                previous_cursor = cursor_of(items[0]).encode()
        else:
            next_cursor = cursor_of(items[-1]).encode()
            if has_more:
                previous_cursor = cursor_of(items[0]).encode()

    return CursorPage(
        items=items,
        has_more=has_more,
        next_cursor=next_cursor,
        previous_cursor=previous_cursor
    )


def paginate_sequence(items: Sequence[T], cursor_of: Callable[[T], ReportCursor],
                      page_size: Optional[int] = None, after: Optional[str] = None,
                      before: Optional[str] = None) -> CursorPage[T]:
    """
    Paginate an in-memory result set with the same rules as the store listing.

    items may be in any order; they are sorted by (time desc, id desc).
    """
    size = clamp_page_size(page_size)
    cursor, direction = resolve_cursor(after, before)

    if direction == PaginationConstants.DIRECTION_FORWARD:
        ordered = sorted(items, key=lambda item: cursor_of(item).sort_key(), reverse=True)
        if cursor is not None:
            ordered = [item for item in ordered if cursor_of(item).sort_key() < cursor.sort_key()]
    else:
        ordered = sorted(items, key=lambda item: cursor_of(item).sort_key())
        ordered = [item for item in ordered if cursor_of(item).sort_key() > cursor.sort_key()]

    return build_page(ordered[:size + 1], size, direction, cursor, cursor_of)
