import base64

import pytest

from battlestats.config import Config
from battlestats.operations.pagination import (
    ReportCursor, clamp_page_size, paginate_sequence, resolve_cursor
)
from battlestats.utils.exceptions import InvalidCursorError, InvalidParameterError

# (event time, insertion id) rows with repeated event times
ROWS = [(1000 + (index // 3) * 10, index) for index in range(23)]
EXPECTED = sorted(ROWS, reverse=True)


def row_cursor(row):
    return ReportCursor(timestamp=row[0], id=row[1])


def collect_forward(page_size):
    pages = []
    after = None
    while True:
        page = paginate_sequence(ROWS, row_cursor, page_size=page_size, after=after)
        pages.append(page)
        if not page.has_more:
            return pages
        after = page.next_cursor


def test_cursor_round_trip():
    cursor = ReportCursor(timestamp=1700000000000, id=42)
    assert ReportCursor.decode(cursor.encode()) == cursor


@pytest.mark.parametrize("token", [
    "not-a-cursor!!",
    base64.urlsafe_b64encode(b"[1, 2]").decode(),
    base64.urlsafe_b64encode(b'{"t": "x", "id": 1}').decode(),
    base64.urlsafe_b64encode(b'{"t": 1, "id": 1.5}').decode(),
    base64.urlsafe_b64encode(b"\xff\xfe").decode(),
])
def test_malformed_cursors_are_rejected(token):
    with pytest.raises(InvalidCursorError):
        ReportCursor.decode(token)


def test_both_cursors_are_rejected():
    token = row_cursor(ROWS[0]).encode()
    with pytest.raises(InvalidParameterError):
        resolve_cursor(token, token)


@pytest.mark.parametrize("page_size", list(range(1, 26)))
def test_forward_pages_cover_everything_once(page_size):
    pages = collect_forward(page_size)
    items = [item for page in pages for item in page.items]

    assert items == EXPECTED
    assert all(len(page.items) <= page_size for page in pages)


def test_first_page_has_no_previous_cursor():
    page = paginate_sequence(ROWS, row_cursor, page_size=5)

    assert page.previous_cursor is None
    assert page.has_more
    assert page.next_cursor == row_cursor(EXPECTED[4]).encode()


def test_last_page_has_no_next_cursor():
    pages = collect_forward(10)

    assert not pages[-1].has_more
    assert pages[-1].next_cursor is None


def test_previous_cursor_returns_to_the_prior_page():
    first = paginate_sequence(ROWS, row_cursor, page_size=5)
    second = paginate_sequence(ROWS, row_cursor, page_size=5, after=first.next_cursor)
    third = paginate_sequence(ROWS, row_cursor, page_size=5, after=second.next_cursor)

    back_to_second = paginate_sequence(ROWS, row_cursor, page_size=5, before=third.previous_cursor)
    back_to_first = paginate_sequence(ROWS, row_cursor, page_size=5, before=second.previous_cursor)

    assert back_to_second.items == second.items
    assert back_to_second.previous_cursor is not None
    assert back_to_first.items == first.items
    assert back_to_first.previous_cursor is None
    assert back_to_first.next_cursor == first.next_cursor


def test_empty_result_set():
    page = paginate_sequence([], row_cursor)

    assert page.items == []
    assert not page.has_more
    assert page.to_dict() == {"items": [], "count": 0}


def test_page_size_is_clamped():
    assert clamp_page_size(0) == 1
    assert clamp_page_size(-3) == 1
    assert clamp_page_size(10_000) == Config.MAX_PAGE_SIZE
    assert clamp_page_size(None) == Config.DEFAULT_PAGE_SIZE
