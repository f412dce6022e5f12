"""
Report history service.

Lists a governor's stored reports newest first with cursor-based pagination
in both directions. Ordering is (event time desc, id desc); the id keeps the
order total when several reports share an event time.
"""

from typing import List, Optional
from sqlalchemy import select, or_, and_
from sqlalchemy.exc import SQLAlchemyError
from battlestats.services.base import BaseService
from battlestats.database.models import BattleReport
from battlestats.constants import PaginationConstants
from battlestats.data_models.pagination import CursorPage, ReportSummary
from battlestats.operations.aggregator import trade_percentage
from battlestats.operations.event_extractor import (
    compute_overview, detect_shape, extract_events, valid_sorted_opponents, SHAPE_BATTLE_MAIL
)
from battlestats.operations.pagination import ReportCursor, build_page, clamp_page_size, resolve_cursor
import logging

logger = logging.getLogger(__name__)


def summarize_report(report: BattleReport) -> ReportSummary:
    """Build the listing row of one stored report."""
    payload = report.payload
    events = extract_events(payload, report_id=report.parent_hash)
    overview = compute_overview(payload)

    if detect_shape(payload) == SHAPE_BATTLE_MAIL:
        battles = len(valid_sorted_opponents(payload))
    else:
        battles = len(events)

    first_event = events[0] if events else None

    if first_event is not None:
        self_primary = first_event.self_primary_commander_id
        self_secondary = first_event.self_secondary_commander_id
        enemy_primary = first_event.enemy_primary_commander_id
        enemy_secondary = first_event.enemy_secondary_commander_id
    else:
        self_primary = report.self_primary_commander_id or 0
        self_secondary = enemy_primary = enemy_secondary = 0

    kill_score = overview.kill_score if overview else 0
    enemy_kill_score = overview.enemy_kill_score if overview else 0

    return ReportSummary(
        report_id=report.id,
        parent_hash=report.parent_hash,
        event_time_millis=report.event_time_millis,
        battles=battles,
        self_primary_commander_id=self_primary,
        self_secondary_commander_id=self_secondary,
        enemy_primary_commander_id=enemy_primary,
        enemy_secondary_commander_id=enemy_secondary,
        kill_score=kill_score,
        enemy_kill_score=enemy_kill_score,
        trade_percentage=trade_percentage(kill_score, enemy_kill_score),
        duration_millis=sum(event.duration_millis for event in events)
    )


def summary_cursor(summary: ReportSummary) -> ReportCursor:
    return ReportCursor(timestamp=summary.event_time_millis, id=summary.report_id)


class ReportHistoryService(BaseService):
    """Service for a governor's report listing with cursor-based pagination"""

    def __init__(self, session_factory):
        super().__init__(session_factory)

    def _build_reports_query(self, governor_id: int, cursor: Optional[ReportCursor], direction: str,
                             start_millis: Optional[int], end_millis: Optional[int]):
        query = (
            select(BattleReport)
            .where(
                BattleReport.governor_id == governor_id,
                BattleReport.event_time_millis.is_not(None)
            )
        )

        if start_millis is not None:
            query = query.where(BattleReport.event_time_millis >= start_millis)
        if end_millis is not None:
            query = query.where(BattleReport.event_time_millis < end_millis)

        # Apply cursor filter if provided
        if cursor and direction == PaginationConstants.DIRECTION_FORWARD:
            query = query.where(
                or_(
                    BattleReport.event_time_millis < cursor.timestamp,
                    and_(
                        BattleReport.event_time_millis == cursor.timestamp,
                        BattleReport.id < cursor.id
                    )
                )
            )
        elif cursor:
            query = query.where(
                or_(
                    BattleReport.event_time_millis > cursor.timestamp,
                    and_(
                        BattleReport.event_time_millis == cursor.timestamp,
                        BattleReport.id > cursor.id
                    )
                )
            )

        if direction == PaginationConstants.DIRECTION_FORWARD:
            return query.order_by(BattleReport.event_time_millis.desc(), BattleReport.id.desc())
        return query.order_by(BattleReport.event_time_millis.asc(), BattleReport.id.asc())

    async def list_reports(self, governor_id: int, page_size: Optional[int] = None,
                           after: Optional[str] = None, before: Optional[str] = None,
                           start_millis: Optional[int] = None,
                           end_millis: Optional[int] = None) -> CursorPage[ReportSummary]:
        """
        Get one page of a governor's reports.

        Args:
            governor_id: Self-side player id
            page_size: Number of entries per page, clamped to MAX_PAGE_SIZE
            after: Cursor to continue towards older reports
            before: Cursor to go back towards newer reports
            start_millis: Optional window start, inclusive
            end_millis: Optional window end, exclusive

        Returns:
            CursorPage of ReportSummary, newest first

        Raises:
            InvalidParameterError: On a bad governor id or both cursors
            InvalidCursorError: On a malformed cursor
        """
        self.validate_governor_id(governor_id)

        safe_page_size = clamp_page_size(page_size)
        cursor, direction = resolve_cursor(after, before)

        query = self._build_reports_query(
            governor_id, cursor, direction, start_millis, end_millis
        ).limit(safe_page_size + 1)  # Fetch one extra to detect has_more

        try:
            async with self.read_session() as session:
                result = await session.execute(query)
                reports: List[BattleReport] = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to list reports for governor {governor_id}: {e}")
            raise

        summaries = [summarize_report(report) for report in reports]
        return build_page(summaries, safe_page_size, direction, cursor, summary_cursor)
