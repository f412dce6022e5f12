"""
Record store access.

Reads raw battle records for a governor and time window. Rows are returned in
no particular order; callers sort or aggregate as they need.
"""

from typing import List, Optional
from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from battlestats.services.base import BaseService
from battlestats.database.models import BattleReport
from battlestats.data_models.pagination import StoredRecord
from battlestats.constants import OpponentConstants
import logging

logger = logging.getLogger(__name__)


class ReportStore(BaseService):
    """Query layer over stored battle reports"""

    def __init__(self, session_factory):
        super().__init__(session_factory)

    def _build_records_query(self, governor_id: int, start_millis: int, end_millis: int,
                             primary_commander_id: Optional[int], include_npc: bool):
        excluded = [OpponentConstants.EMPTY_PLAYER_ID]
        if not include_npc:
            excluded.append(OpponentConstants.NPC_PLAYER_ID)

        query = (
            select(BattleReport)
            .where(
                BattleReport.governor_id == governor_id,
                BattleReport.event_time_millis >= start_millis,
                BattleReport.event_time_millis < end_millis,
                # Battle mails filter their opponents during extraction
                or_(
                    BattleReport.enemy_player_id.is_(None),
                    BattleReport.enemy_player_id.notin_(excluded)
                )
            )
        )

        if primary_commander_id is not None:
            query = query.where(BattleReport.self_primary_commander_id == primary_commander_id)

        return query

    async def fetch_records(self, governor_id: int, start_millis: int, end_millis: int,
                            primary_commander_id: Optional[int] = None,
                            include_npc: bool = False) -> List[StoredRecord]:
        """
        Fetch raw records of a governor inside [start_millis, end_millis).

        Args:
            governor_id: Self-side player id
            start_millis: Window start, inclusive
            end_millis: Window end, exclusive
            primary_commander_id: Only records led by this commander
            include_npc: Keep single reports against environmental opponents

        Returns:
            Matching records, unordered
        """
        query = self._build_records_query(
            governor_id, start_millis, end_millis, primary_commander_id, include_npc
        )

        try:
            async with self.read_session() as session:
                result = await session.execute(query)
                reports = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch records for governor {governor_id}: {e}")
            raise

        logger.debug(
            f"Fetched {len(reports)} records for governor {governor_id} "
            f"in [{start_millis}, {end_millis})"
        )
        return [
            StoredRecord(
                id=report.id,
                parent_hash=report.parent_hash,
                event_time_millis=report.event_time_millis,
                payload=report.payload
            )
            for report in reports
        ]
