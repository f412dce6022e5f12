"""
Pairing statistics service.

Serves the governor views built on the aggregation engine: commander
pairings (flat and as yearly monthly series), the enemies a pairing has
faced, the loadouts it was run with, march kill score distributions and the
daily battle log.

All views read raw records from the ReportStore, flatten them through the
event extractor and group them with the aggregator. Parameter problems raise
before any store query; store failures propagate.
"""

from typing import Dict, Iterable, List, Optional
from battlestats.services.base import BaseService
from battlestats.services.report_store import ReportStore
from battlestats.constants import LoadoutConstants
from battlestats.data_models.aggregates import (
    BattleLog, EnemyAggregate, LoadoutAggregate, MarchAggregate, PairingAggregate, YearlyPairings
)
from battlestats.data_models.combat import AggregationBucket, CombatEvent
from battlestats.data_models.pagination import StoredRecord
from battlestats.operations.aggregator import (
    aggregate, average, commander_pair_key, compute_rates, enemy_pair_key, kill_score_percentiles,
    loadout_key_fn, pairing_filter, sort_buckets, trade_percentage, KeyFunction
)
from battlestats.operations.calendar_rollup import (
    build_daily_grid, gather_all, gather_monthly, rollup_monthly
)
from battlestats.operations.event_extractor import extract_events
from battlestats.operations.loadout import build_loadout_key, build_loadout_snapshot, validate_granularity
from battlestats.utils.exceptions import InvalidDateRangeError, InvalidParameterError
from battlestats.utils.timestamps import DateRange, format_day_key, year_range
import logging

logger = logging.getLogger(__name__)


def flatten_records(records: Iterable[StoredRecord], include_npc: bool = False) -> List[CombatEvent]:
    """Extract the combat events of every stored record."""
    events = []
    for record in records:
        events.extend(extract_events(record.payload, include_npc=include_npc, report_id=record.grouping_key))
    return events


class PairingService(BaseService):
    """Service for commander pairing aggregates"""

    def __init__(self, session_factory, report_store: Optional[ReportStore] = None):
        super().__init__(session_factory)
        self.report_store = report_store or ReportStore(session_factory)

    def _validate_request(self, governor_id: int, start_millis: int, end_millis: int):
        self.validate_governor_id(governor_id)
        if start_millis >= end_millis:
            raise InvalidDateRangeError(start_millis, end_millis)

    @staticmethod
    def _validate_pairing(primary_commander_id: int, secondary_commander_id: int):
        if primary_commander_id <= 0 or secondary_commander_id < 0:
            raise InvalidParameterError("pairing", "primary must be positive and secondary not negative")

    async def _aggregate_window(self, governor_id: int, start_millis: int, end_millis: int,
                                key_fn: KeyFunction, primary_commander_id: Optional[int] = None
                                ) -> Dict[str, AggregationBucket]:
        records = await self.report_store.fetch_records(
            governor_id, start_millis, end_millis, primary_commander_id=primary_commander_id
        )
        return aggregate(flatten_records(records), key_fn, start_millis, end_millis)

    async def get_pairings(self, governor_id: int, date_range: DateRange) -> List[PairingAggregate]:
        """Totals per self commander pairing inside a window, strongest first."""
        self._validate_request(governor_id, date_range.start_millis, date_range.end_millis)

        buckets = await self._aggregate_window(
            governor_id, date_range.start_millis, date_range.end_millis, commander_pair_key
        )
        logger.info(f"Aggregated {len(buckets)} pairings for governor {governor_id}")

        return [
            PairingAggregate(
                primary_commander_id=bucket.exemplar.self_primary_commander_id,
                secondary_commander_id=bucket.exemplar.self_secondary_commander_id,
                count=bucket.count,
                totals=bucket.totals,
                rates=compute_rates(bucket.totals)
            )
            for bucket in sort_buckets(buckets.values())
        ]

    async def get_yearly_pairings(self, governor_id: int, year: int) -> YearlyPairings:
        """
        Pairing series for a year with one entry per month, plus the same
        pairings' totals over the previous year.

        The twelve months and the previous year are queried concurrently.
        """
        current = year_range(year)
        previous = year_range(year - 1)
        self._validate_request(governor_id, current.start_millis, current.end_millis)

        async def fetch_month(start_millis: int, end_millis: int) -> Dict[str, AggregationBucket]:
            return await self._aggregate_window(governor_id, start_millis, end_millis, commander_pair_key)

        monthly_buckets, previous_buckets = await gather_all(
            gather_monthly(year, fetch_month),
            self._aggregate_window(governor_id, previous.start_millis, previous.end_millis, commander_pair_key)
        )

        series = rollup_monthly(year, monthly_buckets)
        for key, item in series.items():
            previous_bucket = previous_buckets.get(key)
            if previous_bucket is not None:
                item.previous_count = previous_bucket.count
                item.previous_totals = previous_bucket.totals

        items = sorted(
            series.values(),
            key=lambda item: (-item.totals.kill_score, -item.count, item.key)
        )
        logger.info(f"Built {len(items)} yearly pairing series for governor {governor_id} in {year}")

        return YearlyPairings(
            year=year,
            start_millis=current.start_millis,
            end_millis=current.end_millis,
            items=items
        )

    async def get_enemies(self, governor_id: int, date_range: DateRange, primary_commander_id: int,
                          secondary_commander_id: int,
                          granularity: str = LoadoutConstants.GRANULARITY_OVERALL,
                          loadout_key: Optional[str] = None) -> List[EnemyAggregate]:
        """
        Totals per enemy pairing faced by one self pairing.

        With an exact or normalized granularity only events whose loadout key
        at that granularity equals loadout_key are counted.

        Raises:
            InvalidParameterError: On an invalid pairing, granularity, or a
                missing loadout key
        """
        self._validate_request(governor_id, date_range.start_millis, date_range.end_millis)
        self._validate_pairing(primary_commander_id, secondary_commander_id)

        key_fn = enemy_pair_key
        if granularity != LoadoutConstants.GRANULARITY_OVERALL:
            validate_granularity(granularity)
            if not loadout_key:
                raise InvalidParameterError("loadoutKey", "required unless granularity is overall")
            match_loadout = loadout_key_fn(granularity)

            def loadout_enemy_key(event: CombatEvent) -> Optional[str]:
                if match_loadout(event) != loadout_key:
                    return None
                return enemy_pair_key(event)

            key_fn = loadout_enemy_key

        buckets = await self._aggregate_window(
            governor_id, date_range.start_millis, date_range.end_millis,
            pairing_filter(key_fn, primary_commander_id, secondary_commander_id),
            primary_commander_id=primary_commander_id
        )

        return [
            EnemyAggregate(
                enemy_primary_commander_id=bucket.exemplar.enemy_primary_commander_id,
                enemy_secondary_commander_id=bucket.exemplar.enemy_secondary_commander_id,
                count=bucket.count,
                totals=bucket.totals,
                rates=compute_rates(bucket.totals),
                trade_percentage=trade_percentage(bucket.totals.kill_score, bucket.totals.enemy_kill_score)
            )
            for bucket in sort_buckets(buckets.values())
        ]

    async def get_loadouts(self, governor_id: int, date_range: DateRange, primary_commander_id: int,
                           secondary_commander_id: int,
                           granularity: str = LoadoutConstants.GRANULARITY_EXACT) -> List[LoadoutAggregate]:
        """Totals per loadout one self pairing was run with."""
        self._validate_request(governor_id, date_range.start_millis, date_range.end_millis)
        self._validate_pairing(primary_commander_id, secondary_commander_id)
        key_fn = loadout_key_fn(granularity)

        buckets = await self._aggregate_window(
            governor_id, date_range.start_millis, date_range.end_millis,
            pairing_filter(key_fn, primary_commander_id, secondary_commander_id),
            primary_commander_id=primary_commander_id
        )

        items = []
        for bucket in sort_buckets(buckets.values()):
            snapshot = build_loadout_snapshot(bucket.exemplar.loadout, granularity)
            items.append(LoadoutAggregate(
                key=build_loadout_key(snapshot),
                count=bucket.count,
                totals=bucket.totals,
                rates=compute_rates(bucket.totals),
                loadout=snapshot
            ))
        return items

    async def get_marches(self, governor_id: int, date_range: DateRange) -> List[MarchAggregate]:
        """Per-pairing kill score averages and percentiles."""
        self._validate_request(governor_id, date_range.start_millis, date_range.end_millis)

        buckets = await self._aggregate_window(
            governor_id, date_range.start_millis, date_range.end_millis, commander_pair_key
        )

        return [
            MarchAggregate(
                primary_commander_id=bucket.exemplar.self_primary_commander_id,
                secondary_commander_id=bucket.exemplar.self_secondary_commander_id,
                count=bucket.count,
                totals=bucket.totals,
                average_kill_score=average(bucket.totals.kill_score, bucket.count),
                kill_score_percentiles=kill_score_percentiles(bucket.kill_scores)
            )
            for bucket in sort_buckets(buckets.values())
        ]

    async def get_battle_log(self, governor_id: int, year: int) -> BattleLog:
        """Daily battle and NPC encounter counts for every day of a year."""
        window = year_range(year)
        self._validate_request(governor_id, window.start_millis, window.end_millis)

        records = await self.report_store.fetch_records(
            governor_id, window.start_millis, window.end_millis, include_npc=True
        )
        days = build_daily_grid(
            flatten_records(records, include_npc=True), window.start_millis, window.end_millis
        )

        return BattleLog(
            start_date=format_day_key(window.start_millis),
            end_date=format_day_key(window.end_millis - 1),
            days=days,
            governor_id=governor_id
        )
