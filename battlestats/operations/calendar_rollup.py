"""
Calendar rollups.

Builds dense month and day grids over aggregation results. Every key gets all
twelve months and every range gets every day, zero-filled where nothing
happened.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Sequence, Tuple

from battlestats.constants import TimestampConstants
from battlestats.data_models.aggregates import BattleLogDay, MonthlyAggregate, PairingSeries
from battlestats.data_models.combat import AggregationBucket, BattleTotals, CombatEvent
from battlestats.utils.timestamps import Millis, format_day_key, format_month_key, utc_millis

logger = logging.getLogger(__name__)

MonthRange = Tuple[int, int]
MonthFetcher = Callable[[int, int], Awaitable[Dict[str, AggregationBucket]]]


def month_ranges(year: int) -> List[MonthRange]:
    """The twelve UTC [start, end) month windows of a year, January first."""
    ranges = []
    for month in range(1, TimestampConstants.MONTHS_PER_YEAR + 1):
        start = utc_millis(year, month, 1)
        end = utc_millis(year + 1, 1, 1) if month == 12 else utc_millis(year, month + 1, 1)
        ranges.append((start, end))
    return ranges


def day_ranges(start_millis: Millis, end_millis: Millis) -> List[MonthRange]:
    """Consecutive one-day [start, end) windows covering [start_millis, end_millis)."""
    ranges = []
    cursor = start_millis
    while cursor < end_millis:
        ranges.append((cursor, cursor + TimestampConstants.MILLIS_PER_DAY))
        cursor += TimestampConstants.MILLIS_PER_DAY
    return ranges


def _split_pair_key(key: str) -> Tuple[int, int]:
    primary, _, secondary = key.partition(":")
    try:
        return int(primary), int(secondary or 0)
    except ValueError:
        return 0, 0


def rollup_monthly(year: int, monthly_buckets: Sequence[Dict[str, AggregationBucket]]) -> Dict[str, PairingSeries]:
    """
    Merge per-month buckets into one series per key.

    Args:
        year: Year the months belong to
        monthly_buckets: Twelve bucket maps, index 0 is January

    Returns:
        Series per key, each with exactly twelve monthly entries
    """
    if len(monthly_buckets) != TimestampConstants.MONTHS_PER_YEAR:
        raise ValueError(f"Expected 12 monthly bucket maps, got {len(monthly_buckets)}")

    keys = list(dict.fromkeys(key for buckets in monthly_buckets for key in buckets))

    series: Dict[str, PairingSeries] = {}
    for key in keys:
        exemplar = None
        totals = BattleTotals()
        count = 0
        monthly = []

        for month_index, buckets in enumerate(monthly_buckets):
            month = MonthlyAggregate(month_key=format_month_key(year, month_index + 1))
            bucket = buckets.get(key)
            if bucket is not None:
                exemplar = exemplar or bucket.exemplar
                month.count = bucket.count
                month.totals = bucket.totals.copy()
                count += bucket.count
                totals.merge(bucket.totals)
            monthly.append(month)

        if exemplar is not None:
            primary, secondary = exemplar.self_primary_commander_id, exemplar.self_secondary_commander_id
        else:
            primary, secondary = _split_pair_key(key)

        series[key] = PairingSeries(
            key=key,
            primary_commander_id=primary,
            secondary_commander_id=secondary,
            count=count,
            totals=totals,
            monthly=monthly
        )

    return series


async def gather_all(*awaitables: Awaitable) -> List:
    """
    Await several store queries concurrently, results in argument order.

    If one fails or the caller is cancelled, the queries still running are
    cancelled and awaited before the error propagates, so none outlive the
    request.
    """
    tasks = [asyncio.ensure_future(awaitable) for awaitable in awaitables]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            logger.debug(f"Cancelling {len(pending)} sibling queries after a failure")
            await asyncio.gather(*pending, return_exceptions=True)
        raise


async def gather_monthly(year: int, fetch_month: MonthFetcher) -> List[Dict[str, AggregationBucket]]:
    """
    Aggregate every month of a year concurrently.

    Results come back in month order regardless of which query finishes
    first. Any failing month fails the whole call.
    """
    ranges = month_ranges(year)
    logger.debug(f"Fanning out {len(ranges)} month queries for {year}")
    return await gather_all(*(fetch_month(start, end) for start, end in ranges))


def build_daily_grid(events: Iterable[CombatEvent], start_millis: Millis,
                     end_millis: Millis) -> List[BattleLogDay]:
    """
    Count active days in a range.

    Events sharing a report id are one report: the report lands on the day of
    its earliest event and counts once as a battle and once as an NPC
    encounter if it had any of either.
    """
    grouped: Dict[str, Dict[str, object]] = {}

    for event in events:
        event_time = event.event_time_millis
        if event_time is None or event_time < start_millis or event_time >= end_millis:
            continue

        key = event.report_id if event.report_id else str(event_time)
        group = grouped.get(key)
        if group is None:
            grouped[key] = {
                "event_time": event_time,
                "has_npc": event.is_npc,
                "has_battle": not event.is_npc,
            }
        else:
            group["event_time"] = min(group["event_time"], event_time)
            group["has_npc"] = group["has_npc"] or event.is_npc
            group["has_battle"] = group["has_battle"] or not event.is_npc

    days = {}
    for day_start, _ in day_ranges(start_millis, end_millis):
        day_key = format_day_key(day_start)
        days[day_key] = BattleLogDay(date=day_key)

    for group in grouped.values():
        day = days.get(format_day_key(group["event_time"]))
        if day is None:
            continue
        if group["has_battle"]:
            day.battle_count += 1
        if group["has_npc"]:
            day.npc_count += 1

    return list(days.values())
