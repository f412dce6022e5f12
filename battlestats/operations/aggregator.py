"""
Event aggregation.

Groups combat events into buckets by a key function and accumulates totals.
Rates are never computed per event: the per-second rate of a bucket is its
summed numerator divided by its summed battle duration, so buckets mixing
short and long battles stay accurate.
"""

import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from battlestats.constants import LoadoutConstants, OpponentConstants, TimestampConstants
from battlestats.data_models.aggregates import KillScorePercentiles, RateSummary
from battlestats.data_models.combat import AggregationBucket, BattleTotals, CombatEvent
from battlestats.operations.loadout import build_loadout_key, build_loadout_snapshot, validate_granularity
from battlestats.utils.numbers import Number
from battlestats.utils.timestamps import Millis

KeyFunction = Callable[[CombatEvent], Optional[str]]

PERCENTILES = (10, 25, 50, 75, 90)


def aggregate(events: Iterable[CombatEvent], key_fn: KeyFunction,
              start_millis: Millis, end_millis: Millis) -> Dict[str, AggregationBucket]:
    """
    Group events in the half-open window [start_millis, end_millis).

    Events without a time, outside the window, or for which key_fn returns
    None are skipped. The first event of each key becomes the bucket's
    exemplar.
    """
    buckets: Dict[str, AggregationBucket] = {}

    for event in events:
        event_time = event.event_time_millis
        if event_time is None or event_time < start_millis or event_time >= end_millis:
            continue

        key = key_fn(event)
        if key is None:
            continue

        bucket = buckets.get(key)
        if bucket is None:
            bucket = AggregationBucket(key=key, exemplar=event)
            buckets[key] = bucket
        bucket.add(event)

    return buckets


def commander_pair_key(event: CombatEvent) -> Optional[str]:
    """Self pairing "primary:secondary"; not applicable without a primary."""
    if event.self_primary_commander_id <= 0:
        return None
    return f"{event.self_primary_commander_id}:{event.self_secondary_commander_id}"


def enemy_pair_key(event: CombatEvent) -> Optional[str]:
    """Enemy pairing key; invalid opponents and missing primaries are not applicable."""
    if event.enemy_player_id in OpponentConstants.INVALID_PLAYER_IDS:
        return None
    if event.enemy_primary_commander_id <= 0:
        return None
    return f"{event.enemy_primary_commander_id}:{event.enemy_secondary_commander_id}"


def overall_key(event: CombatEvent) -> Optional[str]:
    return LoadoutConstants.GRANULARITY_OVERALL


def loadout_key_fn(granularity: str) -> KeyFunction:
    """
    Build a key function grouping events by their loadout key.

    Raises:
        InvalidParameterError: If granularity is unsupported
    """
    validate_granularity(granularity)

    def key_fn(event: CombatEvent) -> Optional[str]:
        return build_loadout_key(build_loadout_snapshot(event.loadout, granularity))

    return key_fn


def pairing_filter(key_fn: KeyFunction, primary_commander_id: int,
                   secondary_commander_id: int) -> KeyFunction:
    """Restrict a key function to events of one self pairing."""
    def filtered(event: CombatEvent) -> Optional[str]:
        if event.self_primary_commander_id != primary_commander_id:
            return None
        if event.self_secondary_commander_id != secondary_commander_id:
            return None
        return key_fn(event)

    return filtered


def per_second(numerator: Number, duration_millis: Number) -> float:
    if duration_millis <= 0:
        return 0
    return numerator / (duration_millis / TimestampConstants.MILLIS_PER_SECOND)


def compute_rates(totals: BattleTotals) -> RateSummary:
    return RateSummary(
        dps=per_second(totals.dps, totals.battle_duration),
        sps=per_second(totals.sps, totals.battle_duration),
        tps=per_second(totals.tps, totals.battle_duration)
    )


def average(total: Number, count: int) -> float:
    return total / count if count > 0 else 0


def compute_percentile(values: Sequence[Number], percentile: Number) -> float:
    """
    Linear-interpolated percentile of a sample.

    Args:
        values: Sample, in any order
        percentile: 0-100

    Returns:
        The percentile value, 0 for an empty sample
    """
    if not values:
        return 0

    ordered = sorted(values)
    if len(ordered) == 1:
        return ordered[0]

    percentile = min(max(percentile, 0), 100)
    rank = (percentile / 100) * (len(ordered) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return ordered[lower]

    weight = rank - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * weight


def kill_score_percentiles(kill_scores: Sequence[Number]) -> KillScorePercentiles:
    return KillScorePercentiles(**{
        f"p{percentile}": compute_percentile(kill_scores, percentile)
        for percentile in PERCENTILES
    })


def trade_percentage(kill_score: Number, enemy_kill_score: Number) -> int:
    """Self kill score as a whole percentage of the enemy's; equal scores trade at 100."""
    if enemy_kill_score > 0:
        return round(kill_score / enemy_kill_score * 100)
    if kill_score == enemy_kill_score:
        return 100
    return 0


def sort_buckets(buckets: Iterable[AggregationBucket]) -> List[AggregationBucket]:
    """Order buckets by kill score, then battle count, both descending."""
    return sorted(
        buckets,
        key=lambda bucket: (-bucket.totals.kill_score, -bucket.count, bucket.key)
    )
