"""
Combat data models for the aggregation engine.

CombatEvent and BattleResults are immutable. BattleTotals and
AggregationBucket are mutable accumulators owned by a single aggregation pass.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Union

from battlestats.constants import OpponentConstants
from battlestats.data_models.loadout import SelfLoadoutFields

Number = Union[int, float]


@dataclass(frozen=True)
class BattleResults:
    """Named counters for one encounter, all already coerced to finite numbers."""
    kill_score: Number = 0
    deaths: Number = 0
    severely_wounded: Number = 0
    wounded: Number = 0
    enemy_kill_score: Number = 0
    enemy_deaths: Number = 0
    enemy_severely_wounded: Number = 0
    enemy_wounded: Number = 0


@dataclass(frozen=True)
class CombatEvent:
    """Atomic unit consumed by the aggregator."""
    self_primary_commander_id: int
    self_secondary_commander_id: int
    enemy_player_id: int
    enemy_primary_commander_id: int
    enemy_secondary_commander_id: int
    event_time_millis: Optional[Number]
    duration_millis: Number = 0
    results: BattleResults = field(default_factory=BattleResults)
    loadout: SelfLoadoutFields = field(default_factory=SelfLoadoutFields)
    report_id: Optional[str] = None

    @property
    def is_npc(self) -> bool:
        return self.enemy_player_id == OpponentConstants.NPC_PLAYER_ID


@dataclass
class BattleTotals:
    """Summed counters plus duration and the rate numerators."""
    kill_score: Number = 0
    deaths: Number = 0
    severely_wounded: Number = 0
    wounded: Number = 0
    enemy_kill_score: Number = 0
    enemy_deaths: Number = 0
    enemy_severely_wounded: Number = 0
    enemy_wounded: Number = 0
    dps: Number = 0
    sps: Number = 0
    tps: Number = 0
    battle_duration: Number = 0

    def add_results(self, results: BattleResults) -> None:
        self.kill_score += results.kill_score
        self.deaths += results.deaths
        self.severely_wounded += results.severely_wounded
        self.wounded += results.wounded
        self.enemy_kill_score += results.enemy_kill_score
        self.enemy_deaths += results.enemy_deaths
        self.enemy_severely_wounded += results.enemy_severely_wounded
        self.enemy_wounded += results.enemy_wounded
        self.dps += results.enemy_wounded + results.enemy_severely_wounded
        self.sps += results.enemy_severely_wounded
        self.tps += results.severely_wounded

    def merge(self, other: "BattleTotals") -> None:
        """Add another totals object field by field."""
        for totals_field in fields(self):
            name = totals_field.name
            setattr(self, name, getattr(self, name) + getattr(other, name))

    def copy(self) -> "BattleTotals":
        return BattleTotals(**{f.name: getattr(self, f.name) for f in fields(self)})

    def to_dict(self) -> Dict[str, Number]:
        return {
            "killScore": self.kill_score,
            "deaths": self.deaths,
            "severelyWounded": self.severely_wounded,
            "wounded": self.wounded,
            "enemyKillScore": self.enemy_kill_score,
            "enemyDeaths": self.enemy_deaths,
            "enemySeverelyWounded": self.enemy_severely_wounded,
            "enemyWounded": self.enemy_wounded,
            "dps": self.dps,
            "sps": self.sps,
            "tps": self.tps,
            "battleDuration": self.battle_duration,
        }


@dataclass
class AggregationBucket:
    """Per-key accumulator for one aggregation pass."""
    key: str
    exemplar: CombatEvent
    count: int = 0
    totals: BattleTotals = field(default_factory=BattleTotals)
    kill_scores: List[Number] = field(default_factory=list)

    def add(self, event: CombatEvent) -> None:
        self.count += 1
        self.totals.add_results(event.results)
        self.totals.battle_duration += event.duration_millis
        self.kill_scores.append(event.results.kill_score)


@dataclass(frozen=True)
class Overview:
    """Record-level summary, either stored or recomputed from sub-encounters."""
    max: Number = 0
    death: Number = 0
    severely_wounded: Number = 0
    wounded: Number = 0
    remaining: Number = 0
    kill_score: Number = 0
    enemy_max: Number = 0
    enemy_death: Number = 0
    enemy_severely_wounded: Number = 0
    enemy_wounded: Number = 0
    enemy_remaining: Number = 0
    enemy_kill_score: Number = 0

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
