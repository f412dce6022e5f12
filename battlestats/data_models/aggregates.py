"""
Aggregate result models returned by the pairing services.

Provides data transfer objects for grouped totals, monthly series and the
daily battle log, each serializable to the JSON shape the route boundary
returns.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from battlestats.data_models.combat import BattleTotals
from battlestats.data_models.loadout import LoadoutSnapshot


@dataclass(frozen=True)
class KillScorePercentiles:
    p10: float = 0
    p25: float = 0
    p50: float = 0
    p75: float = 0
    p90: float = 0

    def to_dict(self) -> Dict[str, float]:
        return {"p10": self.p10, "p25": self.p25, "p50": self.p50, "p75": self.p75, "p90": self.p90}


@dataclass(frozen=True)
class RateSummary:
    """Per-second rates derived from bucket totals."""
    dps: float = 0
    sps: float = 0
    tps: float = 0

    def to_dict(self) -> Dict[str, float]:
        return {"dps": self.dps, "sps": self.sps, "tps": self.tps}


@dataclass
class MonthlyAggregate:
    """One month of one key's series."""
    month_key: str
    count: int = 0
    totals: BattleTotals = field(default_factory=BattleTotals)

    def to_dict(self) -> Dict[str, Any]:
        return {"monthKey": self.month_key, "count": self.count, "totals": self.totals.to_dict()}


@dataclass
class PairingSeries:
    """A key's totals across a year plus its dense 12-month series."""
    key: str
    primary_commander_id: int
    secondary_commander_id: int
    count: int
    totals: BattleTotals
    monthly: List[MonthlyAggregate]
    previous_count: int = 0
    previous_totals: BattleTotals = field(default_factory=BattleTotals)

    @property
    def average_kill_score(self) -> float:
        return self.totals.kill_score / self.count if self.count else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primaryCommanderId": self.primary_commander_id,
            "secondaryCommanderId": self.secondary_commander_id,
            "count": self.count,
            "totals": self.totals.to_dict(),
            "averageKillScore": self.average_kill_score,
            "previousCount": self.previous_count,
            "previousTotals": self.previous_totals.to_dict(),
            "monthly": [month.to_dict() for month in self.monthly],
        }


@dataclass(frozen=True)
class PairingAggregate:
    """Totals for one self commander pairing."""
    primary_commander_id: int
    secondary_commander_id: int
    count: int
    totals: BattleTotals
    rates: RateSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primaryCommanderId": self.primary_commander_id,
            "secondaryCommanderId": self.secondary_commander_id,
            "count": self.count,
            "totals": self.totals.to_dict(),
            "rates": self.rates.to_dict(),
        }


@dataclass(frozen=True)
class MarchAggregate:
    """Pairing totals with kill score distribution."""
    primary_commander_id: int
    secondary_commander_id: int
    count: int
    totals: BattleTotals
    average_kill_score: float
    kill_score_percentiles: KillScorePercentiles

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primaryCommanderId": self.primary_commander_id,
            "secondaryCommanderId": self.secondary_commander_id,
            "count": self.count,
            "totals": self.totals.to_dict(),
            "averageKillScore": self.average_kill_score,
            "killScorePercentiles": self.kill_score_percentiles.to_dict(),
        }


@dataclass(frozen=True)
class EnemyAggregate:
    """Totals for one enemy commander pairing faced by a self pairing."""
    enemy_primary_commander_id: int
    enemy_secondary_commander_id: int
    count: int
    totals: BattleTotals
    rates: RateSummary
    trade_percentage: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enemyPrimaryCommanderId": self.enemy_primary_commander_id,
            "enemySecondaryCommanderId": self.enemy_secondary_commander_id,
            "count": self.count,
            "totals": self.totals.to_dict(),
            "rates": self.rates.to_dict(),
            "tradePercentage": self.trade_percentage,
        }


@dataclass(frozen=True)
class LoadoutAggregate:
    """Totals for one loadout key of a self pairing."""
    key: str
    count: int
    totals: BattleTotals
    rates: RateSummary
    loadout: LoadoutSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "count": self.count,
            "totals": self.totals.to_dict(),
            "rates": self.rates.to_dict(),
            "loadout": self.loadout.to_dict(),
        }


@dataclass
class BattleLogDay:
    """Activity counters for one UTC day."""
    date: str
    battle_count: int = 0
    npc_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "battleCount": self.battle_count, "npcCount": self.npc_count}


@dataclass(frozen=True)
class YearlyPairings:
    """Response of the yearly pairing view."""
    year: int
    start_millis: int
    end_millis: int
    items: List[PairingSeries]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "period": {"start": self.start_millis, "end": self.end_millis},
            "count": len(self.items),
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class BattleLog:
    """Response of the daily battle log view."""
    start_date: str
    end_date: str
    days: List[BattleLogDay]
    governor_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "governorId": self.governor_id,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "days": [day.to_dict() for day in self.days],
        }
