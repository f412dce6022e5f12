"""
Pagination data models for the report listing and the store rows behind it.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class CursorPage(Generic[T]):
    """Page of items with cursor tokens for resuming in either direction"""
    items: List[T]
    has_more: bool = False
    next_cursor: Optional[str] = None
    previous_cursor: Optional[str] = None

    def to_dict(self, serialize: Callable[[T], Any] = None) -> Dict[str, Any]:
        items = [serialize(item) for item in self.items] if serialize else list(self.items)
        data: Dict[str, Any] = {"items": items, "count": len(items)}
        if self.next_cursor is not None:
            data["nextCursor"] = self.next_cursor
        if self.previous_cursor is not None:
            data["previousCursor"] = self.previous_cursor
        return data


@dataclass(frozen=True)
class ReportSummary:
    """One row of the report listing."""
    report_id: int
    parent_hash: Optional[str]
    event_time_millis: int
    battles: int
    self_primary_commander_id: int
    self_secondary_commander_id: int
    enemy_primary_commander_id: int
    enemy_secondary_commander_id: int
    kill_score: float = 0
    enemy_kill_score: float = 0
    trade_percentage: int = 0
    duration_millis: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.report_id,
            "parentHash": self.parent_hash,
            "eventTime": self.event_time_millis,
            "battles": self.battles,
            "selfCommanderId": self.self_primary_commander_id,
            "selfSecondaryCommanderId": self.self_secondary_commander_id,
            "enemyCommanderId": self.enemy_primary_commander_id,
            "enemySecondaryCommanderId": self.enemy_secondary_commander_id,
            "killScore": self.kill_score,
            "enemyKillScore": self.enemy_kill_score,
            "tradePercentage": self.trade_percentage,
            "durationMillis": self.duration_millis,
        }


@dataclass(frozen=True)
class StoredRecord:
    """A raw record as returned by the store, with its row identity."""
    id: int
    parent_hash: Optional[str]
    event_time_millis: Optional[int]
    payload: Dict[str, Any]

    @property
    def grouping_key(self) -> str:
        """Reports split across several rows share a parent hash."""
        return self.parent_hash or f"id:{self.id}"
