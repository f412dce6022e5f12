"""
Loadout data models.

Immutable value objects for decoded equipment, inscription and armament data.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class EquipmentToken:
    """One equipped item in a slot."""
    slot: int
    item_id: int
    craft: Optional[int] = None
    attr: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"slot": self.slot, "id": self.item_id}
        if self.craft is not None:
            data["craft"] = self.craft
        if self.attr is not None:
            data["attr"] = self.attr
        return data


@dataclass(frozen=True)
class ArmamentBuff:
    """Summed armament buff value for one buff id."""
    id: int
    value: float


@dataclass(frozen=True)
class LoadoutArmament:
    """Armament entry in a snapshot; value is None in normalized mode."""
    id: int
    value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.value is None:
            return {"id": self.id}
        return {"id": self.id, "value": self.value}


@dataclass(frozen=True)
class SelfLoadoutFields:
    """Raw self-side loadout strings, shared by every event of one record."""
    equipment: Optional[str] = None
    inscriptions: Optional[str] = None
    armament_buffs: Optional[str] = None
    formation: Any = None


@dataclass(frozen=True)
class LoadoutSnapshot:
    """Decoded loadout at one granularity."""
    equipment: Tuple[EquipmentToken, ...] = field(default_factory=tuple)
    armaments: Tuple[LoadoutArmament, ...] = field(default_factory=tuple)
    inscriptions: Tuple[int, ...] = field(default_factory=tuple)
    formation: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "equipment": [token.to_dict() for token in self.equipment],
            "armaments": [armament.to_dict() for armament in self.armaments],
            "inscriptions": list(self.inscriptions),
            "formation": self.formation,
        }
