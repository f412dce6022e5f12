"""
Loadout canonicalization.

Turns the raw self-side loadout strings of a combat event into a
LoadoutSnapshot at one of two granularities and renders the snapshot as a
deterministic comparison key:

    eq:<slot:id_craft:attr|...>|arm:<id[_value]|...>|ins:<id|...>|fm:<formation>

Exact keys keep every attribute value and armament buff total. Normalized
keys bucket equipment attributes into tiers of ten and keep only which
armament buffs are present, so near-identical builds share one key.
"""

import math
from typing import Any, Optional

from battlestats.constants import LoadoutConstants
from battlestats.data_models.loadout import (
    EquipmentToken, LoadoutArmament, LoadoutSnapshot, SelfLoadoutFields
)
from battlestats.utils.exceptions import InvalidParameterError
from battlestats.utils.loadout_parser import (
    compact_number, parse_armament_buffs, parse_equipment, parse_inscription_ids
)


def validate_granularity(granularity: Any) -> str:
    """
    Raises:
        InvalidParameterError: If granularity is not "exact" or "normalized"
    """
    if granularity not in LoadoutConstants.GRANULARITIES:
        raise InvalidParameterError(
            "granularity",
            f"expected one of {', '.join(LoadoutConstants.GRANULARITIES)}"
        )
    return granularity


def normalize_formation(value: Any) -> Optional[int]:
    """Formation ids are kept only when they are real non-zero numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value == 0:
        return None
    return compact_number(value)


def normalize_equipment_attr(attr: Optional[float]) -> Optional[int]:
    """Bucket an attribute into its tier of ten; non-positive tiers become 0."""
    if attr is None:
        return None
    tier = math.trunc(attr / LoadoutConstants.ATTR_TIER_WIDTH)
    return tier * LoadoutConstants.ATTR_TIER_WIDTH if tier > 0 else 0


def normalize_snapshot(snapshot: LoadoutSnapshot) -> LoadoutSnapshot:
    """
    Collapse a snapshot to normalized granularity.

    Applying this to an already normalized snapshot returns an equal snapshot.
    """
    equipment = tuple(
        EquipmentToken(
            slot=token.slot,
            item_id=token.item_id,
            craft=token.craft,
            attr=normalize_equipment_attr(token.attr)
        )
        for token in sorted(snapshot.equipment, key=lambda token: token.slot)
    )
    armament_ids = sorted({armament.id for armament in snapshot.armaments})

    return LoadoutSnapshot(
        equipment=equipment,
        armaments=tuple(LoadoutArmament(id=armament_id) for armament_id in armament_ids),
        inscriptions=tuple(sorted(set(snapshot.inscriptions))),
        formation=snapshot.formation
    )


def build_loadout_snapshot(fields: SelfLoadoutFields, granularity: str) -> LoadoutSnapshot:
    """
    Decode raw loadout strings into a snapshot.

    Args:
        fields: Raw self-side loadout strings of an event
        granularity: "exact" or "normalized"

    Raises:
        InvalidParameterError: If granularity is unsupported
    """
    validate_granularity(granularity)

    snapshot = LoadoutSnapshot(
        equipment=tuple(parse_equipment(fields.equipment)),
        armaments=tuple(
            LoadoutArmament(id=buff.id, value=buff.value)
            for buff in parse_armament_buffs(fields.armament_buffs)
        ),
        inscriptions=tuple(parse_inscription_ids(fields.inscriptions)),
        formation=normalize_formation(fields.formation)
    )

    if granularity == LoadoutConstants.GRANULARITY_NORMALIZED:
        return normalize_snapshot(snapshot)
    return snapshot


def _serialize_equipment(snapshot: LoadoutSnapshot) -> str:
    tokens = sorted(
        snapshot.equipment,
        key=lambda token: (token.slot, token.item_id, token.craft or 0, token.attr or 0)
    )
    return "|".join(
        f"{token.slot}:{token.item_id}_{token.craft if token.craft is not None else 0}"
        f":{token.attr if token.attr is not None else 0}"
        for token in tokens
    )


def _serialize_armaments(snapshot: LoadoutSnapshot) -> str:
    armaments = sorted(
        snapshot.armaments,
        key=lambda armament: (armament.id, armament.value if armament.value is not None else 0)
    )
    return "|".join(
        str(armament.id) if armament.value is None else f"{armament.id}_{armament.value}"
        for armament in armaments
    )


def build_loadout_key(snapshot: LoadoutSnapshot) -> str:
    """Render a snapshot as its canonical key, independent of element order."""
    inscriptions = "|".join(str(inscription) for inscription in sorted(snapshot.inscriptions))
    formation = snapshot.formation if snapshot.formation is not None else LoadoutConstants.NO_FORMATION

    return "|".join([
        f"eq:{_serialize_equipment(snapshot)}",
        f"arm:{_serialize_armaments(snapshot)}",
        f"ins:{inscriptions}",
        f"fm:{formation}",
    ])
