"""
Loadout token parser.

Decodes the compact loadout strings stored on battle reports:

    equipment    "{1:20401_1:37,2:20402:12}"   slot:itemId[_craft][:attr]
    inscriptions "1001;1002;-1"                ids, -1 marks an empty slot
    armaments    "3_1.5;3_2;7_4"               id_value pairs, summed per id

None of these functions raise. Malformed tokens are dropped and missing
input yields an empty result.
"""

import math
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from battlestats.constants import LoadoutConstants
from battlestats.data_models.loadout import ArmamentBuff, EquipmentToken
from battlestats.utils.numbers import Number, to_optional_number

_AFFIX_ID_PATTERN = re.compile(r"-?\d+")
_BUFF_TOKEN_SEPARATOR = re.compile(r"[;,]")
_BUFF_PAIR_SEPARATOR = re.compile(r"[_:]")


def _as_text(raw: Any) -> str:
    if raw is None or not isinstance(raw, str):
        return ""
    return raw.strip()


def compact_number(value: Number) -> Number:
    """Collapse integral floats to int so keys render 30, not 30.0."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _parse_number(text: Optional[str]) -> Optional[Number]:
    if text is None:
        return None
    numeric = to_optional_number(text)
    return None if numeric is None else compact_number(numeric)


def _slot_rank(token: EquipmentToken) -> Tuple[Number, Number, Number]:
    return (token.item_id, token.craft or 0, token.attr or 0)


def parse_equipment(raw: Any) -> List[EquipmentToken]:
    """
    Parse an equipment string into tokens sorted by slot.

    Tokens with a non-numeric slot or item id are dropped. A craft or attr
    that does not parse is treated as absent. When a slot repeats, the token
    with the smallest (item id, craft, attr) is kept, whatever the input order.
    """
    text = _as_text(raw).strip("{} \t\r\n")
    if not text:
        return []

    by_slot: Dict[Number, EquipmentToken] = {}
    for token in text.split(","):
        token = token.strip()
        if not token:
            continue

        parts = token.split(":")
        slot = _parse_number(parts[0])
        if slot is None:
            continue

        id_craft = parts[1] if len(parts) > 1 else ""
        id_parts = id_craft.split("_")
        item_id = _parse_number(id_parts[0])
        if item_id is None:
            continue

        craft = _parse_number(id_parts[1]) if len(id_parts) > 1 and id_parts[1] else None
        attr = _parse_number(parts[2]) if len(parts) > 2 else None

        candidate = EquipmentToken(slot=slot, item_id=item_id, craft=craft, attr=attr)
        current = by_slot.get(slot)
        if current is None or _slot_rank(candidate) < _slot_rank(current):
            by_slot[slot] = candidate

    return sorted(by_slot.values(), key=lambda equipment: equipment.slot)


def parse_semicolon_number_list(raw: Any) -> List[Number]:
    """Parse a ';' list of numbers, dropping junk and the empty-slot sentinel."""
    text = _as_text(raw)
    if not text:
        return []

    values = []
    for part in text.split(";"):
        value = _parse_number(part)
        if value is None or value == LoadoutConstants.EMPTY_INSCRIPTION_ID:
            continue
        values.append(value)
    return values


def parse_inscription_ids(raw: Any) -> List[Number]:
    """Inscription ids, deduplicated and sorted."""
    return sorted(set(parse_semicolon_number_list(raw)))


def _sum_values(values: Iterable[Number]) -> Number:
    # Exact total, independent of pair order
    return compact_number(math.fsum(values))


def parse_armament_buffs(raw: Any) -> List[ArmamentBuff]:
    """
    Parse armament buff pairs and sum them per id.

    A pair whose id does not parse is dropped; a value that does not parse
    contributes 0 but still registers the id.
    """
    text = _as_text(raw)
    if not text:
        return []

    values_by_id: Dict[Number, List[Number]] = {}
    for token in text.split(";"):
        token = token.strip()
        if not token:
            continue

        parts = token.split("_")
        buff_id = _parse_number(parts[0])
        if buff_id is None:
            continue

        value = _parse_number(parts[1]) if len(parts) > 1 else None
        values_by_id.setdefault(buff_id, []).append(value if value is not None else 0)

    return [
        ArmamentBuff(id=buff_id, value=_sum_values(values))
        for buff_id, values in sorted(values_by_id.items())
    ]


def get_inscription_rarity(inscription_id: Any) -> str:
    numeric = to_optional_number(inscription_id)
    if numeric is None:
        return "common"

    if numeric >= 1000:
        last_digit = math.trunc(numeric) % 10
        if last_digit == 1:
            return "special"
        if last_digit == 2:
            return "rare"

    return "common"


def parse_affix_ids(raw: Any) -> List[int]:
    """Extract positive inscription ids from a free-form armament affix string."""
    text = _as_text(raw)
    if not text:
        return []
    return [int(match) for match in _AFFIX_ID_PATTERN.findall(text) if int(match) > 0]


def parse_buff_pairs(raw: Any) -> List[Tuple[Number, Number]]:
    """Extract (id, value) pairs from an armament buff string; both must parse."""
    text = _as_text(raw)
    if not text:
        return []

    pairs = []
    for token in _BUFF_TOKEN_SEPARATOR.split(text):
        token = token.strip()
        if not token:
            continue

        parts = [part.strip() for part in _BUFF_PAIR_SEPARATOR.split(token)]
        if len(parts) < 2:
            continue

        buff_id = _parse_number(parts[0])
        value = _parse_number(parts[1])
        if buff_id is None or value is None:
            continue

        pairs.append((buff_id, value))
    return pairs


def build_armament_fields(commanders: Iterable[Any]) -> Tuple[Optional[str], Optional[str]]:
    """
    Rebuild the inscription and armament buff strings from commander armaments.

    Battle mails carry armaments per commander as {"affix": ..., "buffs": ...}
    objects. This folds them into the same encoded strings single-encounter
    reports store, so one canonicalizer serves both shapes.

    Returns:
        (inscriptions, armament_buffs), each None when nothing was found
    """
    inscription_ids = set()
    buff_values: Dict[Number, List[Number]] = {}

    for commander in commanders:
        if not isinstance(commander, dict):
            continue
        armaments = commander.get("armaments") or []
        if not isinstance(armaments, list):
            continue

        for armament in armaments:
            if not isinstance(armament, dict):
                continue
            inscription_ids.update(parse_affix_ids(armament.get("affix")))
            for buff_id, value in parse_buff_pairs(armament.get("buffs")):
                buff_values.setdefault(buff_id, []).append(value)

    inscriptions = ";".join(str(inscription_id) for inscription_id in sorted(inscription_ids))
    armament_buffs = ";".join(
        f"{buff_id}_{_sum_values(values)}" for buff_id, values in sorted(buff_values.items())
    )

    return inscriptions or None, armament_buffs or None
