"""
Event extraction for stored battle records.

Two record shapes exist in the store:

Single-encounter report::

    {"report": {"metadata": {"email_time", "start_date", "end_date"},
                "self": {"player_id", "primary_commander": {"id"}, ...},
                "enemy": {"player_id", "primary_commander": {"id"}, ...},
                "battle_results": {"kill_score", "death", ...}}}

Multi-opponent battle mail::

    {"metadata": {"mail_time"}, "timeline": {"start_timestamp"},
     "sender": {"player_id", "commanders": {"primary", "secondary"}},
     "opponents": [{"player_id", "start_tick", "end_tick", "commanders",
                    "battle_results": {"sender", "opponent"}}],
     "summary": {"sender", "opponent"}}

Shape detection happens here and nowhere else. Everything downstream sees
only CombatEvent values.
"""

import logging
import math
from typing import Any, Dict, List, Optional

from battlestats.constants import OpponentConstants
from battlestats.data_models.combat import BattleResults, CombatEvent, Overview
from battlestats.data_models.loadout import SelfLoadoutFields
from battlestats.utils.exceptions import InvalidParameterError
from battlestats.utils.loadout_parser import build_armament_fields
from battlestats.utils.numbers import (
    normalize_commander_id, to_finite_number, to_optional_number
)
from battlestats.utils.timestamps import (
    Millis, extract_duration_millis, normalize_timestamp_millis
)

logger = logging.getLogger(__name__)

SHAPE_REPORT = "report"
SHAPE_BATTLE_MAIL = "battle_mail"

# Summary fields that must all be numeric for a stored battle mail summary to be trusted
_SUMMARY_FIELDS = ("dead", "severely_wounded", "slightly_wounded", "kill_points", "troop_units", "remaining")


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def detect_shape(record: Any) -> Optional[str]:
    """Return the record shape tag, or None for records of neither shape."""
    if not isinstance(record, dict):
        return None
    if isinstance(record.get("report"), dict):
        return SHAPE_REPORT
    if isinstance(record.get("opponents"), list) or isinstance(record.get("sender"), dict):
        return SHAPE_BATTLE_MAIL
    return None


def _commander_id(participant: Dict[str, Any], key: str) -> int:
    return normalize_commander_id(_dict(participant.get(key)).get("id"))


def governor_id_of(record: Any) -> Optional[int]:
    """The self-side player id of a record, None when absent."""
    shape = detect_shape(record)
    if shape == SHAPE_REPORT:
        raw = _dict(record["report"].get("self")).get("player_id")
    elif shape == SHAPE_BATTLE_MAIL:
        raw = _dict(record.get("sender")).get("player_id")
    else:
        return None

    numeric = to_optional_number(raw)
    return int(numeric) if numeric is not None else None


def event_time_of(record: Any) -> Optional[Millis]:
    """
    Canonical event time of a record in epoch milliseconds.

    Uses the mail time, falling back to the battle start when the mail time
    is missing or unusable.
    """
    shape = detect_shape(record)
    if shape == SHAPE_REPORT:
        metadata = _dict(record["report"].get("metadata"))
        primary, fallback = metadata.get("email_time"), metadata.get("start_date")
    elif shape == SHAPE_BATTLE_MAIL:
        primary = _dict(record.get("metadata")).get("mail_time")
        fallback = _dict(record.get("timeline")).get("start_timestamp")
    else:
        return None

    millis = normalize_timestamp_millis(primary)
    if millis is None:
        millis = normalize_timestamp_millis(fallback)
    return millis


def _is_excluded_opponent(player_id: int, include_npc: bool) -> bool:
    if player_id == OpponentConstants.EMPTY_PLAYER_ID:
        return True
    if player_id == OpponentConstants.NPC_PLAYER_ID:
        return not include_npc
    return False


def valid_sorted_opponents(record: Any, include_npc: bool = False) -> List[Dict[str, Any]]:
    """
    Opponents of a battle mail that represent real encounters.

    Sorted by (start_tick, player_id) ascending so the first entry is the
    earliest opponent, lowest id first on ties.
    """
    if detect_shape(record) != SHAPE_BATTLE_MAIL:
        return []

    opponents = [
        opponent for opponent in record.get("opponents") or []
        if isinstance(opponent, dict)
        and not _is_excluded_opponent(normalize_commander_id(opponent.get("player_id")), include_npc)
    ]

    return sorted(
        opponents,
        key=lambda opponent: (
            to_finite_number(opponent.get("start_tick")),
            to_finite_number(opponent.get("player_id"))
        )
    )


def representative_opponent(record: Any) -> Optional[Dict[str, Any]]:
    """The opponent shown for a record in listings."""
    shape = detect_shape(record)
    if shape == SHAPE_REPORT:
        enemy = record["report"].get("enemy")
        return enemy if isinstance(enemy, dict) else None

    opponents = valid_sorted_opponents(record)
    return opponents[0] if opponents else None


def self_loadout_fields(record: Any) -> SelfLoadoutFields:
    """Raw self-side loadout strings, in single-report encoding for both shapes."""
    shape = detect_shape(record)
    if shape == SHAPE_REPORT:
        participant = _dict(record["report"].get("self"))
        return SelfLoadoutFields(
            equipment=participant.get("equipment"),
            inscriptions=participant.get("inscriptions"),
            armament_buffs=participant.get("armament_buffs"),
            formation=participant.get("formation")
        )

    if shape == SHAPE_BATTLE_MAIL:
        commanders = _dict(_dict(record.get("sender")).get("commanders"))
        primary = _dict(commanders.get("primary"))
        inscriptions, armament_buffs = build_armament_fields(
            [commanders.get("primary"), commanders.get("secondary")]
        )
        return SelfLoadoutFields(
            equipment=primary.get("equipment"),
            inscriptions=inscriptions,
            armament_buffs=armament_buffs,
            formation=primary.get("formation")
        )

    return SelfLoadoutFields()


def _report_results(battle_results: Dict[str, Any]) -> BattleResults:
    return BattleResults(
        kill_score=to_finite_number(battle_results.get("kill_score")),
        deaths=to_finite_number(battle_results.get("death")),
        severely_wounded=to_finite_number(battle_results.get("severely_wounded")),
        wounded=to_finite_number(battle_results.get("wounded")),
        enemy_kill_score=to_finite_number(battle_results.get("enemy_kill_score")),
        enemy_deaths=to_finite_number(battle_results.get("enemy_death")),
        enemy_severely_wounded=to_finite_number(battle_results.get("enemy_severely_wounded")),
        enemy_wounded=to_finite_number(battle_results.get("enemy_wounded"))
    )


def _mail_results(opponent: Dict[str, Any]) -> BattleResults:
    battle_results = _dict(opponent.get("battle_results"))
    sender = _dict(battle_results.get("sender"))
    enemy = _dict(battle_results.get("opponent"))
    return BattleResults(
        kill_score=to_finite_number(sender.get("kill_points")),
        deaths=to_finite_number(sender.get("dead")),
        severely_wounded=to_finite_number(sender.get("severely_wounded")),
        wounded=to_finite_number(sender.get("slightly_wounded")),
        enemy_kill_score=to_finite_number(enemy.get("kill_points")),
        enemy_deaths=to_finite_number(enemy.get("dead")),
        enemy_severely_wounded=to_finite_number(enemy.get("severely_wounded")),
        enemy_wounded=to_finite_number(enemy.get("slightly_wounded"))
    )


def _extract_report_events(record: Dict[str, Any], include_npc: bool,
                           report_id: Optional[str]) -> List[CombatEvent]:
    report = record["report"]
    participant = _dict(report.get("self"))
    enemy = _dict(report.get("enemy"))
    metadata = _dict(report.get("metadata"))

    enemy_player_id = normalize_commander_id(enemy.get("player_id"))
    if _is_excluded_opponent(enemy_player_id, include_npc):
        return []

    return [CombatEvent(
        self_primary_commander_id=_commander_id(participant, "primary_commander"),
        self_secondary_commander_id=_commander_id(participant, "secondary_commander"),
        enemy_player_id=enemy_player_id,
        enemy_primary_commander_id=_commander_id(enemy, "primary_commander"),
        enemy_secondary_commander_id=_commander_id(enemy, "secondary_commander"),
        event_time_millis=event_time_of(record),
        duration_millis=extract_duration_millis(metadata.get("start_date"), metadata.get("end_date")),
        results=_report_results(_dict(report.get("battle_results"))),
        loadout=self_loadout_fields(record),
        report_id=report_id
    )]


def _extract_mail_events(record: Dict[str, Any], include_npc: bool,
                         report_id: Optional[str]) -> List[CombatEvent]:
    sender_commanders = _dict(_dict(record.get("sender")).get("commanders"))
    self_primary = normalize_commander_id(_dict(sender_commanders.get("primary")).get("id"))
    self_secondary = normalize_commander_id(_dict(sender_commanders.get("secondary")).get("id"))

    event_time = event_time_of(record)
    loadout = self_loadout_fields(record)
    timeline_start = to_finite_number(_dict(record.get("timeline")).get("start_timestamp"))

    events = []
    for opponent in valid_sorted_opponents(record, include_npc=include_npc):
        commanders = _dict(opponent.get("commanders"))
        start_tick = to_finite_number(opponent.get("start_tick"))
        end_tick = to_optional_number(opponent.get("end_tick"))
        if end_tick is None:
            end_tick = start_tick

        events.append(CombatEvent(
            self_primary_commander_id=self_primary,
            self_secondary_commander_id=self_secondary,
            enemy_player_id=normalize_commander_id(opponent.get("player_id")),
            enemy_primary_commander_id=normalize_commander_id(_dict(commanders.get("primary")).get("id")),
            enemy_secondary_commander_id=normalize_commander_id(_dict(commanders.get("secondary")).get("id")),
            event_time_millis=event_time,
            duration_millis=extract_duration_millis(timeline_start + start_tick, timeline_start + end_tick),
            results=_mail_results(opponent),
            loadout=loadout,
            report_id=report_id
        ))
    return events


def extract_events(record: Any, include_npc: bool = False,
                   report_id: Optional[str] = None) -> List[CombatEvent]:
    """
    Flatten one stored record into combat events.

    Args:
        record: Raw record payload of either shape
        include_npc: Keep encounters against environmental opponents
        report_id: Grouping key of the source record, copied onto each event

    Returns:
        One event per valid encounter; empty for unrecognized records
    """
    shape = detect_shape(record)
    if shape == SHAPE_REPORT:
        return _extract_report_events(record, include_npc, report_id)
    if shape == SHAPE_BATTLE_MAIL:
        return _extract_mail_events(record, include_npc, report_id)

    logger.debug(f"Skipping record of unknown shape (report_id={report_id})")
    return []


def _summary_is_numeric(summary: Dict[str, Any]) -> bool:
    return all(
        to_optional_number(summary.get(field_name)) is not None
        for field_name in _SUMMARY_FIELDS
    )


def _overview_from_summary(sender: Dict[str, Any], enemy: Dict[str, Any]) -> Overview:
    return Overview(
        max=to_finite_number(sender.get("troop_units")),
        death=to_finite_number(sender.get("dead")),
        severely_wounded=to_finite_number(sender.get("severely_wounded")),
        wounded=to_finite_number(sender.get("slightly_wounded")),
        remaining=to_finite_number(sender.get("remaining")),
        kill_score=to_finite_number(sender.get("kill_points")),
        enemy_max=to_finite_number(enemy.get("troop_units")),
        enemy_death=to_finite_number(enemy.get("dead")),
        enemy_severely_wounded=to_finite_number(enemy.get("severely_wounded")),
        enemy_wounded=to_finite_number(enemy.get("slightly_wounded")),
        enemy_remaining=to_finite_number(enemy.get("remaining")),
        enemy_kill_score=to_finite_number(enemy.get("kill_points"))
    )


def _reduce_side(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    remaining_values = [
        to_optional_number(result.get("remaining")) for result in results
    ]
    remaining_values = [value for value in remaining_values if value is not None]
    return {
        "troop_units": sum(to_finite_number(result.get("troop_units")) for result in results),
        "dead": sum(to_finite_number(result.get("dead")) for result in results),
        "severely_wounded": sum(to_finite_number(result.get("severely_wounded")) for result in results),
        "slightly_wounded": sum(to_finite_number(result.get("slightly_wounded")) for result in results),
        "kill_points": sum(to_finite_number(result.get("kill_points")) for result in results),
        "remaining": min(remaining_values) if remaining_values else 0,
    }


def compute_overview(record: Any) -> Optional[Overview]:
    """
    Record-level summary counters.

    Battle mails carry a summary block. When both sides of it are fully
    numeric it is used as-is; otherwise the same counters are rebuilt from
    the valid opponents (sums, with remaining taken as the minimum reported
    value). Single reports read their battle results directly.

    Returns:
        The overview, or None when there is nothing to summarize
    """
    shape = detect_shape(record)
    if shape == SHAPE_REPORT:
        battle_results = record["report"].get("battle_results")
        if not isinstance(battle_results, dict):
            return None
        return Overview(**{
            name: to_finite_number(battle_results.get(name))
            for name in Overview.__dataclass_fields__
        })

    if shape != SHAPE_BATTLE_MAIL:
        return None

    summary = _dict(record.get("summary"))
    sender_summary = _dict(summary.get("sender"))
    opponent_summary = _dict(summary.get("opponent"))
    if _summary_is_numeric(sender_summary) and _summary_is_numeric(opponent_summary):
        return _overview_from_summary(sender_summary, opponent_summary)

    opponents = valid_sorted_opponents(record)
    if not opponents:
        return None

    sender_results = [_dict(_dict(opponent.get("battle_results")).get("sender")) for opponent in opponents]
    enemy_results = [_dict(_dict(opponent.get("battle_results")).get("opponent")) for opponent in opponents]
    return _overview_from_summary(_reduce_side(sender_results), _reduce_side(enemy_results))


def record_index_fields(record: Any) -> Dict[str, Any]:
    """
    Columns the store indexes a record by.

    Raises:
        InvalidParameterError: If the record has no recognizable shape or no governor id
    """
    shape = detect_shape(record)
    governor_id = governor_id_of(record)
    if shape is None or governor_id is None:
        raise InvalidParameterError("payload", "record has no recognizable shape or governor id")

    if shape == SHAPE_REPORT:
        report = record["report"]
        self_primary = _commander_id(_dict(report.get("self")), "primary_commander")
        enemy_player_id = normalize_commander_id(_dict(report.get("enemy")).get("player_id"))
        mail_time = _dict(report.get("metadata")).get("email_time")
    else:
        commanders = _dict(_dict(record.get("sender")).get("commanders"))
        self_primary = normalize_commander_id(_dict(commanders.get("primary")).get("id"))
        enemy_player_id = None
        mail_time = _dict(record.get("metadata")).get("mail_time")

    event_time = event_time_of(record)
    return {
        "governor_id": governor_id,
        "self_primary_commander_id": self_primary,
        "enemy_player_id": enemy_player_id,
        "mail_time": to_optional_number(mail_time),
        "event_time_millis": math.trunc(event_time) if event_time is not None else None,
    }
