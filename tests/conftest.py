"""
Shared record builders for the test suite.
"""

import pytest

from battlestats.data_models.combat import BattleResults, CombatEvent
from battlestats.data_models.loadout import SelfLoadoutFields


def build_report(governor_id=100, primary=11, secondary=22, enemy_player_id=5,
                 enemy_primary=33, enemy_secondary=44, email_time=1700000000,
                 start_date=1700000000, end_date=1700000060, kill_score=1000,
                 enemy_kill_score=500, severely_wounded=10, wounded=20,
                 enemy_severely_wounded=30, enemy_wounded=40, equipment=None,
                 inscriptions=None, armament_buffs=None, formation=None):
    """A single-encounter report payload."""
    metadata = {"start_date": start_date, "end_date": end_date}
    if email_time is not None:
        metadata["email_time"] = email_time

    return {
        "report": {
            "metadata": metadata,
            "self": {
                "player_id": governor_id,
                "primary_commander": {"id": primary},
                "secondary_commander": {"id": secondary},
                "equipment": equipment,
                "inscriptions": inscriptions,
                "armament_buffs": armament_buffs,
                "formation": formation,
            },
            "enemy": {
                "player_id": enemy_player_id,
                "primary_commander": {"id": enemy_primary},
                "secondary_commander": {"id": enemy_secondary},
            },
            "battle_results": {
                "max": 100000,
                "death": 5,
                "severely_wounded": severely_wounded,
                "wounded": wounded,
                "remaining": 90000,
                "kill_score": kill_score,
                "enemy_max": 80000,
                "enemy_death": 7,
                "enemy_severely_wounded": enemy_severely_wounded,
                "enemy_wounded": enemy_wounded,
                "enemy_remaining": 70000,
                "enemy_kill_score": enemy_kill_score,
            },
        }
    }


def build_opponent(player_id, start_tick=0, end_tick=None, primary=33, secondary=44,
                   kill_points=100, enemy_kill_points=50, severely_wounded=1,
                   slightly_wounded=2, enemy_severely_wounded=3, enemy_slightly_wounded=4,
                   remaining=1000, enemy_remaining=900, troop_units=2000, enemy_troop_units=1500):
    """One opponent entry of a battle mail."""
    opponent = {
        "player_id": player_id,
        "start_tick": start_tick,
        "commanders": {"primary": {"id": primary}, "secondary": {"id": secondary}},
        "battle_results": {
            "sender": {
                "kill_points": kill_points,
                "dead": 1,
                "severely_wounded": severely_wounded,
                "slightly_wounded": slightly_wounded,
                "remaining": remaining,
                "troop_units": troop_units,
            },
            "opponent": {
                "kill_points": enemy_kill_points,
                "dead": 2,
                "severely_wounded": enemy_severely_wounded,
                "slightly_wounded": enemy_slightly_wounded,
                "remaining": enemy_remaining,
                "troop_units": enemy_troop_units,
            },
        },
    }
    if end_tick is not None:
        opponent["end_tick"] = end_tick
    return opponent


def build_mail(opponents, governor_id=100, primary=11, secondary=22, mail_time=1700000000000,
               start_timestamp=1700000000, summary=None, primary_armaments=None,
               secondary_armaments=None, equipment=None, formation=None):
    """A multi-opponent battle mail payload."""
    mail = {
        "metadata": {"mail_time": mail_time},
        "timeline": {"start_timestamp": start_timestamp},
        "sender": {
            "player_id": governor_id,
            "commanders": {
                "primary": {
                    "id": primary,
                    "equipment": equipment,
                    "formation": formation,
                    "armaments": primary_armaments or [],
                },
                "secondary": {"id": secondary, "armaments": secondary_armaments or []},
            },
        },
        "opponents": opponents,
        "summary": summary or {},
    }
    if mail_time is None:
        del mail["metadata"]["mail_time"]
    return mail


def build_event(enemy_player_id=5, primary=11, secondary=22, enemy_primary=33, enemy_secondary=44,
                event_time_millis=1700000000000, duration_millis=60000, report_id=None,
                loadout=None, **results):
    """A CombatEvent with the given results counters."""
    return CombatEvent(
        self_primary_commander_id=primary,
        self_secondary_commander_id=secondary,
        enemy_player_id=enemy_player_id,
        enemy_primary_commander_id=enemy_primary,
        enemy_secondary_commander_id=enemy_secondary,
        event_time_millis=event_time_millis,
        duration_millis=duration_millis,
        results=BattleResults(**results),
        loadout=loadout or SelfLoadoutFields(),
        report_id=report_id
    )


@pytest.fixture
def make_report():
    return build_report


@pytest.fixture
def make_opponent():
    return build_opponent


@pytest.fixture
def make_mail():
    return build_mail


@pytest.fixture
def make_event():
    return build_event
