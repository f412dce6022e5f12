import pytest

from battlestats.data_models.loadout import (
    EquipmentToken, LoadoutArmament, LoadoutSnapshot, SelfLoadoutFields
)
from battlestats.operations.loadout import (
    build_loadout_key, build_loadout_snapshot, normalize_equipment_attr, normalize_formation,
    normalize_snapshot
)
from battlestats.utils.exceptions import InvalidParameterError

FIELDS = SelfLoadoutFields(
    equipment="{1:20401_1:37,2:20402:12}",
    inscriptions="1002;1001;-1",
    armament_buffs="3_1.5;3_2;7_4",
    formation=3
)


def test_empty_loadout_key():
    for granularity in ("exact", "normalized"):
        snapshot = build_loadout_snapshot(SelfLoadoutFields(), granularity)
        assert build_loadout_key(snapshot) == "eq:|arm:|ins:|fm:none"


def test_exact_key_keeps_values():
    snapshot = build_loadout_snapshot(FIELDS, "exact")
    assert build_loadout_key(snapshot) == "eq:1:20401_1:37|2:20402_0:12|arm:3_3.5|7_4|ins:1001|1002|fm:3"


def test_normalized_key_buckets_attributes_and_drops_values():
    snapshot = build_loadout_snapshot(FIELDS, "normalized")
    assert build_loadout_key(snapshot) == "eq:1:20401_1:30|2:20402_0:10|arm:3|7|ins:1001|1002|fm:3"


def test_near_identical_builds_share_a_normalized_key():
    other = SelfLoadoutFields(
        equipment="2:20402:19,1:20401_1:33",
        inscriptions="1001;1002",
        armament_buffs="7_1;3_9",
        formation=3
    )
    assert build_loadout_key(build_loadout_snapshot(other, "normalized")) == \
        build_loadout_key(build_loadout_snapshot(FIELDS, "normalized"))
    assert build_loadout_key(build_loadout_snapshot(other, "exact")) != \
        build_loadout_key(build_loadout_snapshot(FIELDS, "exact"))


@pytest.mark.parametrize("attr, tier", [(None, None), (5, 0), (0, 0), (-12, 0), (10, 10), (37, 30), (99.9, 90)])
def test_attribute_tiers(attr, tier):
    assert normalize_equipment_attr(attr) == tier


@pytest.mark.parametrize("value, formation", [(3, 3), (0, None), (None, None), ("3", None), (True, None), (float("nan"), None)])
def test_formation_normalization(value, formation):
    assert normalize_formation(value) == formation


def test_key_ignores_element_order():
    snapshot = LoadoutSnapshot(
        equipment=(EquipmentToken(1, 100, 1, 30), EquipmentToken(2, 200, None, 10)),
        armaments=(LoadoutArmament(3, 1.5), LoadoutArmament(7, 4)),
        inscriptions=(1001, 1002),
        formation=5
    )
    shuffled = LoadoutSnapshot(
        equipment=tuple(reversed(snapshot.equipment)),
        armaments=tuple(reversed(snapshot.armaments)),
        inscriptions=tuple(reversed(snapshot.inscriptions)),
        formation=5
    )
    assert build_loadout_key(snapshot) == build_loadout_key(shuffled)


@pytest.mark.parametrize("granularity", ["exact", "normalized"])
@pytest.mark.parametrize("first, second", [
    (SelfLoadoutFields(equipment="1:100_1:30,1:200_1:30"), SelfLoadoutFields(equipment="1:200_1:30,1:100_1:30")),
    (SelfLoadoutFields(armament_buffs="3_0.1;3_0.2;3_0.3"), SelfLoadoutFields(armament_buffs="3_0.3;3_0.2;3_0.1")),
])
def test_key_ignores_raw_token_order(first, second, granularity):
    assert build_loadout_key(build_loadout_snapshot(first, granularity)) == \
        build_loadout_key(build_loadout_snapshot(second, granularity))


def test_repeated_slot_and_float_buffs_key():
    fields = SelfLoadoutFields(equipment="1:200_1:30,1:100_1:30", armament_buffs="3_0.3;3_0.2;3_0.1")
    assert build_loadout_key(build_loadout_snapshot(fields, "exact")) == "eq:1:100_1:30|arm:3_0.6|ins:|fm:none"


def test_normalization_is_a_fixed_point():
    exact = build_loadout_snapshot(FIELDS, "exact")
    normalized = build_loadout_snapshot(FIELDS, "normalized")

    assert normalize_snapshot(exact) == normalized
    assert normalize_snapshot(normalized) == normalized
    assert build_loadout_key(normalize_snapshot(normalized)) == build_loadout_key(normalized)


def test_snapshot_dict_shape():
    data = build_loadout_snapshot(FIELDS, "normalized").to_dict()
    assert data["armaments"] == [{"id": 3}, {"id": 7}]
    assert data["inscriptions"] == [1001, 1002]
    assert data["formation"] == 3


@pytest.mark.parametrize("granularity", ["overall", "EXACT", "", None])
def test_unsupported_granularity_is_rejected(granularity):
    with pytest.raises(InvalidParameterError):
        build_loadout_snapshot(FIELDS, granularity)
