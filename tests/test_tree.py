"""Tests for `sitesurvey.tree`: lookup, structural edits, removal and count rollups."""

import logging

import pytest

from sitesurvey import tree as infra
from sitesurvey.config import ValidationConfig
from sitesurvey.exceptions import InvalidParentError, NotFoundError, ValidationError
from sitesurvey.model import (
    Address,
    Building,
    BuildingConnection,
    Device,
    DeviceType,
    FiberTermination,
    Floor,
    InfrastructureTree,
    ItemType,
    LinkType,
    Rack,
    RackConnection,
    Room,
    RoomType,
)

# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def test_resolve_each_kind(sample_tree):
    assert infra.resolve(sample_tree, Address.for_building(1)).name == "Warehouse"
    assert infra.resolve(sample_tree, Address.for_central_rack(0)).name == "MDF"
    assert infra.resolve(sample_tree, Address.for_floor(0, 1)).name == "First"
    assert infra.resolve(sample_tree, Address.for_floor_rack(0, 0, 0)).name == "IDF-1"
    assert infra.resolve(sample_tree, Address.for_room(0, 0, 1)).name == "Server"
    assert infra.resolve(sample_tree, Address.for_connection(0)).distance == 120


@pytest.mark.parametrize(
    "address",
    [
        Address.for_building(5),
        Address.for_central_rack(1),
        Address.for_floor(0, 9),
        Address.for_floor_rack(0, 1, 0),
        Address.for_room(1, 0, 3),
        Address.for_connection(2),
    ],
)
def test_resolve_stale_address_returns_none(sample_tree, address):
    """Out-of-range indices (and a missing central rack) resolve to None."""
    assert infra.resolve(sample_tree, address) is None


def test_iter_addresses_tree_order(sample_tree):
    addresses = [a for a, _ in infra.iter_addresses(sample_tree)]
    assert addresses == [
        Address.for_building(0),
        Address.for_central_rack(0),
        Address.for_floor(0, 0),
        Address.for_floor_rack(0, 0, 0),
        Address.for_room(0, 0, 0),
        Address.for_room(0, 0, 1),
        Address.for_floor(0, 1),
        Address.for_room(0, 1, 0),
        Address.for_building(1),
        Address.for_floor(1, 0),
        Address.for_room(1, 0, 0),
        Address.for_connection(0),
    ]
    for address, entity in infra.iter_addresses(sample_tree):
        assert infra.resolve(sample_tree, address) is entity


def test_address_of(sample_tree):
    room = sample_tree.buildings[0].floors[1].rooms[0]
    assert infra.address_of(sample_tree, room) == Address.for_room(0, 1, 0)
    assert infra.address_of(sample_tree, Room(name="elsewhere")) is None


def test_display_name_and_context_path(sample_tree):
    assert infra.display_name(sample_tree, Address.for_central_rack(0)) == "MDF"
    assert (
        infra.context_path(sample_tree, Address.for_room(0, 0, 1))
        == "HQ → Ground → Server"
    )
    assert infra.context_path(sample_tree, Address.for_central_rack(0)) == "HQ → MDF"
    assert (
        infra.context_path(sample_tree, Address.for_floor_rack(0, 0, 0))
        == "HQ → Ground → IDF-1"
    )
    assert infra.context_path(sample_tree, Address.for_connection(0)) == "Connection 1"


def test_context_path_falls_back_to_placeholders(sample_tree):
    """Unresolvable levels are shown with one-based placeholders."""
    assert (
        infra.context_path(sample_tree, Address.for_room(3, 1, 4))
        == "Building 4 → Floor 2 → Room 5"
    )
    assert infra.display_name(sample_tree, Address.for_central_rack(1)) == "Central Rack"


# ---------------------------------------------------------------------------
# Inserts
# ---------------------------------------------------------------------------


def test_insert_does_not_mutate_input(sample_tree):
    before = sample_tree.to_dict()
    new_tree = infra.insert_room(sample_tree, Address.for_floor(0, 1), Room(name="Lab"))
    assert sample_tree.to_dict() == before
    assert [r.name for r in new_tree.buildings[0].floors[1].rooms] == ["Meeting", "Lab"]


def test_insert_each_level():
    tree = InfrastructureTree()
    tree = infra.insert_building(tree, Building(name="HQ"))
    tree = infra.insert_floor(tree, Address.for_building(0), Floor(name="G"))
    tree = infra.insert_rack(tree, Address.for_building(0), Rack(name="MDF"))
    tree = infra.insert_rack(tree, Address.for_floor(0, 0), Rack(name="IDF"))
    tree = infra.insert_room(tree, Address.for_floor(0, 0), Room(name="R1"))
    tree = infra.insert_device(tree, Address.for_room(0, 0, 0), Device(name="AP"))
    tree = infra.insert_device(tree, Address.for_central_rack(0), Device(name="Core"))

    building = tree.buildings[0]
    assert building.central_rack.name == "MDF"
    assert building.central_rack.devices[0].name == "Core"
    assert building.floors[0].racks[0].name == "IDF"
    assert building.floors[0].rooms[0].devices[0].name == "AP"


def test_insert_reuses_entity_copies_with_fresh_ids(sample_tree):
    """Inserting the same entity twice yields two elements with distinct ids."""
    room = Room(name="Twin")
    tree = infra.insert_room(sample_tree, Address.for_floor(0, 1), room)
    tree = infra.insert_room(tree, Address.for_floor(0, 1), room)
    first, second = tree.buildings[0].floors[1].rooms[1:]
    assert first.id != second.id
    assert first.id == room.id


@pytest.mark.parametrize(
    "call",
    [
        lambda t: infra.insert_floor(t, Address.for_floor(0, 0), Floor(name="F")),
        lambda t: infra.insert_room(t, Address.for_building(0), Room(name="R")),
        lambda t: infra.insert_rack(t, Address.for_room(0, 0, 0), Rack(name="R")),
        lambda t: infra.insert_device(t, Address.for_floor(0, 0), Device(name="D")),
    ],
)
def test_insert_under_wrong_kind_raises_invalid_parent(sample_tree, call):
    with pytest.raises(InvalidParentError):
        call(sample_tree)


def test_insert_under_missing_parent_raises_not_found(sample_tree):
    with pytest.raises(NotFoundError):
        infra.insert_room(sample_tree, Address.for_floor(0, 7), Room(name="R"))
    with pytest.raises(NotFoundError):
        infra.insert_device(sample_tree, Address.for_central_rack(1), Device(name="D"))


def test_second_central_rack_rejected(sample_tree):
    with pytest.raises(ValidationError):
        infra.insert_rack(sample_tree, Address.for_building(0), Rack(name="MDF-2"))


def test_insert_invalid_entity_rejected(sample_tree):
    with pytest.raises(ValidationError) as exc:
        infra.insert_room(sample_tree, Address.for_floor(0, 0), Room(name=""))
    assert exc.value.field == "name"


def test_insert_connection_checks_ends(sample_tree):
    """A missing end building is not found; a negative index is invalid."""
    with pytest.raises(NotFoundError) as exc:
        infra.insert_connection(
            sample_tree, BuildingConnection(from_building=0, to_building=5)
        )
    assert exc.value.target == Address.for_building(5)
    with pytest.raises(ValidationError):
        infra.insert_connection(
            sample_tree, BuildingConnection(from_building=-1, to_building=0)
        )
    with pytest.raises(NotFoundError):
        infra.update(sample_tree, Address.for_connection(0), {"to_building": 9})


def test_insert_connection_duplicates_allowed_by_default(sample_tree):
    """Parallel and reverse links are independent unless deduplication is on."""
    reverse = BuildingConnection(from_building=1, to_building=0)
    tree = infra.insert_connection(sample_tree, reverse)
    assert len(tree.connections) == 2

    strict = ValidationConfig(dedupe_building_connections=True)
    with pytest.raises(ValidationError):
        infra.insert_connection(sample_tree, reverse, strict)

    other_medium = BuildingConnection(
        from_building=1, to_building=0, connection_type=LinkType.WIRELESS
    )
    assert len(infra.insert_connection(sample_tree, other_medium, strict).connections) == 2


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


def test_update_patches_fields_and_keeps_children(sample_tree):
    address = Address.for_room(0, 0, 0)
    tree = infra.update(sample_tree, address, {"name": "Open office", "outlets": 6})
    room = infra.resolve(tree, address)
    assert room.name == "Open office"
    assert room.outlets == 6
    assert room.id == infra.resolve(sample_tree, address).id
    assert infra.resolve(sample_tree, address).name == "Office"


def test_update_coerces_enum_strings(sample_tree):
    address = Address.for_room(0, 1, 0)
    tree = infra.update(
        sample_tree, address, {"type": "meeting_room", "connection_type": "CENTRAL_RACK"}
    )
    room = infra.resolve(tree, address)
    assert room.type == RoomType.MEETING_ROOM
    assert room.connection_type == RackConnection.CENTRAL_RACK

    with pytest.raises(ValidationError):
        infra.update(sample_tree, address, {"type": "ballroom"})


def test_update_rejects_unknown_and_structural_fields(sample_tree):
    with pytest.raises(ValidationError):
        infra.update(sample_tree, Address.for_building(0), {"colour": "red"})
    with pytest.raises(ValidationError):
        infra.update(sample_tree, Address.for_building(0), {"floors": []})


def test_update_missing_address_raises_not_found(sample_tree):
    with pytest.raises(NotFoundError):
        infra.update(sample_tree, Address.for_room(0, 0, 9), {"name": "X"})


def test_update_validates_merged_element(sample_tree):
    address = Address.for_central_rack(0)
    with pytest.raises(ValidationError):
        infra.update(
            sample_tree,
            address,
            {"fiber_terminations": [FiberTermination(total_strands=4, terminated_strands=8)]},
        )
    relaxed = ValidationConfig(strict_fiber_strands=False)
    tree = infra.update(
        sample_tree,
        address,
        {"fiber_terminations": [FiberTermination(total_strands=4, terminated_strands=8)]},
        relaxed,
    )
    assert infra.resolve(tree, address).fiber_terminations[0].terminated_strands == 8


def test_update_and_remove_device(sample_tree):
    parent = Address.for_floor_rack(0, 0, 0)
    tree = infra.update_device(sample_tree, parent, 0, {"name": "Stack", "type": "router"})
    device = infra.resolve(tree, parent).devices[0]
    assert device.name == "Stack"
    assert device.type == DeviceType.ROUTER

    tree = infra.remove_device(tree, parent, 0)
    assert infra.resolve(tree, parent).devices == []

    with pytest.raises(NotFoundError):
        infra.remove_device(tree, parent, 0)


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


def test_remove_floor_shifts_later_floors():
    """Removing floor 1 of 3 moves floor 2 (and its rooms) to index 1."""
    tree = InfrastructureTree(
        buildings=[
            Building(
                name="B",
                floors=[
                    Floor(name="F0"),
                    Floor(name="F1", rooms=[Room(name="gone")]),
                    Floor(name="F2", rooms=[Room(name="kept")], racks=[Rack(name="R")]),
                ],
            )
        ]
    )
    result = infra.remove(tree, Address.for_floor(0, 1))

    assert [f.name for f in result.tree.buildings[0].floors] == ["F0", "F2"]
    assert result.removed.name == "F1"
    assert result.mapping == {
        Address.for_floor(0, 1): None,
        Address.for_room(0, 1, 0): None,
        Address.for_floor(0, 2): Address.for_floor(0, 1),
        Address.for_floor_rack(0, 2, 0): Address.for_floor_rack(0, 1, 0),
        Address.for_room(0, 2, 0): Address.for_room(0, 1, 0),
    }
    assert len(tree.buildings[0].floors) == 3


def test_remove_building_drops_and_renumbers_connections(caplog):
    caplog.set_level(logging.INFO, logger="sitesurvey")
    tree = InfrastructureTree(
        buildings=[Building(name="A"), Building(name="B"), Building(name="C")],
        connections=[
            BuildingConnection(from_building=0, to_building=1),
            BuildingConnection(from_building=1, to_building=2),
            BuildingConnection(from_building=2, to_building=0),
        ],
    )
    result = infra.remove(tree, Address.for_building(1))

    assert [b.name for b in result.tree.buildings] == ["A", "C"]
    assert [(c.from_building, c.to_building) for c in result.tree.connections] == [(1, 0)]
    assert result.mapping[Address.for_building(2)] == Address.for_building(1)
    assert result.mapping[Address.for_connection(0)] is None
    assert result.mapping[Address.for_connection(1)] is None
    assert result.mapping[Address.for_connection(2)] == Address.for_connection(0)
    assert "Removed 2 building connection(s)" in caplog.text


def test_remove_central_rack(sample_tree):
    result = infra.remove(sample_tree, Address.for_central_rack(0))
    assert result.tree.buildings[0].central_rack is None
    assert result.mapping == {Address.for_central_rack(0): None}


def test_remove_missing_raises_not_found(sample_tree):
    with pytest.raises(NotFoundError):
        infra.remove(sample_tree, Address.for_central_rack(1))


# ---------------------------------------------------------------------------
# Count rollups
# ---------------------------------------------------------------------------


def test_aggregate_totals(sample_tree):
    stats = infra.aggregate_totals(sample_tree)
    assert stats.buildings == 2
    assert stats.floors == 3
    assert stats.rooms == 4
    assert stats.outlets == 12 + 2 + 6 + 2
    assert stats.racks == 2
    assert stats.devices == 1 + 1 + 3
    assert stats.cable_terminations == 24
    assert stats.fiber_strands == 12
    assert stats.terminated_fiber_strands == 6
    assert stats.percent_fiber_terminated == pytest.approx(50.0)


def test_typical_room_multiplies_outlets_not_rooms():
    """A typical room with 4 outlets standing for 3 rooms contributes 12 outlets."""
    floor = Floor(
        name="F",
        rooms=[Room(name="R", outlets=4, is_typical_room=True, identical_rooms_count=3)],
    )
    stats = infra.floor_totals(floor)
    assert stats.outlets == 12
    assert stats.rooms == 1


def test_count_stored_but_not_typical_is_ignored():
    floor = Floor(
        name="F",
        rooms=[Room(name="R", outlets=4, is_typical_room=False, identical_rooms_count=3)],
    )
    assert infra.floor_totals(floor).outlets == 4


def test_equipment_devices_excluded_from_counts():
    room = Room(
        name="R",
        devices=[Device(name="AP"), Device(name="Phone", item_type=ItemType.PRODUCT)],
    )
    assert infra.room_totals(room).devices == 1


def test_empty_tree_totals_are_zero():
    stats = infra.aggregate_totals(InfrastructureTree())
    assert stats.to_dict() == {
        "totalBuildings": 0,
        "totalFloors": 0,
        "totalRooms": 0,
        "totalOutlets": 0,
        "totalRacks": 0,
        "totalDevices": 0,
        "totalCableTerminations": 0,
        "totalFiberStrands": 0,
        "totalTerminatedFiberStrands": 0,
    }
    assert stats.percent_fiber_terminated == 0.0


def test_totals_at_branch(sample_tree):
    assert infra.totals_at(sample_tree, Address.for_floor(0, 0)).outlets == 14
    assert infra.totals_at(sample_tree, Address.for_building(1)).rooms == 1
    assert infra.totals_at(sample_tree, Address.for_central_rack(0)).cable_terminations == 24
    with pytest.raises(ValueError):
        infra.totals_at(sample_tree, Address.for_connection(0))


def test_building_totals_sum_to_aggregate(sample_tree):
    total = infra.InfrastructureStats()
    for building in sample_tree.buildings:
        total = total + infra.building_totals(building)
    assert total == infra.aggregate_totals(sample_tree)
