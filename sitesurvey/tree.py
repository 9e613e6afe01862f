"""Operations over the infrastructure tree.

Every mutating function takes a tree snapshot and returns a new one; the
input is never modified. Positions are addressed with
:class:`~sitesurvey.model.address.Address`.

Removing an element shifts the indices of its later siblings, so addresses
captured before the removal may denote a different element afterwards.
:func:`remove` therefore reports a mapping from every affected old address to
its new address (or ``None`` when the element was deleted), which
:func:`sitesurvey.ledger.readdress` applies to equipment bindings.
"""

from __future__ import annotations

import dataclasses
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from sitesurvey.config import VALIDATION, ValidationConfig
from sitesurvey.exceptions import InvalidParentError, NotFoundError, ValidationError
from sitesurvey.logging import get_logger
from sitesurvey.model.address import Address
from sitesurvey.model.enums import (
    AddressKind,
    DeviceType,
    ItemType,
    LinkType,
    RackConnection,
    RoomType,
)
from sitesurvey.model.infrastructure import (
    Building,
    BuildingConnection,
    Device,
    Floor,
    InfrastructureTree,
    Rack,
    Room,
)
from sitesurvey.utils.ids import new_id

logger = get_logger(__name__)

Entity = Union[Building, Floor, Rack, Room, BuildingConnection]

# Display names used when an element has no name of its own.
_KIND_LABELS = {
    AddressKind.BUILDING: "Building",
    AddressKind.CENTRAL_RACK: "Central Rack",
    AddressKind.FLOOR: "Floor",
    AddressKind.FLOOR_RACK: "Floor Rack",
    AddressKind.ROOM: "Room",
    AddressKind.BUILDING_CONNECTION: "Building Connection",
}

# Child fields that structural edits must go through insert/remove for.
_STRUCTURAL_FIELDS = {"id", "floors", "central_rack", "racks", "rooms"}


def _at(items: List[Any], index: Optional[int]) -> Optional[Any]:
    if index is None or index < 0 or index >= len(items):
        return None
    return items[index]


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def resolve(tree: InfrastructureTree, address: Address) -> Optional[Entity]:
    """Return the element at ``address``, or None if any index is out of range."""
    if address.kind == AddressKind.BUILDING_CONNECTION:
        return _at(tree.connections, address.connection_index)

    building = _at(tree.buildings, address.building_index)
    if building is None:
        return None
    if address.kind == AddressKind.BUILDING:
        return building
    if address.kind == AddressKind.CENTRAL_RACK:
        return building.central_rack

    floor = _at(building.floors, address.floor_index)
    if floor is None:
        return None
    if address.kind == AddressKind.FLOOR:
        return floor
    if address.kind == AddressKind.FLOOR_RACK:
        return _at(floor.racks, address.rack_index)
    return _at(floor.rooms, address.room_index)


def iter_addresses(tree: InfrastructureTree) -> Iterator[Tuple[Address, Entity]]:
    """Yield ``(address, element)`` for every addressable element in tree order.

    Order: each building, its central rack, then per floor the floor, its
    racks and its rooms; building connections come last.
    """
    for b_idx, building in enumerate(tree.buildings):
        yield Address.for_building(b_idx), building
        if building.central_rack is not None:
            yield Address.for_central_rack(b_idx), building.central_rack
        for f_idx, floor in enumerate(building.floors):
            yield Address.for_floor(b_idx, f_idx), floor
            for r_idx, rack in enumerate(floor.racks):
                yield Address.for_floor_rack(b_idx, f_idx, r_idx), rack
            for r_idx, room in enumerate(floor.rooms):
                yield Address.for_room(b_idx, f_idx, r_idx), room
    for c_idx, connection in enumerate(tree.connections):
        yield Address.for_connection(c_idx), connection


def address_of(tree: InfrastructureTree, entity: Entity) -> Optional[Address]:
    """Return the address of ``entity`` (matched by id), or None if absent."""
    for address, candidate in iter_addresses(tree):
        if candidate is entity or candidate.id == entity.id:
            return address
    return None


def display_name(tree: InfrastructureTree, address: Address) -> str:
    """Return the element's name, falling back to a label for its kind."""
    entity = resolve(tree, address)
    if isinstance(entity, BuildingConnection):
        return entity.description or _KIND_LABELS[address.kind]
    name = getattr(entity, "name", None)
    return name or _KIND_LABELS[address.kind]


def context_path(tree: InfrastructureTree, address: Address) -> str:
    """Return a breadcrumb such as ``"HQ → Ground → Room 101"``.

    Each level uses the element's name when it resolves, else a one-based
    placeholder like ``"Floor 2"``.
    """
    if address.kind == AddressKind.BUILDING_CONNECTION:
        connection = resolve(tree, address)
        if isinstance(connection, BuildingConnection) and connection.description:
            return connection.description
        return f"Connection {address.connection_index + 1}"  # type: ignore[operator]

    def label(addr: Address, fallback: str) -> str:
        entity = resolve(tree, addr)
        return getattr(entity, "name", None) or fallback

    b_idx = address.building_index
    parts = [label(Address.for_building(b_idx), f"Building {b_idx + 1}")]  # type: ignore[operator]
    if address.kind == AddressKind.CENTRAL_RACK:
        parts.append(label(address, "Central Rack"))
    if address.floor_index is not None:
        parts.append(
            label(
                Address.for_floor(b_idx, address.floor_index),  # type: ignore[arg-type]
                f"Floor {address.floor_index + 1}",
            )
        )
    if address.kind == AddressKind.FLOOR_RACK:
        parts.append(label(address, f"Rack {address.rack_index + 1}"))  # type: ignore[operator]
    if address.kind == AddressKind.ROOM:
        parts.append(label(address, f"Room {address.room_index + 1}"))  # type: ignore[operator]
    return " → ".join(parts)


# ---------------------------------------------------------------------------
# Structural inserts
# ---------------------------------------------------------------------------


def _resolve_for_edit(tree: InfrastructureTree, address: Address) -> Entity:
    entity = resolve(tree, address)
    if entity is None:
        raise NotFoundError(address, f"No element at {address}")
    return entity


def _fresh_copy(tree: InfrastructureTree, entity: Entity) -> Entity:
    """Deep-copy ``entity``, re-keying it if its id is already used in ``tree``."""
    copied = deepcopy(entity)
    if any(existing.id == copied.id for _, existing in iter_addresses(tree)):
        copied.id = new_id()
    return copied


def _expect_parent(parent: Address, allowed: Tuple[AddressKind, ...], child: str) -> None:
    if parent.kind not in allowed:
        kinds = ", ".join(k.value for k in allowed)
        raise InvalidParentError(
            f"Cannot insert {child} under {parent.kind.value}; expected one of: {kinds}"
        )


def insert_building(
    tree: InfrastructureTree,
    building: Building,
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Append a building to the survey."""
    building.validate(config)
    new_tree = deepcopy(tree)
    new_tree.buildings.append(_fresh_copy(new_tree, building))
    return new_tree


def insert_floor(
    tree: InfrastructureTree,
    parent: Address,
    floor: Floor,
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Append a floor to the building at ``parent``.

    Raises:
        InvalidParentError: If ``parent`` is not a building address.
        NotFoundError: If the building does not exist.
    """
    _expect_parent(parent, (AddressKind.BUILDING,), "floor")
    floor.validate(config)
    new_tree = deepcopy(tree)
    building = _resolve_for_edit(new_tree, parent)
    building.floors.append(_fresh_copy(new_tree, floor))  # type: ignore[union-attr]
    return new_tree


def insert_rack(
    tree: InfrastructureTree,
    parent: Address,
    rack: Rack,
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Add a rack under a building (central rack) or a floor (floor rack).

    Raises:
        InvalidParentError: If ``parent`` is neither a building nor a floor.
        NotFoundError: If the parent does not exist.
        ValidationError: If the building already has a central rack.
    """
    _expect_parent(parent, (AddressKind.BUILDING, AddressKind.FLOOR), "rack")
    rack.validate(config)
    new_tree = deepcopy(tree)
    container = _resolve_for_edit(new_tree, parent)
    if isinstance(container, Building):
        if container.central_rack is not None:
            raise ValidationError(
                f"Building '{container.name}' already has a central rack",
                field="centralRack",
            )
        container.central_rack = _fresh_copy(new_tree, rack)
    else:
        container.racks.append(_fresh_copy(new_tree, rack))  # type: ignore[union-attr]
    return new_tree


def insert_room(
    tree: InfrastructureTree,
    parent: Address,
    room: Room,
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Append a room to the floor at ``parent``.

    Raises:
        InvalidParentError: If ``parent`` is not a floor address.
        NotFoundError: If the floor does not exist.
    """
    _expect_parent(parent, (AddressKind.FLOOR,), "room")
    room.validate(config)
    new_tree = deepcopy(tree)
    floor = _resolve_for_edit(new_tree, parent)
    floor.rooms.append(_fresh_copy(new_tree, room))  # type: ignore[union-attr]
    return new_tree


def insert_device(
    tree: InfrastructureTree,
    parent: Address,
    device: Device,
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Append a device to the rack or room at ``parent``.

    Raises:
        InvalidParentError: If ``parent`` is not a rack or room address.
        NotFoundError: If the parent does not exist.
    """
    _expect_parent(
        parent,
        (AddressKind.CENTRAL_RACK, AddressKind.FLOOR_RACK, AddressKind.ROOM),
        "device",
    )
    device.validate(config)
    new_tree = deepcopy(tree)
    holder = _resolve_for_edit(new_tree, parent)
    holder.devices.append(deepcopy(device))  # type: ignore[union-attr]
    return new_tree


def _check_connection_ends(tree: InfrastructureTree, connection: BuildingConnection) -> None:
    for end in (connection.from_building, connection.to_building):
        if end >= len(tree.buildings):
            raise NotFoundError(
                Address.for_building(end),
                f"Building connection references missing building index {end}",
            )


def insert_connection(
    tree: InfrastructureTree,
    connection: BuildingConnection,
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Append a building connection.

    Duplicate or reverse connections are accepted as independent links unless
    ``config.dedupe_building_connections`` is set, in which case a duplicate is
    rejected.

    Raises:
        ValidationError: On a negative end or distance, or on a duplicate
            when deduplication is enabled.
        NotFoundError: If an end references a missing building.
    """
    config = config or VALIDATION
    connection.validate(config)
    _check_connection_ends(tree, connection)
    if config.dedupe_building_connections:
        key = (
            connection.pair(config.symmetric_connection_dedupe),
            connection.connection_type,
        )
        for existing in tree.connections:
            if (
                existing.pair(config.symmetric_connection_dedupe),
                existing.connection_type,
            ) == key:
                raise ValidationError(
                    f"Duplicate {connection.connection_type.value} connection "
                    f"between buildings {key[0]}"
                )
    new_tree = deepcopy(tree)
    new_tree.connections.append(_fresh_copy(new_tree, connection))
    return new_tree


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


_ENUM_FIELDS: Dict[type, Dict[str, Any]] = {
    Room: {"type": RoomType, "connection_type": RackConnection},
    Device: {"type": DeviceType, "item_type": ItemType},
    BuildingConnection: {"connection_type": LinkType},
}


def _apply_patch(entity: Any, patch: Mapping[str, Any]) -> Any:
    names = {f.name for f in dataclasses.fields(entity)}
    unknown = set(patch) - names
    if unknown:
        raise ValidationError(
            f"Unknown field(s) for {type(entity).__name__}: {', '.join(sorted(unknown))}"
        )
    structural = set(patch) & _STRUCTURAL_FIELDS
    if structural:
        raise ValidationError(
            f"Field(s) {', '.join(sorted(structural))} cannot be patched; "
            "use insert/remove instead"
        )
    values = dict(patch)
    for name, enum_cls in _ENUM_FIELDS.get(type(entity), {}).items():
        if values.get(name) is not None:
            try:
                values[name] = enum_cls.from_string(values[name])
            except ValueError as exc:
                raise ValidationError(str(exc), field=name) from exc
    return dataclasses.replace(entity, **values)


def update(
    tree: InfrastructureTree,
    address: Address,
    patch: Mapping[str, Any],
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Replace the element at ``address`` with a copy merged with ``patch``.

    ``patch`` maps attribute names to new values. Identity and child
    collections (``id``, ``floors``, ``racks``, ``rooms``, ``central_rack``)
    are not patchable; devices and terminations are.

    Raises:
        NotFoundError: If ``address`` does not resolve.
        ValidationError: On unknown fields or an invalid merged element.
    """
    current = _resolve_for_edit(tree, address)
    merged = _apply_patch(current, patch)
    merged.validate(config)
    if isinstance(merged, BuildingConnection):
        _check_connection_ends(tree, merged)

    new_tree = deepcopy(tree)
    merged = deepcopy(merged)
    if address.kind == AddressKind.BUILDING_CONNECTION:
        new_tree.connections[address.connection_index] = merged  # type: ignore[index]
        return new_tree

    building = new_tree.buildings[address.building_index]  # type: ignore[index]
    if address.kind == AddressKind.BUILDING:
        new_tree.buildings[address.building_index] = merged  # type: ignore[index]
    elif address.kind == AddressKind.CENTRAL_RACK:
        building.central_rack = merged
    else:
        floor = building.floors[address.floor_index]  # type: ignore[index]
        if address.kind == AddressKind.FLOOR:
            building.floors[address.floor_index] = merged  # type: ignore[index]
        elif address.kind == AddressKind.FLOOR_RACK:
            floor.racks[address.rack_index] = merged  # type: ignore[index]
        else:
            floor.rooms[address.room_index] = merged  # type: ignore[index]
    return new_tree


def _device_holder(tree: InfrastructureTree, parent: Address) -> Union[Rack, Room]:
    _expect_parent(
        parent,
        (AddressKind.CENTRAL_RACK, AddressKind.FLOOR_RACK, AddressKind.ROOM),
        "device",
    )
    return _resolve_for_edit(tree, parent)  # type: ignore[return-value]


def update_device(
    tree: InfrastructureTree,
    parent: Address,
    device_index: int,
    patch: Mapping[str, Any],
    config: Optional[ValidationConfig] = None,
) -> InfrastructureTree:
    """Patch the device at ``device_index`` on the rack or room at ``parent``.

    Raises:
        NotFoundError: If the parent or the device index does not resolve.
    """
    new_tree = deepcopy(tree)
    holder = _device_holder(new_tree, parent)
    device = _at(holder.devices, device_index)
    if device is None:
        raise NotFoundError(
            (parent, device_index), f"No device {device_index} at {parent}"
        )
    merged = _apply_patch(device, patch)
    merged.validate(config)
    holder.devices[device_index] = merged
    return new_tree


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


@dataclass
class RemovalResult:
    """Outcome of a structural removal.

    Attributes:
        tree: The tree after removal.
        removed: The element that was removed (with its subtree).
        mapping: Old address -> new address for every element whose address
            changed; elements deleted with the subtree map to None.
    """

    tree: InfrastructureTree
    removed: Entity
    mapping: Dict[Address, Optional[Address]] = field(default_factory=dict)


def remove(tree: InfrastructureTree, address: Address) -> RemovalResult:
    """Delete the element at ``address`` together with its subtree.

    Removing a building also removes the building connections touching it and
    renumbers the building indices stored in the remaining connections.

    Raises:
        NotFoundError: If ``address`` does not resolve.
    """
    removed = _resolve_for_edit(tree, address)
    before = list(iter_addresses(tree))

    # The memo maps id(original) -> copy, letting us follow each element
    # from the old tree into the new one by identity.
    memo: Dict[int, Any] = {}
    new_tree = deepcopy(tree, memo)
    if address.kind == AddressKind.BUILDING_CONNECTION:
        del new_tree.connections[address.connection_index]  # type: ignore[arg-type]
    elif address.kind == AddressKind.BUILDING:
        b_idx = address.building_index
        del new_tree.buildings[b_idx]  # type: ignore[arg-type]
        kept: List[BuildingConnection] = []
        for connection in new_tree.connections:
            if b_idx in (connection.from_building, connection.to_building):
                continue
            if connection.from_building > b_idx:  # type: ignore[operator]
                connection.from_building -= 1
            if connection.to_building > b_idx:  # type: ignore[operator]
                connection.to_building -= 1
            kept.append(connection)
        dropped = len(new_tree.connections) - len(kept)
        if dropped:
            logger.info(
                "Removed %d building connection(s) attached to building %d",
                dropped,
                b_idx,
            )
        new_tree.connections = kept
    elif address.kind == AddressKind.CENTRAL_RACK:
        new_tree.buildings[address.building_index].central_rack = None  # type: ignore[index]
    else:
        building = new_tree.buildings[address.building_index]  # type: ignore[index]
        if address.kind == AddressKind.FLOOR:
            del building.floors[address.floor_index]  # type: ignore[arg-type]
        else:
            floor = building.floors[address.floor_index]  # type: ignore[index]
            if address.kind == AddressKind.FLOOR_RACK:
                del floor.racks[address.rack_index]  # type: ignore[arg-type]
            else:
                del floor.rooms[address.room_index]  # type: ignore[arg-type]

    after = {id(entity): addr for addr, entity in iter_addresses(new_tree)}
    mapping: Dict[Address, Optional[Address]] = {}
    for old_address, entity in before:
        new_address = after.get(id(memo[id(entity)]))
        if new_address != old_address:
            mapping[old_address] = new_address

    logger.debug(
        "Removed %s; %d address(es) shifted or deleted", address, len(mapping)
    )
    return RemovalResult(tree=new_tree, removed=removed, mapping=mapping)


def remove_device(
    tree: InfrastructureTree, parent: Address, device_index: int
) -> InfrastructureTree:
    """Delete the device at ``device_index`` from the rack or room at ``parent``.

    Raises:
        NotFoundError: If the parent or the device index does not resolve.
    """
    new_tree = deepcopy(tree)
    holder = _device_holder(new_tree, parent)
    if _at(holder.devices, device_index) is None:
        raise NotFoundError(
            (parent, device_index), f"No device {device_index} at {parent}"
        )
    del holder.devices[device_index]
    return new_tree


# ---------------------------------------------------------------------------
# Count rollups
# ---------------------------------------------------------------------------


@dataclass
class InfrastructureStats:
    """Count rollup over part or all of the tree.

    Outlets and devices of typical rooms are multiplied by the room's
    identical-rooms count; room counts are not. Device counts exclude devices
    created from BOM equipment.
    """

    buildings: int = 0
    floors: int = 0
    rooms: int = 0
    outlets: int = 0
    racks: int = 0
    devices: int = 0
    cable_terminations: int = 0
    fiber_strands: int = 0
    terminated_fiber_strands: int = 0

    def __add__(self, other: InfrastructureStats) -> InfrastructureStats:
        return InfrastructureStats(
            **{
                f.name: getattr(self, f.name) + getattr(other, f.name)
                for f in dataclasses.fields(self)
            }
        )

    @property
    def percent_fiber_terminated(self) -> float:
        if not self.fiber_strands:
            return 0.0
        return self.terminated_fiber_strands / self.fiber_strands * 100.0

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalBuildings": self.buildings,
            "totalFloors": self.floors,
            "totalRooms": self.rooms,
            "totalOutlets": self.outlets,
            "totalRacks": self.racks,
            "totalDevices": self.devices,
            "totalCableTerminations": self.cable_terminations,
            "totalFiberStrands": self.fiber_strands,
            "totalTerminatedFiberStrands": self.terminated_fiber_strands,
        }


def _infrastructure_devices(devices: List[Device]) -> int:
    return sum(1 for device in devices if not device.is_equipment)


def rack_totals(rack: Rack) -> InfrastructureStats:
    """Counts contributed by one rack (itself, its terminations and devices)."""
    return InfrastructureStats(
        racks=1,
        devices=_infrastructure_devices(rack.devices),
        cable_terminations=sum(c.count for c in rack.cable_terminations),
        fiber_strands=sum(f.total_strands for f in rack.fiber_terminations),
        terminated_fiber_strands=sum(
            f.terminated_strands for f in rack.fiber_terminations
        ),
    )


def room_totals(room: Room) -> InfrastructureStats:
    """Counts contributed by one room, with the typical-room multiplier applied."""
    multiplier = room.multiplier
    return InfrastructureStats(
        rooms=1,
        outlets=room.outlets * multiplier,
        devices=_infrastructure_devices(room.devices) * multiplier,
    )


def floor_totals(floor: Floor) -> InfrastructureStats:
    """Counts for one floor: the floor itself, its racks and its rooms."""
    stats = InfrastructureStats(floors=1)
    for rack in floor.racks:
        stats = stats + rack_totals(rack)
    for room in floor.rooms:
        stats = stats + room_totals(room)
    return stats


def building_totals(building: Building) -> InfrastructureStats:
    """Counts for one building including its central rack and floors."""
    stats = InfrastructureStats(buildings=1)
    if building.central_rack is not None:
        stats = stats + rack_totals(building.central_rack)
    for floor in building.floors:
        stats = stats + floor_totals(floor)
    return stats


def aggregate_totals(tree: InfrastructureTree) -> InfrastructureStats:
    """Counts for the whole survey."""
    stats = InfrastructureStats()
    for building in tree.buildings:
        stats = stats + building_totals(building)
    return stats


def totals_at(tree: InfrastructureTree, address: Address) -> InfrastructureStats:
    """Counts for the branch rooted at ``address``.

    Raises:
        NotFoundError: If ``address`` does not resolve.
        ValueError: For building-connection addresses, which have no branch.
    """
    entity = _resolve_for_edit(tree, address)
    if isinstance(entity, Building):
        return building_totals(entity)
    if isinstance(entity, Floor):
        return floor_totals(entity)
    if isinstance(entity, Rack):
        return rack_totals(entity)
    if isinstance(entity, Room):
        return room_totals(entity)
    raise ValueError(f"No count rollup for {address.kind.value} addresses")
