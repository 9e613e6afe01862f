"""Hierarchical addresses of infrastructure elements.

An :class:`Address` names a position in the survey tree by tag plus indices:

    building(b) | centralRack(b) | floor(b, f) | floorRack(b, f, r)
    | room(b, f, r) | buildingConnection(c)

Addresses are frozen value objects. Equality and hashing use every field, so
addresses work as dictionary keys and compare structurally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from sitesurvey.model.enums import AddressKind

# Index fields each kind must carry, in path order.
_REQUIRED_FIELDS: Dict[AddressKind, Tuple[str, ...]] = {
    AddressKind.BUILDING: ("building_index",),
    AddressKind.CENTRAL_RACK: ("building_index",),
    AddressKind.FLOOR: ("building_index", "floor_index"),
    AddressKind.FLOOR_RACK: ("building_index", "floor_index", "rack_index"),
    AddressKind.ROOM: ("building_index", "floor_index", "room_index"),
    AddressKind.BUILDING_CONNECTION: ("connection_index",),
}

_INDEX_FIELDS = (
    "building_index",
    "floor_index",
    "rack_index",
    "room_index",
    "connection_index",
)

# Persisted (camelCase) spelling of each index field.
_WIRE_NAMES = {
    "building_index": "buildingIndex",
    "floor_index": "floorIndex",
    "rack_index": "rackIndex",
    "room_index": "roomIndex",
    "connection_index": "connectionIndex",
}

_KIND_ORDER = {kind: pos for pos, kind in enumerate(_REQUIRED_FIELDS)}


@dataclass(frozen=True)
class Address:
    """Location of a building, rack, floor, room or building connection.

    Use the ``for_*`` constructors rather than building instances directly.

    Attributes:
        kind: Tag selecting which indices are meaningful.
        building_index: Position of the building in the survey.
        floor_index: Position of the floor in its building.
        rack_index: Position of the floor rack on its floor.
        room_index: Position of the room on its floor.
        connection_index: Position of the building connection in the survey.
    """

    kind: AddressKind
    building_index: Optional[int] = None
    floor_index: Optional[int] = None
    rack_index: Optional[int] = None
    room_index: Optional[int] = None
    connection_index: Optional[int] = None

    def __post_init__(self) -> None:
        kind = AddressKind.from_string(self.kind)
        object.__setattr__(self, "kind", kind)
        required = _REQUIRED_FIELDS[kind]
        for name in _INDEX_FIELDS:
            value = getattr(self, name)
            if name in required:
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValueError(f"{kind.value} address requires integer {name}")
                if value < 0:
                    raise ValueError(f"{name} must be non-negative, got {value}")
            elif value is not None:
                raise ValueError(f"{kind.value} address does not take {name}")

    # ---- Constructors -----------------------------------------------------
    @classmethod
    def for_building(cls, building_index: int) -> Address:
        return cls(AddressKind.BUILDING, building_index=building_index)

    @classmethod
    def for_central_rack(cls, building_index: int) -> Address:
        return cls(AddressKind.CENTRAL_RACK, building_index=building_index)

    @classmethod
    def for_floor(cls, building_index: int, floor_index: int) -> Address:
        return cls(
            AddressKind.FLOOR, building_index=building_index, floor_index=floor_index
        )

    @classmethod
    def for_floor_rack(
        cls, building_index: int, floor_index: int, rack_index: int
    ) -> Address:
        return cls(
            AddressKind.FLOOR_RACK,
            building_index=building_index,
            floor_index=floor_index,
            rack_index=rack_index,
        )

    @classmethod
    def for_room(cls, building_index: int, floor_index: int, room_index: int) -> Address:
        return cls(
            AddressKind.ROOM,
            building_index=building_index,
            floor_index=floor_index,
            room_index=room_index,
        )

    @classmethod
    def for_connection(cls, connection_index: int) -> Address:
        return cls(AddressKind.BUILDING_CONNECTION, connection_index=connection_index)

    # ---- Structure --------------------------------------------------------
    @property
    def indices(self) -> Tuple[int, ...]:
        """Index path in the order required by this address's kind."""
        return tuple(getattr(self, name) for name in _REQUIRED_FIELDS[self.kind])

    @property
    def is_rack(self) -> bool:
        return self.kind in (AddressKind.CENTRAL_RACK, AddressKind.FLOOR_RACK)

    def parent(self) -> Optional[Address]:
        """Return the address of the enclosing container, if any.

        Central racks and floors belong to their building; floor racks and
        rooms belong to their floor. Buildings and building connections are
        top-level.
        """
        if self.kind in (AddressKind.CENTRAL_RACK, AddressKind.FLOOR):
            return Address.for_building(self.building_index)  # type: ignore[arg-type]
        if self.kind in (AddressKind.FLOOR_RACK, AddressKind.ROOM):
            return Address.for_floor(self.building_index, self.floor_index)  # type: ignore[arg-type]
        return None

    def contains(self, other: Address) -> bool:
        """Return True if ``other`` is this address or lies beneath it."""
        node: Optional[Address] = other
        while node is not None:
            if node == self:
                return True
            node = node.parent()
        return False

    def replace_index(self, name: str, value: int) -> Address:
        """Return a copy with one index field replaced."""
        fields = {f: getattr(self, f) for f in _INDEX_FIELDS}
        fields[name] = value
        return Address(self.kind, **fields)

    def sort_key(self) -> Tuple[int, ...]:
        """Key ordering addresses by tree position, then by kind."""
        head = (
            (1, self.connection_index or 0)
            if self.kind == AddressKind.BUILDING_CONNECTION
            else (0, self.building_index or 0)
        )
        floor = -1 if self.floor_index is None else self.floor_index
        tail = (
            -1 if self.rack_index is None else self.rack_index,
            -1 if self.room_index is None else self.room_index,
        )
        return head + (floor, _KIND_ORDER[self.kind]) + tail

    # ---- Serialization ----------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Return the persisted form, e.g. ``{"type": "floor", "buildingIndex": 0, "floorIndex": 1}``."""
        data: Dict[str, Any] = {"type": self.kind.value}
        for name in _REQUIRED_FIELDS[self.kind]:
            data[_WIRE_NAMES[name]] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Address:
        """Build an address from its persisted form.

        Display-only keys stored alongside the indices (``buildingName``,
        ``rackName``, ...) are ignored, as are indices the kind does not use.

        Raises:
            ValueError: If the type is unknown or a required index is missing.
        """
        if "type" not in data:
            raise ValueError("Address requires a 'type' field")
        kind = AddressKind.from_string(data["type"])
        fields: Dict[str, Any] = {}
        for name in _REQUIRED_FIELDS[kind]:
            wire = _WIRE_NAMES[name]
            if data.get(wire) is None:
                raise ValueError(f"{kind.value} address requires '{wire}'")
            fields[name] = int(data[wire])
        return cls(kind, **fields)

    def __str__(self) -> str:
        return f"{self.kind.value}[{'/'.join(str(i) for i in self.indices)}]"
