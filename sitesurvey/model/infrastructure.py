"""Infrastructure entities of a site survey.

The tree is Building -> Floor -> {FloorRack, Room}, with an optional Central
Rack per building and Devices on racks and rooms. Building connections sit
beside the buildings at survey level. Every entity carries a durable ``id``
assigned at creation; tree positions are addressed separately with
:class:`~sitesurvey.model.address.Address`.

All classes round-trip through ``to_dict``/``from_dict`` using the camelCase
keys of the persisted survey payload.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sitesurvey.config import VALIDATION, ValidationConfig
from sitesurvey.exceptions import ValidationError
from sitesurvey.logging import get_logger
from sitesurvey.model.enums import DeviceType, ItemType, LinkType, RackConnection, RoomType
from sitesurvey.utils.ids import new_id

logger = get_logger(__name__)


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None."""
    return {k: v for k, v in data.items() if v is not None}


def _require_name(kind: str, name: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"{kind} name must not be empty", field="name")


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None or value == "" else int(value)


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None or value == "" else float(value)


@dataclass
class Device:
    """A device installed on a rack or in a room.

    Devices created from BOM line items carry ``item_type`` (and usually
    ``equipment_id``); infrastructure-only counts skip them.

    Attributes:
        name: Display name.
        type: Device category.
        brand: Manufacturer, if known.
        model: Model designation, if known.
        ip_address: Management address for network devices.
        phone_number: Extension or number for phones.
        notes: Free text.
        item_type: ``product``/``service`` for equipment-derived devices.
        equipment_id: Id of the BOM line item the device was created from.
        id: Durable identifier.
    """

    name: str
    type: DeviceType = DeviceType.OTHER
    brand: Optional[str] = None
    model: Optional[str] = None
    ip_address: Optional[str] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    item_type: Optional[ItemType] = None
    equipment_id: Optional[str] = None
    id: str = field(default_factory=new_id)

    @property
    def is_equipment(self) -> bool:
        """True if the device stands for a BOM product or service."""
        return self.item_type is not None

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        _require_name("Device", self.name)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "type": self.type.value,
                "brand": self.brand,
                "model": self.model,
                "ipAddress": self.ip_address,
                "phoneNumber": self.phone_number,
                "notes": self.notes,
                "itemType": self.item_type.value if self.item_type else None,
                "equipmentId": self.equipment_id,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Device:
        item_type = data.get("itemType")
        return cls(
            name=str(data.get("name", "")),
            type=DeviceType.from_string(data.get("type", DeviceType.OTHER.value)),
            brand=data.get("brand"),
            model=data.get("model"),
            ip_address=data.get("ipAddress"),
            phone_number=data.get("phoneNumber"),
            notes=data.get("notes"),
            item_type=ItemType.from_string(item_type) if item_type else None,
            equipment_id=data.get("equipmentId"),
            id=str(data.get("id") or new_id()),
        )


@dataclass
class CableTermination:
    """Count of terminated copper cable ends of one type (CAT6, CAT6A, ...)."""

    type: str
    count: int = 0

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        if self.count < 0:
            raise ValidationError(
                f"Cable termination count must be non-negative, got {self.count}",
                field="count",
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "count": self.count}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CableTermination:
        return cls(type=str(data.get("type", "")), count=int(data.get("count", 0)))


@dataclass
class FiberTermination:
    """Fiber cable of one type with its total and terminated strand counts."""

    type: str = "OS2"
    total_strands: int = 12
    terminated_strands: int = 0

    @property
    def percent_terminated(self) -> int:
        """Terminated share of the strands as a whole percentage, rounded half up.

        Returns 0 when the cable has no strands.
        """
        if not self.total_strands or not self.terminated_strands:
            return 0
        return int(math.floor(self.terminated_strands / self.total_strands * 100 + 0.5))

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        config = config or VALIDATION
        if self.total_strands < 0 or self.terminated_strands < 0:
            raise ValidationError("Fiber strand counts must be non-negative")
        if self.terminated_strands > self.total_strands:
            message = (
                f"{self.type}: terminated strands ({self.terminated_strands}) "
                f"exceed total strands ({self.total_strands})"
            )
            if config.strict_fiber_strands:
                raise ValidationError(message, field="terminatedStrands")
            logger.warning(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "totalStrands": self.total_strands,
            "terminatedStrands": self.terminated_strands,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> FiberTermination:
        return cls(
            type=str(data.get("type", "OS2")),
            total_strands=int(data.get("totalStrands", 0)),
            terminated_strands=int(data.get("terminatedStrands", 0)),
        )


@dataclass
class Rack:
    """A central or floor rack. The two kinds differ only by tree position.

    Attributes:
        name: Display name.
        code: Short label (e.g. "MDF", "IDF-1").
        location: Where the rack stands.
        units: Capacity in rack units.
        notes: Free text.
        images: URLs of uploaded photos.
        cable_terminations: Copper terminations, in entry order.
        fiber_terminations: Fiber terminations, in entry order.
        devices: Installed devices.
        id: Durable identifier.
    """

    name: str
    code: Optional[str] = None
    location: Optional[str] = None
    units: Optional[int] = None
    notes: Optional[str] = None
    images: List[str] = field(default_factory=list)
    cable_terminations: List[CableTermination] = field(default_factory=list)
    fiber_terminations: List[FiberTermination] = field(default_factory=list)
    devices: List[Device] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        _require_name("Rack", self.name)
        if self.units is not None and self.units < 0:
            raise ValidationError("Rack units must be non-negative", field="units")
        for termination in self.cable_terminations:
            termination.validate(config)
        for fiber in self.fiber_terminations:
            fiber.validate(config)
        for device in self.devices:
            device.validate(config)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "code": self.code,
                "location": self.location,
                "units": self.units,
                "notes": self.notes,
                "images": list(self.images),
                "cableTerminations": [c.to_dict() for c in self.cable_terminations],
                "fiberTerminations": [f.to_dict() for f in self.fiber_terminations],
                "devices": [d.to_dict() for d in self.devices],
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Rack:
        return cls(
            name=str(data.get("name", "")),
            code=data.get("code"),
            location=data.get("location"),
            units=_optional_int(data.get("units")),
            notes=data.get("notes"),
            images=list(data.get("images") or []),
            cable_terminations=[
                CableTermination.from_dict(c) for c in data.get("cableTerminations") or []
            ],
            fiber_terminations=[
                FiberTermination.from_dict(f) for f in data.get("fiberTerminations") or []
            ],
            devices=[Device.from_dict(d) for d in data.get("devices") or []],
            id=str(data.get("id") or new_id()),
        )


@dataclass
class Room:
    """A room on a floor.

    A typical room stands for ``identical_rooms_count`` identical rooms; its
    outlet and device counts are multiplied accordingly in rollups. The stored
    count is ignored while ``is_typical_room`` is False.

    Attributes:
        name: Display name.
        type: Functional category.
        connection_type: Which rack the room's outlets terminate at.
        outlets: Number of outlets in one instance of the room.
        is_typical_room: Whether the room represents several identical rooms.
        identical_rooms_count: How many rooms a typical room represents.
        devices: Devices in one instance of the room.
        number: Room number as labelled on site.
        notes: Free text.
        images: URLs of uploaded photos.
        id: Durable identifier.
    """

    name: str
    type: RoomType = RoomType.ROOM
    connection_type: RackConnection = RackConnection.FLOOR_RACK
    outlets: int = 0
    is_typical_room: bool = False
    identical_rooms_count: int = 1
    devices: List[Device] = field(default_factory=list)
    number: Optional[str] = None
    notes: Optional[str] = None
    images: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    @property
    def multiplier(self) -> int:
        """Factor applied to count-derived rollups for this room."""
        return self.identical_rooms_count if self.is_typical_room else 1

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        _require_name("Room", self.name)
        if self.outlets < 0:
            raise ValidationError(
                f"Room outlets must be non-negative, got {self.outlets}",
                field="outlets",
            )
        if self.identical_rooms_count < 1:
            raise ValidationError(
                "identicalRoomsCount must be a positive integer",
                field="identicalRoomsCount",
            )
        for device in self.devices:
            device.validate(config)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "number": self.number,
                "type": self.type.value,
                "connectionType": self.connection_type.value,
                "outlets": self.outlets,
                "isTypicalRoom": self.is_typical_room,
                "identicalRoomsCount": self.identical_rooms_count,
                "notes": self.notes,
                "images": list(self.images),
                "devices": [d.to_dict() for d in self.devices],
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Room:
        return cls(
            name=str(data.get("name", "")),
            type=RoomType.from_string(data.get("type") or RoomType.ROOM.value),
            connection_type=RackConnection.from_string(
                data.get("connectionType") or RackConnection.FLOOR_RACK.value
            ),
            outlets=int(data.get("outlets") or 0),
            is_typical_room=bool(data.get("isTypicalRoom", False)),
            identical_rooms_count=int(data.get("identicalRoomsCount") or 1),
            devices=[Device.from_dict(d) for d in data.get("devices") or []],
            number=data.get("number"),
            notes=data.get("notes"),
            images=list(data.get("images") or []),
            id=str(data.get("id") or new_id()),
        )


@dataclass
class Floor:
    """A floor of a building with its floor racks and rooms.

    A floor may have no floor rack at all.
    """

    name: str
    level: Optional[int] = None
    blueprint_url: Optional[str] = None
    notes: Optional[str] = None
    racks: List[Rack] = field(default_factory=list)
    rooms: List[Room] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        _require_name("Floor", self.name)
        for rack in self.racks:
            rack.validate(config)
        for room in self.rooms:
            room.validate(config)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "level": self.level,
                "blueprintUrl": self.blueprint_url,
                "notes": self.notes,
                "images": list(self.images),
                "floorRacks": [r.to_dict() for r in self.racks],
                "rooms": [r.to_dict() for r in self.rooms],
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Floor:
        return cls(
            name=str(data.get("name", "")),
            level=_optional_int(data.get("level")),
            blueprint_url=data.get("blueprintUrl"),
            notes=data.get("notes"),
            racks=[Rack.from_dict(r) for r in data.get("floorRacks") or []],
            rooms=[Room.from_dict(r) for r in data.get("rooms") or []],
            images=list(data.get("images") or []),
            id=str(data.get("id") or new_id()),
        )


@dataclass
class Building:
    """A surveyed building. Names need not be unique within a survey."""

    name: str
    code: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    floors: List[Floor] = field(default_factory=list)
    central_rack: Optional[Rack] = None
    images: List[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        _require_name("Building", self.name)
        if self.central_rack is not None:
            self.central_rack.validate(config)
        for floor in self.floors:
            floor.validate(config)

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "name": self.name,
                "code": self.code,
                "address": self.address,
                "notes": self.notes,
                "images": list(self.images),
                "centralRack": self.central_rack.to_dict() if self.central_rack else None,
                "floors": [f.to_dict() for f in self.floors],
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Building:
        central = data.get("centralRack")
        return cls(
            name=str(data.get("name", "")),
            code=data.get("code"),
            address=data.get("address"),
            notes=data.get("notes"),
            floors=[Floor.from_dict(f) for f in data.get("floors") or []],
            central_rack=Rack.from_dict(central) if central else None,
            images=list(data.get("images") or []),
            id=str(data.get("id") or new_id()),
        )


@dataclass
class BuildingConnection:
    """A physical link between two buildings, referenced by building index.

    Stored directionally but symmetric in meaning. Several connections between
    the same pair are independent links.
    """

    from_building: int
    to_building: int
    connection_type: LinkType = LinkType.FIBER
    description: str = ""
    distance: Optional[float] = None
    notes: Optional[str] = None
    id: str = field(default_factory=new_id)

    def pair(self, symmetric: bool = True) -> tuple:
        """Return the building pair, order-normalized when ``symmetric``."""
        if symmetric:
            return tuple(sorted((self.from_building, self.to_building)))
        return (self.from_building, self.to_building)

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        if self.from_building < 0 or self.to_building < 0:
            raise ValidationError("Building indices must be non-negative")
        if self.distance is not None and self.distance < 0:
            raise ValidationError("Distance must be non-negative", field="distance")

    def to_dict(self) -> Dict[str, Any]:
        return _compact(
            {
                "id": self.id,
                "fromBuilding": self.from_building,
                "toBuilding": self.to_building,
                "connectionType": self.connection_type.value,
                "description": self.description,
                "distance": self.distance,
                "notes": self.notes,
            }
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> BuildingConnection:
        return cls(
            from_building=int(data["fromBuilding"]),
            to_building=int(data["toBuilding"]),
            connection_type=LinkType.from_string(
                data.get("connectionType") or LinkType.FIBER.value
            ),
            description=str(data.get("description") or ""),
            distance=_optional_float(data.get("distance")),
            notes=data.get("notes"),
            id=str(data.get("id") or new_id()),
        )


@dataclass
class InfrastructureTree:
    """Survey-level container: buildings plus the links between them.

    Attributes:
        buildings: Buildings in survey order; position is the building index.
        connections: Building-to-building links; position is the connection index.
    """

    buildings: List[Building] = field(default_factory=list)
    connections: List[BuildingConnection] = field(default_factory=list)

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        for building in self.buildings:
            building.validate(config)
        for connection in self.connections:
            connection.validate(config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buildings": [b.to_dict() for b in self.buildings],
            "buildingConnections": [c.to_dict() for c in self.connections],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> InfrastructureTree:
        return cls(
            buildings=[Building.from_dict(b) for b in data.get("buildings") or []],
            connections=[
                BuildingConnection.from_dict(c)
                for c in data.get("buildingConnections") or []
            ],
        )


def deduplicate_connection_indices(
    connections: List[BuildingConnection], symmetric: bool = True
) -> Tuple[List[BuildingConnection], Dict[int, int]]:
    """Drop later duplicates and report where every old position went.

    Args:
        connections: Connections in survey order.
        symmetric: Treat A->B and B->A as the same pair.

    Returns:
        The surviving connections and a map of old connection index to new
        index. A dropped duplicate maps to the index of the connection kept
        in its place.
    """
    survivors: Dict[tuple, int] = {}
    kept: List[BuildingConnection] = []
    positions: Dict[int, int] = {}
    for old_index, connection in enumerate(connections):
        key = (connection.pair(symmetric), connection.connection_type)
        if key in survivors:
            logger.debug(
                "Dropping duplicate %s connection between buildings %s",
                connection.connection_type.value,
                connection.pair(symmetric),
            )
            positions[old_index] = survivors[key]
            continue
        survivors[key] = len(kept)
        positions[old_index] = len(kept)
        kept.append(connection)
    return kept, positions


def deduplicate_connections(
    connections: List[BuildingConnection], symmetric: bool = True
) -> List[BuildingConnection]:
    """Keep the first connection per building pair and connection type.

    Order of survivors is preserved. Use
    :func:`deduplicate_connection_indices` when bindings to connection
    positions must follow the survivors.
    """
    return deduplicate_connection_indices(connections, symmetric)[0]
