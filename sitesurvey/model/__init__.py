"""Data model: addresses, enums and infrastructure entities."""

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
    CableTermination,
    Device,
    FiberTermination,
    Floor,
    InfrastructureTree,
    Rack,
    Room,
    deduplicate_connection_indices,
    deduplicate_connections,
)

__all__ = [
    "Address",
    "AddressKind",
    "Building",
    "BuildingConnection",
    "CableTermination",
    "Device",
    "DeviceType",
    "FiberTermination",
    "Floor",
    "InfrastructureTree",
    "ItemType",
    "LinkType",
    "Rack",
    "RackConnection",
    "Room",
    "RoomType",
    "deduplicate_connection_indices",
    "deduplicate_connections",
]
