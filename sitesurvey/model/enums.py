"""Enumerations shared by the infrastructure tree and the BOM ledger.

Members are ``str`` subclasses whose values are the persisted spellings, so
they serialize to JSON without conversion.
"""

from __future__ import annotations

from enum import Enum


class _StrEnum(str, Enum):
    """String-valued enum with case-insensitive parsing."""

    @classmethod
    def from_string(cls, value: str):
        """Parse a string into an enum member.

        Matches member values first, then member names, ignoring case.

        Raises:
            ValueError: If the string doesn't match any member.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if member.value.lower() == text.lower() or member.name == text.upper():
                return member
        valid = ", ".join(m.value for m in cls)
        raise ValueError(
            f"Invalid {cls.__name__} '{value}'. Valid values are: {valid}"
        ) from None

    def __str__(self) -> str:
        return self.value


class RoomType(_StrEnum):
    """Functional category of a surveyed room."""

    ROOM = "ROOM"
    CLOSET = "CLOSET"
    CORRIDOR = "CORRIDOR"
    LOBBY = "LOBBY"
    OUTDOOR = "OUTDOOR"
    OFFICE = "OFFICE"
    MEETING_ROOM = "MEETING_ROOM"
    OTHER = "OTHER"


class RackConnection(_StrEnum):
    """Rack at which a room's outlets terminate."""

    FLOOR_RACK = "FLOOR_RACK"
    CENTRAL_RACK = "CENTRAL_RACK"


class DeviceType(_StrEnum):
    ROUTER = "ROUTER"
    SWITCH = "SWITCH"
    ACCESS_POINT = "ACCESS_POINT"
    PHONE = "PHONE"
    TV = "TV"
    OTHER = "OTHER"


class ItemType(_StrEnum):
    """Kind of a BOM line item (and of equipment-derived devices)."""

    PRODUCT = "product"
    SERVICE = "service"


class LinkType(_StrEnum):
    """Physical medium of a building-to-building connection."""

    WIRELESS = "WIRELESS"
    FIBER = "FIBER"
    COAXIAL = "COAXIAL"
    ETHERNET = "ETHERNET"
    POWERLINE = "POWERLINE"


class AddressKind(_StrEnum):
    """Tag of an infrastructure address."""

    BUILDING = "building"
    CENTRAL_RACK = "centralRack"
    FLOOR = "floor"
    FLOOR_RACK = "floorRack"
    ROOM = "room"
    BUILDING_CONNECTION = "buildingConnection"
