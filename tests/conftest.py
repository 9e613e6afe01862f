"""Shared fixtures: a small two-building survey and catalog records.

Layout of ``sample_tree``::

    HQ (central rack "MDF": 1 switch, CAT6 x24, OS2 6/12)
      Ground: rack "IDF-1" (1 switch)
              Office   typical x3, 4 outlets, 1 AP, FLOOR_RACK
              Server   2 outlets, CENTRAL_RACK
      First:  Meeting  6 outlets
    Warehouse (no central rack)
      Main:   Store    2 outlets, CENTRAL_RACK
    HQ <-> Warehouse: FIBER, 120 m
"""

from __future__ import annotations

import pytest

from sitesurvey.ledger import Product, Service
from sitesurvey.model import (
    Building,
    BuildingConnection,
    CableTermination,
    Device,
    DeviceType,
    FiberTermination,
    Floor,
    InfrastructureTree,
    LinkType,
    Rack,
    RackConnection,
    Room,
    RoomType,
)


def build_sample_tree() -> InfrastructureTree:
    hq = Building(
        name="HQ",
        code="HQ",
        central_rack=Rack(
            name="MDF",
            code="MDF",
            units=42,
            cable_terminations=[CableTermination(type="CAT6", count=24)],
            fiber_terminations=[
                FiberTermination(type="OS2", total_strands=12, terminated_strands=6)
            ],
            devices=[Device(name="Core switch", type=DeviceType.SWITCH)],
        ),
        floors=[
            Floor(
                name="Ground",
                level=0,
                racks=[
                    Rack(
                        name="IDF-1",
                        devices=[Device(name="Edge switch", type=DeviceType.SWITCH)],
                    )
                ],
                rooms=[
                    Room(
                        name="Office",
                        type=RoomType.OFFICE,
                        outlets=4,
                        is_typical_room=True,
                        identical_rooms_count=3,
                        devices=[Device(name="AP", type=DeviceType.ACCESS_POINT)],
                    ),
                    Room(
                        name="Server",
                        connection_type=RackConnection.CENTRAL_RACK,
                        outlets=2,
                    ),
                ],
            ),
            Floor(name="First", level=1, rooms=[Room(name="Meeting", outlets=6)]),
        ],
    )
    warehouse = Building(
        name="Warehouse",
        floors=[
            Floor(
                name="Main",
                rooms=[
                    Room(
                        name="Store",
                        connection_type=RackConnection.CENTRAL_RACK,
                        outlets=2,
                    )
                ],
            )
        ],
    )
    return InfrastructureTree(
        buildings=[hq, warehouse],
        connections=[
            BuildingConnection(
                from_building=0,
                to_building=1,
                connection_type=LinkType.FIBER,
                distance=120,
            )
        ],
    )


@pytest.fixture
def sample_tree() -> InfrastructureTree:
    return build_sample_tree()


@pytest.fixture
def switch_product() -> Product:
    return Product(
        id="sw-24",
        name="24-port switch",
        price=100.0,
        brand="Acme",
        model="S24",
        category="Switching",
        unit="pcs",
    )


@pytest.fixture
def install_service() -> Service:
    return Service(id="inst", name="Installation", price=50.0, category="Labour")
