"""sitesurvey: site-survey infrastructure model and bill-of-materials engine.

Models a surveyed site as a tree of buildings, floors, racks and rooms,
attaches priced equipment (products and services) to elements of that tree,
rolls up counts and money totals, and projects the tree into a node/edge
diagram graph.

Primary API:
    SiteSurvey - One survey's tree and ledger with re-addressing removals
    InfrastructureTree, Building, Floor, Rack, Room - Infrastructure model
    Address - Positional reference into the tree
    Ledger, EquipmentItem, Product, Service - BOM line items
    summarize() - Products/services/grand money totals
    project() - Diagram graph of the tree

Example:
    from sitesurvey import Address, Building, Floor, Product, SiteSurvey

    survey = SiteSurvey()
    hq = survey.add_building(Building(name="HQ"))
    ground = survey.add_floor(hq, Floor(name="Ground"))
    survey.add_item(Product(id="sw-24", name="Switch", price=100.0),
                    quantity=2, address=ground, margin=10)
    survey.summary().grand.total  # 220.0
"""

from __future__ import annotations

from sitesurvey import cli, logging
from sitesurvey._version import __version__
from sitesurvey.aggregator import BomSummary, BomTotals, summarize, totals_for
from sitesurvey.config import DiagramConfig, ValidationConfig
from sitesurvey.diagram import DiagramEdge, DiagramGraph, DiagramNode, project
from sitesurvey.exceptions import (
    DuplicateIdError,
    InvalidParentError,
    NotFoundError,
    SurveyError,
    ValidationError,
)
from sitesurvey.io import FileSurveyStore, SurveyStore
from sitesurvey.ledger import EquipmentItem, Ledger, Product, Service
from sitesurvey.model import (
    Address,
    AddressKind,
    Building,
    BuildingConnection,
    CableTermination,
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
from sitesurvey.report import to_report_model
from sitesurvey.survey import SiteSurvey
from sitesurvey.tree import InfrastructureStats, RemovalResult

__all__ = [
    # Version
    "__version__",
    # Application state
    "SiteSurvey",
    # Infrastructure model
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
    "LinkType",
    "Rack",
    "RackConnection",
    "Room",
    "RoomType",
    "InfrastructureStats",
    "RemovalResult",
    # Equipment
    "EquipmentItem",
    "ItemType",
    "Ledger",
    "Product",
    "Service",
    "BomSummary",
    "BomTotals",
    "summarize",
    "totals_for",
    # Projections
    "DiagramEdge",
    "DiagramGraph",
    "DiagramNode",
    "project",
    "to_report_model",
    # Persistence
    "FileSurveyStore",
    "SurveyStore",
    # Configuration and errors
    "DiagramConfig",
    "ValidationConfig",
    "DuplicateIdError",
    "InvalidParentError",
    "NotFoundError",
    "SurveyError",
    "ValidationError",
    # Utilities
    "cli",
    "logging",
]
