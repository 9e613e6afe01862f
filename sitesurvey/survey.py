"""SiteSurvey: one survey's infrastructure tree and BOM ledger together.

The tree and ledger modules are pure functions over snapshots. ``SiteSurvey``
holds the current snapshots for an application and replaces them after each
successful operation, so a failed operation leaves the survey as it was.
Structural removals go through :meth:`SiteSurvey.remove`, which re-addresses
the equipment bound beneath or after the removed element in the same step.

Typical usage example:

    survey = SiteSurvey.from_yaml(text)
    hq = survey.add_building(Building(name="HQ"))
    ground = survey.add_floor(hq, Floor(name="Ground"))
    survey.add_item(product, quantity=2, address=ground, margin=10)
    survey.summary().grand.total
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sitesurvey import ledger as bom
from sitesurvey import tree as infra
from sitesurvey.aggregator import BomSummary, summarize
from sitesurvey.config import DIAGRAM, VALIDATION, DiagramConfig, ValidationConfig
from sitesurvey.diagram import DiagramGraph, project
from sitesurvey.exceptions import NotFoundError
from sitesurvey.io import SurveyStore, load_survey_text
from sitesurvey.ledger import CatalogItem, EquipmentItem, Ledger
from sitesurvey.logging import get_logger
from sitesurvey.model.address import Address
from sitesurvey.model.infrastructure import (
    Building,
    BuildingConnection,
    Device,
    Floor,
    InfrastructureTree,
    Rack,
    Room,
    deduplicate_connection_indices,
)
from sitesurvey.report import to_report_model
from sitesurvey.tree import InfrastructureStats, RemovalResult

logger = get_logger(__name__)


@dataclass
class SiteSurvey:
    """A survey's tree and ledger plus the policies applied to them.

    Attributes:
        tree: Current infrastructure snapshot.
        ledger: Current BOM snapshot.
        id: Survey id used by a :class:`~sitesurvey.io.SurveyStore`.
        name: Optional display name.
        config: Validation policy for every mutation.
        diagram_config: Options for :meth:`diagram`.
    """

    tree: InfrastructureTree = field(default_factory=InfrastructureTree)
    ledger: Ledger = field(default_factory=Ledger)
    id: Optional[str] = None
    name: Optional[str] = None
    config: ValidationConfig = field(default_factory=lambda: VALIDATION)
    diagram_config: DiagramConfig = field(default_factory=lambda: DIAGRAM)

    # ---- Infrastructure -------------------------------------------------

    def add_building(self, building: Building) -> Address:
        """Append a building and return its address."""
        self.tree = infra.insert_building(self.tree, building, self.config)
        return Address.for_building(len(self.tree.buildings) - 1)

    def add_floor(self, building: Address, floor: Floor) -> Address:
        self.tree = infra.insert_floor(self.tree, building, floor, self.config)
        floors = self.tree.buildings[building.building_index].floors  # type: ignore[index]
        return Address.for_floor(building.building_index, len(floors) - 1)  # type: ignore[arg-type]

    def add_rack(self, parent: Address, rack: Rack) -> Address:
        """Add a central rack (building parent) or floor rack (floor parent)."""
        self.tree = infra.insert_rack(self.tree, parent, rack, self.config)
        if parent.floor_index is None:
            return Address.for_central_rack(parent.building_index)  # type: ignore[arg-type]
        floor = infra.resolve(self.tree, parent)
        return Address.for_floor_rack(
            parent.building_index,  # type: ignore[arg-type]
            parent.floor_index,
            len(floor.racks) - 1,  # type: ignore[union-attr]
        )

    def add_room(self, floor: Address, room: Room) -> Address:
        self.tree = infra.insert_room(self.tree, floor, room, self.config)
        rooms = infra.resolve(self.tree, floor).rooms  # type: ignore[union-attr]
        return Address.for_room(
            floor.building_index,  # type: ignore[arg-type]
            floor.floor_index,  # type: ignore[arg-type]
            len(rooms) - 1,
        )

    def add_device(self, parent: Address, device: Device) -> int:
        """Append a device to a rack or room and return its device index."""
        self.tree = infra.insert_device(self.tree, parent, device, self.config)
        return len(infra.resolve(self.tree, parent).devices) - 1  # type: ignore[union-attr]

    def add_connection(self, connection: BuildingConnection) -> Address:
        self.tree = infra.insert_connection(self.tree, connection, self.config)
        return Address.for_connection(len(self.tree.connections) - 1)

    def update(self, address: Address, **patch: Any) -> None:
        self.tree = infra.update(self.tree, address, patch, self.config)

    def update_device(self, parent: Address, device_index: int, **patch: Any) -> None:
        self.tree = infra.update_device(self.tree, parent, device_index, patch, self.config)

    def remove(self, address: Address) -> RemovalResult:
        """Remove an element with its subtree and re-address bound equipment.

        Items bound inside the removed subtree stay in the BOM unassigned;
        items bound to shifted siblings follow them to their new addresses.

        Raises:
            NotFoundError: If ``address`` does not resolve.
        """
        result = infra.remove(self.tree, address)
        self.ledger = bom.readdress(self.ledger, result.mapping)
        self.tree = result.tree
        logger.info("Removed %s from survey %s", address, self.id or "<unsaved>")
        return result

    def remove_device(self, parent: Address, device_index: int) -> None:
        self.tree = infra.remove_device(self.tree, parent, device_index)

    def resolve(self, address: Address):
        return infra.resolve(self.tree, address)

    def stats(self, address: Optional[Address] = None) -> InfrastructureStats:
        """Counts for the whole survey, or for the branch at ``address``."""
        if address is None:
            return infra.aggregate_totals(self.tree)
        return infra.totals_at(self.tree, address)

    # ---- Equipment ------------------------------------------------------

    def add_item(
        self,
        catalog_item: CatalogItem,
        quantity: int = 1,
        address: Optional[Address] = None,
        margin: float = 0.0,
        notes: Optional[str] = None,
    ) -> EquipmentItem:
        self.ledger, item = bom.add_item(
            self.ledger, catalog_item, quantity, address, margin, notes, self.config
        )
        return item

    def add_manual_item(self, form: Mapping[str, Any]) -> EquipmentItem:
        self.ledger, item = bom.add_manual_item(self.ledger, form, self.config)
        return item

    def update_quantity(self, item_id: str, quantity: int) -> None:
        self.ledger = bom.update_quantity(self.ledger, item_id, quantity, self.config)

    def update_price(self, item_id: str, price: float) -> None:
        self.ledger = bom.update_price(self.ledger, item_id, price, self.config)

    def update_margin(self, item_id: str, margin: float) -> None:
        self.ledger = bom.update_margin(self.ledger, item_id, margin, self.config)

    def update_notes(self, item_id: str, notes: Optional[str]) -> None:
        self.ledger = bom.update_notes(self.ledger, item_id, notes, self.config)

    def assign(self, item_id: str, address: Optional[Address]) -> None:
        """Bind an item to an element of this survey, or unbind it.

        Raises:
            NotFoundError: If ``address`` does not resolve in the current tree
                or the item does not exist.
        """
        if address is not None and infra.resolve(self.tree, address) is None:
            raise NotFoundError(address, f"No element at {address}")
        self.ledger = bom.assign(self.ledger, item_id, address, self.config)

    def remove_item(self, item_id: str) -> None:
        self.ledger = bom.remove_item(self.ledger, item_id)

    def equipment_at(self, address: Address) -> List[EquipmentItem]:
        return bom.filter_by_address(self.ledger, address)

    def dangling_items(self) -> List[EquipmentItem]:
        """Items whose binding does not resolve in the current tree."""
        return [
            item
            for item in self.ledger
            if item.infrastructure_element is not None
            and infra.resolve(self.tree, item.infrastructure_element) is None
        ]

    def summary(self) -> BomSummary:
        return summarize(self.ledger)

    # ---- Projections ----------------------------------------------------

    def diagram(self) -> DiagramGraph:
        return project(self.tree, self.diagram_config)

    def report(self) -> Dict[str, Any]:
        return to_report_model(self.tree, self.ledger)

    # ---- Persistence ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return the persistence payload ``{buildings, buildingConnections, equipment}``."""
        data: Dict[str, Any] = {}
        if self.id is not None:
            data["id"] = self.id
        if self.name is not None:
            data["name"] = self.name
        data.update(self.tree.to_dict())
        data["equipment"] = self.ledger.to_list()
        return data

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        config: Optional[ValidationConfig] = None,
        diagram_config: Optional[DiagramConfig] = None,
    ) -> SiteSurvey:
        """Build a survey from its persistence payload.

        The tree and every line item are validated against ``config``, so a
        stored survey breaking a strict invariant raises like an edit would.
        Equipment is deduplicated by id (first occurrence wins). Building
        connections are deduplicated only when the validation config asks for
        it; bindings to connections follow the survivors.

        Raises:
            ValidationError: If the tree or an item violates a strict check.
        """
        config = config or VALIDATION
        tree = InfrastructureTree.from_dict(data)
        tree.validate(config)
        ledger = Ledger.from_list(list(data.get("equipment") or []))
        for item in ledger:
            item.validate(config)

        if config.dedupe_building_connections:
            tree.connections, positions = deduplicate_connection_indices(
                tree.connections, config.symmetric_connection_dedupe
            )
            mapping = {
                Address.for_connection(old): Address.for_connection(new)
                for old, new in positions.items()
                if old != new
            }
            if mapping:
                ledger = bom.readdress(ledger, mapping)

        survey = cls(
            tree=tree,
            ledger=ledger,
            id=data.get("id"),
            name=data.get("name"),
            config=config,
            diagram_config=diagram_config or DIAGRAM,
        )
        dangling = survey.dangling_items()
        if dangling:
            logger.warning(
                "%d equipment item(s) bound to elements that do not exist",
                len(dangling),
            )
        return survey

    @classmethod
    def from_yaml(
        cls, text: str, config: Optional[ValidationConfig] = None
    ) -> SiteSurvey:
        """Parse and schema-validate YAML (or JSON) text into a survey."""
        return cls.from_dict(load_survey_text(text), config)

    @classmethod
    def load(
        cls,
        store: SurveyStore,
        survey_id: str,
        config: Optional[ValidationConfig] = None,
    ) -> SiteSurvey:
        survey = cls.from_dict(store.load(survey_id), config)
        survey.id = survey_id
        return survey

    def save(self, store: SurveyStore) -> None:
        """Persist through ``store`` under this survey's id.

        Raises:
            ValueError: If the survey has no id.
        """
        if not self.id:
            raise ValueError("Cannot save a survey without an id")
        store.save(self.id, self.to_dict())
