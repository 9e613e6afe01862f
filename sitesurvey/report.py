"""Report model builder.

Builds a JSON-safe dictionary snapshot of a survey for export layers (PDF,
spreadsheet, UI summaries). Rendering itself lives elsewhere; this module
only gathers the figures in a stable shape::

    {
      "summary": {...},          # survey-wide counts
      "buildings": [...],        # building payload + per-building counts
      "buildingConnections": [...],
      "products": [...],         # line items with resolved location names
      "services": [...],
      "productsByBrand": {...},  # brand -> line items
      "totals": {...},           # products / services / grand money totals
      "totalsByBuilding": {...}, # building index (or "site") -> money totals
    }
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from sitesurvey.aggregator import group_by_brand, summarize, totals_by_building
from sitesurvey.ledger import EquipmentItem, Ledger
from sitesurvey.model.infrastructure import InfrastructureTree
from sitesurvey.tree import aggregate_totals, building_totals, context_path, resolve

#: Location shown for line items without an infrastructure binding.
UNASSIGNED_LOCATION = "Unassigned"

#: Key used in ``totalsByBuilding`` for site-level (unbound) items.
SITE_KEY = "site"


def item_location(tree: InfrastructureTree, item: EquipmentItem) -> str:
    """Return a human-readable location for ``item``.

    Bindings that no longer resolve are reported as unassigned.
    """
    address = item.infrastructure_element
    if address is None or resolve(tree, address) is None:
        return UNASSIGNED_LOCATION
    return context_path(tree, address)


def _item_rows(tree: InfrastructureTree, items: Iterable[EquipmentItem]) -> List[Dict[str, Any]]:
    rows = []
    for item in items:
        row = item.to_dict()
        row["location"] = item_location(tree, item)
        rows.append(row)
    return rows


def to_report_model(
    tree: InfrastructureTree, ledger: Optional[Ledger] = None
) -> Dict[str, Any]:
    """Build the export snapshot of ``tree`` and ``ledger``.

    Args:
        tree: Survey tree.
        ledger: BOM line items; an empty ledger when omitted.

    Returns:
        A dictionary made of JSON primitives only.
    """
    ledger = ledger or Ledger()
    summary = summarize(ledger)

    buildings = []
    for building in tree.buildings:
        entry = building.to_dict()
        entry["stats"] = building_totals(building).to_dict()
        buildings.append(entry)

    by_building: Dict[str, Any] = {}
    for key, totals in totals_by_building(ledger).items():
        by_building[SITE_KEY if key is None else str(key)] = totals.to_dict()

    stats = aggregate_totals(tree)
    return {
        "summary": {
            **stats.to_dict(),
            "percentFiberTerminated": round(stats.percent_fiber_terminated, 1),
        },
        "buildings": buildings,
        "buildingConnections": [c.to_dict() for c in tree.connections],
        "products": _item_rows(tree, ledger.products),
        "services": _item_rows(tree, ledger.services),
        "productsByBrand": {
            brand: _item_rows(tree, items)
            for brand, items in group_by_brand(ledger.products).items()
        },
        "totals": summary.to_dict(),
        "totalsByBuilding": by_building,
    }
