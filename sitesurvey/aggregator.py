"""Monetary and quantity rollups over BOM line items.

All functions are pure and accept any iterable of
:class:`~sitesurvey.ledger.EquipmentItem` (a ``Ledger`` works too).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sitesurvey.ledger import EquipmentItem
from sitesurvey.model.address import Address
from sitesurvey.model.enums import AddressKind, ItemType

#: Tolerance used when comparing money sums computed in different orders.
MONEY_EPSILON = 1e-6

#: Brand label for products without a brand.
UNBRANDED = "Other"


@dataclass
class BomTotals:
    """Money and quantity totals for a set of line items.

    Attributes:
        subtotal: Sum of price * quantity.
        total_margin: Sum of the margin amounts.
        total: subtotal + total_margin.
        count: Number of line items.
        units: Sum of quantities.
    """

    subtotal: float = 0.0
    total_margin: float = 0.0
    total: float = 0.0
    count: int = 0
    units: int = 0

    @property
    def average_margin_percent(self) -> float:
        """Margin relative to the subtotal, in percent (0 for an empty subtotal)."""
        if not self.subtotal:
            return 0.0
        return self.total_margin / self.subtotal * 100.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "subtotal": self.subtotal,
            "totalMargin": self.total_margin,
            "total": self.total,
            "count": self.count,
            "units": self.units,
        }


def totals_for(items: Iterable[EquipmentItem]) -> BomTotals:
    """Compute totals for ``items``. An empty input yields all zeros."""
    totals = BomTotals()
    for item in items:
        totals.subtotal += item.base_price
        totals.total_margin += item.margin_amount
        totals.count += 1
        totals.units += item.quantity
    totals.total = totals.subtotal + totals.total_margin
    return totals


def check_consistency(
    items: Iterable[EquipmentItem], epsilon: float = MONEY_EPSILON
) -> bool:
    """Return True if the rolled-up total matches the sum of item totals."""
    items = list(items)
    return abs(totals_for(items).total - sum(i.total_price for i in items)) <= epsilon


@dataclass
class TypeGroups:
    """Line items partitioned by type, preserving ledger order."""

    products: List[EquipmentItem] = field(default_factory=list)
    services: List[EquipmentItem] = field(default_factory=list)


def group_by_type(items: Iterable[EquipmentItem]) -> TypeGroups:
    groups = TypeGroups()
    for item in items:
        if item.type == ItemType.PRODUCT:
            groups.products.append(item)
        else:
            groups.services.append(item)
    return groups


@dataclass
class BomSummary:
    """Per-type and grand totals as shown on the pricing step."""

    products: BomTotals
    services: BomTotals
    grand: BomTotals

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            "products": self.products.to_dict(),
            "services": self.services.to_dict(),
            "grand": self.grand.to_dict(),
        }


def summarize(items: Iterable[EquipmentItem]) -> BomSummary:
    items = list(items)
    groups = group_by_type(items)
    return BomSummary(
        products=totals_for(groups.products),
        services=totals_for(groups.services),
        grand=totals_for(items),
    )


def group_by_address(
    items: Iterable[EquipmentItem],
) -> Dict[Optional[Address], List[EquipmentItem]]:
    """Group items by the element they are bound to.

    Keys are ordered by tree position; unassigned items are grouped under
    ``None``, which comes last.
    """
    groups: Dict[Optional[Address], List[EquipmentItem]] = {}
    for item in items:
        groups.setdefault(item.infrastructure_element, []).append(item)
    assigned = sorted((a for a in groups if a is not None), key=Address.sort_key)
    ordered: Dict[Optional[Address], List[EquipmentItem]] = {
        address: groups[address] for address in assigned
    }
    if None in groups:
        ordered[None] = groups[None]
    return ordered


def group_by_brand(items: Iterable[EquipmentItem]) -> Dict[str, List[EquipmentItem]]:
    """Group items by brand in order of first appearance; blank brands go to ``"Other"``."""
    groups: Dict[str, List[EquipmentItem]] = {}
    for item in items:
        groups.setdefault(item.brand or UNBRANDED, []).append(item)
    return groups


def equipment_within(
    items: Iterable[EquipmentItem], address: Address
) -> List[EquipmentItem]:
    """Items bound to ``address`` or to any element beneath it."""
    return [
        item
        for item in items
        if item.infrastructure_element is not None
        and address.contains(item.infrastructure_element)
    ]


def totals_by_building(
    items: Iterable[EquipmentItem],
) -> Dict[Optional[int], BomTotals]:
    """Totals per building index.

    Items that are unassigned or bound to a building connection are rolled up
    under ``None`` (site level).
    """
    buckets: Dict[Optional[int], List[EquipmentItem]] = {}
    for item in items:
        element = item.infrastructure_element
        key = (
            None
            if element is None or element.kind == AddressKind.BUILDING_CONNECTION
            else element.building_index
        )
        buckets.setdefault(key, []).append(item)
    keys = sorted(k for k in buckets if k is not None)
    result: Dict[Optional[int], BomTotals] = {k: totals_for(buckets[k]) for k in keys}
    if None in buckets:
        result[None] = totals_for(buckets[None])
    return result
