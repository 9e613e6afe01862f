"""Equipment / BOM ledger: priced line items bound to infrastructure addresses.

The ledger is a flat, ordered list of :class:`EquipmentItem`. Functions in
this module take a ledger snapshot and return a new one; inputs are never
modified, so a raised error leaves the caller's ledger untouched.

Pricing of a line item::

    base_price  = price * quantity
    total_price = base_price + base_price * margin / 100

``total_price`` is computed from the current price, quantity and margin on
every access and cannot go stale.
"""

from __future__ import annotations

import math
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from sitesurvey.config import VALIDATION, ValidationConfig
from sitesurvey.exceptions import DuplicateIdError, NotFoundError, ValidationError
from sitesurvey.logging import get_logger
from sitesurvey.model.address import Address
from sitesurvey.model.enums import ItemType
from sitesurvey.utils.ids import new_item_id

logger = get_logger(__name__)

DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_UNIT = "Each"


# ---------------------------------------------------------------------------
# Catalog records
# ---------------------------------------------------------------------------


@dataclass
class Product:
    """Catalog product as supplied by the catalog service."""

    id: str
    name: str
    price: float = 0.0
    brand: Optional[str] = None
    model: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None

    item_type = ItemType.PRODUCT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Product:
        """Build from a catalog record; nested ``{"name": ...}`` objects are flattened."""
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            price=float(data.get("price") or 0.0),
            brand=_name_of(data.get("brand")),
            model=data.get("model"),
            category=_name_of(data.get("category")),
            unit=_name_of(data.get("unit")),
        )


@dataclass
class Service:
    """Catalog service as supplied by the catalog service."""

    id: str
    name: str
    price: float = 0.0
    category: Optional[str] = None
    description: Optional[str] = None

    item_type = ItemType.SERVICE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Service:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            price=float(data.get("price") or 0.0),
            category=_name_of(data.get("category")),
            description=data.get("description"),
        )


CatalogItem = Union[Product, Service]


def _name_of(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        return value.get("name")
    return value


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------


@dataclass
class EquipmentItem:
    """One BOM line item.

    Attributes:
        id: Unique line-item id within the ledger.
        type: Product or service.
        item_id: Catalog id of the product/service (``manual-...`` for custom lines).
        name: Display name.
        category: Catalog category name.
        unit: Unit of measure.
        quantity: Positive number of units.
        price: Non-negative unit price.
        margin: Margin in percent applied on top of the base price.
        brand: Brand, products only.
        model: Model designation, products only.
        notes: Free text.
        infrastructure_element: Where the item is installed, if assigned.
    """

    id: str
    type: ItemType
    item_id: str
    name: str
    category: str = DEFAULT_CATEGORY
    unit: str = DEFAULT_UNIT
    quantity: int = 1
    price: float = 0.0
    margin: float = 0.0
    brand: Optional[str] = None
    model: Optional[str] = None
    notes: Optional[str] = None
    infrastructure_element: Optional[Address] = None

    @property
    def base_price(self) -> float:
        return self.price * self.quantity

    @property
    def margin_amount(self) -> float:
        return self.base_price * self.margin / 100.0

    @property
    def total_price(self) -> float:
        return self.base_price + self.margin_amount

    def validate(self, config: Optional[ValidationConfig] = None) -> None:
        """Check the item's fields.

        Raises:
            ValidationError: On an empty name, non-positive quantity, negative
                price, or a margin outside the configured range when margins
                are strict.
        """
        config = config or VALIDATION
        if not self.name or not self.name.strip():
            raise ValidationError("Item name is required", field="name")
        if self.quantity <= 0:
            raise ValidationError(
                f"Quantity must be positive, got {self.quantity}", field="quantity"
            )
        if self.price < 0:
            raise ValidationError(
                f"Price must be non-negative, got {self.price}", field="price"
            )
        if not config.margin_in_range(self.margin):
            message = (
                f"Margin {self.margin}% outside "
                f"[{config.min_margin}, {config.max_margin}]"
            )
            if config.strict_margin:
                raise ValidationError(message, field="margin")
            logger.warning("%s for item '%s'", message, self.name)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "itemId": self.item_id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "quantity": self.quantity,
            "price": self.price,
            "margin": self.margin,
            "totalPrice": self.total_price,
        }
        for key, value in (
            ("brand", self.brand),
            ("model", self.model),
            ("notes", self.notes),
        ):
            if value is not None:
                data[key] = value
        if self.infrastructure_element is not None:
            data["infrastructureElement"] = self.infrastructure_element.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> EquipmentItem:
        """Build an item from its persisted form.

        A stored ``totalPrice`` is not trusted; it is recomputed and a stale
        value is logged.
        """
        element = data.get("infrastructureElement")
        item = cls(
            id=str(data["id"]),
            type=ItemType.from_string(data.get("type", ItemType.PRODUCT.value)),
            item_id=str(data.get("itemId") or data["id"]),
            name=str(data.get("name", "")),
            category=str(data.get("category") or DEFAULT_CATEGORY),
            unit=str(data.get("unit") or DEFAULT_UNIT),
            quantity=int(data.get("quantity", 1)),
            price=float(data.get("price") or 0.0),
            margin=float(data.get("margin") or 0.0),
            brand=data.get("brand") or None,
            model=data.get("model") or None,
            notes=data.get("notes") or None,
            infrastructure_element=Address.from_dict(element) if element else None,
        )
        stored = data.get("totalPrice")
        if stored is not None and abs(float(stored) - item.total_price) > 1e-6:
            logger.debug(
                "Item %s had stale totalPrice %s; recomputed %s",
                item.id,
                stored,
                item.total_price,
            )
        return item


@dataclass
class Ledger:
    """Ordered collection of BOM line items."""

    items: List[EquipmentItem] = field(default_factory=list)

    def __iter__(self) -> Iterator[EquipmentItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def get(self, item_id: str) -> Optional[EquipmentItem]:
        """Return the first item with ``item_id``, or None."""
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @property
    def products(self) -> List[EquipmentItem]:
        return [item for item in self.items if item.type == ItemType.PRODUCT]

    @property
    def services(self) -> List[EquipmentItem]:
        return [item for item in self.items if item.type == ItemType.SERVICE]

    def to_list(self) -> List[Dict[str, Any]]:
        return [item.to_dict() for item in self.items]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> Ledger:
        """Build a ledger from persisted items, dropping duplicate ids (keep first)."""
        return deduplicate_by_id(cls(items=[EquipmentItem.from_dict(d) for d in data]))


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _as_quantity(value: Any) -> int:
    """Return ``value`` as a whole number of units.

    Raises:
        ValidationError: If ``value`` is not numeric or has a fractional part.
    """
    message = f"Quantity must be a whole number, got {value!r}"
    if isinstance(value, bool):
        raise ValidationError(message, field="quantity")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(message, field="quantity") from exc
    if not number.is_integer():
        raise ValidationError(message, field="quantity")
    return int(number)


def _as_amount(value: Any, field_name: str) -> float:
    """Return a price or margin as float; blank values count as zero."""
    if value is None or value == "":
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(
            f"{field_name.capitalize()} must be a number, got {value!r}", field=field_name
        ) from exc
    if math.isnan(number) or math.isinf(number):
        raise ValidationError(
            f"{field_name.capitalize()} must be finite, got {value!r}", field=field_name
        )
    return number


def _with_item(ledger: Ledger, item: EquipmentItem) -> Ledger:
    if ledger.get(item.id) is not None:
        raise DuplicateIdError(f"Equipment id '{item.id}' already in ledger")
    return Ledger(items=deepcopy(ledger.items) + [item])


def add_item(
    ledger: Ledger,
    catalog_item: CatalogItem,
    quantity: int = 1,
    address: Optional[Address] = None,
    margin: float = 0.0,
    notes: Optional[str] = None,
    config: Optional[ValidationConfig] = None,
) -> Tuple[Ledger, EquipmentItem]:
    """Add a line item for a catalog product or service.

    Args:
        ledger: Current ledger.
        catalog_item: Product or service record from the catalog.
        quantity: Number of units.
        address: Infrastructure element the item is assigned to.
        margin: Margin percent.
        notes: Free text.
        config: Validation policy.

    Returns:
        The new ledger and the created item.

    Raises:
        ValidationError: If the resulting item is invalid.
    """
    item_type = catalog_item.item_type
    item = EquipmentItem(
        id=new_item_id(f"{item_type.value}-{catalog_item.id}"),
        type=item_type,
        item_id=catalog_item.id,
        name=catalog_item.name,
        category=catalog_item.category or DEFAULT_CATEGORY,
        unit=getattr(catalog_item, "unit", None) or DEFAULT_UNIT,
        quantity=_as_quantity(quantity),
        price=catalog_item.price,
        margin=margin,
        brand=getattr(catalog_item, "brand", None),
        model=getattr(catalog_item, "model", None),
        notes=notes,
        infrastructure_element=address,
    )
    item.validate(config)
    logger.debug("Adding %s '%s' x%d", item_type.value, item.name, quantity)
    return _with_item(ledger, item), item


def add_manual_item(
    ledger: Ledger,
    form: Mapping[str, Any],
    config: Optional[ValidationConfig] = None,
) -> Tuple[Ledger, EquipmentItem]:
    """Add a custom line item entered by hand.

    ``form`` keys: ``name`` (required), ``type`` (default product), ``price``,
    ``quantity``, ``margin``, ``brand``, ``model``, ``category``, ``unit``,
    ``notes`` and ``address``.

    Raises:
        ValidationError: If the name is empty or a value is out of range.
    """
    name = str(form.get("name") or "").strip()
    if not name:
        raise ValidationError("Item name is required", field="name")
    try:
        item_type = ItemType.from_string(form.get("type") or ItemType.PRODUCT.value)
    except ValueError as exc:
        raise ValidationError(str(exc), field="type") from exc

    quantity = form.get("quantity")
    item_id = new_item_id("manual")
    item = EquipmentItem(
        id=new_item_id(f"manual-{item_type.value}"),
        type=item_type,
        item_id=item_id,
        name=name,
        category=form.get("category") or DEFAULT_CATEGORY,
        unit=form.get("unit") or DEFAULT_UNIT,
        quantity=_as_quantity(1 if quantity in (None, "") else quantity),
        price=_as_amount(form.get("price"), "price"),
        margin=_as_amount(form.get("margin"), "margin"),
        brand=form.get("brand") or None,
        model=form.get("model") or None,
        notes=form.get("notes") or None,
        infrastructure_element=form.get("address"),
    )
    item.validate(config)
    return _with_item(ledger, item), item


def _replace_item(
    ledger: Ledger,
    item_id: str,
    config: Optional[ValidationConfig],
    **changes: Any,
) -> Ledger:
    items = deepcopy(ledger.items)
    for pos, item in enumerate(items):
        if item.id == item_id:
            for name, value in changes.items():
                setattr(item, name, value)
            item.validate(config)
            items[pos] = item
            return Ledger(items=items)
    raise NotFoundError(item_id, f"No equipment item with id '{item_id}'")


def update_quantity(
    ledger: Ledger,
    item_id: str,
    quantity: int,
    config: Optional[ValidationConfig] = None,
) -> Ledger:
    """Set an item's quantity; a quantity of zero or less removes the item.

    Raises:
        NotFoundError: If no item has ``item_id`` (and quantity is positive).
        ValidationError: If ``quantity`` is not a whole number.
    """
    quantity = _as_quantity(quantity)
    if quantity <= 0:
        return remove_item(ledger, item_id)
    return _replace_item(ledger, item_id, config, quantity=quantity)


def update_price(
    ledger: Ledger,
    item_id: str,
    price: float,
    config: Optional[ValidationConfig] = None,
) -> Ledger:
    """Set an item's unit price.

    Raises:
        NotFoundError: If no item has ``item_id``.
        ValidationError: If ``price`` is negative.
    """
    return _replace_item(ledger, item_id, config, price=_as_amount(price, "price"))


def update_margin(
    ledger: Ledger,
    item_id: str,
    margin: float,
    config: Optional[ValidationConfig] = None,
) -> Ledger:
    """Set an item's margin percent.

    Raises:
        NotFoundError: If no item has ``item_id``.
        ValidationError: If ``margin`` is outside the configured range.
    """
    return _replace_item(ledger, item_id, config, margin=_as_amount(margin, "margin"))


def update_notes(
    ledger: Ledger,
    item_id: str,
    notes: Optional[str],
    config: Optional[ValidationConfig] = None,
) -> Ledger:
    """Set an item's notes; an empty string clears them."""
    return _replace_item(ledger, item_id, config, notes=notes or None)


def assign(
    ledger: Ledger,
    item_id: str,
    address: Optional[Address],
    config: Optional[ValidationConfig] = None,
) -> Ledger:
    """Bind an item to an infrastructure element, or unbind it with None."""
    return _replace_item(ledger, item_id, config, infrastructure_element=address)


def remove_item(ledger: Ledger, item_id: str) -> Ledger:
    """Remove every item with ``item_id``. Unknown ids are ignored."""
    return Ledger(items=[deepcopy(i) for i in ledger.items if i.id != item_id])


def filter_by_address(ledger: Ledger, address: Address) -> List[EquipmentItem]:
    """Items bound exactly to ``address`` (structural equality)."""
    return [item for item in ledger.items if item.infrastructure_element == address]


def filter_by_type(ledger: Ledger, item_type: Union[ItemType, str]) -> List[EquipmentItem]:
    wanted = ItemType.from_string(item_type)
    return [item for item in ledger.items if item.type == wanted]


def deduplicate_by_id(ledger: Ledger) -> Ledger:
    """Keep the first occurrence of each id and drop later duplicates."""
    seen = set()
    kept: List[EquipmentItem] = []
    for item in ledger.items:
        if item.id in seen:
            logger.warning("Dropping duplicate equipment item '%s'", item.id)
            continue
        seen.add(item.id)
        kept.append(deepcopy(item))
    return Ledger(items=kept)


def merge(ledger: Ledger, incoming: List[EquipmentItem]) -> Ledger:
    """Append ``incoming`` items, keeping the existing entry on id clashes."""
    return deduplicate_by_id(Ledger(items=list(ledger.items) + list(incoming)))


def readdress(
    ledger: Ledger, mapping: Mapping[Address, Optional[Address]]
) -> Ledger:
    """Rewrite item bindings after a structural removal.

    Args:
        ledger: Current ledger.
        mapping: Old address -> new address, or None for deleted elements, as
            reported by :func:`sitesurvey.tree.remove`.

    Returns:
        Ledger with shifted bindings rewritten and bindings to deleted
        elements cleared. Unassigned items stay in the BOM.
    """
    items = deepcopy(ledger.items)
    moved = cleared = 0
    for item in items:
        old = item.infrastructure_element
        if old is None or old not in mapping:
            continue
        item.infrastructure_element = mapping[old]
        if mapping[old] is None:
            cleared += 1
        else:
            moved += 1
    if moved or cleared:
        logger.info(
            "Re-addressed %d equipment item(s); unassigned %d from removed elements",
            moved,
            cleared,
        )
    return Ledger(items=items)
