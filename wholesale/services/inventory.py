"""
Client-side inventory rules for wholesale items.

Availability is re-derived from the stock figures the backend already ships
with each item, in three independent tracking modes:

- variant: one stock unit per option combination, looked up by variant key
- item: one stock counter for the whole item
- option: per-option counters inside option groups that enable tracking

Items with no tracking are treated as unlimited (``UNLIMITED_QUANTITY``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from wholesale.models.catalog import (
    STOCK_LOW,
    STOCK_OUT,
    TRACKING_ITEM,
    TRACKING_OPTION,
    TRACKING_VARIANT,
    Item,
    ItemVariant,
    Option,
    OptionGroup,
)

UNLIMITED_QUANTITY = 999
DEFAULT_LOW_STOCK_THRESHOLD = 5
MANUAL_LOW_STOCK_QUANTITY = 2

Selection = Mapping[Any, Sequence[int]]


# ----------------------------
# Variant keys
# ----------------------------
def generate_variant_key(selection: Optional[Selection]) -> str:
    """
    Canonical key for an option selection: ``"groupId:optionId"`` pairs,
    sorted lexicographically and comma-joined. Insertion order never matters.
    """
    if not selection:
        return ""
    pairs = [
        f"{group_id}:{option_id}"
        for group_id, option_ids in selection.items()
        for option_id in (option_ids or [])
    ]
    return ",".join(sorted(pairs))


def find_variant(item: Item, selection: Optional[Selection]) -> Optional[ItemVariant]:
    key = generate_variant_key(selection)
    for variant in item.variants:
        if variant.variant_key == key:
            return variant
    return None


def get_variant_available_quantity(variant: Optional[ItemVariant]) -> int:
    if variant is None or not variant.active:
        return 0
    return variant.available_quantity


# ----------------------------
# Options
# ----------------------------
def get_option_available_quantity(option: Option, group: Optional[OptionGroup] = None) -> int:
    if not option.available:
        return 0

    tracked = group is not None and group.enable_inventory_tracking
    if not tracked or option.stock_quantity is None:
        return UNLIMITED_QUANTITY

    return max(0, (option.stock_quantity or 0) - (option.damaged_quantity or 0))


def is_option_available(option: Option, requested_quantity: int = 1, group: Optional[OptionGroup] = None) -> bool:
    if not option.available:
        return False
    tracked = group is not None and group.enable_inventory_tracking
    if not tracked or option.stock_quantity is None:
        return True
    return get_option_available_quantity(option, group) >= requested_quantity


def has_available_options(group: OptionGroup) -> bool:
    if not group.options:
        return False
    return any(is_option_available(o, 1, group) for o in group.options)


def _tracked_selected_options(item: Item, selection: Optional[Selection]) -> Iterable[Tuple[OptionGroup, Option]]:
    if not selection:
        return
    for group in item.option_groups:
        if not group.enable_inventory_tracking:
            continue
        for option_id in selection.get(str(group.id)) or selection.get(group.id) or []:
            option = group.option(option_id)
            if option is not None:
                yield group, option


# ----------------------------
# Items
# ----------------------------
def _item_level_quantity(item: Item) -> Optional[int]:
    if item.stock_quantity is not None:
        return max(0, item.stock_quantity - (item.damaged_quantity or 0))
    if item.available_quantity is not None:
        return max(0, item.available_quantity)
    return None


def get_item_available_quantity(item: Item, selection: Optional[Selection] = None) -> int:
    """Resolve the sellable quantity of ``item`` for an (optional) option selection."""
    if item.stock_status == STOCK_OUT:
        return 0

    mode = item.tracking_mode

    if mode == TRACKING_VARIANT:
        return get_variant_available_quantity(find_variant(item, selection))

    if mode == TRACKING_ITEM:
        qty = _item_level_quantity(item)
        if qty is not None:
            return qty

    if mode == TRACKING_OPTION:
        ceilings = [get_option_available_quantity(o, g) for g, o in _tracked_selected_options(item, selection)]
        if ceilings:
            return min(ceilings)
        if not selection and item.effective_available_quantity is not None:
            return max(0, item.effective_available_quantity)
        return UNLIMITED_QUANTITY

    if item.stock_status == STOCK_LOW:
        return item.low_stock_threshold or MANUAL_LOW_STOCK_QUANTITY

    return UNLIMITED_QUANTITY


def is_item_available(item: Item, requested_quantity: int = 1, selection: Optional[Selection] = None) -> bool:
    return get_item_available_quantity(item, selection) >= requested_quantity


@dataclass(frozen=True)
class StockStatus:
    status: str
    message: str

    def to_dict(self):
        return {"status": self.status, "message": self.message}


def get_stock_status_display(available_quantity: int, low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> StockStatus:
    if available_quantity <= 0:
        return StockStatus("out_of_stock", "Out of stock")
    if available_quantity <= low_stock_threshold:
        return StockStatus("low_stock", f"Only {available_quantity} left")
    return StockStatus("in_stock", "In stock")


# ----------------------------
# Cart-facing validation
# ----------------------------
@dataclass
class InventoryCheck:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"is_valid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def _shortage_message(name: str, available: int, wanted: int) -> str:
    if available == 0:
        return f"{name} is out of stock"
    return f"{name} has only {available} available (you're trying to add {wanted})"


def validate_cart_item_inventory(
    item: Item,
    selection: Optional[Selection],
    requested_quantity: int,
    existing_cart_quantity: int = 0,
) -> InventoryCheck:
    # a manual out-of-stock flag overrides every tracking mode
    if item.stock_status == STOCK_OUT:
        return InventoryCheck(is_valid=False, errors=[f"{item.name} is out of stock"])

    errors: List[str] = []
    warnings: List[str] = []
    wanted = requested_quantity + existing_cart_quantity
    mode = item.tracking_mode

    if mode == TRACKING_VARIANT:
        variant = find_variant(item, selection)
        if variant is None:
            errors.append(f"{item.name} is not available in the selected combination")
        elif not variant.active:
            errors.append(f"{variant.variant_name or item.name} is no longer available")
        elif variant.available_quantity < wanted:
            errors.append(_shortage_message(variant.variant_name or item.name, variant.available_quantity, wanted))

    elif mode == TRACKING_ITEM:
        available = get_item_available_quantity(item, selection)
        if available < wanted:
            errors.append(_shortage_message(item.name, available, wanted))

    elif mode == TRACKING_OPTION:
        for group, option in _tracked_selected_options(item, selection):
            available = get_option_available_quantity(option, group)
            if available < wanted:
                errors.append(_shortage_message(option.name, available, wanted))

    return InventoryCheck(is_valid=not errors, errors=errors, warnings=warnings)


def get_max_quantity_for_item(
    item: Item,
    selection: Optional[Selection],
    existing_cart_quantity: int = 0,
) -> int:
    """Largest quantity that can still be added on top of what the cart holds."""
    if item.stock_status == STOCK_OUT:
        return 0

    max_quantity = UNLIMITED_QUANTITY
    mode = item.tracking_mode

    if mode == TRACKING_VARIANT:
        available = get_variant_available_quantity(find_variant(item, selection))
        max_quantity = min(max_quantity, max(0, available - existing_cart_quantity))
    elif mode == TRACKING_ITEM:
        available = get_item_available_quantity(item, selection)
        max_quantity = min(max_quantity, max(0, available - existing_cart_quantity))
    elif mode == TRACKING_OPTION:
        for group, option in _tracked_selected_options(item, selection):
            available = get_option_available_quantity(option, group)
            max_quantity = min(max_quantity, max(0, available - existing_cart_quantity))

    return max(0, max_quantity)
