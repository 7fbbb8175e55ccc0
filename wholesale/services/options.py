"""Option-group selection rules and add-on pricing for a single item."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from wholesale.models.catalog import Item, OptionGroup

SelectionMap = Dict[str, List[int]]


@dataclass(frozen=True)
class SelectionError:
    group_id: Optional[int]
    group_name: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"group_id": self.group_id, "group_name": self.group_name, "message": self.message}


def normalize_selection(raw: Optional[Mapping[Any, Any]]) -> SelectionMap:
    """Coerce request/session input into ``{"<group id>": [option ids]}``; empty groups are dropped."""
    out: SelectionMap = {}
    for group_id, option_ids in (raw or {}).items():
        if option_ids is None:
            continue
        if not isinstance(option_ids, (list, tuple)):
            option_ids = [option_ids]
        ids: List[int] = []
        for oid in option_ids:
            try:
                ids.append(int(oid))
            except (TypeError, ValueError):
                continue
        if ids:
            out[str(group_id)] = ids
    return out


def toggle_option(selection: Mapping[str, Sequence[int]], group: OptionGroup, option_id: int) -> SelectionMap:
    """Select/unselect an option; at ``max_select`` the oldest pick makes room."""
    out: SelectionMap = {k: list(v) for k, v in selection.items()}
    key = str(group.id)
    current = out.get(key, [])

    if option_id in current:
        current = [oid for oid in current if oid != option_id]
    elif group.max_select > 0 and len(current) >= group.max_select:
        current = current[1:] + [option_id]
    else:
        current = current + [option_id]

    if current:
        out[key] = current
    else:
        out.pop(key, None)
    return out


def group_validation_message(group: OptionGroup, selected_count: int) -> Optional[str]:
    if group.min_select > 0 and selected_count < group.min_select:
        if group.min_select == 1:
            return "Please select an option"
        return f"Please select at least {group.min_select} options"
    if group.max_select > 0 and selected_count > group.max_select:
        return f"Please select no more than {group.max_select} options"
    return None


def validate_selections(item: Item, selection: Mapping[str, Sequence[int]]) -> List[SelectionError]:
    errors: List[SelectionError] = []

    for group_id, option_ids in selection.items():
        group = item.group(group_id)
        if group is None:
            errors.append(SelectionError(None, str(group_id), "Unknown option group"))
            continue
        for oid in option_ids:
            option = group.option(oid)
            if option is None:
                errors.append(SelectionError(group.id, group.name, f"Unknown option {oid}"))
            elif not option.available:
                errors.append(SelectionError(group.id, group.name, f"{option.name} is not available"))

    for group in item.option_groups:
        msg = group_validation_message(group, len(selection.get(str(group.id), [])))
        if msg:
            errors.append(SelectionError(group.id, group.name, msg))

    return errors


def _money(v: Any) -> Decimal:
    return Decimal(str(v or 0))


def price_breakdown(item: Item, selection: Mapping[str, Sequence[int]]) -> List[Dict[str, Any]]:
    breakdown: List[Dict[str, Any]] = []
    for group in item.option_groups:
        paid = []
        for oid in selection.get(str(group.id), []):
            option = group.option(oid)
            if option is not None and option.additional_price > 0:
                paid.append({"name": option.name, "price": option.additional_price})
        if paid:
            breakdown.append({"group_name": group.name, "options": paid})
    return breakdown


def additional_price(item: Item, selection: Mapping[str, Sequence[int]]) -> Decimal:
    total = Decimal("0")
    for group in item.option_groups:
        for oid in selection.get(str(group.id), []):
            option = group.option(oid)
            if option is not None:
                total += _money(option.additional_price)
    return total


def unit_price(item: Item, selection: Mapping[str, Sequence[int]]) -> Decimal:
    return _money(item.price) + additional_price(item, selection)


def unit_price_cents(item: Item, selection: Mapping[str, Sequence[int]]) -> int:
    return int((unit_price(item, selection) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_backend_selection(item: Item, selection: Mapping[str, Sequence[int]]) -> SelectionMap:
    out: SelectionMap = {}
    for group in item.option_groups:
        chosen = list(selection.get(str(group.id), []))
        if chosen:
            out[str(group.id)] = chosen
    return out


def to_display_selection(item: Item, selection: Mapping[str, Sequence[int]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for group in item.option_groups:
        names = [o.name for o in (group.option(oid) for oid in selection.get(str(group.id), [])) if o]
        if names:
            out[group.name] = ", ".join(names)
    return out
