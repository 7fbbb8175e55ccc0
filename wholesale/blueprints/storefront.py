# wholesale/blueprints/storefront.py
"""
Read-side catalog API: fundraisers, their items, and per-selection quotes.

Everything is proxied from the backend and decorated with the availability
rules in ``wholesale.services.inventory`` so the browser never re-derives them.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List

from flask import Blueprint, current_app, request

from wholesale.blueprints.common import (
    backend_error,
    get_cart,
    json_error,
    json_ok,
    request_payload,
    safe_int_opt,
    truthy_arg,
)
from wholesale.extensions import get_api
from wholesale.models.catalog import TRACKING_VARIANT, Fundraiser, Item
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.inventory import (
    find_variant,
    get_item_available_quantity,
    get_max_quantity_for_item,
    get_stock_status_display,
    is_item_available,
    validate_cart_item_inventory,
)
from wholesale.services.options import (
    normalize_selection,
    price_breakdown,
    unit_price,
    unit_price_cents,
    validate_selections,
)

bp = Blueprint("storefront", __name__, url_prefix="/api")

VISIBLE_STATUSES = {"current", "active"}
SORTS = {"position", "name", "price_asc", "price_desc"}


def _threshold(item: Item) -> int:
    return item.low_stock_threshold or int(current_app.config.get("LOW_STOCK_THRESHOLD") or 5)


def _item_payload(item: Item) -> Dict[str, Any]:
    available = get_item_available_quantity(item)
    out = item.to_dict()
    out["availability"] = {
        "available_quantity": available,
        "in_stock": is_item_available(item),
        "stock": get_stock_status_display(available, _threshold(item)).to_dict(),
    }
    return out


def _fundraiser_visible(f: Fundraiser) -> bool:
    return f.active and f.status in VISIBLE_STATUSES


def _matches(q: str, *fields: Any) -> bool:
    needle = q.lower()
    return any(needle in str(v).lower() for v in fields if v)


@bp.get("/fundraisers")
def list_fundraisers():
    try:
        fundraisers = get_api().get_fundraisers()
    except WholesaleApiError as e:
        return backend_error(e)

    active = truthy_arg("active")
    if active is None or active:
        fundraisers = [f for f in fundraisers if _fundraiser_visible(f)]

    if truthy_arg("featured"):
        fundraisers = [f for f in fundraisers if f.featured]

    q = (request.args.get("q") or "").strip()
    if q:
        fundraisers = [f for f in fundraisers if _matches(q, f.name, f.description)]

    per_page = safe_int_opt(request.args.get("per_page")) or int(current_app.config.get("CATALOG_PER_PAGE") or 12)
    per_page = max(1, min(per_page, 100))
    page = max(1, safe_int_opt(request.args.get("page")) or 1)
    total = len(fundraisers)
    window = fundraisers[(page - 1) * per_page : page * per_page]

    return json_ok(
        {
            "fundraisers": [f.to_dict(include_children=False) for f in window],
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "pages": max(1, math.ceil(total / per_page)),
            },
        }
    )


@bp.get("/fundraisers/<slug>")
def fundraiser_detail(slug: str):
    try:
        fundraiser = get_api().get_fundraiser(slug)
    except WholesaleApiError as e:
        return backend_error(e)

    out = fundraiser.to_dict(include_children=False)
    out["participants"] = [p.to_dict() for p in fundraiser.participants]
    out["items"] = [_item_payload(i) for i in fundraiser.items]
    return json_ok({"fundraiser": out})


@bp.get("/fundraisers/<slug>/items")
def fundraiser_items(slug: str):
    try:
        items = get_api().get_fundraiser_items(slug)
    except WholesaleApiError as e:
        return backend_error(e)

    items = [i for i in items if i.active]

    q = (request.args.get("q") or "").strip()
    if q:
        items = [i for i in items if _matches(q, i.name, i.description, i.sku)]

    if truthy_arg("in_stock"):
        items = [i for i in items if is_item_available(i)]

    sort = (request.args.get("sort") or "position").strip().lower()
    if sort not in SORTS:
        return json_error(f"Unknown sort: {sort}", 400, code="bad_request")
    if sort == "name":
        items.sort(key=lambda i: i.name.lower())
    elif sort == "price_asc":
        items.sort(key=lambda i: i.price_cents)
    elif sort == "price_desc":
        items.sort(key=lambda i: i.price_cents, reverse=True)
    else:
        items.sort(key=lambda i: i.position)

    return json_ok({"items": [_item_payload(i) for i in items], "count": len(items)})


@bp.get("/items/<int:item_id>")
def item_detail(item_id: int):
    try:
        item = get_api().get_item(item_id)
    except WholesaleApiError as e:
        return backend_error(e)
    return json_ok({"item": _item_payload(item)})


def _live_availability(item: Item, selection, wanted: int) -> Dict[str, Any]:
    api = get_api()
    if item.tracking_mode == TRACKING_VARIANT:
        variant = find_variant(item, selection)
        if variant is not None and variant.id:
            return api.check_variant_availability(item.id, variant.id, wanted)
    return api.check_item_availability(item.id, wanted)


@bp.post("/items/<int:item_id>/quote")
def item_quote(item_id: int):
    """Price and stock for one configured selection of an item.

    With ``live`` set, the backend is also asked whether the quantity can
    still be had (per variant for variant-tracked items).
    """
    payload = request_payload()
    selection = normalize_selection(payload.get("selected_options") or payload.get("options"))
    quantity = safe_int_opt(payload.get("quantity")) or 1
    if quantity < 1:
        return json_error("Quantity must be at least 1", 400, code="bad_request")

    try:
        item = get_api().get_item(item_id)
    except WholesaleApiError as e:
        return backend_error(e)

    errors = validate_selections(item, selection)
    existing = get_cart().existing_quantity(item.id, selection)
    available = get_item_available_quantity(item, selection)
    inventory = validate_cart_item_inventory(item, selection, quantity, existing)

    messages: List[str] = [e.message for e in errors] + list(inventory.errors)
    body: Dict[str, Any] = {
        "item_id": item.id,
        "selection_errors": [e.to_dict() for e in errors],
        "inventory": inventory.to_dict(),
        "messages": messages,
        "quantity": quantity,
        "unit_price": float(unit_price(item, selection)),
        "unit_price_cents": unit_price_cents(item, selection),
        "line_total_cents": unit_price_cents(item, selection) * quantity,
        "price_breakdown": price_breakdown(item, selection),
        "available_quantity": available,
        "stock": get_stock_status_display(available, _threshold(item)).to_dict(),
        "in_cart": existing,
        "max_quantity": get_max_quantity_for_item(item, selection, existing),
    }

    if payload.get("live") and not errors:
        try:
            live = _live_availability(item, selection, quantity + existing)
        except WholesaleApiError as e:
            return backend_error(e)
        body["live_availability"] = live
        if live.get("available") is False:
            messages.append(str(live.get("message") or f"{item.name} is no longer available in that quantity"))

    body["valid"] = not messages
    return json_ok(body)
