# wholesale/blueprints/cart.py
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Blueprint, current_app, session

from wholesale.blueprints.common import (
    backend_error,
    get_cart,
    json_error,
    json_ok,
    request_payload,
    safe_int_opt,
)
from wholesale.extensions import get_api
from wholesale.models.cart import CartFundraiser
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.cart import CartStore, make_cart_line
from wholesale.services.cart_validation import remove_unavailable_items, validate_cart
from wholesale.services.conflict import (
    ACTION_ADD,
    ACTION_NAVIGATE,
    CartConflict,
    ConflictStateError,
    PendingAction,
)
from wholesale.services.inventory import validate_cart_item_inventory
from wholesale.services.options import normalize_selection, validate_selections

bp = Blueprint("cart", __name__, url_prefix="/cart")

CONFLICT_SESSION_KEY = "wholesale-cart-conflict"


# ----------------------------
# Session helpers
# ----------------------------
def _load_conflict(cart: CartStore) -> CartConflict:
    return CartConflict.from_dict(cart, session.get(CONFLICT_SESSION_KEY))


def _store_conflict(conflict: CartConflict) -> None:
    if conflict.is_open:
        session[CONFLICT_SESSION_KEY] = conflict.to_dict()
    else:
        session.pop(CONFLICT_SESSION_KEY, None)


def _cart_body(cart: CartStore, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"cart": cart.summary()}
    body.update(extra)
    return body


def _conflict_response(conflict: CartConflict):
    return json_error(
        "Your cart has items from a different fundraiser",
        409,
        code="cart_conflict",
        conflict=conflict.conflict.to_dict() if conflict.conflict else None,
        state=conflict.state.value,
    )


def _target_fundraiser(slug: Optional[str], fundraiser_id: Optional[int]) -> CartFundraiser:
    if slug:
        return CartFundraiser.from_fundraiser(get_api().get_fundraiser(slug))
    return CartFundraiser(id=fundraiser_id or 0)


# ----------------------------
# Routes
# ----------------------------
@bp.get("")
def show_cart():
    cart = get_cart()
    conflict = _load_conflict(cart)
    return json_ok(_cart_body(cart, conflict=conflict.to_dict()))


@bp.post("/items")
def add_item():
    payload = request_payload()
    item_id = safe_int_opt(payload.get("item_id"))
    quantity = safe_int_opt(payload.get("quantity")) or 1
    if item_id is None:
        return json_error("item_id is required", 400, code="bad_request")
    if quantity < 1:
        return json_error("Quantity must be at least 1", 400, code="bad_request")

    selection = normalize_selection(payload.get("selected_options") or payload.get("options"))

    try:
        item = get_api().get_item(item_id)
        fundraiser = _target_fundraiser(
            payload.get("fundraiser_slug"),
            safe_int_opt(payload.get("fundraiser_id")) or item.fundraiser_id,
        )
    except WholesaleApiError as e:
        return backend_error(e)

    if not fundraiser.id:
        return json_error("Item is not part of a fundraiser", 400, code="bad_request")

    errors = validate_selections(item, selection)
    if errors:
        return json_error(
            "Please complete your selections",
            422,
            code="invalid_selection",
            errors=[e.to_dict() for e in errors],
        )

    cart = get_cart()
    existing = cart.existing_quantity(item.id, selection) if cart.current_fundraiser_id == fundraiser.id else 0
    check = validate_cart_item_inventory(item, selection, quantity, existing)
    if not check.is_valid:
        return json_error(check.errors[0], 422, code="insufficient_stock", errors=check.errors)

    line = make_cart_line(item, selection, fundraiser.id)
    conflict = CartConflict(cart)
    pending = PendingAction(kind=ACTION_ADD, fundraiser=fundraiser, line=line, quantity=quantity)
    if not conflict.check(fundraiser, pending):
        _store_conflict(conflict)
        return _conflict_response(conflict)

    _store_conflict(conflict)
    if not conflict.result:
        return json_error("Unable to add item to cart", 409, code="cart_rejected")
    current_app.logger.info("cart add item=%s qty=%s fundraiser=%s", item.id, quantity, fundraiser.id)
    return json_ok(_cart_body(cart), 201)


@bp.post("/fundraiser")
def select_fundraiser():
    """Switch the shopper to a fundraiser; opens a conflict if the cart is elsewhere."""
    payload = request_payload()
    slug = (payload.get("slug") or "").strip()
    if not slug:
        return json_error("slug is required", 400, code="bad_request")
    try:
        fundraiser = _target_fundraiser(slug, None)
    except WholesaleApiError as e:
        return backend_error(e)

    cart = get_cart()
    conflict = CartConflict(cart)
    pending = PendingAction(kind=ACTION_NAVIGATE, fundraiser=fundraiser, next_url=payload.get("next_url"))
    if not conflict.check(fundraiser, pending):
        _store_conflict(conflict)
        return _conflict_response(conflict)
    _store_conflict(conflict)
    return json_ok(_cart_body(cart, next_url=conflict.result))


@bp.patch("/items/<line_id>")
def update_item(line_id: str):
    quantity = safe_int_opt(request_payload().get("quantity"))
    if quantity is None:
        return json_error("quantity is required", 400, code="bad_request")
    cart = get_cart()
    if cart.get_line(line_id) is None:
        return json_error("Cart item not found", 404, code="not_found")
    cart.update_quantity(line_id, quantity)
    return json_ok(_cart_body(cart))


@bp.delete("/items/<line_id>")
def remove_item(line_id: str):
    cart = get_cart()
    if not cart.remove_item(line_id):
        return json_error("Cart item not found", 404, code="not_found")
    return json_ok(_cart_body(cart))


@bp.post("/clear")
def clear_cart():
    cart = get_cart()
    cart.clear()
    session.pop(CONFLICT_SESSION_KEY, None)
    return json_ok(_cart_body(cart))


@bp.post("/validate")
def validate():
    cart = get_cart()
    result = validate_cart(get_api(), cart)
    return json_ok(_cart_body(cart, validation=result.to_dict()))


@bp.post("/fix")
def fix():
    cart = get_cart()
    summary = remove_unavailable_items(get_api(), cart)
    if summary is None and cart.error:
        return json_error(cart.error, 502, code="backend_error")
    return json_ok(_cart_body(cart, repair=summary.to_dict() if summary else None))


@bp.get("/conflict")
def conflict_state():
    cart = get_cart()
    return json_ok(_load_conflict(cart).to_dict())


@bp.post("/conflict/resolve")
def resolve_conflict():
    resolution = (request_payload().get("resolution") or "").strip()
    cart = get_cart()
    conflict = _load_conflict(cart)
    try:
        result = conflict.resolve(resolution)
    except ConflictStateError as e:
        return json_error(str(e), 409, code="no_conflict")
    except ValueError as e:
        return json_error(str(e), 400, code="bad_request")

    session.pop(CONFLICT_SESSION_KEY, None)
    extra: Dict[str, Any] = {"state": conflict.state.value}
    if isinstance(result, str):
        extra["next_url"] = result
    return json_ok(_cart_body(cart, **extra))
