"""Backend-side cart validation: issue messages and automatic cart repair."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from wholesale.models.cart import CartItem
from wholesale.services.api_client import WholesaleApi, WholesaleApiError
from wholesale.services.cart import CartStore
from wholesale.services.inventory import generate_variant_key

log = logging.getLogger(__name__)

REMOVE_TYPES = {"out_of_stock", "option_unavailable", "variant_out_of_stock", "variant_inactive", "variant_not_found"}
CLAMP_TYPES = {"insufficient_stock", "variant_insufficient_stock"}
VARIANT_TYPES = {"variant_out_of_stock", "variant_insufficient_stock", "variant_inactive", "variant_not_found"}


@dataclass
class CartValidationResult:
    valid: bool
    messages: List[str] = field(default_factory=list)
    issues: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "messages": list(self.messages), "issues": list(self.issues)}


@dataclass
class CartRepairSummary:
    removed: List[str] = field(default_factory=list)
    adjusted: List[str] = field(default_factory=list)
    repriced: List[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "removed": list(self.removed),
            "adjusted": list(self.adjusted),
            "repriced": list(self.repriced),
            "message": self.message,
        }


def cart_payload(cart: CartStore) -> List[Dict[str, Any]]:
    return [
        {
            "item_id": line.item_id,
            "fundraiser_id": line.fundraiser_id,
            "name": line.name,
            "description": line.description,
            "quantity": line.quantity,
            "price_cents": line.price_cents,
            "line_total_cents": line.line_total_cents,
            "selected_options": line.options or {},
        }
        for line in cart.items
    ]


def describe_issue(issue: Dict[str, Any]) -> str:
    kind = issue.get("type")
    item = issue.get("item_name") or "Item"
    option = issue.get("option_name")

    if kind == "out_of_stock":
        if option:
            return f'"{option}" is out of stock (from {item})'
        return f'"{item}" is out of stock'
    if kind == "insufficient_stock":
        if option:
            return f'Only {issue.get("available")} "{option}" left (from {item}) - you have {issue.get("requested")} in your cart'
        return f'Only {issue.get("available")} left of "{item}" - you have {issue.get("requested")} in your cart'
    if kind == "option_unavailable":
        group = issue.get("group_name")
        suffix = f" for {group}" if group else ""
        return f'"{option}" is no longer available{suffix} (from {item})'
    if kind in ("item_inactive", "item_not_found"):
        return f'"{item}" is no longer available'
    if kind == "fundraiser_inactive":
        return "This fundraiser is no longer accepting orders"
    if kind == "price_changed":
        return f'Price changed for "{item}" - please review'
    if kind in VARIANT_TYPES:
        variant = issue.get("variant_name") or item
        if kind == "variant_insufficient_stock":
            return f'Only {issue.get("available")} "{variant}" left - you have {issue.get("requested")} in your cart'
        return f'"{variant}" is no longer available (from {item})'
    return str(issue.get("message") or "Unknown issue with cart item")


def validate_cart(api: WholesaleApi, cart: CartStore) -> CartValidationResult:
    if not cart.items:
        cart.error = "Cart is empty"
        return CartValidationResult(False, [cart.error])
    if cart.current_fundraiser_id is None:
        cart.error = "No fundraiser selected"
        return CartValidationResult(False, [cart.error])

    try:
        data = api.validate_cart(cart_payload(cart))
    except WholesaleApiError as e:
        log.warning("Cart validation failed: %s", e)
        cart.error = "Unable to validate cart. Please try again."
        return CartValidationResult(False, [cart.error])

    if data.get("valid"):
        cart.error = None
        return CartValidationResult(True)

    issues = [i for i in (data.get("issues") or []) if isinstance(i, dict)]
    messages = [describe_issue(i) for i in issues] or ["Cart validation failed"]
    cart.error = "Some items in your cart need attention:\n\n" + "\n".join(messages)
    return CartValidationResult(False, messages, issues)


def _issue_matches(line: CartItem, issue: Dict[str, Any]) -> bool:
    if line.item_id != issue.get("item_id"):
        return False

    kind = issue.get("type")
    if kind in VARIANT_TYPES:
        key = issue.get("variant_key")
        if key:
            return generate_variant_key(line.options) == key
        return bool(issue.get("variant_name"))

    option_id = issue.get("option_id")
    if option_id is not None:
        return any(option_id in ids for ids in (line.options or {}).values())

    return True


def _plural(n: int, word: str) -> str:
    return f"{n} {word}{'' if n == 1 else 's'}"


def _join_actions(actions: List[str]) -> str:
    if len(actions) <= 1:
        return "".join(actions)
    return ", ".join(actions[:-1]) + " and " + actions[-1]


def remove_unavailable_items(api: WholesaleApi, cart: CartStore) -> Optional[CartRepairSummary]:
    """Apply the backend's issues to the cart: drop, clamp and reprice lines."""
    if not cart.items:
        return None

    try:
        data = api.validate_cart(cart_payload(cart))
    except WholesaleApiError as e:
        log.warning("Cart repair failed: %s", e)
        cart.error = "Failed to update cart. Please try again."
        return None

    issues = [i for i in (data.get("issues") or []) if isinstance(i, dict)]
    summary = CartRepairSummary()
    clamps: Dict[str, int] = {}

    for issue in issues:
        kind = issue.get("type")
        matched = [line for line in cart.items if _issue_matches(line, issue)]

        if kind in REMOVE_TYPES:
            for line in matched:
                if line.id not in summary.removed:
                    summary.removed.append(line.id)
        elif kind in CLAMP_TYPES:
            available = int(issue.get("available") or 0)
            for line in matched:
                if line.id not in summary.removed:
                    clamps[line.id] = min(line.quantity, available)
        elif kind == "price_changed" and issue.get("new_price") is not None:
            new_price = float(issue["new_price"])
            for line in cart.items:
                if line.item_id == issue.get("item_id") and line.id not in summary.removed:
                    line.price = new_price
                    line.price_cents = int(round(new_price * 100))
                    if line.id not in summary.repriced:
                        summary.repriced.append(line.id)

    kept: List[CartItem] = []
    for line in cart.items:
        if line.id in summary.removed:
            continue
        qty = clamps.get(line.id)
        if qty is not None:
            if qty <= 0:
                summary.removed.append(line.id)
                continue
            if qty != line.quantity:
                line.quantity = qty
            summary.adjusted.append(line.id)
        kept.append(line)

    cart.items = kept
    if not cart.items:
        cart.fundraiser = None
    cart.save()

    variant_hits = any(i.get("type") in VARIANT_TYPES for i in issues)
    option_hits = any(
        i.get("type") == "option_unavailable" or (i.get("type") == "insufficient_stock" and i.get("option_id"))
        for i in issues
    )
    noun = "variant" if variant_hits else "option" if option_hits else "item"

    actions: List[str] = []
    if summary.removed:
        what = f"out-of-stock {noun}" if noun == "item" else f"unavailable {noun}"
        actions.append(f"removed {_plural(len(summary.removed), what)}")
    if summary.adjusted:
        actions.append(f"adjusted quantities for {_plural(len(summary.adjusted), noun)} with limited stock")
    if summary.repriced:
        actions.append(f"updated prices for {_plural(len(summary.repriced), 'item')}")

    summary.message = f"Cart fixed! {_join_actions(actions)}." if actions else "Your cart is already up to date!"
    cart.error = None
    return summary
