"""
Shopper cart: an ordered list of lines bound to at most one fundraiser.

State is persisted as ``{"items": [...], "fundraiser": {...}}`` under a fixed
key in a storage backend and restored on construction. Every mutation writes
through immediately.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from flask import session

from wholesale.models.cart import CartFundraiser, CartItem, utc_now_iso
from wholesale.models.catalog import Fundraiser, Item
from wholesale.services.inventory import generate_variant_key
from wholesale.services.options import (
    to_backend_selection,
    to_display_selection,
    unit_price,
    unit_price_cents,
)

log = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "wholesale-cart-storage"

# stock events remembered per cart
MAX_SEEN_STOCK_EVENTS = 50


# ─────────────────────────────────────────────────────────────
# Storage backends
# ─────────────────────────────────────────────────────────────
class SessionCartStorage:
    """Keeps the cart in the shopper's Flask session (signed client cookie)."""

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        data = session.get(key)
        return data if isinstance(data, dict) else None

    def save(self, key: str, data: Dict[str, Any]) -> None:
        session[key] = data
        session.modified = True


class FileCartStorage:
    """JSON file holding one or more carts keyed by storage key (command-line use)."""

    def __init__(self, path: os.PathLike | str):
        self.path = Path(path).expanduser()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            log.warning("Ignoring unreadable cart file %s", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        data = self._read_all().get(key)
        return data if isinstance(data, dict) else None

    def save(self, key: str, data: Dict[str, Any]) -> None:
        all_data = self._read_all()
        all_data[key] = data
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(all_data, indent=2, sort_keys=True), encoding="utf-8")
        tmp.replace(self.path)


# ─────────────────────────────────────────────────────────────
# Line construction
# ─────────────────────────────────────────────────────────────
def new_line_id(item_id: int) -> str:
    return f"{item_id}-{uuid4().hex[:12]}"


def make_cart_line(item: Item, selection: Mapping[str, Sequence[int]], fundraiser_id: int) -> CartItem:
    """Price a configured item (base + add-ons) into a cart line of quantity 1."""
    return CartItem(
        id=new_line_id(item.id),
        item_id=item.id,
        fundraiser_id=fundraiser_id,
        name=item.name,
        description=item.description,
        sku=item.sku,
        price=float(unit_price(item, selection)),
        price_cents=unit_price_cents(item, selection),
        image_url=item.primary_image_url,
        options=to_backend_selection(item, selection),
        selected_options=to_display_selection(item, selection),
    )


def _is_legacy_line(line: CartItem) -> bool:
    return any(isinstance(v, (list, tuple)) for v in line.selected_options.values())


# ─────────────────────────────────────────────────────────────
# Cart store
# ─────────────────────────────────────────────────────────────
class CartStore:
    def __init__(self, storage: Any, storage_key: str = DEFAULT_STORAGE_KEY, autoload: bool = True):
        self.storage = storage
        self.storage_key = storage_key
        self.items: List[CartItem] = []
        self.fundraiser: Optional[CartFundraiser] = None
        self.error: Optional[str] = None
        self.seen_stock_events: List[str] = []
        if autoload:
            self.load()

    # ---- persistence ----
    def load(self) -> None:
        data = self.storage.load(self.storage_key) or {}
        self.items = [CartItem.from_dict(d) for d in (data.get("items") or []) if isinstance(d, dict)]
        f = data.get("fundraiser")
        self.fundraiser = CartFundraiser.from_dict(f) if isinstance(f, dict) else None
        self.seen_stock_events = [str(k) for k in (data.get("stock_events") or [])]
        self.migrate_format()

    def save(self) -> None:
        self.storage.save(self.storage_key, self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [line.to_dict() for line in self.items],
            "fundraiser": self.fundraiser.to_dict() if self.fundraiser else None,
            "stock_events": list(self.seen_stock_events),
        }

    def migrate_format(self) -> bool:
        """Drop carts persisted with list-valued display options (older format)."""
        if any(_is_legacy_line(line) for line in self.items):
            log.warning("Detected old cart format, clearing cart for compatibility")
            self.clear()
            return True
        return False

    # ---- lookups ----
    @property
    def current_fundraiser_id(self) -> Optional[int]:
        if self.fundraiser is not None:
            return self.fundraiser.id
        if self.items:
            return self.items[0].fundraiser_id
        return None

    def get_line(self, line_id: str) -> Optional[CartItem]:
        for line in self.items:
            if line.id == line_id:
                return line
        return None

    def find_line(self, item_id: int, options: Optional[Mapping[str, Sequence[int]]]) -> Optional[CartItem]:
        key = generate_variant_key(options)
        for line in self.items:
            if line.item_id == item_id and generate_variant_key(line.options) == key:
                return line
        return None

    def existing_quantity(self, item_id: int, options: Optional[Mapping[str, Sequence[int]]]) -> int:
        line = self.find_line(item_id, options)
        return line.quantity if line else 0

    # ---- mutations ----
    def add_item(self, line: CartItem, quantity: int = 1, fundraiser: Optional[CartFundraiser] = None) -> bool:
        """
        Add ``quantity`` of ``line``. Returns False (and changes nothing) when the
        cart already holds items from a different fundraiser.
        """
        if self.items and self.current_fundraiser_id != line.fundraiser_id:
            return False
        if not self.items and self.fundraiser is not None and self.fundraiser.id != line.fundraiser_id:
            self.fundraiser = None

        now = utc_now_iso()
        existing = self.find_line(line.item_id, line.options)
        if existing is not None:
            existing.quantity += quantity
            existing.updated_at = now
        else:
            line.id = line.id or new_line_id(line.item_id)
            line.quantity = quantity
            line.added_at = now
            line.updated_at = now
            self.items.append(line)

        if self.fundraiser is None:
            self.fundraiser = fundraiser or CartFundraiser(id=line.fundraiser_id)

        self.error = None
        self.save()
        return True

    def update_quantity(self, line_id: str, quantity: int) -> bool:
        if quantity <= 0:
            return self.remove_item(line_id)

        line = self.get_line(line_id)
        if line is None:
            return False
        line.quantity = quantity
        line.updated_at = utc_now_iso()
        self.error = None
        self.save()
        return True

    def remove_item(self, line_id: str) -> bool:
        before = len(self.items)
        self.items = [line for line in self.items if line.id != line_id]
        if not self.items:
            self.fundraiser = None
        self.error = None
        self.save()
        return len(self.items) != before

    def clear(self) -> None:
        self.items = []
        self.fundraiser = None
        self.error = None
        self.save()

    def set_fundraiser(self, fundraiser: CartFundraiser | Fundraiser) -> None:
        if isinstance(fundraiser, Fundraiser):
            fundraiser = CartFundraiser.from_fundraiser(fundraiser)
        self.fundraiser = fundraiser
        self.error = None
        self.save()

    # ---- realtime bookkeeping ----
    def has_seen_stock_event(self, key: str) -> bool:
        return key in self.seen_stock_events

    def mark_stock_event(self, key: str) -> None:
        """Remember ``key`` (``"<item_id>:<stamp>"``) so the event is never applied twice."""
        in_cart = {str(line.item_id) for line in self.items}
        kept = [k for k in self.seen_stock_events if k.split(":", 1)[0] in in_cart and k != key]
        self.seen_stock_events = (kept + [key])[-MAX_SEEN_STOCK_EVENTS:]

    # ---- totals ----
    @property
    def total_cents(self) -> int:
        return sum(line.line_total_cents for line in self.items)

    @property
    def total(self) -> float:
        return round(sum(line.price * line.quantity for line in self.items), 2)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)

    def summary(self) -> Dict[str, Any]:
        return {
            "items": [line.to_dict() for line in self.items],
            "fundraiser": self.fundraiser.to_dict() if self.fundraiser else None,
            "totals": {
                "item_count": self.item_count,
                "total_quantity": self.total_quantity,
                "subtotal": self.total,
                "subtotal_cents": self.total_cents,
            },
            "error": self.error,
        }
