# wholesale/services/realtime.py
"""
Realtime wholesale events from the backend socket.

``WholesaleRealtime`` wraps a python-socketio client and fans typed events out
to handlers registered per (event, source id). Inventory events also feed the
process-wide ``StockBoard`` so session carts can catch up on their next read.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

import socketio

from wholesale.models.base import pick, to_bool, to_int, to_int_opt, to_str_opt
from wholesale.models.cart import utc_now_iso
from wholesale.services.cart import CartStore

log = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], None]

SOURCE_ID = "wholesale"
NOTIFICATION_EVENT = "notification"


class WholesaleEvent(str, Enum):
    NEW_ORDER = "new_order"
    ORDER_UPDATED = "order_updated"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

    WHOLESALE_NEW_ORDER = "wholesale_new_order"
    WHOLESALE_ORDER_UPDATED = "wholesale_order_updated"
    WHOLESALE_ITEM_STOCK_UPDATED = "wholesale_item_stock_updated"
    WHOLESALE_FUNDRAISER_UPDATED = "wholesale_fundraiser_updated"
    WHOLESALE_PARTICIPANT_GOAL_UPDATED = "wholesale_participant_goal_updated"


@dataclass(frozen=True)
class StockUpdate:
    id: int
    name: str
    in_stock: bool
    stock_status: str = ""
    stock_quantity: Optional[int] = None
    sku: Optional[str] = None
    fundraiser_id: Optional[int] = None
    fundraiser_slug: Optional[str] = None
    # identifies this event; carts remember which stamps they have applied
    stamp: str = field(default_factory=lambda: uuid4().hex[:12], compare=False)

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "StockUpdate":
        fundraiser = data.get("fundraiser") or {}
        return cls(
            id=to_int(data.get("id")),
            name=str(data.get("name") or ""),
            in_stock=to_bool(pick(data, "inStock", "in_stock"), default=True),
            stock_status=str(pick(data, "stockStatus", "stock_status", default="") or ""),
            stock_quantity=to_int_opt(pick(data, "stockQuantity", "stock_quantity")),
            sku=to_str_opt(data.get("sku")),
            fundraiser_id=to_int_opt(fundraiser.get("id")),
            fundraiser_slug=to_str_opt(fundraiser.get("slug")),
        )

    @property
    def event_key(self) -> str:
        return f"{self.id}:{self.stamp}"

    @property
    def out_of_stock_message(self) -> str:
        return f"{self.name} is now out of stock. Please review your cart."

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "in_stock": self.in_stock,
            "stock_status": self.stock_status,
            "stock_quantity": self.stock_quantity,
            "sku": self.sku,
            "fundraiser": {"id": self.fundraiser_id, "slug": self.fundraiser_slug},
        }


def apply_inventory_update(cart: CartStore, update: StockUpdate) -> bool:
    """
    Apply one stock event to the cart. Lines for the item are touched and an
    out-of-stock event leaves a review message on the cart. The cart records
    the event's key, so re-reading the same event later changes nothing.
    """
    lines = [line for line in cart.items if line.item_id == update.id]
    if not lines or update.in_stock:
        return False
    if cart.has_seen_stock_event(update.event_key):
        return False

    now = utc_now_iso()
    for line in lines:
        line.updated_at = now
    cart.mark_stock_event(update.event_key)
    cart.error = update.out_of_stock_message
    cart.save()
    return True


class StockBoard:
    """Latest stock event per item; later events replace earlier ones."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._updates: Dict[int, StockUpdate] = {}

    def apply(self, update: StockUpdate) -> None:
        with self._lock:
            self._updates[update.id] = update

    def get(self, item_id: int) -> Optional[StockUpdate]:
        with self._lock:
            return self._updates.get(item_id)

    def snapshot(self) -> Dict[int, StockUpdate]:
        with self._lock:
            return dict(self._updates)

    def clear(self) -> None:
        with self._lock:
            self._updates.clear()

    def apply_to_cart(self, cart: CartStore) -> bool:
        changed = False
        for item_id in {line.item_id for line in cart.items}:
            update = self.get(item_id)
            if update is not None and apply_inventory_update(cart, update):
                changed = True
        return changed


def _slug_filter(slug: str, handler: Handler) -> Handler:
    def _filtered(data: Dict[str, Any]) -> None:
        fundraiser = data.get("fundraiser") or {}
        if fundraiser.get("slug") == slug:
            handler(data)

    return _filtered


class WholesaleRealtime:
    def __init__(
        self,
        url: str,
        restaurant_id: Optional[str] = None,
        token: Optional[str] = None,
        client: Optional[socketio.Client] = None,
    ):
        self.url = url
        self.restaurant_id = restaurant_id
        self.token = token
        self._handlers: Dict[str, Dict[str, Handler]] = {}
        self._lock = threading.RLock()
        self._client = client or socketio.Client(reconnection=True, logger=False)
        self._client.on("*", self.dispatch)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "WholesaleRealtime":
        return cls(
            url=str(config.get("WHOLESALE_SOCKET_URL") or config.get("WHOLESALE_API_URL") or ""),
            restaurant_id=config.get("RESTAURANT_ID") or None,
            token=config.get("WHOLESALE_API_TOKEN") or None,
        )

    # ---- connection ----
    def connect(self) -> bool:
        if self.is_connected():
            return True
        auth: Dict[str, Any] = {}
        if self.restaurant_id:
            auth["restaurant_id"] = self.restaurant_id
        if self.token:
            auth["token"] = self.token
        try:
            self._client.connect(self.url, auth=auth or None, wait_timeout=10)
        except socketio.exceptions.ConnectionError as e:
            log.warning("Realtime connect to %s failed: %s", self.url, e)
            return False
        log.info("Realtime connected to %s", self.url)
        return True

    def disconnect(self) -> None:
        self.unsubscribe_from_all()
        if self._client.connected:
            self._client.disconnect()

    def is_connected(self) -> bool:
        return bool(self._client.connected)

    def wait(self) -> None:
        self._client.wait()

    # ---- handler registry ----
    def register(self, event: str, handler: Handler, source_id: str) -> None:
        with self._lock:
            self._handlers.setdefault(str(event), {})[source_id] = handler

    def unregister(self, event: str, source_id: str) -> None:
        with self._lock:
            handlers = self._handlers.get(str(event))
            if handlers:
                handlers.pop(source_id, None)
                if not handlers:
                    self._handlers.pop(str(event), None)

    def handlers_for(self, event: str) -> List[Handler]:
        with self._lock:
            return list((self._handlers.get(str(event)) or {}).values())

    def dispatch(self, event: str, payload: Any = None) -> int:
        """Deliver one event; ``notification`` envelopes are unwrapped first."""
        if event == NOTIFICATION_EVENT and isinstance(payload, dict) and payload.get("type"):
            event, payload = str(payload["type"]), payload.get("data")
        if isinstance(event, WholesaleEvent):
            event = event.value
        data = payload if isinstance(payload, dict) else {}

        delivered = 0
        for handler in self.handlers_for(event):
            try:
                handler(data)
                delivered += 1
            except Exception:
                log.exception("Realtime handler for %s failed", event)
        return delivered

    # ---- typed subscriptions ----
    def subscribe_to_orders(self, handler: Handler) -> None:
        self.register(WholesaleEvent.WHOLESALE_NEW_ORDER.value, handler, f"{SOURCE_ID}_new_order")
        self.register(WholesaleEvent.WHOLESALE_ORDER_UPDATED.value, handler, f"{SOURCE_ID}_order_updated")

    def unsubscribe_from_orders(self) -> None:
        self.unregister(WholesaleEvent.WHOLESALE_NEW_ORDER.value, f"{SOURCE_ID}_new_order")
        self.unregister(WholesaleEvent.WHOLESALE_ORDER_UPDATED.value, f"{SOURCE_ID}_order_updated")

    def subscribe_to_inventory(self, handler: Handler) -> None:
        self.register(WholesaleEvent.WHOLESALE_ITEM_STOCK_UPDATED.value, handler, f"{SOURCE_ID}_inventory")

    def unsubscribe_from_inventory(self) -> None:
        self.unregister(WholesaleEvent.WHOLESALE_ITEM_STOCK_UPDATED.value, f"{SOURCE_ID}_inventory")

    def subscribe_to_fundraisers(self, handler: Handler) -> None:
        self.register(WholesaleEvent.WHOLESALE_FUNDRAISER_UPDATED.value, handler, f"{SOURCE_ID}_fundraiser")

    def unsubscribe_from_fundraisers(self) -> None:
        self.unregister(WholesaleEvent.WHOLESALE_FUNDRAISER_UPDATED.value, f"{SOURCE_ID}_fundraiser")

    def subscribe_to_participants(self, handler: Handler) -> None:
        self.register(WholesaleEvent.WHOLESALE_PARTICIPANT_GOAL_UPDATED.value, handler, f"{SOURCE_ID}_participant")

    def unsubscribe_from_participants(self) -> None:
        self.unregister(WholesaleEvent.WHOLESALE_PARTICIPANT_GOAL_UPDATED.value, f"{SOURCE_ID}_participant")

    def subscribe_to_all(
        self,
        on_order: Optional[Handler] = None,
        on_inventory: Optional[Handler] = None,
        on_fundraiser: Optional[Handler] = None,
        on_participant: Optional[Handler] = None,
    ) -> None:
        if on_order:
            self.subscribe_to_orders(on_order)
        if on_inventory:
            self.subscribe_to_inventory(on_inventory)
        if on_fundraiser:
            self.subscribe_to_fundraisers(on_fundraiser)
        if on_participant:
            self.subscribe_to_participants(on_participant)

    def unsubscribe_from_all(self) -> None:
        self.unsubscribe_from_orders()
        self.unsubscribe_from_inventory()
        self.unsubscribe_from_fundraisers()
        self.unsubscribe_from_participants()

    def subscribe_to_fundraiser(
        self,
        slug: str,
        on_order: Optional[Handler] = None,
        on_inventory: Optional[Handler] = None,
        on_participant: Optional[Handler] = None,
    ) -> None:
        """Like ``subscribe_to_all`` but only for events about fundraiser ``slug``."""
        if on_order:
            self.subscribe_to_orders(_slug_filter(slug, on_order))
        if on_inventory:
            self.subscribe_to_inventory(_slug_filter(slug, on_inventory))
        if on_participant:
            self.subscribe_to_participants(_slug_filter(slug, on_participant))


def feed_stock_board(
    realtime: WholesaleRealtime,
    board: StockBoard,
    rebroadcast: Optional[Callable[[str, Dict[str, Any], Optional[str]], Any]] = None,
) -> None:
    """Route inventory events into ``board`` and, optionally, out to browser rooms."""

    def _on_inventory(data: Dict[str, Any]) -> None:
        update = StockUpdate.from_api(data)
        if not update.id:
            return
        board.apply(update)
        if rebroadcast is not None:
            rebroadcast(WholesaleEvent.WHOLESALE_ITEM_STOCK_UPDATED.value, update.to_dict(), update.fundraiser_slug)

    realtime.subscribe_to_inventory(_on_inventory)


@dataclass
class RealtimeState:
    connected: bool = False
    started_at: Optional[str] = None
    errors: List[str] = field(default_factory=list)


def start_realtime(app: Any) -> Optional[WholesaleRealtime]:
    """Connect the app's realtime client and keep it running (call from a worker thread)."""
    from wholesale.extensions import emit_socket

    realtime = WholesaleRealtime.from_config(app.config)
    feed_stock_board(realtime, app.extensions["stock_board"], emit_socket)
    app.extensions["wholesale_realtime"] = realtime

    state: RealtimeState = app.extensions.setdefault("realtime_state", RealtimeState())
    if not realtime.connect():
        state.errors.append(f"connect failed: {realtime.url}")
        return None
    state.connected = True
    state.started_at = utc_now_iso()
    realtime.wait()
    state.connected = False
    return realtime
