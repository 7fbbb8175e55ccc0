"""Shared fixtures: catalog payloads, an in-memory backend and the Flask app."""

import copy
from typing import Any, Dict, List, Optional

import pytest

from wholesale import create_app
from wholesale.config import TestingConfig
from wholesale.models.catalog import Fundraiser, Item
from wholesale.models.order import Order
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.cart import CartStore


# =============================================================================
# Catalog payloads (backend JSON shape)
# =============================================================================

SPRING = {
    "id": 1,
    "name": "Spring Sale",
    "slug": "spring-sale",
    "description": "Shirts, mugs and cookies for the swim team",
    "status": "current",
    "active": True,
    "featured": True,
    "pickup_display_name": "Swim Club",
    "pickup_display_address": "123 Marine Dr",
    "participant_count": 2,
    "item_count": 4,
    "participants": [
        {"id": 7, "name": "Kai", "slug": "kai", "goalAmount": 500, "currentAmount": 120},
        {"id": 8, "name": "Leilani", "slug": "leilani"},
    ],
}

BAND = {
    "id": 2,
    "name": "Band Camp",
    "slug": "band-camp",
    "status": "current",
    "active": True,
    "featured": False,
}

ARCHIVED = {
    "id": 3,
    "name": "Winter Drive",
    "slug": "winter-drive",
    "status": "ended",
    "active": False,
}

TSHIRT = {
    "id": 101,
    "fundraiser_id": 1,
    "name": "Team T-Shirt",
    "price": 20.0,
    "price_cents": 2000,
    "position": 2,
    "track_variants": True,
    "option_groups": [
        {
            "id": 1,
            "name": "Size",
            "min_select": 1,
            "max_select": 1,
            "position": 0,
            "options": [
                {"id": 11, "name": "S", "additional_price": 0},
                {"id": 12, "name": "M", "additional_price": 0},
                {"id": 13, "name": "XL", "additional_price": 2.0},
            ],
        },
        {
            "id": 2,
            "name": "Color",
            "min_select": 1,
            "max_select": 1,
            "position": 1,
            "options": [
                {"id": 21, "name": "Red"},
                {"id": 22, "name": "Blue"},
            ],
        },
    ],
    "item_variants": [
        {"id": 1001, "variant_key": "1:11,2:21", "variant_name": "S / Red", "stock_quantity": 5, "damaged_quantity": 1},
        {"id": 1002, "variant_key": "1:12,2:21", "variant_name": "M / Red", "stock_quantity": 0},
        {"id": 1003, "variant_key": "1:13,2:22", "variant_name": "XL / Blue", "stock_quantity": 3, "active": False},
    ],
}

MUG = {
    "id": 102,
    "fundraiser_id": 1,
    "name": "Coffee Mug",
    "sku": "MUG-1",
    "price": 12.5,
    "position": 1,
    "track_inventory": True,
    "stock_quantity": 10,
    "damaged_quantity": 2,
}

COOKIES = {
    "id": 103,
    "fundraiser_id": 1,
    "name": "Cookie Box",
    "price": 15.0,
    "position": 3,
    "uses_option_level_inventory": True,
    "option_groups": [
        {
            "id": 3,
            "name": "Flavor",
            "min_select": 1,
            "max_select": 2,
            "enable_inventory_tracking": True,
            "options": [
                {"id": 31, "name": "Chocolate", "stock_quantity": 6, "damaged_quantity": 1},
                {"id": 32, "name": "Macadamia", "additional_price": 1.5, "stock_quantity": 2},
                {"id": 33, "name": "Coconut", "available": False, "stock_quantity": 9},
            ],
        }
    ],
}

STICKER = {
    "id": 104,
    "fundraiser_id": 1,
    "name": "Sticker",
    "price": 3.0,
    "position": 4,
}

CANDLE = {
    "id": 201,
    "fundraiser_id": 2,
    "name": "Band Candle",
    "price": 18.0,
}

FUNDRAISERS = {f["slug"]: f for f in (SPRING, BAND, ARCHIVED)}
ITEMS = {i["id"]: i for i in (TSHIRT, MUG, COOKIES, STICKER, CANDLE)}

ORDER_HISTORY = {
    801: {
        "id": 801,
        "order_number": "WH-801",
        "status": "pending",
        "total": 25.0,
        "fundraiser": {"id": 1, "name": "Spring Sale", "slug": "spring-sale"},
        "created_at": "2026-03-02T18:30:00Z",
    },
    802: {
        "id": 802,
        "order_number": "WH-802",
        "status": "fulfilled",
        "total": 40.0,
        "fundraiser": {"id": 2, "name": "Band Camp", "slug": "band-camp"},
        "created_at": "2026-03-10T09:00:00Z",
    },
    803: {
        "id": 803,
        "order_number": "WH-803",
        "status": "confirmed",
        "total": 12.5,
        "fundraiser": {"id": 1, "name": "Spring Sale", "slug": "spring-sale"},
        "created_at": "2026-03-15T23:59:00Z",
    },
}


# =============================================================================
# In-memory collaborators
# =============================================================================


class MemoryStorage:
    """Cart storage backed by a dict (stands in for the session / cart file)."""

    def __init__(self):
        self.data: Dict[str, Any] = {}
        self.saves = 0

    def load(self, key):
        return copy.deepcopy(self.data.get(key))

    def save(self, key, data):
        self.saves += 1
        self.data[key] = copy.deepcopy(data)


class FakeApi:
    """Backend double with the ``WholesaleApi`` surface the app uses."""

    def __init__(self):
        self.fundraisers = copy.deepcopy(FUNDRAISERS)
        self.items = copy.deepcopy(ITEMS)
        self.validation: Dict[str, Any] = {"valid": True, "issues": []}
        self.validate_error: Optional[WholesaleApiError] = None
        self.order_error: Optional[WholesaleApiError] = None
        self.validated: List[List[Dict[str, Any]]] = []
        self.orders: List[Dict[str, Any]] = []
        self.history: Dict[int, Dict[str, Any]] = copy.deepcopy(ORDER_HISTORY)
        self.availability: Dict[str, Any] = {"available": True}
        self.availability_checks: List[tuple] = []

    def get_fundraisers(self):
        return [Fundraiser.from_api(f) for f in self.fundraisers.values()]

    def get_fundraiser(self, slug):
        if slug not in self.fundraisers:
            raise WholesaleApiError("Fundraiser not found", status=404)
        data = dict(self.fundraisers[slug])
        data["items"] = [i for i in self.items.values() if i.get("fundraiser_id") == data["id"]]
        return Fundraiser.from_api(data)

    def get_fundraiser_items(self, slug):
        fundraiser = self.get_fundraiser(slug)
        return fundraiser.items

    def get_participants(self, slug):
        return self.get_fundraiser(slug).participants

    def get_item(self, item_id):
        if item_id not in self.items:
            raise WholesaleApiError("Item not found", status=404)
        return Item.from_api(copy.deepcopy(self.items[item_id]))

    def validate_cart(self, cart_items):
        self.validated.append(cart_items)
        if self.validate_error:
            raise self.validate_error
        return copy.deepcopy(self.validation)

    def create_order(self, payload):
        if self.order_error:
            raise self.order_error
        self.orders.append(payload)
        return Order.from_api(
            {
                "id": 900 + len(self.orders),
                "order_number": f"WH-{900 + len(self.orders)}",
                "status": "pending",
                "customer_name": payload["order"]["customerName"],
                "customer_email": payload["order"]["customerEmail"],
                "shipping_address": payload["order"].get("shippingAddress"),
                "total_cents": sum(i["line_total_cents"] for i in payload["cart_items"]),
                "fundraiser": {"id": payload["cart_items"][0]["fundraiser_id"]},
            }
        )

    def check_item_availability(self, item_id, quantity):
        self.availability_checks.append(("item", item_id, quantity))
        return dict(self.availability)

    def check_variant_availability(self, item_id, variant_id, quantity):
        self.availability_checks.append(("variant", item_id, variant_id, quantity))
        return dict(self.availability)

    def get_orders(self):
        return [Order.from_api(copy.deepcopy(o)) for o in self.history.values()]

    def get_order(self, order_id):
        if order_id not in self.history:
            raise WholesaleApiError("Order not found", status=404)
        return Order.from_api(copy.deepcopy(self.history[order_id]))

    def cancel_order(self, order_id):
        self.history[order_id]["status"] = "cancelled"
        return self.get_order(order_id)

    def health_check(self):
        return {"status": "ok"}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def api():
    """Fresh in-memory backend."""
    return FakeApi()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def cart(storage):
    """Empty cart over in-memory storage."""
    return CartStore(storage)


@pytest.fixture
def tshirt():
    return Item.from_api(copy.deepcopy(TSHIRT))


@pytest.fixture
def mug():
    return Item.from_api(copy.deepcopy(MUG))


@pytest.fixture
def cookies():
    return Item.from_api(copy.deepcopy(COOKIES))


@pytest.fixture
def sticker():
    return Item.from_api(copy.deepcopy(STICKER))


@pytest.fixture
def candle():
    return Item.from_api(copy.deepcopy(CANDLE))


@pytest.fixture
def spring():
    return Fundraiser.from_api(copy.deepcopy(SPRING))


@pytest.fixture
def band():
    return Fundraiser.from_api(copy.deepcopy(BAND))


@pytest.fixture
def app(api, tmp_path):
    """App built with TestingConfig and the in-memory backend."""
    app = create_app(TestingConfig)
    app.config["CART_FILE_PATH"] = str(tmp_path / "cart.json")
    app.extensions["wholesale_api"] = api
    yield app
    app.extensions["stock_board"].clear()


@pytest.fixture
def client(app):
    """Flask test client (keeps the session cookie between requests)."""
    return app.test_client()
