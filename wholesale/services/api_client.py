# wholesale/services/api_client.py
"""
REST client for the wholesale backend.

Every endpoint answers with the envelope ``{"success": bool, "message": str,
"data": {...}}``. Transport failures, HTTP errors and ``success: false`` all
raise ``WholesaleApiError``; nothing is retried.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from wholesale.models.catalog import Fundraiser, Item, Participant
from wholesale.models.order import Order

log = logging.getLogger(__name__)


class WholesaleApiError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload or {}


class WholesaleApi:
    base_path = "/wholesale"

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/json")
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "WholesaleApi":
        return cls(
            base_url=str(config.get("WHOLESALE_API_URL") or ""),
            timeout=float(config.get("WHOLESALE_API_TIMEOUT") or 15.0),
            token=config.get("WHOLESALE_API_TOKEN") or None,
        )

    # ----------------------------
    # Transport
    # ----------------------------
    def _url(self, path: str) -> str:
        return f"{self.base_url}{self.base_path}{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._url(path)
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log.warning("backend %s %s failed: %s", method, path, e)
            raise WholesaleApiError("Unable to reach the store. Please try again.") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if resp.status_code >= 400:
            message = body.get("message") or body.get("error") or f"Request failed ({resp.status_code})"
            if isinstance(message, dict):
                message = message.get("message") or f"Request failed ({resp.status_code})"
            raise WholesaleApiError(str(message), status=resp.status_code, payload=body)

        if body.get("success") is False:
            raise WholesaleApiError(str(body.get("message") or "Request failed"), status=resp.status_code, payload=body)

        data = body.get("data")
        return data if isinstance(data, dict) else {}

    def _get(self, path: str, **kwargs: Any) -> Dict[str, Any]:
        return self._request("GET", path, **kwargs)

    def _post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("POST", path, json=payload or {})

    # ----------------------------
    # Fundraisers
    # ----------------------------
    def get_fundraisers(self) -> List[Fundraiser]:
        data = self._get("/fundraisers")
        return [Fundraiser.from_api(f) for f in data.get("fundraisers") or []]

    def get_fundraiser(self, slug: str) -> Fundraiser:
        data = self._get(f"/fundraisers/{slug}")
        return Fundraiser.from_api(data.get("fundraiser") or {})

    def get_fundraiser_items(self, slug: str) -> List[Item]:
        data = self._get(f"/fundraisers/{slug}/items")
        return [Item.from_api(i) for i in data.get("items") or []]

    def get_participants(self, slug: str) -> List[Participant]:
        return self.get_fundraiser(slug).participants

    # ----------------------------
    # Items
    # ----------------------------
    def get_item(self, item_id: int) -> Item:
        data = self._get(f"/items/{item_id}")
        return Item.from_api(data.get("item") or {})

    def check_item_availability(self, item_id: int, quantity: int) -> Dict[str, Any]:
        return self._post(f"/items/{item_id}/check_availability", {"quantity": quantity})

    def check_variant_availability(self, item_id: int, variant_id: int, quantity: int) -> Dict[str, Any]:
        data = self._post(f"/items/{item_id}/variants/{variant_id}/check_availability", {"quantity": quantity})
        return data.get("availability") or {}

    # ----------------------------
    # Cart validation
    # ----------------------------
    def validate_cart(self, cart_items: Sequence[Dict[str, Any]]) -> Dict[str, Any]:
        """Returns ``{"valid": bool, "issues": [...]}`` for the given cart lines."""
        if cart_items:
            return self._post("/cart/validate", {"cart_items": list(cart_items)})
        return self._get("/cart/validate")

    # ----------------------------
    # Orders + payments
    # ----------------------------
    def get_orders(self) -> List[Order]:
        data = self._get("/orders")
        return [Order.from_api(o) for o in data.get("orders") or []]

    def get_order(self, order_id: int) -> Order:
        data = self._get(f"/orders/{order_id}")
        return Order.from_api(data.get("order") or {})

    def create_order(self, payload: Dict[str, Any]) -> Order:
        data = self._post("/orders", payload)
        if not data.get("order"):
            raise WholesaleApiError("Failed to create order")
        return Order.from_api(data["order"], test_mode=bool(data.get("test_mode")))

    def cancel_order(self, order_id: int) -> Order:
        data = self._request("DELETE", f"/orders/{order_id}/cancel")
        return Order.from_api(data.get("order") or {})

    # ----------------------------
    # Service
    # ----------------------------
    def health_check(self) -> Dict[str, Any]:
        return self._get("/health")
