from __future__ import annotations

from typing import Any, Dict, Optional, cast

from flask import current_app, jsonify, request

from wholesale.extensions import get_stock_board
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.cart import CartStore, SessionCartStorage
from wholesale.services.payments import PaymentSettings, StripePaymentService


def request_payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if isinstance(data, dict) and data:
        return cast(Dict[str, Any], data)
    if request.form:
        return cast(Dict[str, Any], request.form.to_dict(flat=True))
    return {}


def safe_int_opt(v: Any) -> Optional[int]:
    if v is None:
        return None
    try:
        s = str(v).strip()
        if not s:
            return None
        return int(s)
    except (TypeError, ValueError):
        return None


def truthy_arg(name: str) -> Optional[bool]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return raw.strip().lower() in {"1", "true", "yes", "on", "y"}


def json_response(payload: Dict[str, Any], status: int = 200):
    resp = jsonify(payload)
    resp.status_code = int(status)
    resp.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
    return resp


def json_ok(payload: Optional[Dict[str, Any]] = None, status: int = 200):
    payload = dict(payload or {})
    payload.setdefault("ok", True)
    return json_response(payload, status)


def json_error(message: str, status: int, code: str = "error", **extra: Any):
    body: Dict[str, Any] = {"ok": False, "error": {"code": code, "message": message}}
    if extra:
        body["error"].update(extra)
    return json_response(body, status)


def backend_error(e: WholesaleApiError):
    """Backend 404s stay 404; anything else the backend refuses becomes a 502."""
    status = 404 if e.status == 404 else 502
    if e.status in (400, 409, 422):
        status = e.status
    current_app.logger.warning("backend error (%s): %s", e.status, e.message)
    return json_error(e.message, status, code="backend_error", backend_status=e.status)


def get_cart() -> CartStore:
    """The shopper's cart, with any realtime stock news applied."""
    cart = CartStore(SessionCartStorage(), storage_key=current_app.config.get("CART_STORAGE_KEY") or "wholesale-cart-storage")
    get_stock_board().apply_to_cart(cart)
    return cart


def get_payments() -> StripePaymentService:
    return StripePaymentService(PaymentSettings.from_config(current_app.config))
