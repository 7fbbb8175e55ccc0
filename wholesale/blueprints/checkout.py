from __future__ import annotations

from typing import Any, Dict, List

from flask import Blueprint, current_app
from werkzeug.datastructures import MultiDict

from wholesale.blueprints.common import (
    get_cart,
    get_payments,
    json_error,
    json_ok,
    request_payload,
)
from wholesale.extensions import get_api
from wholesale.forms import CheckoutForm
from wholesale.models.catalog import Participant
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.checkout import (
    CartValidationError,
    CheckoutError,
    CheckoutService,
    ContactInfo,
    pickup_location_text,
)
from wholesale.services.payments import PaymentError

bp = Blueprint("checkout", __name__, url_prefix="/checkout")


def _form_from_payload(payload: Dict[str, Any]) -> CheckoutForm:
    fields = {k: str(v) for k, v in payload.items() if v is not None and not isinstance(v, (dict, list))}
    return CheckoutForm(formdata=MultiDict(fields))


def _participants(slug: str) -> List[Participant]:
    if not slug:
        return []
    try:
        return get_api().get_participants(slug)
    except WholesaleApiError as e:
        # the participant picker is optional
        current_app.logger.warning("participants unavailable for %s: %s", slug, e.message)
        return []


@bp.get("/config")
def checkout_config():
    cart = get_cart()
    cfg = current_app.config
    fundraiser = cart.fundraiser
    return json_ok(
        {
            "payments": get_payments().public_config(),
            "pickup_location": pickup_location_text(fundraiser, cfg.get("RESTAURANT_NAME"), cfg.get("RESTAURANT_ADDRESS")),
            "pickup": {
                "instructions": fundraiser.pickup_instructions if fundraiser else None,
                "hours": fundraiser.pickup_hours if fundraiser else None,
                "contact_name": fundraiser.pickup_contact_name if fundraiser else None,
                "contact_phone": fundraiser.pickup_contact_phone if fundraiser else None,
            },
            "participants": [p.to_dict() for p in _participants(fundraiser.slug if fundraiser else "")],
            "phone_prefix": cfg.get("DEFAULT_PHONE_PREFIX"),
            "cart": cart.summary(),
        }
    )


@bp.post("")
def place_order():
    payload = request_payload()
    form = _form_from_payload(payload)
    if not form.validate():
        return json_error("Please fix the highlighted fields", 422, code="invalid_form", fields=form.first_errors())

    payment_method_id = str(payload.get("payment_method_id") or "").strip()
    cfg = current_app.config
    cart = get_cart()
    service = CheckoutService(
        get_api(),
        cart,
        get_payments(),
        restaurant_name=cfg.get("RESTAURANT_NAME"),
        restaurant_address=cfg.get("RESTAURANT_ADDRESS"),
    )

    try:
        order = service.place_order(
            ContactInfo.from_form(form),
            payment_method_id,
            nonce=str(payload.get("idempotency_key") or ""),
        )
    except CartValidationError as e:
        return json_error(e.message, 422, code=e.code, messages=e.messages, cart_error=cart.error)
    except PaymentError as e:
        return json_error(e.message, 402, code="payment_failed")
    except CheckoutError as e:
        status = 502 if e.code == "order_failed" else 400
        return json_error(e.message, status, code=e.code, transaction_id=e.transaction_id)

    current_app.logger.info("order %s placed (fundraiser=%s)", order.order_number or order.id, order.fundraiser_id)
    return json_ok({"order": order.to_dict(), "cart": cart.summary()}, 201)
