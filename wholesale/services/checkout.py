# wholesale/services/checkout.py
"""
Checkout: validate -> pay -> create order -> clear cart.

The card charge and the backend order are not atomic. A charge that succeeds
followed by a failed order surfaces as ``CheckoutError`` carrying the
transaction id so staff can reconcile it by hand.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from wholesale.models.cart import CartFundraiser
from wholesale.models.catalog import Fundraiser
from wholesale.models.order import Order
from wholesale.services.api_client import WholesaleApi, WholesaleApiError
from wholesale.services.cart import CartStore
from wholesale.services.cart_validation import cart_payload, validate_cart
from wholesale.services.payments import PaymentError, StripePaymentService, idempotency_key

log = logging.getLogger(__name__)

DEFAULT_RESTAURANT_NAME = "Hafaloha"


class CheckoutError(RuntimeError):
    def __init__(self, message: str, code: str = "checkout_failed", transaction_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.transaction_id = transaction_id


class CartValidationError(CheckoutError):
    def __init__(self, messages: List[str]):
        super().__init__("Some items in your cart need attention", code="cart_invalid")
        self.messages = list(messages)


@dataclass
class ContactInfo:
    customer_name: str
    customer_email: str
    customer_phone: str = ""
    notes: str = ""
    participant_id: Optional[int] = None
    pickup_location: str = "restaurant"

    @classmethod
    def from_form(cls, form: Any) -> "ContactInfo":
        pid = form.participant_id.data
        return cls(
            customer_name=(form.customer_name.data or "").strip(),
            customer_email=(form.customer_email.data or "").strip(),
            customer_phone=(form.customer_phone.data or "").strip(),
            notes=(form.notes.data or "").strip(),
            participant_id=int(pid) if pid else None,
            pickup_location=(form.pickup_location.data or "restaurant").strip(),
        )


def pickup_location_text(
    fundraiser: Optional[Union[Fundraiser, CartFundraiser]],
    restaurant_name: Optional[str] = None,
    restaurant_address: Optional[str] = None,
) -> str:
    """Human pickup line: the fundraiser's own pickup info first, then the restaurant's."""
    name = getattr(fundraiser, "pickup_display_name", None) if fundraiser else None
    address = getattr(fundraiser, "pickup_display_address", None) if fundraiser else None

    if name and address:
        return f"{name} - {address}"
    if name:
        if restaurant_address:
            return f"{name} - {restaurant_address}"
        return f"{name} - Contact for pickup details"

    restaurant = restaurant_name or DEFAULT_RESTAURANT_NAME
    if restaurant_address:
        return f"{restaurant} - {restaurant_address}"
    return f"{restaurant} - Contact restaurant for pickup details"


class CheckoutService:
    def __init__(
        self,
        api: WholesaleApi,
        cart: CartStore,
        payments: StripePaymentService,
        restaurant_name: Optional[str] = None,
        restaurant_address: Optional[str] = None,
    ):
        self.api = api
        self.cart = cart
        self.payments = payments
        self.restaurant_name = restaurant_name
        self.restaurant_address = restaurant_address

    def order_payload(self, contact: ContactInfo, transaction_id: Optional[str] = None) -> Dict[str, Any]:
        order: Dict[str, Any] = {
            "customerName": contact.customer_name,
            "customerEmail": contact.customer_email,
            "customerPhone": contact.customer_phone or None,
            "shippingAddress": pickup_location_text(
                self.cart.fundraiser, self.restaurant_name, self.restaurant_address
            ),
            "notes": contact.notes or None,
            "participantId": contact.participant_id,
        }
        if transaction_id:
            order["transactionId"] = transaction_id
        return {
            "order": {k: v for k, v in order.items() if v is not None},
            "cart_items": cart_payload(self.cart),
        }

    def place_order(self, contact: ContactInfo, payment_method_id: str, nonce: str = "") -> Order:
        if not self.cart.items:
            raise CheckoutError("Your cart is empty", code="cart_empty")
        fundraiser_id = self.cart.current_fundraiser_id
        if fundraiser_id is None:
            raise CheckoutError("No fundraiser selected", code="no_fundraiser")

        result = validate_cart(self.api, self.cart)
        if not result.valid:
            raise CartValidationError(result.messages)

        amount = self.cart.total_cents
        fundraiser_name = self.cart.fundraiser.name if self.cart.fundraiser else ""
        payment = self.payments.charge(
            amount,
            payment_method_id,
            receipt_email=contact.customer_email,
            description=f"Wholesale order - {fundraiser_name}".strip(" -"),
            metadata={
                "fundraiser_id": str(fundraiser_id),
                "customer_name": contact.customer_name,
                "item_count": str(self.cart.item_count),
            },
            idem_key=idempotency_key(fundraiser_id, amount, contact.customer_email, nonce) if nonce else None,
        )
        log.info("Payment %s succeeded for fundraiser %s (%s cents)", payment.intent_id, fundraiser_id, amount)

        try:
            order = self.api.create_order(self.order_payload(contact, payment.intent_id))
        except WholesaleApiError as e:
            log.error("Order creation failed after payment %s: %s", payment.intent_id, e.message)
            raise CheckoutError(
                e.message or "Failed to place order",
                code="order_failed",
                transaction_id=payment.intent_id,
            ) from e

        self.cart.clear()
        return order


__all__ = [
    "CartValidationError",
    "CheckoutError",
    "CheckoutService",
    "ContactInfo",
    "PaymentError",
    "pickup_location_text",
]
