"""Tests for card payments and the checkout sequence (validate, pay, order, clear)."""

from types import SimpleNamespace
from unittest import mock

import pytest
import stripe

from wholesale.models.cart import CartFundraiser
from wholesale.services.api_client import WholesaleApiError
from wholesale.services.cart import make_cart_line
from wholesale.services.checkout import (
    CartValidationError,
    CheckoutError,
    CheckoutService,
    ContactInfo,
    pickup_location_text,
)
from wholesale.services.payments import (
    PaymentError,
    PaymentSettings,
    StripePaymentService,
    idempotency_key,
)

LIVE = PaymentSettings(secret_key="sk_test_abc", publishable_key="pk_test_abc")
DEMO = PaymentSettings(secret_key="", publishable_key="", demo_mode=True)


@pytest.fixture
def contact():
    return ContactInfo(
        customer_name="Ana Kealoha",
        customer_email="ana@example.com",
        customer_phone="808-555-0100",
        participant_id=7,
    )


@pytest.fixture
def spring_cart(cart, mug, spring):
    cart.add_item(make_cart_line(mug, {}, 1), 2, fundraiser=CartFundraiser.from_fundraiser(spring))
    return cart


# =============================================================================
# Payments
# =============================================================================


class TestPaymentSettings:
    def test_modes(self):
        assert LIVE.mode == "test"
        assert DEMO.mode == "demo"
        assert PaymentSettings("sk_live_x", "pk_live_x").mode == "live"
        assert PaymentSettings("", "").mode == "unknown"

    def test_enabled_needs_both_keys(self):
        assert LIVE.enabled
        assert DEMO.enabled
        assert not PaymentSettings("sk_test_x", "").enabled

    def test_from_config(self):
        settings = PaymentSettings.from_config(
            {"STRIPE_SECRET_KEY": "sk_test_1", "STRIPE_PUBLISHABLE_KEY": "pk_test_1", "CURRENCY": "USD"}
        )
        assert settings.currency == "usd"
        assert not settings.demo_mode


class TestCharge:
    def test_demo_mode_never_calls_stripe(self):
        with mock.patch("stripe.PaymentIntent.create") as create:
            result = StripePaymentService(DEMO).charge(1500, "")
        create.assert_not_called()
        assert result.demo
        assert result.intent_id.startswith("pi_demo_")

    def test_rejects_zero_total(self):
        with pytest.raises(PaymentError, match="greater than zero"):
            StripePaymentService(DEMO).charge(0, "pm_card_visa")

    def test_confirms_intent(self):
        intent = SimpleNamespace(id="pi_123", status="succeeded")
        with mock.patch("stripe.PaymentIntent.create", return_value=intent) as create:
            result = StripePaymentService(LIVE).charge(
                2500, "pm_card_visa", receipt_email="ana@example.com", idem_key="wh_pi_x"
            )
        assert result.intent_id == "pi_123"
        kwargs = create.call_args.kwargs
        assert kwargs["amount"] == 2500
        assert kwargs["confirm"] is True
        assert kwargs["payment_method"] == "pm_card_visa"
        assert kwargs["idempotency_key"] == "wh_pi_x"

    def test_incomplete_intent_fails(self):
        intent = SimpleNamespace(id="pi_123", status="requires_action")
        with mock.patch("stripe.PaymentIntent.create", return_value=intent):
            with pytest.raises(PaymentError) as exc:
                StripePaymentService(LIVE).charge(2500, "pm_card_visa")
        assert exc.value.message == "Payment failed. Please try again."
        assert exc.value.detail == "status=requires_action"

    def test_stripe_error_is_wrapped(self):
        error = stripe.CardError("Your card was declined.", "card", "card_declined")
        with mock.patch("stripe.PaymentIntent.create", side_effect=error):
            with pytest.raises(PaymentError) as exc:
                StripePaymentService(LIVE).charge(2500, "pm_card_visa")
        assert "declined" in exc.value.detail

    def test_missing_payment_method(self):
        with pytest.raises(PaymentError):
            StripePaymentService(LIVE).charge(2500, "")

    def test_idempotency_key_is_stable(self):
        a = idempotency_key(1, 2500, "Ana@Example.com", "n1")
        assert a == idempotency_key(1, 2500, "ana@example.com", "n1")
        assert a != idempotency_key(1, 2500, "ana@example.com", "n2")
        assert a.startswith("wh_pi_")


# =============================================================================
# Pickup text
# =============================================================================


class TestPickupLocationText:
    def test_fundraiser_name_and_address(self, spring):
        assert pickup_location_text(spring) == "Swim Club - 123 Marine Dr"

    def test_name_with_restaurant_address(self, spring):
        spring.pickup_display_address = None
        assert pickup_location_text(spring, "Hafaloha", "99 Kam Hwy") == "Swim Club - 99 Kam Hwy"

    def test_name_only(self, spring):
        spring.pickup_display_address = None
        assert pickup_location_text(spring) == "Swim Club - Contact for pickup details"

    def test_restaurant_fallbacks(self, band):
        assert pickup_location_text(band, "Shaved Ice Co", "1 Beach Rd") == "Shaved Ice Co - 1 Beach Rd"
        assert pickup_location_text(None) == "Hafaloha - Contact restaurant for pickup details"


# =============================================================================
# Checkout
# =============================================================================


class TestPlaceOrder:
    def test_happy_path(self, api, spring_cart, contact):
        service = CheckoutService(api, spring_cart, StripePaymentService(DEMO))
        order = service.place_order(contact, "")

        assert order.order_number == "WH-901"
        assert spring_cart.items == []
        sent = api.orders[0]
        assert sent["order"]["customerName"] == "Ana Kealoha"
        assert sent["order"]["participantId"] == 7
        assert sent["order"]["shippingAddress"] == "Swim Club - 123 Marine Dr"
        assert sent["order"]["transactionId"].startswith("pi_demo_")
        assert "notes" not in sent["order"]
        assert sent["cart_items"][0]["quantity"] == 2

    def test_empty_cart(self, api, cart, contact):
        with pytest.raises(CheckoutError) as exc:
            CheckoutService(api, cart, StripePaymentService(DEMO)).place_order(contact, "")
        assert exc.value.code == "cart_empty"

    def test_invalid_cart_is_not_charged(self, api, spring_cart, contact):
        api.validation = {"valid": False, "issues": [{"type": "out_of_stock", "item_id": 102, "item_name": "Coffee Mug"}]}
        payments = mock.Mock(wraps=StripePaymentService(DEMO))

        with pytest.raises(CartValidationError) as exc:
            CheckoutService(api, spring_cart, payments).place_order(contact, "")
        assert exc.value.messages == ['"Coffee Mug" is out of stock']
        payments.charge.assert_not_called()
        assert len(spring_cart.items) == 1

    def test_failed_payment_keeps_cart(self, api, spring_cart, contact):
        intent = SimpleNamespace(id="pi_9", status="requires_payment_method")
        with mock.patch("stripe.PaymentIntent.create", return_value=intent):
            with pytest.raises(PaymentError):
                CheckoutService(api, spring_cart, StripePaymentService(LIVE)).place_order(contact, "pm_x")
        assert api.orders == []
        assert len(spring_cart.items) == 1

    def test_order_failure_after_charge_reports_transaction(self, api, spring_cart, contact):
        api.order_error = WholesaleApiError("Order service down", status=500)
        intent = SimpleNamespace(id="pi_charged", status="succeeded")
        with mock.patch("stripe.PaymentIntent.create", return_value=intent):
            with pytest.raises(CheckoutError) as exc:
                CheckoutService(api, spring_cart, StripePaymentService(LIVE)).place_order(contact, "pm_x", nonce="n1")
        assert exc.value.code == "order_failed"
        assert exc.value.transaction_id == "pi_charged"
        assert len(spring_cart.items) == 1
