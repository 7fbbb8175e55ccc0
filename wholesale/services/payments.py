# wholesale/services/payments.py
import hashlib
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import stripe

log = logging.getLogger(__name__)

PAYMENT_FAILED = "Payment failed. Please try again."


class PaymentError(RuntimeError):
    def __init__(self, message: str = PAYMENT_FAILED, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


@dataclass(frozen=True)
class PaymentSettings:
    secret_key: str
    publishable_key: str
    currency: str = "usd"
    demo_mode: bool = False

    @property
    def mode(self) -> str:
        if self.demo_mode:
            return "demo"
        k = (self.secret_key or self.publishable_key or "").strip()
        if k.startswith(("sk_live_", "pk_live_")):
            return "live"
        if k.startswith(("sk_test_", "pk_test_")):
            return "test"
        return "unknown"

    @property
    def enabled(self) -> bool:
        return self.demo_mode or bool(self.secret_key.startswith("sk_") and self.publishable_key.startswith("pk_"))

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "PaymentSettings":
        return cls(
            secret_key=str(config.get("STRIPE_SECRET_KEY") or ""),
            publishable_key=str(config.get("STRIPE_PUBLISHABLE_KEY") or ""),
            currency=str(config.get("CURRENCY") or "usd").lower(),
            demo_mode=bool(config.get("WHOLESALE_DEMO_PAYMENTS")),
        )


@dataclass(frozen=True)
class PaymentResult:
    intent_id: str
    status: str
    amount_cents: int
    currency: str
    demo: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent_id": self.intent_id,
            "status": self.status,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "demo": self.demo,
        }


def idempotency_key(fundraiser_id: int, amount_cents: int, email: str, nonce: str) -> str:
    raw = f"wh|f:{fundraiser_id}|amt:{amount_cents}|em:{email.lower()}|n:{nonce}"
    return "wh_pi_" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:48]


class StripePaymentService:
    """Charges a card tokenized in the browser; demo mode fakes a succeeded intent."""

    def __init__(self, settings: PaymentSettings):
        self.settings = settings

    def public_config(self) -> Dict[str, Any]:
        return {
            "processor": "stripe",
            "enabled": self.settings.enabled,
            "publishable_key": self.settings.publishable_key,
            "mode": self.settings.mode,
            "test_mode": self.settings.mode in ("test", "demo"),
            "currency": self.settings.currency,
        }

    def charge(
        self,
        amount_cents: int,
        payment_method_id: str,
        *,
        receipt_email: str = "",
        description: str = "",
        metadata: Optional[Dict[str, str]] = None,
        idem_key: Optional[str] = None,
    ) -> PaymentResult:
        if amount_cents <= 0:
            raise PaymentError("Order total must be greater than zero")

        if self.settings.demo_mode:
            log.info("Demo payment accepted for %s cents", amount_cents)
            return PaymentResult(
                intent_id=f"pi_demo_{int(time.time())}_{uuid.uuid4().hex[:6]}",
                status="succeeded",
                amount_cents=int(amount_cents),
                currency=self.settings.currency,
                demo=True,
            )

        if not self.settings.enabled:
            raise PaymentError("Payment system unavailable", detail="stripe keys missing or malformed")
        if not payment_method_id:
            raise PaymentError(PAYMENT_FAILED, detail="missing payment method")

        stripe.api_key = self.settings.secret_key
        params: Dict[str, Any] = {
            "amount": int(amount_cents),
            "currency": self.settings.currency,
            "payment_method": payment_method_id,
            "confirm": True,
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
            "description": description[:250] if description else None,
            "metadata": metadata or {},
        }
        if receipt_email:
            params["receipt_email"] = receipt_email
        params = {k: v for k, v in params.items() if v is not None}

        try:
            if idem_key:
                intent = stripe.PaymentIntent.create(**params, idempotency_key=idem_key)
            else:
                intent = stripe.PaymentIntent.create(**params)
        except stripe.StripeError as e:
            msg = getattr(e, "user_message", None) or str(e)
            log.error("Stripe error confirming payment: %s", msg, exc_info=True)
            raise PaymentError(PAYMENT_FAILED, detail=msg) from e

        status = str(getattr(intent, "status", "") or "")
        if status != "succeeded":
            log.warning("Payment %s not completed (status=%s)", getattr(intent, "id", "?"), status)
            raise PaymentError(PAYMENT_FAILED, detail=f"status={status}")

        return PaymentResult(
            intent_id=str(intent.id),
            status=status,
            amount_cents=int(amount_cents),
            currency=self.settings.currency,
        )
