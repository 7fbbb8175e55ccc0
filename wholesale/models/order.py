from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .base import pick, to_float, to_int, to_int_opt, to_str_opt

CANCELLABLE_STATUSES = frozenset({"pending", "confirmed"})

STATUS_DESCRIPTIONS = {
    "confirmed": "Your order has been confirmed and payment has been processed successfully.",
    "paid": "Your order has been confirmed and payment has been processed successfully.",
    "pending": "Your order is pending and will be processed soon.",
    "processing": "Your order is being prepared for shipment.",
    "fulfilled": "Your order is ready for pickup!",
    "shipped": "Your order has been shipped and is on its way.",
    "delivered": "Your order has been delivered successfully.",
    "cancelled": "This order has been cancelled.",
}


@dataclass
class Order:
    id: int
    order_number: str = ""
    status: str = ""
    payment_status: str = ""
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    total: float = 0.0
    total_cents: int = 0
    item_count: int = 0
    fundraiser_id: Optional[int] = None
    fundraiser_name: Optional[str] = None
    fundraiser_slug: Optional[str] = None
    participant_id: Optional[int] = None
    participant_name: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    test_mode: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any], test_mode: bool = False) -> "Order":
        fundraiser = data.get("fundraiser") or {}
        participant = data.get("participant") or {}
        total = to_float(data.get("total"))
        total_cents = to_int_opt(pick(data, "total_cents", "totalCents"))
        return cls(
            id=to_int(data.get("id")),
            order_number=str(pick(data, "order_number", "orderNumber", default="")),
            status=str(data.get("status") or ""),
            payment_status=str(pick(data, "payment_status", "paymentStatus", default="")),
            customer_name=str(pick(data, "customer_name", "customerName", default="")),
            customer_email=str(pick(data, "customer_email", "customerEmail", default="")),
            customer_phone=to_str_opt(pick(data, "customer_phone", "customerPhone")),
            shipping_address=to_str_opt(pick(data, "shipping_address", "shippingAddress")),
            total=total,
            total_cents=total_cents if total_cents is not None else int(round(total * 100)),
            item_count=to_int(pick(data, "item_count", "itemCount")),
            fundraiser_id=to_int_opt(fundraiser.get("id")),
            fundraiser_name=to_str_opt(fundraiser.get("name")),
            fundraiser_slug=to_str_opt(fundraiser.get("slug")),
            participant_id=to_int_opt(participant.get("id")),
            participant_name=to_str_opt(participant.get("name")),
            created_at=to_str_opt(pick(data, "created_at", "createdAt")),
            updated_at=to_str_opt(pick(data, "updated_at", "updatedAt")),
            test_mode=test_mode,
        )

    @property
    def can_cancel(self) -> bool:
        return self.status.lower() in CANCELLABLE_STATUSES

    @property
    def status_description(self) -> str:
        return STATUS_DESCRIPTIONS.get(self.status.lower(), "Order status is being updated.")

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["can_cancel"] = self.can_cancel
        out["status_description"] = self.status_description
        return out
