"""Cart line and bound-fundraiser records, in their persisted shape."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .base import pick, to_float, to_int, to_int_opt, to_str_opt
from .catalog import Fundraiser


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class CartFundraiser:
    id: int
    name: str = ""
    slug: str = ""
    description: Optional[str] = None
    pickup_display_name: Optional[str] = None
    pickup_display_address: Optional[str] = None
    pickup_instructions: Optional[str] = None
    pickup_contact_name: Optional[str] = None
    pickup_contact_phone: Optional[str] = None
    pickup_hours: Optional[str] = None

    @classmethod
    def from_fundraiser(cls, f: Fundraiser) -> "CartFundraiser":
        return cls(
            id=f.id,
            name=f.name,
            slug=f.slug,
            description=f.description,
            pickup_display_name=f.pickup_display_name,
            pickup_display_address=f.pickup_display_address,
            pickup_instructions=f.pickup_instructions,
            pickup_contact_name=f.pickup_contact_name,
            pickup_contact_phone=f.pickup_contact_phone,
            pickup_hours=f.pickup_hours,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartFundraiser":
        return cls(
            id=to_int(data.get("id")),
            name=str(data.get("name") or ""),
            slug=str(data.get("slug") or ""),
            description=to_str_opt(data.get("description")),
            pickup_display_name=to_str_opt(data.get("pickup_display_name")),
            pickup_display_address=to_str_opt(data.get("pickup_display_address")),
            pickup_instructions=to_str_opt(data.get("pickup_instructions")),
            pickup_contact_name=to_str_opt(data.get("pickup_contact_name")),
            pickup_contact_phone=to_str_opt(data.get("pickup_contact_phone")),
            pickup_hours=to_str_opt(data.get("pickup_hours")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CartItem:
    item_id: int
    fundraiser_id: int
    name: str
    price: float
    price_cents: int
    quantity: int = 1
    id: str = ""
    description: Optional[str] = None
    sku: Optional[str] = None
    image_url: Optional[str] = None
    # backend shape: group id -> option ids
    options: Dict[str, List[int]] = field(default_factory=dict)
    # display shape: group name -> "Option A, Option B"
    selected_options: Dict[str, Any] = field(default_factory=dict)
    added_at: str = ""
    updated_at: str = ""

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartItem":
        options = pick(data, "options", default={}) or {}
        return cls(
            id=str(data.get("id") or ""),
            item_id=to_int(pick(data, "item_id", "itemId")),
            fundraiser_id=to_int(pick(data, "fundraiser_id", "fundraiserId")),
            name=str(data.get("name") or ""),
            description=to_str_opt(data.get("description")),
            sku=to_str_opt(data.get("sku")),
            price=to_float(data.get("price")),
            price_cents=to_int(pick(data, "price_cents", "priceCents")),
            quantity=to_int(data.get("quantity"), default=1),
            image_url=to_str_opt(pick(data, "image_url", "imageUrl")),
            options={str(k): [i for i in (to_int_opt(x) for x in (v or [])) if i is not None] for k, v in options.items()},
            selected_options=dict(pick(data, "selected_options", "selectedOptions", default={}) or {}),
            added_at=str(pick(data, "added_at", "addedAt", default="")),
            updated_at=str(pick(data, "updated_at", "updatedAt", default="")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["line_total_cents"] = self.line_total_cents
        return out
