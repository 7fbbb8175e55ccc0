from __future__ import annotations

# -----------------------------------------------------------------------------
# Catalog models: fundraisers, participants, items and their option/variant
# structure, parsed from the backend's JSON (snake_case or camelCase keys).
# -----------------------------------------------------------------------------
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .base import pick, to_bool, to_float, to_int, to_int_opt, to_str_opt

TRACKING_NONE = "none"
TRACKING_ITEM = "item"
TRACKING_OPTION = "option"
TRACKING_VARIANT = "variant"

STOCK_IN = "in_stock"
STOCK_LOW = "low_stock"
STOCK_OUT = "out_of_stock"


@dataclass
class Option:
    id: int
    name: str
    additional_price: float = 0.0
    available: bool = True
    position: int = 0
    stock_quantity: Optional[int] = None
    damaged_quantity: Optional[int] = None
    low_stock_threshold: Optional[int] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Option":
        return cls(
            id=to_int(data.get("id")),
            name=str(data.get("name") or ""),
            additional_price=to_float(pick(data, "additional_price", "additionalPrice")),
            available=to_bool(data.get("available"), default=True),
            position=to_int(data.get("position")),
            stock_quantity=to_int_opt(pick(data, "stock_quantity", "stockQuantity")),
            damaged_quantity=to_int_opt(pick(data, "damaged_quantity", "damagedQuantity")),
            low_stock_threshold=to_int_opt(pick(data, "low_stock_threshold", "lowStockThreshold")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class OptionGroup:
    id: int
    name: str
    min_select: int = 0
    max_select: int = 1
    required: bool = False
    position: int = 0
    enable_inventory_tracking: bool = False
    options: List[Option] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "OptionGroup":
        min_select = to_int(pick(data, "min_select", "minSelect"))
        return cls(
            id=to_int(data.get("id")),
            name=str(data.get("name") or ""),
            min_select=min_select,
            max_select=to_int(pick(data, "max_select", "maxSelect"), default=1),
            required=to_bool(data.get("required"), default=min_select > 0),
            position=to_int(data.get("position")),
            enable_inventory_tracking=to_bool(
                pick(data, "enable_inventory_tracking", "enableInventoryTracking")
            ),
            options=[Option.from_api(o) for o in (data.get("options") or [])],
        )

    def option(self, option_id: int) -> Optional[Option]:
        for o in self.options:
            if o.id == option_id:
                return o
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ItemVariant:
    id: int
    variant_key: str
    variant_name: str = ""
    stock_quantity: int = 0
    damaged_quantity: int = 0
    low_stock_threshold: Optional[int] = None
    active: bool = True

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ItemVariant":
        return cls(
            id=to_int(data.get("id")),
            variant_key=str(pick(data, "variant_key", "variantKey", default="")),
            variant_name=str(pick(data, "variant_name", "variantName", default="")),
            stock_quantity=to_int(pick(data, "stock_quantity", "stockQuantity")),
            damaged_quantity=to_int(pick(data, "damaged_quantity", "damagedQuantity")),
            low_stock_threshold=to_int_opt(pick(data, "low_stock_threshold", "lowStockThreshold")),
            active=to_bool(data.get("active"), default=True),
        )

    @property
    def available_quantity(self) -> int:
        return max(0, self.stock_quantity - self.damaged_quantity)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ItemImage:
    id: int
    image_url: str
    alt_text: Optional[str] = None
    position: int = 0
    primary: bool = False

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ItemImage":
        return cls(
            id=to_int(data.get("id")),
            image_url=str(pick(data, "image_url", "imageUrl", default="")),
            alt_text=to_str_opt(pick(data, "alt_text", "altText")),
            position=to_int(data.get("position")),
            primary=to_bool(data.get("primary")),
        )


@dataclass
class Item:
    id: int
    name: str
    fundraiser_id: Optional[int] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    price: float = 0.0
    price_cents: int = 0
    position: int = 0
    active: bool = True
    track_inventory: bool = False
    track_variants: bool = False
    uses_option_level_inventory: bool = False
    stock_status: str = STOCK_IN
    low_stock_threshold: Optional[int] = None
    stock_quantity: Optional[int] = None
    damaged_quantity: Optional[int] = None
    available_quantity: Optional[int] = None
    effective_available_quantity: Optional[int] = None
    option_groups: List[OptionGroup] = field(default_factory=list)
    variants: List[ItemVariant] = field(default_factory=list)
    images: List[ItemImage] = field(default_factory=list)
    primary_image_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any], fundraiser_id: Optional[int] = None) -> "Item":
        price = to_float(data.get("price"))
        price_cents = to_int_opt(pick(data, "price_cents", "priceCents"))
        if price_cents is None:
            price_cents = int(round(price * 100))
        groups = [OptionGroup.from_api(g) for g in (pick(data, "option_groups", "optionGroups") or [])]
        groups.sort(key=lambda g: g.position)
        return cls(
            id=to_int(data.get("id")),
            name=str(data.get("name") or ""),
            fundraiser_id=to_int_opt(pick(data, "fundraiser_id", "fundraiserId")) or fundraiser_id,
            description=to_str_opt(data.get("description")),
            sku=to_str_opt(data.get("sku")),
            price=price,
            price_cents=price_cents,
            position=to_int(pick(data, "position", "sort_order")),
            active=to_bool(data.get("active"), default=True),
            track_inventory=to_bool(pick(data, "track_inventory", "trackInventory")),
            track_variants=to_bool(pick(data, "track_variants", "trackVariants")),
            uses_option_level_inventory=to_bool(
                pick(data, "uses_option_level_inventory", "usesOptionLevelInventory")
            ),
            stock_status=str(pick(data, "stock_status", "stockStatus", default=STOCK_IN)),
            low_stock_threshold=to_int_opt(pick(data, "low_stock_threshold", "lowStockThreshold")),
            stock_quantity=to_int_opt(pick(data, "stock_quantity", "stockQuantity")),
            damaged_quantity=to_int_opt(pick(data, "damaged_quantity", "damagedQuantity")),
            available_quantity=to_int_opt(pick(data, "available_quantity", "availableQuantity")),
            effective_available_quantity=to_int_opt(
                pick(data, "effective_available_quantity", "effectiveAvailableQuantity")
            ),
            option_groups=groups,
            variants=[ItemVariant.from_api(v) for v in (pick(data, "item_variants", "variants") or [])],
            images=[ItemImage.from_api(i) for i in (data.get("images") or [])],
            primary_image_url=to_str_opt(pick(data, "primary_image_url", "primaryImageUrl")),
        )

    @property
    def tracking_mode(self) -> str:
        if self.track_variants:
            return TRACKING_VARIANT
        if self.track_inventory:
            return TRACKING_ITEM
        if self.uses_option_level_inventory:
            return TRACKING_OPTION
        return TRACKING_NONE

    def group(self, group_id: Any) -> Optional[OptionGroup]:
        gid = to_int_opt(group_id)
        for g in self.option_groups:
            if g.id == gid:
                return g
        return None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["tracking_mode"] = self.tracking_mode
        return out


@dataclass
class Participant:
    id: int
    name: str
    slug: str = ""
    description: Optional[str] = None
    photo_url: Optional[str] = None
    goal_amount: Optional[float] = None
    current_amount: float = 0.0
    goal_progress_percentage: Optional[float] = None
    total_orders: int = 0
    total_raised: float = 0.0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Participant":
        goal = pick(data, "goal_amount", "goalAmount")
        progress = pick(data, "goal_progress_percentage", "goalProgressPercentage")
        return cls(
            id=to_int(data.get("id")),
            name=str(data.get("name") or ""),
            slug=str(data.get("slug") or ""),
            description=to_str_opt(data.get("description")),
            photo_url=to_str_opt(pick(data, "photo_url", "photoUrl")),
            goal_amount=None if goal is None else to_float(goal),
            current_amount=to_float(pick(data, "current_amount", "currentAmount")),
            goal_progress_percentage=None if progress is None else to_float(progress),
            total_orders=to_int(pick(data, "total_orders", "totalOrders")),
            total_raised=to_float(pick(data, "total_raised", "totalRaised")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Fundraiser:
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: str = "active"
    active: bool = True
    featured: bool = False
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    pickup_display_name: Optional[str] = None
    pickup_display_address: Optional[str] = None
    pickup_instructions: Optional[str] = None
    pickup_contact_name: Optional[str] = None
    pickup_contact_phone: Optional[str] = None
    pickup_hours: Optional[str] = None
    card_image_url: Optional[str] = None
    banner_url: Optional[str] = None
    participant_count: int = 0
    item_count: int = 0
    total_orders: int = 0
    participants: List[Participant] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Fundraiser":
        fid = to_int(data.get("id"))
        status = str(data.get("status") or "active")
        return cls(
            id=fid,
            name=str(data.get("name") or ""),
            slug=str(data.get("slug") or ""),
            description=to_str_opt(data.get("description")),
            start_date=to_str_opt(pick(data, "start_date", "startDate")),
            end_date=to_str_opt(pick(data, "end_date", "endDate")),
            status=status,
            active=to_bool(data.get("active"), default=status == "active"),
            featured=to_bool(data.get("featured")),
            contact_email=to_str_opt(pick(data, "contact_email", "contactEmail")),
            contact_phone=to_str_opt(pick(data, "contact_phone", "contactPhone")),
            pickup_display_name=to_str_opt(data.get("pickup_display_name")),
            pickup_display_address=to_str_opt(data.get("pickup_display_address")),
            pickup_instructions=to_str_opt(data.get("pickup_instructions")),
            pickup_contact_name=to_str_opt(data.get("pickup_contact_name")),
            pickup_contact_phone=to_str_opt(data.get("pickup_contact_phone")),
            pickup_hours=to_str_opt(data.get("pickup_hours")),
            card_image_url=to_str_opt(data.get("card_image_url")),
            banner_url=to_str_opt(data.get("banner_url")),
            participant_count=to_int(pick(data, "participant_count", "participantCount")),
            item_count=to_int(pick(data, "item_count", "itemCount")),
            total_orders=to_int(pick(data, "total_orders", "totalOrders")),
            participants=[Participant.from_api(p) for p in (data.get("participants") or [])],
            items=[Item.from_api(i, fundraiser_id=fid) for i in (data.get("items") or [])],
        )

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        out = asdict(self)
        if include_children:
            out["items"] = [i.to_dict() for i in self.items]
        else:
            out.pop("items", None)
            out.pop("participants", None)
        return out
