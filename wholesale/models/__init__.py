from __future__ import annotations

from wholesale.models.cart import CartFundraiser, CartItem
from wholesale.models.catalog import (
    STOCK_IN,
    STOCK_LOW,
    STOCK_OUT,
    TRACKING_ITEM,
    TRACKING_NONE,
    TRACKING_OPTION,
    TRACKING_VARIANT,
    Fundraiser,
    Item,
    ItemImage,
    ItemVariant,
    Option,
    OptionGroup,
    Participant,
)
from wholesale.models.order import Order

__all__ = [
    "CartFundraiser",
    "CartItem",
    "Fundraiser",
    "Item",
    "ItemImage",
    "ItemVariant",
    "Option",
    "OptionGroup",
    "Order",
    "Participant",
    "STOCK_IN",
    "STOCK_LOW",
    "STOCK_OUT",
    "TRACKING_ITEM",
    "TRACKING_NONE",
    "TRACKING_OPTION",
    "TRACKING_VARIANT",
]
