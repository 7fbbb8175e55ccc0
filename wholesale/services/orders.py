# wholesale/services/orders.py
"""Order history filters applied on top of the backend's order list."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from wholesale.models.order import Order


class OrderFilterError(ValueError):
    pass


def _parse_day(raw: Optional[str], name: str) -> Optional[date]:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise OrderFilterError(f"{name} must be a date (YYYY-MM-DD)") from None


def _order_day(order: Order) -> Optional[date]:
    try:
        return date.fromisoformat((order.created_at or "")[:10])
    except ValueError:
        return None


@dataclass
class OrderFilters:
    status: str = ""
    fundraiser_name: str = ""
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    @classmethod
    def from_args(cls, args) -> "OrderFilters":
        """Build from query args; raises ``OrderFilterError`` on a bad date."""
        return cls(
            status=(args.get("status") or "").strip(),
            fundraiser_name=(args.get("fundraiser") or "").strip(),
            date_from=_parse_day(args.get("date_from"), "date_from"),
            date_to=_parse_day(args.get("date_to"), "date_to"),
        )

    @property
    def active(self) -> bool:
        return bool(self.status or self.fundraiser_name or self.date_from or self.date_to)

    def matches(self, order: Order) -> bool:
        if self.status and order.status != self.status:
            return False
        if self.fundraiser_name and self.fundraiser_name.lower() not in (order.fundraiser_name or "").lower():
            return False
        if self.date_from or self.date_to:
            # both ends inclusive, whole days
            day = _order_day(order)
            if day is None:
                return False
            if self.date_from and day < self.date_from:
                return False
            if self.date_to and day > self.date_to:
                return False
        return True


def filter_orders(orders: Iterable[Order], filters: OrderFilters) -> List[Order]:
    return [o for o in orders if filters.matches(o)]
