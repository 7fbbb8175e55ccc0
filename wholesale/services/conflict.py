"""
Cross-fundraiser cart conflict.

A cart holds one fundraiser at a time. Moving to another fundraiser while the
cart has items opens a conflict that the shopper resolves either way:

    no-conflict ──check()──► conflict-detected ──► clear-and-continue
                                                └─► cancel-and-stay

Both resolutions are terminal. The pending action is plain data so the open
conflict can live in the shopper's session between requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from wholesale.models.cart import CartFundraiser, CartItem
from wholesale.services.cart import CartStore

log = logging.getLogger(__name__)

ACTION_ADD = "add"
ACTION_NAVIGATE = "navigate"


class ConflictState(str, Enum):
    NO_CONFLICT = "no-conflict"
    CONFLICT_DETECTED = "conflict-detected"
    CLEAR_AND_CONTINUE = "clear-and-continue"
    CANCEL_AND_STAY = "cancel-and-stay"


class ConflictStateError(RuntimeError):
    """Resolution requested when no conflict is open."""


@dataclass
class ConflictData:
    current_fundraiser: str
    new_fundraiser: str
    item_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_fundraiser": self.current_fundraiser,
            "new_fundraiser": self.new_fundraiser,
            "item_count": self.item_count,
        }


@dataclass
class PendingAction:
    kind: str
    fundraiser: CartFundraiser
    line: Optional[CartItem] = None
    quantity: int = 1
    next_url: Optional[str] = None

    def run(self, cart: CartStore) -> Any:
        if self.kind == ACTION_ADD and self.line is not None:
            return cart.add_item(self.line, self.quantity, fundraiser=self.fundraiser)
        cart.set_fundraiser(self.fundraiser)
        return self.next_url

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "fundraiser": self.fundraiser.to_dict(),
            "line": self.line.to_dict() if self.line else None,
            "quantity": self.quantity,
            "next_url": self.next_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingAction":
        line = data.get("line")
        return cls(
            kind=str(data.get("kind") or ACTION_NAVIGATE),
            fundraiser=CartFundraiser.from_dict(data.get("fundraiser") or {}),
            line=CartItem.from_dict(line) if isinstance(line, dict) else None,
            quantity=int(data.get("quantity") or 1),
            next_url=data.get("next_url"),
        )


class CartConflict:
    def __init__(
        self,
        cart: CartStore,
        state: ConflictState = ConflictState.NO_CONFLICT,
        conflict: Optional[ConflictData] = None,
        pending: Optional[PendingAction] = None,
    ):
        self.cart = cart
        self.state = state
        self.conflict = conflict
        self.pending = pending
        self.result: Any = None

    @property
    def is_open(self) -> bool:
        return self.state == ConflictState.CONFLICT_DETECTED

    def check(self, fundraiser: CartFundraiser, pending: PendingAction) -> bool:
        """
        Run ``pending`` right away when the cart is empty, unbound or already on
        ``fundraiser``; otherwise open a conflict and hold the action. Returns
        True when the action ran.
        """
        bound = self.cart.current_fundraiser_id
        if not self.cart.items or bound is None or bound == fundraiser.id:
            self.state = ConflictState.NO_CONFLICT
            self.conflict = None
            self.pending = None
            self.result = pending.run(self.cart)
            return True

        current_name = self.cart.fundraiser.name if self.cart.fundraiser else ""
        self.conflict = ConflictData(
            current_fundraiser=current_name or f"Fundraiser #{bound}",
            new_fundraiser=fundraiser.name or f"Fundraiser #{fundraiser.id}",
            item_count=self.cart.item_count,
        )
        self.pending = pending
        self.state = ConflictState.CONFLICT_DETECTED
        log.info("Cart conflict: bound=%s requested=%s", bound, fundraiser.id)
        return False

    def clear_and_continue(self) -> Any:
        self._require_open()
        pending = self.pending
        self.cart.clear()
        self.cart.set_fundraiser(pending.fundraiser)
        self.result = pending.run(self.cart)
        self._close(ConflictState.CLEAR_AND_CONTINUE)
        return self.result

    def cancel_and_stay(self) -> None:
        self._require_open()
        self.result = None
        self._close(ConflictState.CANCEL_AND_STAY)

    def resolve(self, resolution: str) -> Any:
        if resolution == ConflictState.CLEAR_AND_CONTINUE.value:
            return self.clear_and_continue()
        if resolution == ConflictState.CANCEL_AND_STAY.value:
            return self.cancel_and_stay()
        raise ValueError(f"Unknown conflict resolution: {resolution!r}")

    def _require_open(self) -> None:
        if not self.is_open or self.pending is None:
            raise ConflictStateError(f"No open cart conflict (state={self.state.value})")

    def _close(self, final: ConflictState) -> None:
        self.state = final
        self.pending = None
        self.conflict = None

    # ---- session round-trip ----
    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "conflict": self.conflict.to_dict() if self.conflict else None,
            "pending": self.pending.to_dict() if self.pending else None,
        }

    @classmethod
    def from_dict(cls, cart: CartStore, data: Optional[Dict[str, Any]]) -> "CartConflict":
        data = data or {}
        try:
            state = ConflictState(data.get("state") or ConflictState.NO_CONFLICT.value)
        except ValueError:
            state = ConflictState.NO_CONFLICT
        conflict = data.get("conflict")
        pending = data.get("pending")
        return cls(
            cart,
            state=state,
            conflict=ConflictData(**conflict) if isinstance(conflict, dict) else None,
            pending=PendingAction.from_dict(pending) if isinstance(pending, dict) else None,
        )
