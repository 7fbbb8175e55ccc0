"""Tests for the cross-fundraiser conflict state machine."""

import pytest

from wholesale.models.cart import CartFundraiser
from wholesale.services.cart import make_cart_line
from wholesale.services.conflict import (
    ACTION_ADD,
    ACTION_NAVIGATE,
    CartConflict,
    ConflictState,
    ConflictStateError,
    PendingAction,
)


@pytest.fixture
def spring_ref(spring):
    return CartFundraiser.from_fundraiser(spring)


@pytest.fixture
def band_ref(band):
    return CartFundraiser.from_fundraiser(band)


@pytest.fixture
def spring_cart(cart, mug, spring_ref):
    """Cart holding two mugs from Spring Sale."""
    cart.add_item(make_cart_line(mug, {}, 1), 2, fundraiser=spring_ref)
    return cart


def _add_candle(candle, band_ref):
    return PendingAction(ACTION_ADD, band_ref, make_cart_line(candle, {}, 2), 1)


class TestCheck:
    def test_empty_cart_runs_action_immediately(self, cart, candle, band_ref):
        conflict = CartConflict(cart)
        assert conflict.check(band_ref, _add_candle(candle, band_ref))
        assert conflict.state == ConflictState.NO_CONFLICT
        assert cart.current_fundraiser_id == 2

    def test_same_fundraiser_runs_action(self, spring_cart, sticker, spring_ref):
        conflict = CartConflict(spring_cart)
        pending = PendingAction(ACTION_ADD, spring_ref, make_cart_line(sticker, {}, 1), 1)
        assert conflict.check(spring_ref, pending)
        assert spring_cart.item_count == 2

    def test_other_fundraiser_opens_conflict(self, spring_cart, candle, band_ref):
        conflict = CartConflict(spring_cart)
        assert conflict.check(band_ref, _add_candle(candle, band_ref)) is False
        assert conflict.is_open
        assert conflict.conflict.to_dict() == {
            "current_fundraiser": "Spring Sale",
            "new_fundraiser": "Band Camp",
            "item_count": 1,
        }
        assert [line.item_id for line in spring_cart.items] == [102]


class TestResolution:
    def test_clear_and_continue(self, spring_cart, candle, band_ref):
        conflict = CartConflict(spring_cart)
        conflict.check(band_ref, _add_candle(candle, band_ref))

        assert conflict.clear_and_continue() is True
        assert conflict.state == ConflictState.CLEAR_AND_CONTINUE
        assert [line.item_id for line in spring_cart.items] == [201]
        assert spring_cart.fundraiser.slug == "band-camp"
        assert conflict.pending is None

    def test_cancel_and_stay_leaves_cart_alone(self, spring_cart, candle, band_ref):
        conflict = CartConflict(spring_cart)
        conflict.check(band_ref, _add_candle(candle, band_ref))

        conflict.cancel_and_stay()
        assert conflict.state == ConflictState.CANCEL_AND_STAY
        assert [line.item_id for line in spring_cart.items] == [102]
        assert spring_cart.items[0].quantity == 2

    def test_navigate_action_returns_next_url(self, spring_cart, band_ref):
        conflict = CartConflict(spring_cart)
        pending = PendingAction(ACTION_NAVIGATE, band_ref, next_url="/wholesale/band-camp")
        conflict.check(band_ref, pending)

        assert conflict.resolve("clear-and-continue") == "/wholesale/band-camp"
        assert spring_cart.items == []
        assert spring_cart.current_fundraiser_id == 2

    def test_resolving_without_conflict_fails(self, cart):
        with pytest.raises(ConflictStateError):
            CartConflict(cart).clear_and_continue()

    def test_terminal_states_cannot_resolve_again(self, spring_cart, candle, band_ref):
        conflict = CartConflict(spring_cart)
        conflict.check(band_ref, _add_candle(candle, band_ref))
        conflict.cancel_and_stay()
        with pytest.raises(ConflictStateError):
            conflict.cancel_and_stay()

    def test_unknown_resolution(self, spring_cart, candle, band_ref):
        conflict = CartConflict(spring_cart)
        conflict.check(band_ref, _add_candle(candle, band_ref))
        with pytest.raises(ValueError):
            conflict.resolve("shrug")
        assert conflict.is_open


def test_open_conflict_survives_serialization(spring_cart, candle, band_ref):
    """The pending action is plain data so the conflict can wait in a session."""
    conflict = CartConflict(spring_cart)
    conflict.check(band_ref, _add_candle(candle, band_ref))

    restored = CartConflict.from_dict(spring_cart, conflict.to_dict())
    assert restored.is_open
    assert restored.pending.line.item_id == 201

    restored.clear_and_continue()
    assert [line.item_id for line in spring_cart.items] == [201]
