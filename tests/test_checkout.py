"""
Tests for placing an order from the cart
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.core.errors import (
    AuthenticationRequired,
    CartValidationError,
    OfferRejected,
    OfferRejectionReason,
    TransientRemoteError,
)
from app.schemas.cart import Cart
from app.schemas.offer import Offer, OfferState
from app.schemas.order import CheckoutRequest

ADDRESS = {
    "label": "Home",
    "street_address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
}


@pytest.fixture
def checkout_request():
    return CheckoutRequest(delivery_address=ADDRESS, payment_method="cod")


@pytest.fixture
def save10():
    return Offer(
        id="offer-1",
        code="SAVE10",
        discount_type="percentage",
        discount_value=10,
        min_order_amount=15,
        used_count=3,
    )


async def _cart_with_burgers(engine, burger, quantity=2):
    engine.session.sign_in("user-1")
    await engine.reconciler.settled()
    await engine.cart.add_item(burger, quantity)


class TestPlaceOrder:
    @pytest.mark.asyncio
    async def test_order_written_and_cart_cleared(
        self, cart_engine, remote, burger, checkout_request, mock_order_repo
    ):
        await _cart_with_burgers(cart_engine, burger)

        order = await cart_engine.checkout.place_order(checkout_request)

        assert order.order_number == "ORD-0001"
        assert order.id == "order-123"
        assert order.item_count == 2
        assert order.breakdown.total == pytest.approx(24.59)

        row = mock_order_repo.create_order.await_args.args[0]
        assert row["user_id"] == "user-1"
        assert row["payment_method"] == "cod"
        assert row["delivery_type"] == "immediate"
        assert row["scheduled_for"] is None
        assert row["subtotal"] == 20.00
        assert row["offer_id"] is None
        assert row["item_name"] == "Classic Burger"
        assert row["delivery_address"]["city"] == "Springfield"

        [item_row] = mock_order_repo.create_items.await_args.args[0]
        assert item_row == {
            "order_id": "order-123",
            "menu_item_id": "item-burger",
            "quantity": 2,
            "unit_price": 10.0,
            "total_price": 20.0,
            "special_requests": None,
        }

        assert cart_engine.state.cart == Cart()
        assert remote.lines[remote.carts["user-1"].id] == []
        assert cart_engine.notifier.history[-1].title == "Order Placed!"

    @pytest.mark.asyncio
    async def test_applied_offer_is_priced_and_consumed(
        self, cart_engine, burger, checkout_request, mock_offer_repo, mock_order_repo, save10
    ):
        await _cart_with_burgers(cart_engine, burger)
        mock_offer_repo.get_by_code.return_value = save10
        await cart_engine.offers.apply("SAVE10", cart_engine.cart.total())

        order = await cart_engine.checkout.place_order(checkout_request)

        assert order.breakdown.discount == pytest.approx(2.00)
        assert order.breakdown.total == pytest.approx(22.43)
        row = mock_order_repo.create_order.await_args.args[0]
        assert row["offer_id"] == "offer-1"
        assert row["discount_amount"] == pytest.approx(2.00)
        mock_offer_repo.increment_usage.assert_awaited_once_with(save10)
        assert cart_engine.offers.state is OfferState.NO_OFFER

    @pytest.mark.asyncio
    async def test_offer_rechecked_after_cart_shrinks(
        self, cart_engine, burger, checkout_request, mock_offer_repo, mock_order_repo, save10
    ):
        await _cart_with_burgers(cart_engine, burger)
        mock_offer_repo.get_by_code.return_value = save10
        await cart_engine.offers.apply("SAVE10", cart_engine.cart.total())
        await cart_engine.cart.update_quantity(cart_engine.state.cart.lines[0].id, 1)

        with pytest.raises(OfferRejected) as exc_info:
            await cart_engine.checkout.place_order(checkout_request)

        assert exc_info.value.reason is OfferRejectionReason.MIN_ORDER_NOT_MET
        mock_order_repo.create_order.assert_not_called()
        assert not cart_engine.state.cart.is_empty

    @pytest.mark.asyncio
    async def test_remote_clear_failure_does_not_fail_placed_order(
        self, cart_engine, remote, burger, checkout_request, mock_order_repo
    ):
        await _cart_with_burgers(cart_engine, burger)
        remote.script("find_cart", TransientRemoteError("store unavailable"))

        order = await cart_engine.checkout.place_order(checkout_request)

        assert order.order_number == "ORD-0001"
        mock_order_repo.create_order.assert_awaited_once()
        # Ordered lines are gone locally even though the remote clear failed
        assert cart_engine.state.cart == Cart()
        assert cart_engine.state.store.load() == Cart()
        titles = [n.title for n in cart_engine.notifier.drain()]
        assert titles[-1] == "Order Placed!"
        assert "Error" in titles

    @pytest.mark.asyncio
    async def test_offer_usage_failure_does_not_fail_placed_order(
        self, cart_engine, burger, checkout_request, mock_offer_repo, save10
    ):
        await _cart_with_burgers(cart_engine, burger)
        mock_offer_repo.get_by_code.return_value = save10
        mock_offer_repo.increment_usage.side_effect = TransientRemoteError("down")
        await cart_engine.offers.apply("SAVE10", cart_engine.cart.total())

        order = await cart_engine.checkout.place_order(checkout_request)

        assert order.breakdown.discount == pytest.approx(2.00)
        assert cart_engine.state.cart == Cart()
        assert cart_engine.offers.state is OfferState.NO_OFFER

    @pytest.mark.asyncio
    async def test_items_failure_deletes_order_row(
        self, cart_engine, burger, checkout_request, mock_order_repo
    ):
        await _cart_with_burgers(cart_engine, burger)
        mock_order_repo.create_items.side_effect = TransientRemoteError("down")

        with pytest.raises(TransientRemoteError):
            await cart_engine.checkout.place_order(checkout_request)

        mock_order_repo.delete_order.assert_awaited_once_with("order-123")
        assert cart_engine.state.cart.total_unit_count == 2

    @pytest.mark.asyncio
    async def test_failed_order_cleanup_keeps_original_error(
        self, cart_engine, burger, checkout_request, mock_order_repo
    ):
        await _cart_with_burgers(cart_engine, burger)
        mock_order_repo.create_items.side_effect = TransientRemoteError("items down")
        mock_order_repo.delete_order.side_effect = TransientRemoteError("delete down")

        with pytest.raises(TransientRemoteError) as exc_info:
            await cart_engine.checkout.place_order(checkout_request)

        assert exc_info.value.detail == "items down"

    @pytest.mark.asyncio
    async def test_empty_cart_rejected(self, cart_engine, checkout_request, mock_order_repo):
        cart_engine.session.sign_in("user-1")
        await cart_engine.reconciler.settled()

        with pytest.raises(CartValidationError):
            await cart_engine.checkout.place_order(checkout_request)

        mock_order_repo.generate_order_number.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_signed_in_owner(self, cart_engine, checkout_request):
        with pytest.raises(AuthenticationRequired):
            await cart_engine.checkout.place_order(checkout_request)


class TestCheckoutRequest:
    def test_scheduled_requires_time(self):
        with pytest.raises(ValidationError):
            CheckoutRequest(delivery_address=ADDRESS, delivery_type="scheduled")

    def test_immediate_drops_scheduled_time(self):
        request = CheckoutRequest(
            delivery_address=ADDRESS,
            scheduled_for=datetime(2026, 6, 1, 18, 0, tzinfo=timezone.utc),
        )

        assert request.scheduled_for is None

    def test_blank_address_field_rejected(self):
        with pytest.raises(ValidationError):
            CheckoutRequest(delivery_address={**ADDRESS, "city": "  "})

    def test_unknown_payment_method_rejected(self):
        with pytest.raises(ValidationError):
            CheckoutRequest(delivery_address=ADDRESS, payment_method="cheque")
