# app/services/checkout_service.py
import logging

from app.core.auth import SessionContext
from app.core.errors import AuthenticationRequired, CartError, CartValidationError
from app.core.notifications import Notifier
from app.repositories.offer_repo import OfferRepository
from app.repositories.order_repo import OrderRepository
from app.schemas.order import CheckoutRequest, OrderRead
from app.schemas.pricing import PricingRules
from app.services.cart_service import CartService
from app.services.pricing_service import OfferSession, check_offer, compute_breakdown

logger = logging.getLogger(__name__)


class CheckoutService:
    """
    Turns the current cart into an order.

    Responsibilities:
      - require a signed-in owner and a non-empty cart
      - re-check the applied offer against the current subtotal
      - price the cart and write orders / order_items
      - bump the offer usage counter, clear the cart, drop the offer
    """

    def __init__(
        self,
        session: SessionContext,
        cart_service: CartService,
        offers: OfferSession,
        order_repo: OrderRepository,
        offer_repo: OfferRepository,
        rules: PricingRules,
        notifier: Notifier,
    ):
        self.session = session
        self.cart_service = cart_service
        self.offers = offers
        self.order_repo = order_repo
        self.offer_repo = offer_repo
        self.rules = rules
        self.notifier = notifier

    async def place_order(self, payload: CheckoutRequest) -> OrderRead:
        """
        Steps:
          1. Resolve owner; load the visible cart; error if empty.
          2. Re-validate the applied offer (the cart may have shrunk).
          3. Compute the price breakdown.
          4. Get an order number and insert the order row.
          5. Insert order_items from the cart lines (on failure the order
             row is deleted and the error re-raised).
          6. Best effort: increment offer usage, clear cart, remove offer.
        """
        owner_id = self.session.owner_id
        if owner_id is None:
            raise AuthenticationRequired("Authentication required")

        cart = self.cart_service.cart
        if cart.is_empty:
            raise CartValidationError("Your cart is empty")

        offer = self.offers.offer
        if offer is not None:
            check_offer(offer, cart.total)

        breakdown = compute_breakdown(cart, offer, self.rules)

        order_number = await self.order_repo.generate_order_number()
        order = await self.order_repo.create_order(
            {
                "order_number": order_number,
                "user_id": owner_id,
                "payment_method": payload.payment_method,
                "delivery_type": payload.delivery_type,
                "scheduled_for": (
                    payload.scheduled_for.isoformat() if payload.scheduled_for else None
                ),
                "delivery_address": payload.delivery_address.model_dump(),
                "subtotal": breakdown.subtotal,
                "tax_amount": breakdown.tax,
                "delivery_fee": breakdown.delivery_fee,
                "discount_amount": breakdown.discount,
                "total_amount": breakdown.total,
                "offer_id": offer.id if offer else None,
                "special_instructions": payload.special_instructions,
                "item_name": ", ".join(line.item.name for line in cart.lines),
            }
        )

        try:
            await self.order_repo.create_items(
                [
                    {
                        "order_id": order["id"],
                        "menu_item_id": line.catalog_item_id,
                        "quantity": line.quantity,
                        "unit_price": line.unit_price,
                        "total_price": round(line.line_total, 2),
                        "special_requests": line.note,
                    }
                    for line in cart.lines
                ]
            )
        except CartError as e:
            await self._discard_order(order, order_number, e)
            raise

        # The order exists from here on: nothing below may fail it
        await self._finish_order(order_number, offer)

        logger.info(f"Placed order {order_number} for owner {owner_id}")
        self.notifier.success(
            "Order Placed!",
            f"Your order #{order_number} has been placed successfully",
        )
        return OrderRead(
            id=str(order["id"]),
            order_number=order_number,
            breakdown=breakdown,
            item_count=cart.total_unit_count,
        )

    async def _discard_order(self, order: dict, order_number: str, error: CartError) -> None:
        """Remove an order row whose items could not be written."""
        logger.error(f"Order {order_number}: writing items failed: {error.detail}")
        try:
            await self.order_repo.delete_order(order["id"])
        except CartError as e:
            # Left for manual follow-up; the original error is what the caller sees
            logger.error(
                f"Order {order_number} (id={order['id']}) has no items and could "
                f"not be deleted: {e.detail}"
            )

    async def _finish_order(self, order_number: str, offer) -> None:
        """
        Post-order bookkeeping. Failures are logged (a failed cart clear
        also notifies) and never fail an order that was already placed.
        """
        if offer is not None:
            try:
                await self.offer_repo.increment_usage(offer)
            except CartError as e:
                logger.warning(
                    f"Order {order_number}: usage count of offer {offer.code} "
                    f"not updated: {e.detail}"
                )

        try:
            await self.cart_service.clear()
        except CartError as e:
            logger.warning(f"Order {order_number}: remote cart not cleared: {e.detail}")
            # The ordered lines must not stay visible for a second checkout
            self.cart_service.state.clear()

        self.offers.remove()
