# app/services/pricing_service.py
import logging
from datetime import datetime, timezone

from app.core.config import Settings
from app.core.errors import CartError, OfferRejected, OfferRejectionReason
from app.core.notifications import Notifier
from app.repositories.offer_repo import OfferRepository
from app.schemas.cart import Cart
from app.schemas.offer import Offer, OfferState
from app.schemas.pricing import PriceBreakdown, PricingRules

logger = logging.getLogger(__name__)


def rules_from_settings(settings: Settings) -> PricingRules:
    return PricingRules(
        tax_rate=settings.TAX_RATE,
        free_delivery_threshold=settings.FREE_DELIVERY_THRESHOLD,
        delivery_fee=settings.DELIVERY_FEE,
    )


def discount_for(offer: Offer | None, subtotal: float) -> float:
    """
    Discount granted by `offer` on `subtotal`.

    - percentage: subtotal * value / 100, capped by max_discount if set
    - fixed: the offer value as-is
    """
    if offer is None:
        return 0.0
    if offer.discount_type == "percentage":
        discount = subtotal * offer.discount_value / 100
        if offer.max_discount is not None:
            discount = min(discount, offer.max_discount)
        return discount
    return offer.discount_value


def compute_breakdown(
    cart: Cart,
    offer: Offer | None,
    rules: PricingRules,
) -> PriceBreakdown:
    """
    Price a cart. Pure: reads `cart` and `offer`, never changes them.

    Assumes `offer` was already validated with check_offer().

    Steps:
      1. subtotal = sum(unit_price * quantity)
      2. discount from the offer (0 without one)
      3. tax on (subtotal - discount)
      4. delivery fee waived only when subtotal > threshold
      5. total = max(0, subtotal + tax + delivery - discount)
    """
    subtotal = sum(line.unit_price * line.quantity for line in cart.lines)
    discount = discount_for(offer, subtotal)
    taxable = max(0.0, subtotal - discount)
    tax = taxable * rules.tax_rate
    delivery_fee = 0.0 if subtotal > rules.free_delivery_threshold else rules.delivery_fee
    total = max(0.0, subtotal + tax + delivery_fee - discount)

    return PriceBreakdown(
        subtotal=round(subtotal, 2),
        discount=round(discount, 2),
        tax=round(tax, 2),
        delivery_fee=round(delivery_fee, 2),
        total=round(total, 2),
        offer_code=offer.code if offer else None,
    )


def check_offer(offer: Offer, subtotal: float, now: datetime | None = None) -> None:
    """
    Ensure an offer may be applied to an order of `subtotal`.

    Raises:
        OfferRejected: with a reason the UI can map to its own message.
    """
    now = now or datetime.now(timezone.utc)

    if not offer.is_active:
        raise OfferRejected(
            OfferRejectionReason.INACTIVE, "Offer code not found or expired"
        )
    if offer.valid_from is not None and now < _aware(offer.valid_from):
        raise OfferRejected(
            OfferRejectionReason.NOT_STARTED, "This offer is not valid yet"
        )
    if offer.valid_until is not None and now > _aware(offer.valid_until):
        raise OfferRejected(
            OfferRejectionReason.EXPIRED, "Offer code not found or expired"
        )
    if offer.usage_limit is not None and offer.used_count >= offer.usage_limit:
        raise OfferRejected(
            OfferRejectionReason.USAGE_LIMIT_REACHED,
            "This offer has reached its usage limit",
        )
    if subtotal < offer.min_order_amount:
        raise OfferRejected(
            OfferRejectionReason.MIN_ORDER_NOT_MET,
            f"This offer requires a minimum order of ${offer.min_order_amount:.2f}",
        )


def _aware(value: datetime) -> datetime:
    # Naive timestamps from the store are UTC
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class OfferSession:
    """
    Holds at most one applied offer.

    States:
      NO_OFFER --apply--> APPLYING --ok--> APPLIED
                                   --rejected--> NO_OFFER (with reason)
      APPLIED --remove--> NO_OFFER
    """

    def __init__(self, offer_repo: OfferRepository, notifier: Notifier):
        self.offer_repo = offer_repo
        self.notifier = notifier
        self.state = OfferState.NO_OFFER
        self.offer: Offer | None = None
        self.last_rejection: OfferRejectionReason | None = None

    async def apply(
        self,
        code: str,
        subtotal: float,
        now: datetime | None = None,
    ) -> Offer:
        if self.state is not OfferState.NO_OFFER:
            raise OfferRejected(
                OfferRejectionReason.ALREADY_APPLIED,
                "Remove the current offer before applying another one",
            )

        self.state = OfferState.APPLYING
        try:
            offer = await self.offer_repo.get_by_code(code)
            if offer is None:
                raise OfferRejected(
                    OfferRejectionReason.INVALID_CODE, "Offer code not found or expired"
                )
            check_offer(offer, subtotal, now)
        except OfferRejected as e:
            self.state = OfferState.NO_OFFER
            self.last_rejection = e.reason
            title = (
                "Minimum Order Not Met"
                if e.reason is OfferRejectionReason.MIN_ORDER_NOT_MET
                else "Invalid Code"
            )
            self.notifier.error(title, e.detail)
            raise
        except CartError:
            self.state = OfferState.NO_OFFER
            self.notifier.error("Error", "Failed to apply offer code")
            raise

        self.state = OfferState.APPLIED
        self.offer = offer
        self.last_rejection = None
        description = (
            f"{offer.discount_value:g}% off"
            if offer.discount_type == "percentage"
            else f"${offer.discount_value:.2f} off"
        )
        self.notifier.success("Offer Applied!", f"{description} your order")
        logger.info(f"Applied offer {offer.code}")
        return offer

    def remove(self) -> None:
        if self.offer is not None:
            logger.info(f"Removed offer {self.offer.code}")
        self.state = OfferState.NO_OFFER
        self.offer = None
