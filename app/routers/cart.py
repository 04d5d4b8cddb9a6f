# app/routers/cart.py
from fastapi import APIRouter, Depends

from app.dependencies import get_cart_engine
from app.schemas.cart import AddItemRequest, CartSummary, QuantityUpdate
from app.schemas.offer import OfferApplyRequest, OfferStatusRead
from app.schemas.pricing import PriceBreakdown
from app.services.cart_engine import CartEngine

router = APIRouter(prefix="/cart", tags=["Cart"])


@router.get("", response_model=CartSummary)
async def get_my_cart(engine: CartEngine = Depends(get_cart_engine)):
    """
    Get the visible cart (local snapshot, reconciled with the remote cart
    once signed in).
    """
    return CartSummary.from_cart(engine.cart.cart)


@router.post("", response_model=CartSummary)
async def add_to_cart(
    payload: AddItemRequest,
    engine: CartEngine = Depends(get_cart_engine),
):
    """
    Add a menu item to the cart.

    Auth:
      - Requires the owner's bearer token (401 otherwise).

    Returns the updated cart summary.
    """
    item = await engine.catalog.get_by_id(payload.catalog_item_id)
    cart = await engine.cart.add_item(item, payload.quantity, payload.note)
    return CartSummary.from_cart(cart)


@router.patch("/lines/{line_id}", response_model=CartSummary)
async def update_cart_line(
    line_id: str,
    payload: QuantityUpdate,
    engine: CartEngine = Depends(get_cart_engine),
):
    """
    Update quantity of a cart line. quantity <= 0 removes the line.
    """
    cart = await engine.cart.update_quantity(line_id, payload.quantity)
    return CartSummary.from_cart(cart)


@router.delete("/lines/{line_id}", response_model=CartSummary)
async def remove_cart_line(
    line_id: str,
    engine: CartEngine = Depends(get_cart_engine),
):
    """
    Remove a line from the cart.
    """
    cart = await engine.cart.remove_item(line_id)
    return CartSummary.from_cart(cart)


@router.delete("", response_model=CartSummary)
async def clear_cart(engine: CartEngine = Depends(get_cart_engine)):
    """
    Clear the entire cart.
    """
    cart = await engine.cart.clear()
    return CartSummary.from_cart(cart)


@router.post("/refresh", response_model=CartSummary)
async def refresh_cart(engine: CartEngine = Depends(get_cart_engine)):
    """
    Re-read the remote cart.
    """
    cart = await engine.cart.refresh()
    return CartSummary.from_cart(cart)


# -------- Pricing & offers --------


@router.get("/breakdown", response_model=PriceBreakdown)
async def get_breakdown(engine: CartEngine = Depends(get_cart_engine)):
    """
    Subtotal, discount, tax, delivery fee and total for the visible cart.
    """
    return engine.breakdown()


@router.get("/offer", response_model=OfferStatusRead)
async def get_offer(engine: CartEngine = Depends(get_cart_engine)):
    return OfferStatusRead(
        state=engine.offers.state,
        offer=engine.offers.offer,
        rejection=engine.offers.last_rejection,
    )


@router.post("/offer", response_model=OfferStatusRead)
async def apply_offer(
    payload: OfferApplyRequest,
    engine: CartEngine = Depends(get_cart_engine),
):
    """
    Apply an offer code to the cart.

    Rejections answer 400 with a `reason`:
      - invalid_code / inactive / expired / not_started
      - min_order_not_met
      - usage_limit_reached
      - already_applied
    """
    offer = await engine.offers.apply(payload.code, engine.cart.total())
    return OfferStatusRead(state=engine.offers.state, offer=offer)


@router.delete("/offer", response_model=OfferStatusRead)
async def remove_offer(engine: CartEngine = Depends(get_cart_engine)):
    engine.offers.remove()
    return OfferStatusRead(state=engine.offers.state)
