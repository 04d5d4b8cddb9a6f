# app/routers/checkout.py
from fastapi import APIRouter, Depends

from app.dependencies import get_cart_engine
from app.schemas.order import CheckoutRequest, OrderRead
from app.services.cart_engine import CartEngine

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("", response_model=OrderRead)
async def checkout(
    payload: CheckoutRequest,
    engine: CartEngine = Depends(get_cart_engine),
):
    """
    Place an order from the current cart and applied offer.

    Auth:
      - Requires the owner's bearer token.
    """
    return await engine.checkout.place_order(payload)
