# app/routers/session.py
from fastapi import APIRouter, Depends
from sqlmodel import SQLModel

from app.core.auth import AuthStatus
from app.core.notifications import Notification
from app.dependencies import get_cart_engine, get_engine_registry
from app.schemas.cart import CartSummary
from app.services.cart_engine import CartEngine, EngineRegistry

router = APIRouter(tags=["Session"])


class SessionCreate(SQLModel):
    """
    Payload for signing in: a Supabase access token.
    """

    access_token: str


class SessionRead(SQLModel):
    status: AuthStatus
    owner_id: str | None = None
    cart: CartSummary


def _session_read(engine: CartEngine) -> SessionRead:
    state = engine.session.state
    return SessionRead(
        status=state.status,
        owner_id=engine.session.owner_id,
        cart=CartSummary.from_cart(engine.state.cart),
    )


@router.get("/session", response_model=SessionRead)
async def read_session(engine: CartEngine = Depends(get_cart_engine)):
    """
    Current authentication status and visible cart.
    """
    return _session_read(engine)


@router.post("/session", response_model=SessionRead)
async def sign_in(
    payload: SessionCreate,
    registry: EngineRegistry = Depends(get_engine_registry),
):
    """
    Sign in with a Supabase access token.

    The local cart is shown immediately; the response is sent once the
    remote cart has replaced it (or the fetch failed). Later requests
    send the same token as `Authorization: Bearer <token>`.

    Raises:
        401 if the token is invalid/expired.
    """
    engine = await registry.for_token(payload.access_token)
    return _session_read(engine)


@router.delete("/session", response_model=SessionRead)
async def sign_out(
    engine: CartEngine = Depends(get_cart_engine),
    registry: EngineRegistry = Depends(get_engine_registry),
):
    """
    Sign out: the owner's local snapshot and visible cart are cleared and
    their engine is dropped. Idempotent.
    """
    registry.discard(engine.session.owner_id)
    return _session_read(engine)


@router.get("/notifications", response_model=list[Notification])
async def drain_notifications(engine: CartEngine = Depends(get_cart_engine)):
    """
    Hand over pending user-facing notifications (each one is returned once).
    """
    return engine.notifier.drain()
