# app/services/cart_engine.py
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy.engine import Engine
from supabase import AsyncClient

from app.core.auth import SessionContext, owner_from_token
from app.core.config import Settings
from app.core.notifications import Notifier
from app.core.supabase_client import attach_access_token
from app.repositories.cart_repo import RemoteCartRepository, SupabaseCartRepository
from app.repositories.catalog_repo import CatalogRepository
from app.repositories.offer_repo import OfferRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.snapshot_repo import LocalSnapshotStore
from app.schemas.pricing import PriceBreakdown, PricingRules
from app.services.cart_service import CartService
from app.services.cart_state import CartState
from app.services.checkout_service import CheckoutService
from app.services.pricing_service import OfferSession, compute_breakdown, rules_from_settings
from app.services.reconciliation import ReconciliationController

logger = logging.getLogger(__name__)


@dataclass
class CartEngine:
    """
    Everything one storefront session needs, wired together.
    """

    session: SessionContext
    notifier: Notifier
    state: CartState
    cart: CartService
    reconciler: ReconciliationController
    offers: OfferSession
    checkout: CheckoutService
    catalog: CatalogRepository
    rules: PricingRules

    def breakdown(self) -> PriceBreakdown:
        return compute_breakdown(self.state.cart, self.offers.offer, self.rules)

    def close(self) -> None:
        self.reconciler.close()


def build_engine(
    settings: Settings,
    local_engine: Engine,
    client: AsyncClient | None,
    cart_repo: RemoteCartRepository | None = None,
    catalog: CatalogRepository | None = None,
    offer_repo: OfferRepository | None = None,
    order_repo: OrderRepository | None = None,
    storage_key: str | None = None,
) -> CartEngine:
    """
    Build the engine on top of the local store and a Supabase client.
    Any repository may be swapped (tests pass in-memory fakes).
    """
    session = SessionContext()
    if client is not None:
        # RLS: remote calls run as the signed-in user
        session.subscribe(
            lambda previous, new: attach_access_token(client, new.access_token)
        )
    notifier = Notifier(maxlen=settings.NOTIFICATION_HISTORY)
    state = CartState(
        LocalSnapshotStore(local_engine, key=storage_key or settings.CART_STORAGE_KEY)
    )
    rules = rules_from_settings(settings)

    cart_repo = cart_repo or SupabaseCartRepository(
        client, catalog_table=settings.CATALOG_TABLE
    )
    catalog = catalog or CatalogRepository(client, table=settings.CATALOG_TABLE)
    offer_repo = offer_repo or OfferRepository(client)
    order_repo = order_repo or OrderRepository(client)

    cart_service = CartService(state, session, cart_repo, notifier)
    offers = OfferSession(offer_repo, notifier)

    return CartEngine(
        session=session,
        notifier=notifier,
        state=state,
        cart=cart_service,
        reconciler=ReconciliationController(session, state, cart_repo, notifier),
        offers=offers,
        checkout=CheckoutService(
            session, cart_service, offers, order_repo, offer_repo, rules, notifier
        ),
        catalog=catalog,
        rules=rules,
    )


def storage_key_for(settings: Settings, owner_id: str | None) -> str:
    """Local snapshot key of one owner (anonymous callers share one key)."""
    return f"{settings.CART_STORAGE_KEY}:{owner_id or 'anonymous'}"


EngineFactory = Callable[[str | None], Awaitable[CartEngine]]


class EngineRegistry:
    """
    One cart engine per signed-in owner.

    Callers are resolved by the `sub` of their access token, so a request
    only ever sees the engine (session, snapshot, offer, notifications)
    of the owner it authenticated as. Anonymous callers get a throwaway
    engine that is never signed in.
    """

    def __init__(self, factory: EngineFactory):
        self._factory = factory
        self._engines: dict[str, CartEngine] = {}
        self._lock = asyncio.Lock()

    def __contains__(self, owner_id: str) -> bool:
        return owner_id in self._engines

    def __len__(self) -> int:
        return len(self._engines)

    async def for_token(self, token: str) -> CartEngine:
        """
        Engine of the token's owner, built and signed in on first use.

        A refreshed token for the same owner is handed to the session so
        remote calls run with it.

        Raises:
            AuthenticationRequired: if the token is invalid or has no 'sub'.
        """
        owner_id = owner_from_token(token)
        async with self._lock:
            engine = self._engines.get(owner_id)
            if engine is None:
                logger.info(f"Creating cart engine for owner {owner_id}")
                engine = self._engines[owner_id] = await self._factory(owner_id)

        if engine.session.state.access_token != token:
            engine.session.sign_in_with_token(token)
            await engine.reconciler.settled()
        return engine

    async def anonymous(self) -> CartEngine:
        return await self._factory(None)

    def discard(self, owner_id: str | None) -> None:
        """Sign the owner out and drop their engine. Unknown owners are ignored."""
        engine = self._engines.pop(owner_id, None) if owner_id else None
        if engine is None:
            return
        engine.session.sign_out()
        engine.offers.remove()
        engine.close()
        logger.info(f"Dropped cart engine for owner {owner_id}")

    def close(self) -> None:
        for engine in self._engines.values():
            engine.close()
        self._engines.clear()
