# app/services/reconciliation.py
import asyncio
import logging
from enum import Enum

from app.core.auth import ANONYMOUS, AuthState, AuthStatus, SessionContext
from app.core.errors import CartError
from app.core.notifications import Notifier
from app.repositories.cart_repo import RemoteCartRepository
from app.schemas.cart import Cart
from app.services.cart_state import CartState

logger = logging.getLogger(__name__)


class Effect(str, Enum):
    NONE = "none"
    ADOPT_LOCAL_THEN_FETCH = "adopt_local_then_fetch"
    CLEAR = "clear"
    SWITCH_OWNER = "switch_owner"


def reduce_transition(settled: AuthState, new: AuthState) -> Effect:
    """
    Decide what a status change means for the cart.

    `settled` is the last non-transient state (never Authenticating).
    Authenticating itself is a wait state and changes nothing.
    """
    if new.status is AuthStatus.AUTHENTICATING:
        return Effect.NONE

    was_signed_in = settled.status is AuthStatus.AUTHENTICATED
    is_signed_in = new.status is AuthStatus.AUTHENTICATED

    if not was_signed_in and is_signed_in:
        return Effect.ADOPT_LOCAL_THEN_FETCH
    if was_signed_in and not is_signed_in:
        return Effect.CLEAR
    if was_signed_in and is_signed_in and settled.owner_id != new.owner_id:
        return Effect.SWITCH_OWNER
    return Effect.NONE


class ReconciliationController:
    """
    Aligns the visible cart with the remote store on sign-in / sign-out.

    Flow on sign-in:
      1. Show the local snapshot right away (it is already the visible cart).
      2. Fetch the owner's remote cart in the background.
      3. Replace visible cart + snapshot with the remote cart.

    Every effect bumps `generation`; a fetch that finishes after a newer
    transition is ignored.
    """

    def __init__(
        self,
        session: SessionContext,
        state: CartState,
        cart_repo: RemoteCartRepository,
        notifier: Notifier,
    ):
        self.session = session
        self.state = state
        self.cart_repo = cart_repo
        self.notifier = notifier
        self.generation = 0
        self._settled: AuthState = ANONYMOUS
        self._fetch: asyncio.Task | None = None
        self._deferred: tuple[str, int] | None = None
        self._unsubscribe = session.subscribe(self.on_transition)

    def close(self) -> None:
        self._unsubscribe()
        if self._fetch is not None and not self._fetch.done():
            self._fetch.cancel()

    async def settled(self) -> None:
        """
        Wait for the in-flight remote fetch (if any) to finish.

        A fetch deferred by a sign-in made outside the event loop starts here.
        """
        if self._deferred is not None:
            owner_id, generation = self._deferred
            self._deferred = None
            if generation == self.generation:
                self._start_fetch(owner_id, generation)
        while self._fetch is not None and not self._fetch.done():
            await asyncio.wait({self._fetch})

    def on_transition(self, previous: AuthState, new: AuthState) -> None:
        effect = reduce_transition(self._settled, new)
        if new.status is not AuthStatus.AUTHENTICATING:
            self._settled = new
        if effect is Effect.NONE:
            return

        self.generation += 1
        logger.info(f"Auth transition -> {new.status.value}: {effect.value}")

        if effect is Effect.CLEAR:
            self._deferred = None
            self.state.clear()
            return

        if effect is Effect.SWITCH_OWNER:
            self.state.clear()
        else:
            self.state.reload()

        # Local snapshot stays visible until the remote cart arrives
        self._start_fetch(new.owner_id, self.generation)

    def _start_fetch(self, owner_id: str, generation: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Session changed outside the event loop: fetch on the next settled()
            logger.info(f"No running event loop; deferring remote cart fetch for {owner_id}")
            self._deferred = (owner_id, generation)
            return
        self._deferred = None
        self._fetch = loop.create_task(self._fetch_remote(owner_id, generation))

    async def _fetch_remote(self, owner_id: str, generation: int) -> None:
        try:
            handle = await self.cart_repo.find_cart(owner_id)
            lines = await self.cart_repo.list_lines(handle) if handle else []
        except CartError as e:
            logger.warning(f"Remote cart fetch failed for {owner_id}: {e.detail}")
            if generation == self.generation:
                self.notifier.error(
                    "Couldn't sync your cart",
                    "Showing the cart saved on this device",
                )
            return

        if generation != self.generation:
            logger.info("Discarding stale remote cart fetch")
            return

        self.state.adopt_remote(Cart(lines=lines))
        logger.info(f"Adopted remote cart for {owner_id} ({len(lines)} line(s))")
