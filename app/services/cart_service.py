# app/services/cart_service.py
import logging

from app.core.auth import SessionContext
from app.core.errors import (
    AuthenticationRequired,
    CartError,
    CartValidationError,
    NotFoundError,
    TransientRemoteError,
)
from app.core.notifications import Notifier
from app.repositories.cart_repo import RemoteCartRepository
from app.schemas.cart import Cart, CatalogItem, new_temp_line_id
from app.services.cart_state import CartState, PendingMutation

logger = logging.getLogger(__name__)


class CartService:
    """
    Optimistic cart mutations.

    Every mutation:
      1. computes the new cart locally,
      2. writes it to the snapshot store + visible cart right away,
      3. calls the remote repository,
      4. on remote failure, compensates (rollback) and notifies the user.

    Responsibilities:
      - only authenticated owners may mutate
      - quantity arithmetic (the repository only overwrites)
      - derived reads: total, distinct_item_count, total_unit_count
    """

    def __init__(
        self,
        state: CartState,
        session: SessionContext,
        cart_repo: RemoteCartRepository,
        notifier: Notifier,
    ):
        self.state = state
        self.session = session
        self.cart_repo = cart_repo
        self.notifier = notifier

    @property
    def cart(self) -> Cart:
        return self.state.cart

    # ---- internal helpers ----

    def _require_owner(self, prompt: bool = False) -> str:
        owner_id = self.session.owner_id
        if owner_id is None:
            if prompt:
                self.notifier.error(
                    "Please log in",
                    "You need to log in to add items to cart",
                )
            raise AuthenticationRequired("Authentication required")
        return owner_id

    def _begin(self, description: str, apply) -> PendingMutation:
        entry = PendingMutation(description=description, apply=apply)
        self.state.replace(self.state.log.begin(self.state.cart, entry))
        return entry

    def _compensate(self, entry: PendingMutation, error: CartError, message: str) -> None:
        restored = self.state.log.fail(entry)
        if restored is None:
            logger.info(f"'{entry.description}' failed after a reset; nothing to roll back")
            return
        self.state.replace(restored)
        logger.warning(f"Rolled back '{entry.description}': {error.detail}")
        self.notifier.error("Error", message)

    # ---- public operations ----

    async def add_item(
        self,
        item: CatalogItem,
        quantity: int = 1,
        note: str | None = None,
    ) -> Cart:
        """
        Add `quantity` of a menu item to the owner's cart.

        Rules:
          - owner must be signed in (else prompt + AuthenticationRequired)
          - quantity must be a positive integer
          - item must be available
          - an existing line is bumped, never duplicated
          - after confirmation, the remote cart replaces local state
        """
        owner_id = self._require_owner(prompt=True)

        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise CartValidationError("quantity must be a positive integer")
        if not item.available:
            raise CartValidationError(f"{item.name} is currently unavailable")

        epoch = self.state.epoch
        line_id = new_temp_line_id()
        entry = self._begin(
            f"add {item.id} x{quantity}",
            lambda cart: cart.with_item_added(item, quantity, note, line_id=line_id),
        )

        try:
            handle = await self.cart_repo.ensure_cart(owner_id)
            remote_lines = await self.cart_repo.list_lines(handle)
            existing = next(
                (ln for ln in remote_lines if ln.catalog_item_id == item.id), None
            )
            new_quantity = quantity + (existing.quantity if existing else 0)
            new_note = note if note is not None else (existing.note if existing else None)
            await self.cart_repo.upsert_line(handle, item.id, new_quantity, new_note)
        except (TransientRemoteError, NotFoundError) as e:
            self._compensate(entry, e, "Failed to add item to cart")
            raise

        if entry not in self.state.log:
            # A reconciliation replaced the cart while we were waiting
            return self.cart

        self.state.log.confirm(entry)
        await self._refresh_after_write(handle, epoch)
        self.notifier.success(
            "Added to cart!", f"{item.name} has been added to your cart"
        )
        return self.cart

    async def update_quantity(self, line_id: str, new_quantity: int) -> Cart:
        """
        Replace a line's quantity. new_quantity <= 0 removes the line.
        Unknown line ids are a no-op.
        """
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int):
            raise CartValidationError("quantity must be an integer")
        if new_quantity <= 0:
            return await self.remove_item(line_id)

        owner_id = self._require_owner()
        line = self.cart.find_line(line_id)
        if line is None:
            return self.cart

        entry = self._begin(
            f"set {line_id} to {new_quantity}",
            lambda cart: cart.with_quantity(line_id, new_quantity),
        )

        try:
            handle = await self.cart_repo.ensure_cart(owner_id)
            await self.cart_repo.upsert_line(
                handle, line.catalog_item_id, new_quantity, line.note
            )
        except (TransientRemoteError, NotFoundError) as e:
            self._compensate(entry, e, "Failed to update quantity")
            raise

        self.state.log.confirm(entry)
        return self.cart

    async def remove_item(self, line_id: str) -> Cart:
        """
        Delete a line. Unknown line ids are a no-op; a line already gone
        from the remote store counts as removed.
        """
        self._require_owner()
        if self.cart.find_line(line_id) is None:
            return self.cart

        entry = self._begin(
            f"remove {line_id}", lambda cart: cart.without_line(line_id)
        )

        try:
            await self.cart_repo.delete_line(line_id)
        except NotFoundError:
            logger.info(f"Cart line {line_id} was already gone remotely")
        except TransientRemoteError as e:
            self._compensate(entry, e, "Failed to remove item from cart")
            raise

        self.state.log.confirm(entry)
        self.notifier.success("Removed from cart", "Item has been removed from your cart")
        return self.cart

    async def clear(self) -> Cart:
        """
        Empty the owner's cart locally and remotely.
        """
        owner_id = self._require_owner()
        entry = self._begin("clear cart", lambda cart: Cart())

        try:
            handle = await self.cart_repo.find_cart(owner_id)
            if handle is not None:
                await self.cart_repo.delete_all_lines(handle)
        except (TransientRemoteError, NotFoundError) as e:
            self._compensate(entry, e, "Failed to clear cart")
            raise

        self.state.log.confirm(entry)
        return self.cart

    async def refresh(self) -> Cart:
        """
        Re-read the remote cart and rebase pending optimistic changes on it.
        """
        owner_id = self._require_owner()
        epoch = self.state.epoch
        handle = await self.cart_repo.find_cart(owner_id)
        lines = await self.cart_repo.list_lines(handle) if handle else []
        if self.state.epoch != epoch:
            return self.cart
        self.state.replace(self.state.log.rebase(Cart(lines=lines)))
        return self.cart

    async def _refresh_after_write(self, handle, epoch: int) -> None:
        try:
            lines = await self.cart_repo.list_lines(handle)
        except CartError as e:
            # The write itself is durable; keep the optimistic state.
            logger.warning(f"Refresh after write failed: {e.detail}")
            return
        if self.state.epoch != epoch:
            return
        self.state.replace(self.state.log.rebase(Cart(lines=lines)))

    # ---- derived reads ----

    def total(self) -> float:
        return self.cart.total

    def distinct_item_count(self) -> int:
        return self.cart.distinct_item_count

    def total_unit_count(self) -> int:
        return self.cart.total_unit_count
