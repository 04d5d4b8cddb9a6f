# app/services/cart_state.py
import itertools
from dataclasses import dataclass
from typing import Callable

from app.repositories.snapshot_repo import LocalSnapshotStore
from app.schemas.cart import Cart

Apply = Callable[[Cart], Cart]
CartListener = Callable[[Cart], None]

_entry_ids = itertools.count(1)


@dataclass(eq=False)
class PendingMutation:
    """One optimistic mutation waiting for the remote store."""

    description: str
    apply: Apply
    id: int = 0
    confirmed: bool = False

    def __post_init__(self):
        if not self.id:
            self.id = next(_entry_ids)


class CompensationLog:
    """
    In-flight optimistic mutations, oldest first.

    `base` is the cart as it was before the oldest in-flight mutation.
    The visible cart is always `base` with every entry applied in order,
    so dropping a failed entry and replaying the rest is a correct
    rollback even when mutations overlap.
    """

    def __init__(self) -> None:
        self._base: Cart | None = None
        self._entries: list[PendingMutation] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry: PendingMutation) -> bool:
        return entry in self._entries

    def begin(self, current: Cart, entry: PendingMutation) -> Cart:
        """Register `entry` and return the optimistic cart."""
        if not self._entries:
            self._base = current
        self._entries.append(entry)
        return entry.apply(current)

    def confirm(self, entry: PendingMutation) -> None:
        if entry not in self._entries:
            return
        entry.confirmed = True
        self._fold_confirmed()

    def fail(self, entry: PendingMutation) -> Cart | None:
        """
        Drop `entry` and return the compensated cart.

        Returns None when the entry is unknown (the log was reset by a
        reconciliation in the meantime), meaning: leave visible state alone.
        """
        if entry not in self._entries:
            return None
        base = self._base if self._base is not None else Cart()
        self._entries.remove(entry)
        restored = self._replay(base, self._entries)
        self._fold_confirmed()
        if not self._entries:
            self._base = None
        return restored

    def rebase(self, remote: Cart) -> Cart:
        """
        Adopt a freshly read remote cart as the new base.

        Confirmed entries are already part of `remote`; still-pending
        ones are replayed on top of it.
        """
        self._entries = [e for e in self._entries if not e.confirmed]
        self._base = remote if self._entries else None
        return self._replay(remote, self._entries)

    def reset(self) -> None:
        self._base = None
        self._entries = []

    # ---- internal helpers ----

    @staticmethod
    def _replay(base: Cart, entries: list[PendingMutation]) -> Cart:
        cart = base
        for entry in entries:
            cart = entry.apply(cart)
        return cart

    def _fold_confirmed(self) -> None:
        while self._entries and self._entries[0].confirmed:
            head = self._entries.pop(0)
            if self._base is not None:
                self._base = head.apply(self._base)
        if not self._entries:
            self._base = None


class CartState:
    """
    The visible cart, kept in lock-step with the local snapshot store.

    Readers always get an immediately available value; every write goes
    to the store and the visible cart together.
    """

    def __init__(self, store: LocalSnapshotStore):
        self.store = store
        self.log = CompensationLog()
        # Bumped whenever the cart is reset from outside the mutation engine
        self.epoch = 0
        self._cart = store.load()
        self._listeners: list[CartListener] = []

    @property
    def cart(self) -> Cart:
        return self._cart

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def replace(self, cart: Cart) -> None:
        self.store.save(cart)
        self._set(cart)

    def reload(self) -> None:
        """Show whatever the local snapshot store holds."""
        self._set(self.store.load())

    def adopt_remote(self, cart: Cart) -> None:
        """Remote truth wins: discard every in-flight optimistic change."""
        self.log.reset()
        self.epoch += 1
        self.replace(cart)

    def clear(self) -> None:
        self.log.reset()
        self.epoch += 1
        self.store.clear()
        self._set(Cart())

    def _set(self, cart: Cart) -> None:
        self._cart = cart
        for listener in list(self._listeners):
            listener(cart)
