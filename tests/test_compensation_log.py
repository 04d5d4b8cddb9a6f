"""
Tests for CompensationLog rollback / rebase semantics
"""

from app.schemas.cart import Cart
from app.services.cart_state import CompensationLog, PendingMutation


def _add(item, quantity=1, line_id=None):
    return PendingMutation(
        description=f"add {item.id}",
        apply=lambda cart: cart.with_item_added(item, quantity, line_id=line_id),
    )


class TestRollback:
    def test_single_failure_restores_base(self, burger):
        log = CompensationLog()
        base = Cart()

        entry = _add(burger, line_id="tmp-a")
        optimistic = log.begin(base, entry)
        assert optimistic.total_unit_count == 1

        assert log.fail(entry) == base
        assert len(log) == 0

    def test_failure_keeps_later_mutations(self, burger, fries):
        log = CompensationLog()
        first = _add(burger, line_id="tmp-a")
        second = _add(fries, 2, line_id="tmp-b")

        cart = log.begin(Cart(), first)
        cart = log.begin(cart, second)

        restored = log.fail(first)

        assert [(ln.id, ln.quantity) for ln in restored.lines] == [("tmp-b", 2)]
        assert second in log

    def test_failure_on_same_line_removes_only_its_delta(self, burger):
        log = CompensationLog()
        base = Cart().with_item_added(burger, 1, line_id="line-1")
        first = _add(burger, 2)
        second = _add(burger, 3)

        cart = log.begin(base, first)
        cart = log.begin(cart, second)
        assert cart.lines[0].quantity == 6

        restored = log.fail(second)

        assert restored.lines[0].quantity == 3

    def test_failure_after_earlier_confirm(self, burger, fries):
        log = CompensationLog()
        first = _add(burger, line_id="tmp-a")
        second = _add(fries, line_id="tmp-b")
        cart = log.begin(Cart(), first)
        log.begin(cart, second)

        log.confirm(first)
        restored = log.fail(second)

        assert [ln.catalog_item_id for ln in restored.lines] == ["item-burger"]
        assert len(log) == 0

    def test_unknown_entry_after_reset_returns_none(self, burger):
        log = CompensationLog()
        entry = _add(burger)
        log.begin(Cart(), entry)

        log.reset()

        assert log.fail(entry) is None
        assert entry not in log


class TestRebase:
    def test_confirmed_entries_dropped_pending_replayed(self, burger, fries):
        log = CompensationLog()
        first = _add(burger, line_id="tmp-a")
        second = _add(fries, line_id="tmp-b")
        cart = log.begin(Cart(), first)
        log.begin(cart, second)
        # `second` confirmed out of order: stays in the log until rebase
        log.confirm(second)

        remote = Cart().with_item_added(fries, 1, line_id="line-7")
        rebased = log.rebase(remote)

        assert [(ln.id, ln.catalog_item_id) for ln in rebased.lines] == [
            ("line-7", "item-fries"),
            ("tmp-a", "item-burger"),
        ]
        assert len(log) == 1

        # Rolling back the still pending add leaves the remote cart
        assert log.fail(first) == remote

    def test_rebase_with_nothing_pending_is_remote(self, burger):
        log = CompensationLog()
        remote = Cart().with_item_added(burger, 4, line_id="line-1")

        assert log.rebase(remote) == remote
        assert len(log) == 0
