"""
Tests for the local snapshot store
"""

import json

from sqlmodel import Session

from app.models.cart import LocalSnapshot
from app.repositories.snapshot_repo import LocalSnapshotStore
from app.schemas.cart import Cart


def _raw(store: LocalSnapshotStore) -> str | None:
    with Session(store.engine) as session:
        row = session.get(LocalSnapshot, store.key)
        return row.payload if row else None


def _write_raw(store: LocalSnapshotStore, payload: str) -> None:
    with Session(store.engine) as session:
        session.add(LocalSnapshot(key=store.key, payload=payload))
        session.commit()


def _line_record(line_id="line-1", item_id="item-burger", quantity=2, **overrides):
    record = {
        "id": line_id,
        "catalog_item_id": item_id,
        "quantity": quantity,
        "note": None,
        "item": {
            "id": item_id,
            "name": "Classic Burger",
            "description": None,
            "unit_price": 10.0,
            "available": True,
        },
    }
    record.update(overrides)
    return record


class TestLoad:
    """Tests for load() on empty and damaged state."""

    def test_empty_store_loads_empty_cart(self, store):
        assert store.load() == Cart()

    def test_unparsable_payload_is_dropped(self, store):
        _write_raw(store, "{not json")

        assert store.load() == Cart()
        assert _raw(store) is None

    def test_non_array_payload_is_dropped(self, store):
        _write_raw(store, json.dumps({"lines": []}))

        assert store.load() == Cart()
        assert _raw(store) is None

    def test_malformed_records_are_dropped_individually(self, store):
        records = [
            _line_record("line-1", "item-burger"),
            _line_record("line-2", "item-fries", quantity="3"),  # wrong type
            _line_record("line-3", "item-cola", quantity=0),  # below minimum
            {"id": "line-4"},  # missing fields
            "garbage",
        ]
        _write_raw(store, json.dumps(records))

        cart = store.load()

        assert [line.id for line in cart.lines] == ["line-1"]
        # Cleaned value is persisted
        assert len(json.loads(_raw(store))) == 1

    def test_catalog_fields_are_not_coerced(self, store):
        string_price = _line_record("line-1", "item-burger")
        string_price["item"]["unit_price"] = "10.0"
        numeric_description = _line_record("line-2", "item-fries")
        numeric_description["item"]["description"] = 5
        numeric_note = _line_record("line-3", "item-cola", note=42)
        int_price = _line_record("line-4", "item-soup")
        int_price["item"]["unit_price"] = 12
        _write_raw(store, json.dumps([string_price, numeric_description, numeric_note, int_price]))

        cart = store.load()

        assert [line.id for line in cart.lines] == ["line-4"]
        assert cart.lines[0].unit_price == 12

    def test_duplicate_catalog_item_keeps_first_line(self, store):
        records = [
            _line_record("line-1", "item-burger", quantity=2),
            _line_record("line-2", "item-burger", quantity=5),
        ]
        _write_raw(store, json.dumps(records))

        cart = store.load()

        assert len(cart.lines) == 1
        assert cart.lines[0].id == "line-1"
        assert cart.lines[0].quantity == 2


class TestSaveAndClear:
    """Tests for save() / clear()."""

    def test_save_then_load_round_trip(self, store, burger, fries):
        cart = (
            Cart()
            .with_item_added(burger, 2, note="no onions", line_id="line-a")
            .with_item_added(fries, 1, line_id="line-b")
        )

        store.save(cart)

        assert store.load() == cart

    def test_save_overwrites_previous_value(self, store, burger, fries):
        store.save(Cart().with_item_added(burger, 1))
        store.save(Cart().with_item_added(fries, 4))

        cart = store.load()
        assert len(cart.lines) == 1
        assert cart.lines[0].catalog_item_id == "item-fries"
        assert cart.lines[0].quantity == 4

    def test_clear_removes_value(self, store, burger):
        store.save(Cart().with_item_added(burger, 1))

        store.clear()

        assert _raw(store) is None
        assert store.load() == Cart()

    def test_clear_on_empty_store_is_noop(self, store):
        store.clear()
        assert store.load() == Cart()

    def test_survives_new_store_instance(self, local_engine, burger):
        LocalSnapshotStore(local_engine, key="cart").save(Cart().with_item_added(burger, 3))

        reloaded = LocalSnapshotStore(local_engine, key="cart").load()

        assert reloaded.total_unit_count == 3
