# app/repositories/snapshot_repo.py
import json
import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlmodel import Session

from app.core.errors import CorruptLocalStateError
from app.models.cart import LocalSnapshot
from app.schemas.cart import Cart, CartLine

logger = logging.getLogger(__name__)


class LocalSnapshotStore:
    """
    Durable, process-local copy of the working cart.

    - load() never fails on bad data: an unparsable value is dropped
      entirely, individual malformed records are dropped one by one.
    - save() always overwrites the whole stored value.
    """

    def __init__(self, engine: Engine, key: str = "cart"):
        self.engine = engine
        self.key = key

    def load(self) -> Cart:
        with Session(self.engine) as session:
            row = session.get(LocalSnapshot, self.key)
            if row is None:
                return Cart()

            try:
                records = self._decode(row.payload)
            except CorruptLocalStateError as e:
                logger.warning(f"Discarding corrupt cart snapshot '{self.key}': {e}")
                session.delete(row)
                session.commit()
                return Cart()

        lines = self._valid_lines(records)
        cart = Cart(lines=lines)
        if len(lines) != len(records):
            # Persist the cleaned value so bad records are not re-read
            self.save(cart)
        return cart

    def save(self, cart: Cart) -> None:
        payload = json.dumps([line.model_dump(mode="json") for line in cart.lines])
        with Session(self.engine) as session:
            row = session.get(LocalSnapshot, self.key)
            if row is None:
                row = LocalSnapshot(key=self.key, payload=payload)
            else:
                row.payload = payload
                row.updated_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()

    def clear(self) -> None:
        with Session(self.engine) as session:
            row = session.get(LocalSnapshot, self.key)
            if row is not None:
                session.delete(row)
                session.commit()

    # ---- internal helpers ----

    @staticmethod
    def _decode(payload: str) -> list:
        try:
            records = json.loads(payload)
        except (json.JSONDecodeError, TypeError) as e:
            raise CorruptLocalStateError(f"unparsable payload: {e}")
        if not isinstance(records, list):
            raise CorruptLocalStateError(
                f"expected an array, got {type(records).__name__}"
            )
        return records

    @staticmethod
    def _valid_lines(records: list) -> list[CartLine]:
        lines: list[CartLine] = []
        seen: set[str] = set()
        for record in records:
            try:
                line = CartLine.model_validate(record)
            except ValidationError as e:
                logger.warning(f"Dropping malformed cart line from snapshot: {e.error_count()} error(s)")
                continue
            # One line per catalog item; first occurrence wins
            if line.catalog_item_id in seen:
                logger.warning(
                    f"Dropping duplicate cart line for item {line.catalog_item_id}"
                )
                continue
            seen.add(line.catalog_item_id)
            lines.append(line)
        return lines
