# app/schemas/cart.py
import math
import uuid

from pydantic import ConfigDict, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator
from sqlmodel import SQLModel, Field

# Prefix of line ids generated locally before the remote store confirms them
TEMP_ID_PREFIX = "tmp-"


def new_temp_line_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


class CatalogItem(SQLModel):
    """
    Denormalized snapshot of a menu item, captured when it is added to
    the cart so the cart can be displayed without re-reading the catalog.
    May go stale relative to the catalog.
    """

    id: StrictStr
    name: StrictStr
    description: StrictStr | None = None
    # Strict: ints are accepted, numeric strings are not
    unit_price: StrictFloat = Field(ge=0)
    available: StrictBool = True

    @field_validator("unit_price")
    @classmethod
    def finite_price(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("unit_price must be a finite number")
        return v


class CartLine(SQLModel):
    """
    One distinct catalog item in the cart.

    Types are strict: a persisted record with the wrong
    field types is rejected instead of being coerced.
    """

    model_config = ConfigDict(extra="ignore")

    id: StrictStr
    catalog_item_id: StrictStr
    quantity: StrictInt = Field(ge=1)
    note: StrictStr | None = None
    item: CatalogItem

    @property
    def unit_price(self) -> float:
        return self.item.unit_price

    @property
    def line_total(self) -> float:
        return self.item.unit_price * self.quantity

    @property
    def is_confirmed(self) -> bool:
        return not self.id.startswith(TEMP_ID_PREFIX)


class Cart(SQLModel):
    """
    Ordered collection of lines for exactly one owner.

    Every transform returns a new Cart; the receiver is never mutated.
    Invariant: at most one line per catalog item id.
    """

    lines: list[CartLine] = Field(default_factory=list)

    # ---- lookups ----

    def find_line(self, line_id: str) -> CartLine | None:
        return next((ln for ln in self.lines if ln.id == line_id), None)

    def find_by_catalog_item(self, catalog_item_id: str) -> CartLine | None:
        return next(
            (ln for ln in self.lines if ln.catalog_item_id == catalog_item_id),
            None,
        )

    # ---- pure transforms ----

    def with_item_added(
        self,
        item: CatalogItem,
        quantity: int = 1,
        note: str | None = None,
        line_id: str | None = None,
    ) -> "Cart":
        """
        Add `quantity` of `item`: bump the existing line, or append a new
        line with a temporary id (`line_id`, generated when omitted).
        `note` only overwrites when provided.
        """
        lines: list[CartLine] = []
        merged = False
        for ln in self.lines:
            if ln.catalog_item_id == item.id:
                ln = ln.model_copy(
                    update={
                        "quantity": ln.quantity + quantity,
                        "note": note if note is not None else ln.note,
                    }
                )
                merged = True
            lines.append(ln)

        if not merged:
            lines.append(
                CartLine(
                    id=line_id or new_temp_line_id(),
                    catalog_item_id=item.id,
                    quantity=quantity,
                    note=note,
                    item=item,
                )
            )
        return Cart(lines=lines)

    def with_quantity(self, line_id: str, quantity: int) -> "Cart":
        """Replace a line's quantity; quantity <= 0 removes the line."""
        if quantity <= 0:
            return self.without_line(line_id)
        return Cart(
            lines=[
                ln.model_copy(update={"quantity": quantity}) if ln.id == line_id else ln
                for ln in self.lines
            ]
        )

    def without_line(self, line_id: str) -> "Cart":
        return Cart(lines=[ln for ln in self.lines if ln.id != line_id])

    # ---- derived reads ----

    @property
    def total(self) -> float:
        return sum(ln.line_total for ln in self.lines)

    @property
    def distinct_item_count(self) -> int:
        """Badge count: number of unique catalog items."""
        return len({ln.catalog_item_id for ln in self.lines})

    @property
    def total_unit_count(self) -> int:
        return sum(ln.quantity for ln in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines


class CartHandle(SQLModel):
    """Remote cart row, resolved by owner."""

    id: str
    owner_id: str


# ---- API payloads ----


class AddItemRequest(SQLModel):
    """
    Payload for adding a menu item to the cart.
    """

    catalog_item_id: str
    quantity: int = Field(default=1, gt=0)
    note: str | None = None


class QuantityUpdate(SQLModel):
    """
    Payload for updating the quantity of a cart line.
    quantity <= 0 removes the line.
    """

    quantity: int


class CartSummary(SQLModel):
    """
    Full cart response model with derived counts.
    """

    lines: list[CartLine]
    total: float
    distinct_item_count: int
    total_unit_count: int

    @classmethod
    def from_cart(cls, cart: Cart) -> "CartSummary":
        return cls(
            lines=cart.lines,
            total=round(cart.total, 2),
            distinct_item_count=cart.distinct_item_count,
            total_unit_count=cart.total_unit_count,
        )
