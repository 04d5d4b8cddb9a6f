# app/schemas/order.py
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, field_validator, model_validator
from sqlmodel import SQLModel

from app.schemas.pricing import PriceBreakdown

DeliveryType = Literal["immediate", "scheduled"]
PaymentMethod = Literal["card", "paypal", "cod"]


class DeliveryAddress(SQLModel):
    """
    Address snapshot stored on the order row.
    """

    label: str | None = None
    street_address: str
    city: str
    state: str
    zip_code: str

    @field_validator("street_address", "city", "state", "zip_code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v


class CheckoutRequest(SQLModel):
    """
    Payload for placing an order from the current cart.

    User provides:
      - delivery address
      - delivery type (+ scheduled_for when scheduled)
      - payment method
      - special instructions (optional)

    Engine derives:
      - owner from the session
      - items and amounts from the cart and the applied offer
    """

    model_config = ConfigDict(extra="forbid")

    delivery_address: DeliveryAddress
    delivery_type: DeliveryType = "immediate"
    scheduled_for: datetime | None = None
    payment_method: PaymentMethod = "card"
    special_instructions: str | None = None

    @field_validator("special_instructions")
    @classmethod
    def normalize_instructions(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def scheduled_needs_time(self) -> "CheckoutRequest":
        if self.delivery_type == "scheduled" and self.scheduled_for is None:
            raise ValueError("scheduled_for is required for scheduled delivery")
        if self.delivery_type == "immediate":
            self.scheduled_for = None
        return self


class OrderRead(SQLModel):
    """
    Result of a successful checkout.
    """

    id: str
    order_number: str
    breakdown: PriceBreakdown
    item_count: int
