# app/schemas/pricing.py
from sqlmodel import SQLModel, Field


class PricingRules(SQLModel):
    """
    Store-wide pricing inputs.

    Delivery is free only when the subtotal is strictly above
    free_delivery_threshold.
    """

    tax_rate: float = Field(ge=0)
    free_delivery_threshold: float = Field(ge=0)
    delivery_fee: float = Field(ge=0)


class PriceBreakdown(SQLModel):
    """
    Derived, never persisted. Recomputed on every read.
    """

    subtotal: float
    discount: float
    tax: float
    delivery_fee: float
    total: float
    offer_code: str | None = None
