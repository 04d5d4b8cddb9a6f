# app/schemas/offer.py
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import field_validator
from sqlmodel import SQLModel, Field

from app.core.errors import OfferRejectionReason

DiscountType = Literal["percentage", "fixed"]


class Offer(SQLModel):
    """
    Promotional code record (read-only for the cart engine).

    Matches the `offers` table:
      - code is case-insensitive and stored upper-case
      - max_discount only caps percentage offers
      - usage_limit / used_count bound how many orders may use it
    """

    id: str
    code: str
    title: str = ""
    description: str | None = None
    discount_type: DiscountType
    discount_value: float = Field(ge=0)
    min_order_amount: float = Field(default=0, ge=0)
    max_discount: float | None = Field(default=None, ge=0)
    is_active: bool = True
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    usage_limit: int | None = None
    used_count: int = 0

    @field_validator("code")
    @classmethod
    def canonical_code(cls, v: str) -> str:
        return canonical_offer_code(v)

    @field_validator("min_order_amount", "used_count", mode="before")
    @classmethod
    def null_as_zero(cls, v):
        return 0 if v is None else v

    @field_validator("is_active", mode="before")
    @classmethod
    def null_as_inactive(cls, v):
        return False if v is None else v


def canonical_offer_code(code: str) -> str:
    return code.strip().upper()


class OfferState(str, Enum):
    NO_OFFER = "no_offer"
    APPLYING = "applying"
    APPLIED = "applied"


class OfferApplyRequest(SQLModel):
    code: str

    @field_validator("code")
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("code cannot be empty")
        return v


class OfferStatusRead(SQLModel):
    """
    Offer state for the UI: which code (if any) is applied and, after a
    rejected attempt, why it was rejected.
    """

    state: OfferState
    offer: Offer | None = None
    rejection: OfferRejectionReason | None = None
