# app/repositories/offer_repo.py
from supabase import AsyncClient

from app.repositories.cart_repo import run_query
from app.schemas.offer import Offer, canonical_offer_code


class OfferRepository:
    """
    Data access layer for promotional offers.

    Offers are read-only here, except for the usage counter bumped
    after an order is placed.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    async def get_by_code(self, code: str) -> Offer | None:
        query = (
            self.client.table("offers")
            .select("*")
            .eq("code", canonical_offer_code(code))
            .limit(1)
        )
        result = await run_query(query, "read offer")
        if not result.data:
            return None
        return Offer.model_validate(result.data[0])

    async def increment_usage(self, offer: Offer) -> None:
        query = (
            self.client.table("offers")
            .update({"used_count": offer.used_count + 1})
            .eq("id", offer.id)
        )
        await run_query(query, "update offer usage")
