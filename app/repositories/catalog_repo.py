# app/repositories/catalog_repo.py
from supabase import AsyncClient

from app.core.errors import NotFoundError
from app.repositories.cart_repo import catalog_item_from_row, run_query
from app.schemas.cart import CatalogItem


class CatalogRepository:
    """
    Read-only access to menu items.

    - Pure DB operations, no business logic.
    """

    def __init__(self, client: AsyncClient, table: str = "menu_items"):
        self.client = client
        self.table = table

    async def get_by_id(self, item_id: str) -> CatalogItem:
        query = (
            self.client.table(self.table)
            .select("id, name, description, price, is_available")
            .eq("id", item_id)
            .limit(1)
        )
        result = await run_query(query, "read menu item")
        if not result.data:
            raise NotFoundError("Menu item not found")
        return catalog_item_from_row(result.data[0])
