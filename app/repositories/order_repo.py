# app/repositories/order_repo.py
from supabase import AsyncClient

from app.core.errors import TransientRemoteError
from app.repositories.cart_repo import run_query


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - Rows are built by the checkout service; this class only writes them.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    async def generate_order_number(self) -> str:
        result = await run_query(
            self.client.rpc("generate_order_number"), "generate order number"
        )
        if not result.data:
            raise TransientRemoteError("generate order number failed: empty result")
        return str(result.data)

    async def create_order(self, row: dict) -> dict:
        result = await run_query(self.client.table("orders").insert(row), "create order")
        if not result.data:
            raise TransientRemoteError("create order failed: no row returned")
        return result.data[0]

    async def create_items(self, rows: list[dict]) -> list[dict]:
        result = await run_query(
            self.client.table("order_items").insert(rows), "create order items"
        )
        return result.data or []

    async def delete_order(self, order_id) -> None:
        await run_query(
            self.client.table("orders").delete().eq("id", order_id), "delete order"
        )
