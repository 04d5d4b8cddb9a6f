# app/repositories/cart_repo.py
import asyncio
import logging
import weakref
from typing import Any, Protocol

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from app.core.errors import NotFoundError, TransientRemoteError
from app.schemas.cart import CartHandle, CartLine, CatalogItem

logger = logging.getLogger(__name__)

# PostgREST code for "JSON object requested, multiple (or no) rows returned"
PGRST_NO_ROWS = "PGRST116"


async def run_query(query: Any, action: str) -> Any:
    """
    Execute a PostgREST query, mapping failures onto the error taxonomy.

    Raises:
        NotFoundError: the store reported that a unique row is missing.
        TransientRemoteError: anything else (network, rejected write...).
    """
    try:
        return await query.execute()
    except APIError as e:
        if e.code == PGRST_NO_ROWS:
            raise NotFoundError(f"{action}: row not found") from e
        logger.error(f"{action} failed: {e.message}")
        raise TransientRemoteError(f"{action} failed: {e.message}") from e
    except httpx.HTTPError as e:
        logger.error(f"{action} failed: {e}")
        raise TransientRemoteError(f"{action} failed: store unreachable") from e


class RemoteCartRepository(Protocol):
    """
    Durable cart storage for authenticated owners.

    Every method may raise TransientRemoteError or NotFoundError; none of
    them swallows failures.
    """

    async def find_cart(self, owner_id: str) -> CartHandle | None: ...

    async def ensure_cart(self, owner_id: str) -> CartHandle: ...

    async def list_lines(self, handle: CartHandle) -> list[CartLine]: ...

    async def upsert_line(
        self,
        handle: CartHandle,
        catalog_item_id: str,
        quantity: int,
        note: str | None,
    ) -> CartLine: ...

    async def delete_line(self, line_id: str) -> None: ...

    async def delete_all_lines(self, handle: CartHandle) -> None: ...


class SupabaseCartRepository:
    """
    Data access layer for `carts` and `cart_lines` over Supabase.

    - Pure table operations (equality filters only).
    - No quantity arithmetic: upsert_line overwrites what it is given.
    """

    def __init__(self, client: AsyncClient, catalog_table: str = "menu_items"):
        self.client = client
        self.catalog_table = catalog_table
        # Entries vanish once no caller holds the lock
        self._owner_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def _line_columns(self) -> str:
        return (
            "id, cart_id, catalog_item_id, quantity, note, "
            f"{self.catalog_table}(id, name, description, price, is_available)"
        )

    # ---- carts ----

    async def find_cart(self, owner_id: str) -> CartHandle | None:
        query = (
            self.client.table("carts")
            .select("id, user_id")
            .eq("user_id", owner_id)
            .limit(1)
        )
        result = await run_query(query, "find cart")
        if not result.data:
            return None
        return self._handle_from_row(result.data[0])

    async def ensure_cart(self, owner_id: str) -> CartHandle:
        """
        Return the owner's cart, creating it on first use.

        Concurrent callers for one owner are serialized in-process; across
        processes the upsert on the unique user_id keeps a single row.
        """
        lock = self._owner_locks.get(owner_id)
        if lock is None:
            lock = self._owner_locks[owner_id] = asyncio.Lock()
        async with lock:
            existing = await self.find_cart(owner_id)
            if existing is not None:
                return existing

            query = self.client.table("carts").upsert(
                {"user_id": owner_id}, on_conflict="user_id"
            )
            result = await run_query(query, "create cart")
            if not result.data:
                raise TransientRemoteError("create cart failed: no row returned")
            logger.info(f"Created cart for owner {owner_id}")
            return self._handle_from_row(result.data[0])

    # ---- lines ----

    async def list_lines(self, handle: CartHandle) -> list[CartLine]:
        query = (
            self.client.table("cart_lines")
            .select(self._line_columns)
            .eq("cart_id", handle.id)
            .order("created_at")
        )
        result = await run_query(query, "list cart lines")
        return [self._line_from_row(row) for row in result.data or []]

    async def upsert_line(
        self,
        handle: CartHandle,
        catalog_item_id: str,
        quantity: int,
        note: str | None,
    ) -> CartLine:
        query = (
            self.client.table("cart_lines")
            .select("id")
            .eq("cart_id", handle.id)
            .eq("catalog_item_id", catalog_item_id)
            .limit(1)
        )
        result = await run_query(query, "find cart line")

        if result.data:
            line_id = result.data[0]["id"]
            write = (
                self.client.table("cart_lines")
                .update({"quantity": quantity, "note": note})
                .eq("id", line_id)
            )
            await run_query(write, "update cart line")
        else:
            write = self.client.table("cart_lines").insert(
                {
                    "cart_id": handle.id,
                    "catalog_item_id": catalog_item_id,
                    "quantity": quantity,
                    "note": note,
                }
            )
            written = await run_query(write, "insert cart line")
            if not written.data:
                raise TransientRemoteError("insert cart line failed: no row returned")
            line_id = written.data[0]["id"]

        return await self._get_line(line_id)

    async def delete_line(self, line_id: str) -> None:
        query = self.client.table("cart_lines").delete().eq("id", line_id)
        result = await run_query(query, "delete cart line")
        if not result.data:
            raise NotFoundError(f"Cart line {line_id} not found")

    async def delete_all_lines(self, handle: CartHandle) -> None:
        query = self.client.table("cart_lines").delete().eq("cart_id", handle.id)
        await run_query(query, "clear cart lines")

    # ---- internal helpers ----

    async def _get_line(self, line_id: str) -> CartLine:
        query = (
            self.client.table("cart_lines")
            .select(self._line_columns)
            .eq("id", line_id)
            .limit(1)
        )
        result = await run_query(query, "read cart line")
        if not result.data:
            raise NotFoundError(f"Cart line {line_id} not found")
        return self._line_from_row(result.data[0])

    @staticmethod
    def _handle_from_row(row: dict) -> CartHandle:
        return CartHandle(id=str(row["id"]), owner_id=str(row["user_id"]))

    def _line_from_row(self, row: dict) -> CartLine:
        item_row = row.get(self.catalog_table)
        catalog_item_id = str(row["catalog_item_id"])
        if item_row:
            item = catalog_item_from_row(item_row)
        else:
            # Catalog row gone (or hidden by RLS): keep the line, mark it unavailable
            item = CatalogItem(
                id=catalog_item_id,
                name="Unavailable item",
                unit_price=0.0,
                available=False,
            )
        return CartLine(
            id=str(row["id"]),
            catalog_item_id=catalog_item_id,
            quantity=int(row["quantity"]),
            note=row.get("note"),
            item=item,
        )


def catalog_item_from_row(row: dict) -> CatalogItem:
    return CatalogItem(
        id=str(row["id"]),
        name=row["name"],
        description=row.get("description"),
        unit_price=float(row.get("price") or 0),
        available=bool(row.get("is_available", True)),
    )
