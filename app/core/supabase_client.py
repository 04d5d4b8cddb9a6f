# app/core/supabase_client.py
from supabase import AsyncClient, acreate_client

from app.core.config import get_settings

settings = get_settings()

_public_client: AsyncClient | None = None


async def supabase_public() -> AsyncClient:
    """
    Create (once) an async Supabase client with the anon/public key.

    Use cases:
      - carts / cart_lines reads and writes
      - menu_items and offers lookups
      - orders / order_items inserts at checkout

    Note: This client still respects RLS, so the signed-in user's
    access token must be attached before touching their cart rows.
    """
    global _public_client
    if _public_client is None:
        _public_client = await acreate_client(
            settings.SUPABASE_URL, settings.SUPABASE_KEY
        )
    return _public_client


async def supabase_user_client() -> AsyncClient:
    """
    Create a fresh anon-key client for one signed-in owner.

    `attach_access_token` sets the token on the client itself, so owners
    never share one.
    """
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def attach_access_token(client: AsyncClient, token: str | None) -> None:
    """
    Forward the user's access token to PostgREST so RLS policies apply
    to their rows. Passing None resets the client to the anon key.
    """
    client.postgrest.auth(token or settings.SUPABASE_KEY)
