# app/dependencies.py
from typing import AsyncIterator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.services.cart_engine import CartEngine, EngineRegistry

# auto_error=False: anonymous callers may still read an (empty) cart
bearer_scheme = HTTPBearer(auto_error=False)


def get_engine_registry(request: Request) -> EngineRegistry:
    return request.app.state.engines


async def get_cart_engine(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    registry: EngineRegistry = Depends(get_engine_registry),
) -> AsyncIterator[CartEngine]:
    """
    FastAPI dependency returning the caller's cart engine.

    - Bearer token: the engine of the token's owner (401 if invalid).
    - No token: a throwaway anonymous engine; every cart write on it
      answers 401.

    Usage:

        @router.get("/example")
        async def example(engine: CartEngine = Depends(get_cart_engine)):
            ...
    """
    if credentials is not None:
        yield await registry.for_token(credentials.credentials)
        return

    engine = await registry.anonymous()
    try:
        yield engine
    finally:
        engine.close()
