# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.errors import CartError, OfferRejected
from app.core.supabase_client import supabase_public, supabase_user_client
from app.database import create_db_and_tables, engine

# Import models so SQLModel metadata is populated before create_all()
from app.models import cart as _cart_models  # noqa: F401

from app.services.cart_engine import EngineRegistry, build_engine, storage_key_for

# Routers
from app.routers.session import router as session_router
from app.routers.cart import router as cart_router
from app.routers.checkout import router as checkout_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Create the local snapshot table.
      - Set up the per-owner cart engine registry.

    Shutdown:
      - Close every owner's engine.
    """
    logger.info("🔄 Startup: preparing local cart store...")
    try:
        create_db_and_tables()
        logger.info("✅ Startup: local cart store ready.")
    except Exception as e:
        logger.error(f"❌ Startup: local cart store FAILED: {e}")
        raise

    async def make_engine(owner_id: str | None):
        client = await supabase_user_client() if owner_id else await supabase_public()
        return build_engine(
            settings, engine, client, storage_key=storage_key_for(settings, owner_id)
        )

    app.state.engines = EngineRegistry(make_engine)
    yield
    app.state.engines.close()


app = FastAPI(
    title=settings.PROJECT_NAME or "Food Ordering Cart Engine",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CartError)
async def cart_error_handler(request: Request, exc: CartError):
    """
    Every engine error carries its own status code; offer rejections
    also expose a machine-readable reason.
    """
    content = {"detail": exc.detail}
    if isinstance(exc, OfferRejected):
        content["reason"] = exc.reason.value
    return JSONResponse(status_code=exc.status_code, content=content)


# Versioned API prefix, e.g. /api/v1
app.include_router(session_router, prefix=settings.API_V1_STR)
app.include_router(cart_router, prefix=settings.API_V1_STR)
app.include_router(checkout_router, prefix=settings.API_V1_STR)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "cart-engine"}
