# app/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - LOCAL_STORE_URL (where the local cart snapshot lives)
      - TAX_RATE / FREE_DELIVERY_THRESHOLD / DELIVERY_FEE (pricing rules)
    """

    PROJECT_NAME: str = "Food Ordering Cart Engine"
    API_V1_STR: str = "/api/v1"

    # Supabase config
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # JWT verification (session sign-in)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Local snapshot store (survives process restarts)
    LOCAL_STORE_URL: str = "sqlite:///./.cart_snapshot.db"
    CART_STORAGE_KEY: str = "cart"

    # Pricing rules
    TAX_RATE: float = 0.08
    FREE_DELIVERY_THRESHOLD: float = 25.0
    DELIVERY_FEE: float = 2.99

    # Remote table holding the catalog (menu) items
    CATALOG_TABLE: str = "menu_items"

    NOTIFICATION_HISTORY: int = 50

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
