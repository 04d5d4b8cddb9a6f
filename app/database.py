# app/database.py
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from app.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Local snapshot store connection (SQLite)
#
# - check_same_thread=False : FastAPI may touch the store from its
#                             threadpool as well as the event loop
# - StaticPool for ":memory:" : every Session must see the same
#                               in-memory database
#
# The store is small and writes are synchronous, so the UI always has
# an immediately readable local value.
# ---------------------------------------------------------


def create_local_engine(url: str) -> Engine:
    """
    Build an engine for the local snapshot store.

    Accepts any SQLAlchemy URL; "sqlite://" gives a private in-memory
    database (used by tests).
    """
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)
    return create_engine(url, echo=False, pool_pre_ping=True)


engine = create_local_engine(settings.LOCAL_STORE_URL)


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(bind or engine)
