"""Pytest configuration and fixtures"""
import os
import pytest
from unittest.mock import AsyncMock, Mock

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test_anon_key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("LOCAL_STORE_URL", "sqlite://")

from app.core.config import get_settings  # noqa: E402
from app.core.errors import NotFoundError  # noqa: E402
from app.database import create_db_and_tables, create_local_engine  # noqa: E402
from app.models import cart as _cart_models  # noqa: E402,F401
from app.repositories.snapshot_repo import LocalSnapshotStore  # noqa: E402
from app.schemas.cart import CatalogItem  # noqa: E402
from app.services.cart_engine import EngineRegistry, build_engine, storage_key_for  # noqa: E402
from tests.fakes import FakeCartRepository  # noqa: E402


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def local_engine():
    """Private in-memory SQLite database for the snapshot store."""
    engine = create_local_engine("sqlite://")
    create_db_and_tables(engine)
    return engine


@pytest.fixture
def store(local_engine):
    return LocalSnapshotStore(local_engine, key="cart")


@pytest.fixture
def burger():
    return CatalogItem(id="item-burger", name="Classic Burger", unit_price=10.00)


@pytest.fixture
def fries():
    return CatalogItem(id="item-fries", name="Fries", unit_price=3.50)


@pytest.fixture
def sold_out():
    return CatalogItem(id="item-special", name="Chef Special", unit_price=18.00, available=False)


@pytest.fixture
def catalog(burger, fries, sold_out):
    return {item.id: item for item in (burger, fries, sold_out)}


@pytest.fixture
def remote(catalog):
    return FakeCartRepository(catalog)


@pytest.fixture
def mock_catalog_repo(catalog):
    """Catalog lookup backed by the fixture items."""
    repo = Mock()

    async def get_by_id(item_id):
        if item_id not in catalog:
            raise NotFoundError("Menu item not found")
        return catalog[item_id]

    repo.get_by_id = AsyncMock(side_effect=get_by_id)
    return repo


@pytest.fixture
def mock_offer_repo():
    repo = Mock()
    repo.get_by_code = AsyncMock(return_value=None)
    repo.increment_usage = AsyncMock()
    return repo


@pytest.fixture
def mock_order_repo():
    repo = Mock()
    repo.generate_order_number = AsyncMock(return_value="ORD-0001")
    repo.create_order = AsyncMock(return_value={"id": "order-123"})
    repo.create_items = AsyncMock(return_value=[])
    repo.delete_order = AsyncMock()
    return repo


@pytest.fixture
def cart_engine(settings, local_engine, remote, mock_catalog_repo, mock_offer_repo, mock_order_repo):
    """Fully wired engine over in-memory fakes (no Supabase client)."""
    engine = build_engine(
        settings,
        local_engine,
        client=None,
        cart_repo=remote,
        catalog=mock_catalog_repo,
        offer_repo=mock_offer_repo,
        order_repo=mock_order_repo,
    )
    yield engine
    engine.close()


@pytest.fixture
def engines(settings, local_engine, remote, mock_catalog_repo, mock_offer_repo, mock_order_repo):
    """Per-owner engine registry over the same in-memory fakes."""

    async def make_engine(owner_id):
        return build_engine(
            settings,
            local_engine,
            client=None,
            cart_repo=remote,
            catalog=mock_catalog_repo,
            offer_repo=mock_offer_repo,
            order_repo=mock_order_repo,
            storage_key=storage_key_for(settings, owner_id),
        )

    registry = EngineRegistry(make_engine)
    yield registry
    registry.close()


@pytest.fixture
def mock_supabase_client():
    """Mock async Supabase client: every builder call chains, execute() is awaited."""
    client = Mock()

    query = Mock()
    for name in ("select", "insert", "update", "delete", "upsert", "eq", "limit", "order"):
        getattr(query, name).return_value = query
    query.execute = AsyncMock(return_value=Mock(data=[]))

    client.table.return_value = query
    client.rpc.return_value = query
    return client
