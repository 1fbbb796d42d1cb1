import os

# Keep the apps' own engines off disk; tests bind their own engine below
os.environ.setdefault("DATABASE_URL", "sqlite://")

import fakeredis
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from inventory.products_main import app as products_app
from inventory.transactions_main import app as transactions_app
from inventory.database import Base, get_db
from inventory.services.product_client import ProductClient, get_product_client
from inventory.utils.cache import cache_service


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def override_get_product_client():
    """Serve the Products service in-process instead of over the network."""
    return ProductClient(
        base_url="http://products",
        transport=httpx.ASGITransport(app=products_app),
    )


# Override the dependencies
products_app.dependency_overrides[get_db] = override_get_db
transactions_app.dependency_overrides[get_db] = override_get_db
transactions_app.dependency_overrides[get_product_client] = override_get_product_client


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Replace Redis with a fresh in-memory server for every test."""
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    monkeypatch.setattr(cache_service, "client", client)
    yield client


@pytest.fixture(scope="function")
def database():
    """Create tables for one test and drop them afterwards."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def products_client(database):
    """Test client for the Products service with a fresh database."""
    with TestClient(products_app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def transactions_client(database):
    """Test client for the Transactions service with a fresh database."""
    with TestClient(transactions_app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def db_session(database):
    """Create database session for direct database access in tests."""
    session = TestingSessionLocal()

    yield session

    session.close()


def refusing_product_client():
    """A Products client whose every call fails at the transport."""
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    return ProductClient(base_url="http://products", transport=httpx.MockTransport(refuse))


@pytest.fixture
def unreachable_products(monkeypatch):
    """Make the Products service unreachable from the Transactions service."""
    monkeypatch.setitem(
        transactions_app.dependency_overrides, get_product_client, refusing_product_client
    )


def create_product(client, **overrides):
    """Create a product through the Products API and return its data."""
    payload = {
        "name": "Widget",
        "description": "A small widget",
        "category": "Tools",
        "price": 5.00,
        "stock": 10,
    }
    payload.update(overrides)
    response = client.post("/api/productos/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]
