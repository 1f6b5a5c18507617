"""Pytest configuration and fixtures"""
import os
from typing import Callable, Generator

import httpx
import pytest
from fastapi.testclient import TestClient

# Set test environment variables
os.environ.setdefault("CART_ENGINE_URL", "http://engine.test/api")
os.environ.setdefault("STOREFRONT_URL", "http://testserver")
os.environ.setdefault("DEFAULT_CURRENCY", "USD")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from api.index import app  # noqa: E402
from storefront.cart import EngineClient, StorefrontClient  # noqa: E402
from storefront.routers.deps import get_engine_client  # noqa: E402
from tests.fake_engine import create_engine_app  # noqa: E402

ENGINE_BASE_URL = "http://engine.test/api"


@pytest.fixture
def sample_product():
    """Sample catalog product (price in cents)"""
    return {
        "id": 1,
        "title": "Essence Mascara Lash Princess",
        "price": 999,
        "stock": 50,
        "thumbnail": "https://cdn.example.com/products/1/thumbnail.png",
        "brand": "Essence",
        "category": "beauty",
        "sku": "RCH45Q1A",
    }


@pytest.fixture
def other_product():
    return {"id": 2, "title": "Eyeshadow Palette", "price": 1999, "stock": 10}


@pytest.fixture
def engine_app():
    """Fresh in-process cart engine"""
    return create_engine_app()


@pytest.fixture
def engine_client(engine_app) -> EngineClient:
    """EngineClient wired to the in-process engine"""
    return EngineClient(base_url=ENGINE_BASE_URL, transport=httpx.ASGITransport(app=engine_app))


@pytest.fixture
def mock_engine() -> Callable[[Callable[[httpx.Request], httpx.Response]], EngineClient]:
    """Factory: EngineClient whose every request is answered by handler"""
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> EngineClient:
        return EngineClient(base_url=ENGINE_BASE_URL, transport=httpx.MockTransport(handler))
    return factory


@pytest.fixture
def use_engine() -> Generator[Callable[[EngineClient], None], None, None]:
    """Point the edge app at a given EngineClient for the duration of a test"""
    def install(engine: EngineClient) -> None:
        app.dependency_overrides[get_engine_client] = lambda: engine
    yield install
    app.dependency_overrides.clear()


@pytest.fixture
def client(engine_client, use_engine) -> Generator[TestClient, None, None]:
    """Edge test client backed by the in-process engine"""
    use_engine(engine_client)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def storefront(engine_client, use_engine) -> StorefrontClient:
    """Browser-side client talking to the edge app, which talks to the in-process engine"""
    use_engine(engine_client)
    return StorefrontClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))
