"""Pytest configuration and fixtures"""
import os

import httpx
import pytest

# Set test environment variables
os.environ.setdefault("CARTSYNC_API_URL", "http://api.test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from cartsync.auth import TokenAuthService
from cartsync.config import Settings
from cartsync.db import MemoryStore
from cartsync.engine import create_cart_engine
from cartsync.events import EventBus
from cartsync.http import ApiClient

from fake_api import FakeStorefront

API_BASE = "http://api.test/api/v1"


@pytest.fixture
def fake_api():
    """In-memory storefront backend"""
    return FakeStorefront()


@pytest.fixture
def http_client(fake_api):
    """httpx client routed to the fake storefront"""
    return httpx.AsyncClient(transport=fake_api.transport())


@pytest.fixture
def api(http_client):
    return ApiClient(API_BASE, http_client=http_client)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def auth():
    """Signed-out shopper; call auth.login(...) to sign in"""
    return TokenAuthService()


@pytest.fixture
def settings():
    return Settings(api_url="http://api.test", guest_api_url="http://guest.test")


@pytest.fixture
def engine(auth, settings, store, event_bus, http_client):
    """Fully wired engine against the fake storefront"""
    return create_cart_engine(auth, settings=settings, store=store, event_bus=event_bus, http_client=http_client)


@pytest.fixture
def events_seen(event_bus):
    """Records every topic published on the engine's bus"""
    seen = []
    event_bus.subscribe("cartUpdated", lambda: seen.append("cartUpdated"))
    event_bus.subscribe("wishlistUpdated", lambda: seen.append("wishlistUpdated"))
    return seen


@pytest.fixture
def sample_product():
    """Sample product data"""
    return {
        "id": "p1",
        "name": "Basmati Rice 5kg",
        "price": 499.0,
        "image_url": "https://cdn.test/p1.jpg",
        "category": "Grains",
        "rating": 4.5,
    }
