"""
Test configuration and fixtures for the Estate Feed API.
Provides database fixtures, test data factories, and common test utilities.
"""

import os
import tempfile

# Settings are read once at import time, so the environment must be in place
# before anything from estate_feed is imported.
_TEST_ROOT = tempfile.mkdtemp(prefix="estate_feed_tests_")
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/default.db"
os.environ["MEDIA_ROOT"] = os.path.join(_TEST_ROOT, "media")
os.environ["JWT_SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"
os.environ["REALTIME_DEBOUNCE_SECONDS"] = "0.01"

import io
import uuid
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from estate_feed.database import (
    build_engine,
    build_session_factory,
    create_tables,
    drop_tables,
    get_session_factory
)
from estate_feed.main import app
from estate_feed.models.user import User
from estate_feed.repositories.property import PropertyRepository
from estate_feed.repositories.user import UserRepository
from estate_feed.schemas.comment import CommentRecord
from estate_feed.schemas.property import PropertyRecord
from estate_feed.services.realtime import ChangeHub
from estate_feed.services.storage import ObjectStorage
from estate_feed.store import ListingStore
from estate_feed.utils.dependencies import _shared_coordinator, get_hub, get_storage


DEFAULT_PASSWORD = "testpassword123"


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(test_engine)
    yield test_engine
    await drop_tables(test_engine)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return build_session_factory(engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def hub() -> ChangeHub:
    return ChangeHub()


@pytest.fixture
def store(session_factory, hub) -> ListingStore:
    return ListingStore(session_factory, hub)


@pytest.fixture
def storage(tmp_path) -> ObjectStorage:
    return ObjectStorage(root=str(tmp_path / "media"), base_url="http://test")


@pytest.fixture
async def async_client(session_factory, hub, storage) -> AsyncGenerator[AsyncClient, None]:
    """Async test client wired to the per-test database, hub and storage."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_hub] = lambda: hub
    app.dependency_overrides[get_storage] = lambda: storage
    _shared_coordinator.cache_clear()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    _shared_coordinator.cache_clear()


# Test data factories
class UserFactory:
    """Factory for creating test users."""

    @staticmethod
    def create_user_data(
        email: str = None,
        password: str = DEFAULT_PASSWORD,
        full_name: str = "Test User",
        username: Optional[str] = None,
        is_active: bool = True
    ) -> dict:
        return {
            "email": email or f"test{uuid.uuid4().hex[:8]}@example.com",
            "password": password,
            "full_name": full_name,
            "username": username,
            "is_active": is_active
        }

    @staticmethod
    async def create_user(session_factory: async_sessionmaker, **overrides) -> User:
        """Create a test user in the database."""
        async with session_factory() as session:
            return await UserRepository(session).create_user(UserFactory.create_user_data(**overrides))


class PropertyFactory:
    """Factory for creating test listings."""

    @staticmethod
    def create_property_data(
        owner_id: uuid.UUID,
        title: str = "Test Property",
        description: str = "A beautiful test property",
        price: Decimal = Decimal("100000.00"),
        currency: str = "NGN",
        is_for_rent: bool = False,
        location: str = "Lekki",
        bedrooms: int = 2,
        bathrooms: int = 1,
        square_feet: int = 1000,
        created_at: Optional[datetime] = None
    ) -> dict:
        data = {
            "owner_id": owner_id,
            "title": title,
            "description": description,
            "price": price,
            "currency": currency,
            "is_for_rent": is_for_rent,
            "location": location,
            "bedrooms": bedrooms,
            "bathrooms": bathrooms,
            "square_feet": square_feet
        }
        if created_at is not None:
            data["created_at"] = created_at
        return data

    @staticmethod
    async def create_property(
        session_factory: async_sessionmaker,
        owner_id: uuid.UUID,
        images: Optional[List[str]] = None,
        **overrides
    ) -> PropertyRecord:
        """Insert a listing directly, bypassing the change hub."""
        images = images or ["http://test/media/property-images/a.jpg"]
        async with session_factory() as session:
            property_obj = await PropertyRepository(session).create_with_images(
                PropertyFactory.create_property_data(owner_id, **overrides),
                [{"image_url": url} for url in images]
            )
            return PropertyRecord.model_validate(property_obj)


def make_image_bytes(fmt: str = "PNG", size: Tuple[int, int] = (8, 8)) -> bytes:
    """Small valid image encoded with Pillow."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color=(200, 120, 40)).save(buffer, format=fmt)
    return buffer.getvalue()


async def sign_up(
    client: AsyncClient,
    email: str = None,
    password: str = DEFAULT_PASSWORD,
    full_name: str = "Test User",
    username: Optional[str] = None
) -> Tuple[Dict[str, str], uuid.UUID]:
    """Register through the API. Returns (auth headers, user id)."""
    payload = {
        "email": email or f"user{uuid.uuid4().hex[:8]}@example.com",
        "password": password,
        "full_name": full_name
    }
    if username:
        payload["username"] = username
    response = await client.post("/api/v1/auth/signup", json=payload)
    assert response.status_code == 201, response.text
    body = response.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, uuid.UUID(body["user"]["id"])


# Utility functions for tests
def assert_comment_ids(comments: List[CommentRecord], expected: List[uuid.UUID]):
    assert [c.id for c in comments] == expected
