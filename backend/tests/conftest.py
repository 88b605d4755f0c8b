"""
Recipes API - Test Configuration (conftest.py)
================================================

What:  Shared pytest fixtures for the whole suite.
How:   Service and route tests run against an in-memory SQLite database
       (aiosqlite + StaticPool) built from the ORM metadata. The image host
       is replaced by FakeImageStore; the cache is the real in-memory store.

Fixture Hierarchy:
    db_engine ──▶ session_factory ──▶ db_session
    fake_image_store, cache, upload_service ──▶ recipe_service
    session_factory + services ──▶ app_factory ──▶ test_client (HTTPX over ASGI)
"""

import os
import tempfile

# Settings are read at import time; point them at throwaway resources first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="recipes_api_test_")
os.environ["REDIS_URL"] = ""
os.environ["CLOUDINARY_CLOUD_NAME"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from recipes_api.config import Settings, settings
from recipes_api.database import Base, get_db_session
from recipes_api.models import Category, Recipe, Region
from recipes_api.services.cache_store import InMemoryCacheStore
from recipes_api.services.image_store import ImageStore, UploadedImage
from recipes_api.services.recipe_service import RecipeService
from recipes_api.services.upload_service import ImageUpload, UploadService

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01"


class FakeImageStore(ImageStore):
    """
    In-memory stand-in for Cloudinary.

    Records every upload and delete; `upload_error` / `delete_error` make the
    next calls raise.
    """

    def __init__(self):
        self.uploaded: List[str] = []
        self.deleted: List[str] = []
        self.upload_error: Optional[Exception] = None
        self.delete_error: Optional[Exception] = None

    async def upload(self, path: str, folder: str) -> UploadedImage:
        if self.upload_error is not None:
            raise self.upload_error
        asset_id = f"{folder}/img-{len(self.uploaded) + 1}"
        self.uploaded.append(asset_id)
        return UploadedImage(
            url=f"https://res.cloudinary.com/demo/image/upload/{asset_id}.png",
            asset_id=asset_id,
        )

    async def delete(self, asset_id: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(asset_id)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fake_image_store():
    return FakeImageStore()


@pytest.fixture
def cache():
    return InMemoryCacheStore()


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "upload"
    path.mkdir()
    return path


@pytest.fixture
def upload_service(upload_dir):
    return UploadService(upload_dir=str(upload_dir))


@pytest.fixture
def recipe_service(cache, fake_image_store, upload_service):
    return RecipeService(
        cache=cache,
        image_store=fake_image_store,
        upload_service=upload_service,
    )


@pytest.fixture
def sample_image():
    return ImageUpload(filename="dish.png", content_type="image/png", content=PNG_BYTES)


# ══════════════════════════════════════════════════════════════════════════
# Data Helpers
# ══════════════════════════════════════════════════════════════════════════

async def add_category(db: AsyncSession, name: str = "Desserts") -> Category:
    category = Category(name=name)
    db.add(category)
    await db.flush()
    return category


async def add_region(db: AsyncSession, name: str = "Mexico") -> Region:
    region = Region(name=name)
    db.add(region)
    await db.flush()
    return region


async def add_recipe(
    db: AsyncSession,
    category: Category,
    name: str,
    minutes_after: int = 0,
    region: Optional[Region] = None,
) -> Recipe:
    """Insert a recipe directly; `minutes_after` orders recipes by creation time."""
    created = BASE_TIME + timedelta(minutes=minutes_after)
    recipe = Recipe(
        name=name,
        description=f"How to make {name}",
        ingredients=["flour", "sugar"],
        steps=["mix", "bake"],
        image_url=f"https://res.cloudinary.com/demo/image/upload/{name}.png",
        image_asset_id=f"recipes/{name}",
        category=category,
        region_id=region.id if region else None,
        created_at=created,
        updated_at=created,
    )
    db.add(recipe)
    await db.flush()
    return recipe


# ══════════════════════════════════════════════════════════════════════════
# HTTP Client
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app_factory(session_factory, cache, fake_image_store, upload_service):
    """
    Builds apps around the test database and fakes.

    Usage:
        app = app_factory(Settings(cloudinary_cloud_name="demo", ...))
    """
    from recipes_api.dependencies import build_services
    from recipes_api.main import create_app

    async def override_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def _build(config: Optional[Settings] = None):
        config = config or settings
        services = build_services(
            config,
            cache=cache,
            image_store=fake_image_store,
            upload_service=upload_service,
        )
        app = create_app(config=config, services=services)
        app.dependency_overrides[get_db_session] = override_db_session
        return app

    return _build


@pytest_asyncio.fixture
async def test_client(app_factory):
    """
    HTTPX AsyncClient bound to an app built around the test database and fakes.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
    """
    transport = ASGITransport(app=app_factory())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
