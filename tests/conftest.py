"""Test configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from letterbox.core.config import settings
from letterbox.models.assets import AssetFile
from letterbox.models.database import Base, Participant

# Override settings for testing unless in integration mode
if settings.test_env != "integration":
    settings.database_url = "sqlite+aiosqlite:///:memory:"
settings.storage_backend = "memory"
settings.tracing_enabled = False

from letterbox.api.deps import get_blob_store
from letterbox.db.session import build_engine, get_db
from letterbox.main import app
from letterbox.storage.base import MemoryBlobStore


ALICE = "alice"
BOB = "bob"


@pytest.fixture(scope="function")
async def engine():
    engine = build_engine(str(settings.database_url))

    async with engine.begin() as conn:
        if settings.test_env == "integration":
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())
        else:
            await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def async_db(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        try:
            await session.rollback()
        except Exception:
            pass


@pytest.fixture(scope="function")
async def participants(async_db: AsyncSession):
    """Alice and Bob, with Alice registered first."""
    joined = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [
        Participant(principal_id=ALICE, display_name="Alice", created_at=joined),
        Participant(principal_id=BOB, display_name="Bob", created_at=joined + timedelta(minutes=1)),
    ]
    async_db.add_all(rows)
    await async_db.commit()
    return rows


@pytest.fixture
def blob_store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture(scope="function")
def client(async_db: AsyncSession, participants, blob_store) -> TestClient:
    """Create test client with overridden dependencies."""

    async def override_get_db():
        yield async_db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def png_file() -> AssetFile:
    return AssetFile(name="photo.png", content_type="image/png", data=b"\x89PNG" + b"0" * 64)


@pytest.fixture
def pdf_file() -> AssetFile:
    return AssetFile(name="Report.PDF", content_type="application/pdf", data=b"%PDF-1.4 test")


@pytest.fixture
def voice_clip() -> AssetFile:
    return AssetFile(name="voice-message.wav", content_type="audio/wav", data=b"RIFF" + b"\x00" * 32)
