"""
PenguinWatch Backend - Test Configuration (conftest.py)
========================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every API test builds its own application with create_app() against a
       fresh SQLite file and upload directory under tmp_path, so tests never
       share rows or files.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── test_settings: Settings pointing at tmp_path
    ├── app: FastAPI app with its schema created
    ├── test_client: HTTPX AsyncClient over ASGITransport
    ├── db_session: real AsyncSession on the test database
    ├── image_service: ImageService writing into tmp_path
    ├── mock_db_session: Mock database session (no real DB needed)
    ├── png_bytes / jpeg_bytes / gif_bytes / oversized_png_bytes: Pillow images
    └── observation_form: valid multipart form fields
"""

import io
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from PIL import Image


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings for testing BEFORE any app imports: importing
# penguinwatch.main builds the default app from the environment
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="penguinwatch_test_"), "default.db"
)
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="penguinwatch_uploads_")
os.environ["LOG_LEVEL"] = "WARNING"

from penguinwatch.config import Settings  # noqa: E402
from penguinwatch.main import create_app  # noqa: E402
from penguinwatch.services.image_service import ImageService  # noqa: E402


def make_image(fmt: str, size=(40, 30), color=(30, 60, 120)) -> bytes:
    """Encode a solid-color RGB image in the given Pillow format."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


# ══════════════════════════════════════════════════════════════════════════
# Application Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated to this test's temporary directory."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        upload_dir=str(tmp_path / "uploads"),
        log_level="WARNING",
        client_retries=0,
        client_retry_delay=0,
    )


@pytest_asyncio.fixture
async def app(test_settings):
    """
    Application bound to the test database.

    ASGITransport does not run the lifespan, so the schema is created here.
    """
    application = create_app(test_settings)
    await application.state.db.create_all()
    yield application
    await application.state.db.dispose()


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def db_session(app):
    """A real session on the test database, for service-level tests."""
    async with app.state.db.session() as session:
        yield session


@pytest.fixture
def image_service(tmp_path):
    return ImageService(str(tmp_path / "images"), 5 * 1024 * 1024)


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    execute() returns a plain MagicMock result, so tests configure e.g.
    `mock_db_session.execute.return_value.scalar_one_or_none.return_value`.
    """
    session = AsyncMock()
    session.execute = AsyncMock(return_value=MagicMock())
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Data Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def png_bytes():
    return make_image("PNG", size=(40, 30))


@pytest.fixture
def jpeg_bytes():
    return make_image("JPEG", size=(64, 48))


@pytest.fixture
def observation_form():
    """Valid multipart form fields for a new observation."""
    return {
        "location": "Port Lockroy",
        "species": "Gentoo",
        "adult_count": "5",
        "chick_count": "2",
        "notes": "Nesting on the rocks behind the museum",
    }


@pytest.fixture
def gif_bytes():
    """Decodable image in a format uploads do not accept."""
    return make_image("GIF")


@pytest.fixture
def oversized_png_bytes():
    """
    A 15000x15000 bilevel PNG: a few tens of KB on disk, but 225M pixels,
    past Pillow's decompression-bomb threshold.
    """
    buffer = io.BytesIO()
    Image.new("1", (15000, 15000)).save(buffer, format="PNG")
    return buffer.getvalue()
