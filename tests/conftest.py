"""Shared test fixtures: in-memory database, app client, users and tokens."""

import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ["INFERENCE_API_KEY"] = ""
os.environ["MOCK_INFERENCE"] = "false"

from src.config import Role, settings  # noqa: E402
from src.identity.domain import Principal  # noqa: E402
from src.identity.infrastructure import CredentialService, SQLAlchemyUserRepository  # noqa: E402
from src.infrastructure.database import (  # noqa: E402
    close_database,
    configure_engine,
    create_tables,
    get_session_context,
)


@pytest.fixture
def principal():
    """Factory for authenticated callers that need no database row."""

    def _make(role: str = Role.EMPLOYEE, user_id: str = "user-1", name: str = "Test User") -> Principal:
        return Principal(user_id=user_id, role=role, name=name, email=f"{user_id}@example.com")

    return _make


@pytest_asyncio.fixture
async def database():
    """Shared in-memory SQLite engine (StaticPool keeps one connection alive)."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    configure_engine(engine)
    await create_tables()

    yield engine

    await close_database()


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    """Attachments land in a per-test directory."""
    directory = tmp_path / "uploads"
    monkeypatch.setattr(settings, "upload_dir", directory)
    return directory


@pytest_asyncio.fixture
async def test_app(database, upload_dir):
    """
    The FastAPI app with fresh process state.

    ASGITransport does not run the lifespan, so state is installed here in
    heuristic mode (no inference client).
    """
    from src.main import app, init_app_state

    init_app_state(app, inference_client=None)
    yield app
    await app.state.realtime.close_all()


@pytest_asyncio.fixture
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def credentials():
    return CredentialService()


@pytest.fixture
def create_user(database, credentials):
    """
    Factory: insert a user directly and return (user, auth headers).

    Roles other than employee can only be set this way or through the
    admin role endpoint.
    """

    async def _create(
        email: str,
        role: str = Role.EMPLOYEE,
        name: str = None,
        department: str = None,
        password: str = "password123"
    ):
        async with get_session_context() as session:
            user = await SQLAlchemyUserRepository(session).create(
                name=name or email.split("@")[0].title(),
                email=email,
                password_hash=credentials.hash_password(password),
                role=role,
                department=department
            )
        token = credentials.issue_token(user)
        return user, {"Authorization": f"Bearer {token}"}

    return _create
