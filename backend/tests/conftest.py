import uuid
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from commentkit.core.config import settings
from commentkit.core.rate_limiting import limiter
from commentkit.models import Base, Site
from commentkit.repositories.site_repository import SiteRepository

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105

API_ORIGIN = "http://api.commentkit.test"
FRONTEND_ORIGIN = "http://app.commentkit.test"

VERIFIED_DOMAIN = "blog.example.com"
UNVERIFIED_DOMAIN = "unverified.example"
VERIFIED_SITE_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
UNVERIFIED_SITE_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a2")
VERIFIED_API_KEY = "ck_live_" + "a" * 56
UNVERIFIED_API_KEY = "ck_live_" + "b" * 56


@pytest.fixture(autouse=True)
def strict_settings(monkeypatch):
    """Run every test in a non-development environment with a known secret.

    Anything other than "development" enforces CSRF and origin tokens, so
    tests see production trust rules without production cookie flags.
    """
    monkeypatch.setattr(settings, "environment", "test")
    monkeypatch.setattr(settings, "auth_secret", SecretStr(TEST_AUTH_SECRET))
    monkeypatch.setattr(settings, "base_url", API_ORIGIN)
    monkeypatch.setattr(settings, "frontend_url", FRONTEND_ORIGIN)
    monkeypatch.setattr(settings, "widget_base_url", "")
    monkeypatch.setattr(settings, "allowed_origins", [])
    monkeypatch.setattr(settings, "resend_api_key", SecretStr(""))
    monkeypatch.setattr(limiter, "enabled", False)


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Per-test SQLite database with the full schema.

    pysqlite's own transaction handling breaks SAVEPOINT, which the
    repositories use for insert-or-fetch; the listeners hand BEGIN back to
    SQLAlchemy.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'commentkit.db'}", echo=False
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def sites(db_session: AsyncSession) -> dict[str, Site]:
    """One verified and one registered-but-unverified site."""
    verified = Site(
        id=VERIFIED_SITE_ID,
        name="Example Blog",
        domain=VERIFIED_DOMAIN,
        api_key=VERIFIED_API_KEY,
        verified=True,
    )
    unverified = Site(
        id=UNVERIFIED_SITE_ID,
        name="Unverified",
        domain=UNVERIFIED_DOMAIN,
        api_key=UNVERIFIED_API_KEY,
        verified=False,
    )
    db_session.add_all([verified, unverified])
    await db_session.commit()
    return {"verified": verified, "unverified": unverified}


# =============================================================================
# API
# =============================================================================


@pytest.fixture
def app(session_factory):
    """Application wired to the test database.

    Built inside the fixture so create_app() sees the patched settings.
    """
    from commentkit.core.database import get_db
    from commentkit.main import create_app

    async def site_lookup(hostname: str) -> bool:
        async with session_factory() as session:
            return await SiteRepository.is_verified_domain(session, hostname)

    application = create_app(site_lookup=site_lookup)

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url=API_ORIGIN) as ac:
        yield ac


@pytest.fixture
def sent_emails():
    """Capture magic-link emails instead of sending them.

    Yields:
        The AsyncMock standing in for send_magic_link_email; each call's
        kwargs hold to_email, token and redirect_url.
    """
    with patch(
        "commentkit.services.magic_link_service.send_magic_link_email",
        new_callable=AsyncMock,
    ) as mock:
        yield mock


async def login_via_magic_link(
    client: AsyncClient, sent_emails: AsyncMock, email: str = "reader@example.com"
) -> str:
    """Request and redeem a magic link; returns the raw session secret."""
    response = await client.post("/api/v1/auth/login", json={"email": email})
    assert response.status_code == 200
    token = sent_emails.await_args.kwargs["token"]
    response = await client.get("/api/v1/auth/verify", params={"token": token})
    assert response.status_code == 200
    return response.json()["data"]["token"]
