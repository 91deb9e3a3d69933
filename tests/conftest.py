"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator, Callable
from typing import Any
from uuid import uuid4

# Disable rate limiting in tests
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles

from infrastructure.auth.jwt_provider import JWTAuthProvider
from infrastructure.auth.provider import TokenUser
from infrastructure.database.models import Base, UserModel


# Compile JSONB as JSON for SQLite (used in tests)
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_: Any, compiler: Any, **kw: Any) -> str:
    return "JSON"


# Test database URL (SQLite in memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="session")
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="session")
async def setup_database(engine: AsyncEngine) -> AsyncGenerator[None, None]:
    """Create all tables once per session."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="session")
async def session_factory(
    engine: AsyncEngine, setup_database: None
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create session factory."""
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    yield factory


@pytest.fixture
def seed_user(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Any]:
    """Insert a marketplace user row; returns a coroutine function."""

    async def _seed(
        user_id: Any = None,
        email: str | None = None,
        display_name: str | None = "Test Guest",
        phone_number: str | None = None,
        phone_verified: bool = False,
    ) -> UserModel:
        user = UserModel(
            id=user_id or uuid4(),
            email=email or f"{uuid4().hex[:12]}@example.com",
            display_name=display_name,
            phone_number=phone_number,
            phone_verified=phone_verified,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _seed


@pytest.fixture
def test_user() -> TokenUser:
    """A fresh guest per test so notification and preference rows never leak between tests."""
    return TokenUser(
        id=uuid4(),
        email=f"guest-{uuid4().hex[:8]}@example.com",
        display_name="Test Guest",
        role="authenticated",
    )


@pytest.fixture
def admin_user() -> TokenUser:
    return TokenUser(
        id=uuid4(),
        email=f"ops-{uuid4().hex[:8]}@dinemaison.com",
        display_name="Ops",
        role="admin",
    )


@pytest.fixture
def auth_provider() -> JWTAuthProvider:
    """Create auth provider for testing."""
    return JWTAuthProvider(
        secret_key="test-secret-key",
        algorithm="HS256",
        expire_minutes=30,
    )


@pytest.fixture
def auth_token(auth_provider: JWTAuthProvider, test_user: TokenUser) -> str:
    """Create auth token for test user."""
    return str(auth_provider.create_token(test_user))


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client (no auth)."""
    from main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def build_test_app(
    session_factory: async_sessionmaker[AsyncSession],
    user: TokenUser,
    auth_provider: JWTAuthProvider,
) -> FastAPI:
    """
    Create the app with services bound to the test database.

    - Auth dependency returns ``user`` directly
    - Every service shares one UoW factory over the test session factory
    - Realtime registry and job queue are fresh per app; the queue is never
      started, so retries and scheduled dispatches stay pending
    """
    from api.dependencies.auth import get_auth_provider, get_current_user
    from api.dependencies.services import (
        get_connection_registry,
        get_delivery_tracker,
        get_device_registry,
        get_dispatcher,
        get_in_app_service,
        get_job_queue,
        get_preference_service,
    )
    from domain.services.delivery_tracker import DeliveryTracker
    from domain.services.device_registry import DeviceRegistry
    from domain.services.dispatcher import NotificationDispatcher
    from domain.services.in_app_service import InAppNotificationService
    from domain.services.preference_service import PreferenceService
    from infrastructure.channels.email import EmailSender
    from infrastructure.channels.push import PushSender
    from infrastructure.channels.sms import SmsSender
    from infrastructure.channels.websocket import WebSocketSender
    from infrastructure.database.sqlalchemy_uow import SQLAlchemyUnitOfWork
    from infrastructure.realtime.connection_registry import ConnectionRegistry
    from infrastructure.scheduling.delayed_queue import DelayedJobQueue
    from main import create_app

    app = create_app()

    def test_uow_factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory)

    registry = ConnectionRegistry()
    queue = DelayedJobQueue()
    preferences = PreferenceService(test_uow_factory)
    in_app = InAppNotificationService(test_uow_factory, realtime=registry)
    devices = DeviceRegistry(test_uow_factory)
    tracker = DeliveryTracker(test_uow_factory)
    dispatcher = NotificationDispatcher(
        test_uow_factory,
        preferences=preferences,
        in_app=in_app,
        tracker=tracker,
        senders=[WebSocketSender(registry), PushSender(devices), EmailSender(), SmsSender()],
        scheduler=queue,
    )

    async def override_get_user() -> TokenUser:
        return user

    app.dependency_overrides[get_current_user] = override_get_user
    app.dependency_overrides[get_auth_provider] = lambda: auth_provider
    app.dependency_overrides[get_connection_registry] = lambda: registry
    app.dependency_overrides[get_job_queue] = lambda: queue
    app.dependency_overrides[get_preference_service] = lambda: preferences
    app.dependency_overrides[get_in_app_service] = lambda: in_app
    app.dependency_overrides[get_device_registry] = lambda: devices
    app.dependency_overrides[get_delivery_tracker] = lambda: tracker
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return app


@pytest.fixture
async def authenticated_client(
    session_factory: async_sessionmaker[AsyncSession],
    seed_user: Callable[..., Any],
    test_user: TokenUser,
    auth_provider: JWTAuthProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Client acting as ``test_user``, whose users row exists."""
    await seed_user(user_id=test_user.id, email=test_user.email, display_name=test_user.display_name)
    app = build_test_app(session_factory, test_user, auth_provider)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def admin_client(
    session_factory: async_sessionmaker[AsyncSession],
    admin_user: TokenUser,
    auth_provider: JWTAuthProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Client acting as an administrator."""
    app = build_test_app(session_factory, admin_user, auth_provider)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
def app_factory(
    session_factory: async_sessionmaker[AsyncSession],
    auth_provider: JWTAuthProvider,
) -> Callable[[TokenUser], FastAPI]:
    """Build a test app acting as the given user."""

    def _factory(user: TokenUser) -> FastAPI:
        return build_test_app(session_factory, user, auth_provider)

    return _factory
