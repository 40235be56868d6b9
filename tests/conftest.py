"""Pytest configuration and fixtures."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from config import ServiceConfig
from database.connection import init_db
from database.models import User
from database.repositories import AccountStore, DebtStore, OrderStore, UserStore
from services.tasks import TaskRegistry
from services.transport import Notifier
from services.users import UserDirectory
from tests.helpers import FakeTransport

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def user_store(session_maker) -> UserStore:
    return UserStore(session_maker)


@pytest.fixture
def account_store(session_maker) -> AccountStore:
    return AccountStore(session_maker)


@pytest.fixture
def debt_store(session_maker) -> DebtStore:
    return DebtStore(session_maker)


@pytest.fixture
def order_store(session_maker) -> OrderStore:
    return OrderStore(session_maker)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def notifier(transport) -> Notifier:
    return Notifier(transport)


@pytest.fixture
def directory(user_store, account_store) -> UserDirectory:
    return UserDirectory(user_store, account_store, max_age=60)


@pytest.fixture
async def tasks():
    registry = TaskRegistry()
    yield registry
    await registry.shutdown()


@pytest.fixture
def service_config() -> ServiceConfig:
    """Fast intervals; reminders effectively never fire on their own."""
    return ServiceConfig(
        order_ready_timeout=2,
        delivery_timeout=2,
        wait_between_status_check=0.01,
        time_till_get_ready_message=120,
        debt_reminder_interval=3600,
        debt_maximum_duration=7200,
    )


@pytest.fixture
def add_user(user_store):
    """Create a user that Wolt participant names resolve to."""
    async def _add(full_name: str, transport_id: str, timezone: str = "UTC", payment_preferences=None) -> User:
        return await user_store.add_user(User(
            full_name=full_name,
            transport_id=transport_id,
            timezone=timezone,
            payment_preferences=payment_preferences or [],
        ))
    return _add
