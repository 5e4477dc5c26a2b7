"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.pool import Pool, StaticPool

from poultrymitra.app.main import app, install_components
from poultrymitra.app.db.session import Database
from poultrymitra.app.core.security import get_password_hash
from poultrymitra.app.models.enums import UserRole, PlanType
from poultrymitra.app.models.user import User
from poultrymitra.app.services.connection_workflow import ConnectionWorkflow
from poultrymitra.app.services.ledger_account import LedgerAccount

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


test_database = Database(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        return not self._closed

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed or key not in self.store:
            return 0
        del self.store[key]
        return 1

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """
    Wire the app to the in-memory database and mock Redis once per session.

    The lifespan does not run under ASGITransport, so app.state is filled here.
    """
    install_components(app, test_database)
    app.state.redis = redis_client_session
    yield
    for name in ("database", "ledger_account", "connection_workflow", "redis"):
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    await test_database.create_all()
    await redis_client_session.flushdb()

    yield

    await test_database.drop_all()


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with test_database.session() as session:
        yield session


@pytest.fixture
def database():
    return test_database


@pytest.fixture
def ledger(database):
    return LedgerAccount(database)


@pytest.fixture
def workflow(database):
    return ConnectionWorkflow(database, farmer_limit=2)


async def create_user(
    session,
    username: str,
    role: UserRole = UserRole.FARMER,
    plan_type: PlanType = PlanType.FREE,
    dealer_code: str = None,
    password: str = "password123",
) -> User:
    user = User(
        email=f"{username}@test.com",
        username=username,
        name=username.replace("_", " ").title(),
        hashed_password=get_password_hash(password),
        role=role,
        plan_type=plan_type,
        dealer_code=dealer_code,
        is_active=True,
    )
    session.add(user)
    await session.commit()
    return user


@pytest.fixture
def make_user():
    """Factory fixture: await make_user("name", UserRole.DEALER, ...) -> User."""
    async def factory(username: str, role: UserRole = UserRole.FARMER, database: Database = None, **kwargs) -> User:
        async with (database or test_database).session() as session:
            return await create_user(session, username, role, **kwargs)
    return factory


@pytest.fixture
async def file_database(tmp_path):
    """
    File-backed SQLite database with a real connection pool.

    Unlike the shared in-memory connection, each session gets its own
    connection, so concurrent transactions actually contend.
    """
    database = Database(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrency.db'}",
        connect_args={"timeout": 30},
    )
    await database.create_all()
    yield database
    await database.dispose()
