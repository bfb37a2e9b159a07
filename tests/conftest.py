"""
Test infrastructure for the Blog CMS API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- Foreign keys are switched on for every connection so ON DELETE CASCADE /
  SET NULL behave as they do on Postgres.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test (with roles and permissions
  seeded) and dropped after, giving each test a clean isolated state.
- The Redis cache is disabled by setting cache._redis = None; the CacheManager
  already handles a None _redis gracefully (no-op reads and writes), so tests
  exercise real service logic without any Redis infrastructure.
- Helpers that write through ``db_session`` always commit: the shared
  connection is rolled back whenever a request session is returned to the
  pool, which would otherwise discard the seeded rows.
"""
import itertools

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.cache import cache
from app.database import Base, get_db
from app.enums import ArticleStatus, TokenAbility, UserRole
from app.events import dispatcher
from app.main import app
from app.middleware import install_query_counter
from app.models import Article, User
from app.permissions import sync_roles_and_permissions
from app.policies import AuthContext
from app.repositories.roles import RoleRepository
from app.repositories.users import UserRepository
from app.security import hash_password
from app.services import auth_service
from app.utils import utcnow

# ---------------------------------------------------------------------------
# Test database engine (SQLite in-memory with aiosqlite)
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Register the per-request SQL query counter on the test engine.
install_query_counter(engine_test)


@event.listens_for(engine_test.sync_engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override: replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables and seed roles before each test, drop after."""
    cache._redis = None
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_test() as session:
        await sync_roles_and_permissions(session)
        await session.commit()
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.

    Redis is disabled by setting cache._redis = None so that tests are
    deterministic and do not depend on external infrastructure.
    """
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    """Factory: ``await make_user(UserRole.EDITOR)`` creates a committed user with that role."""
    counter = itertools.count(1)

    async def factory(role: UserRole | None = UserRole.SUBSCRIBER, name: str | None = None,
                      email: str | None = None, password: str = "password123") -> User:
        n = next(counter)
        users = UserRepository(db_session)
        user = await users.create(
            name=name or f"{(role or UserRole.SUBSCRIBER).value.title()} {n}",
            email=email or f"{(role.value if role else 'user')}{n}@example.com",
            password=hash_password(password),
        )
        if role is not None:
            await users.sync_roles(user, [await RoleRepository(db_session).get_by_name(role.value)])
        await db_session.commit()
        return user

    return factory


@pytest_asyncio.fixture
async def auth_headers(db_session: AsyncSession):
    """Factory: bearer headers carrying a fresh access token for *user*."""

    async def factory(user: User, ability: TokenAbility = TokenAbility.ACCESS_API) -> dict[str, str]:
        token, _ = await auth_service.issue_token(db_session, user, ability)
        await db_session.commit()
        return {"Authorization": f"Bearer {token}"}

    return factory


@pytest_asyncio.fixture
async def auth_context(db_session: AsyncSession):
    """Factory: the ``AuthContext`` a request by *user* would see."""

    async def factory(user: User) -> AuthContext:
        return await auth_service.build_auth_context(db_session, user)

    return factory


@pytest_asyncio.fixture
async def make_article(db_session: AsyncSession):
    """Factory: a committed article; published (visible) by default."""
    counter = itertools.count(1)

    async def factory(author: User, status: ArticleStatus = ArticleStatus.PUBLISHED, **values) -> Article:
        n = next(counter)
        published = status in (ArticleStatus.PUBLISHED, ArticleStatus.SCHEDULED)
        columns = {
            "title": f"Article {n}",
            "slug": f"article-{n}",
            "content_markdown": f"Body of article {n}.",
            "status": status,
            "published_at": utcnow() if published else None,
            "created_by": author.id,
            "approved_by": author.id if published else None,
            **values,
        }
        article = Article(**columns)
        db_session.add(article)
        await db_session.commit()
        return article

    return factory


@pytest.fixture
def captured_events(monkeypatch):
    """Record every dispatched domain event while still running the listeners."""
    captured = []
    original = dispatcher.dispatch

    async def recording(db, event):
        captured.append(event)
        await original(db, event)

    monkeypatch.setattr(dispatcher, "dispatch", recording)
    return captured
