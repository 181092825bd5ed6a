"""
Pytest Configuration and Fixtures
=================================

Tests run against an in-memory SQLite database through aiosqlite; the app's
get_db dependency is pointed at it for API tests.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("ADMIN_KEY", "test-admin-key")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.main import app
from app.models.models import Contestant, Episode, EventType, Player
from app.services.event_catalog import seed_event_types
from app.services.league import set_current_episode

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class SeedIds(dict):
    """Ids of seeded rows, e.g. test_data["contestants"]["ana"]."""


@pytest_asyncio.fixture(scope="function")
async def engine():
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app, sharing the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def auth_headers(player_id: int) -> dict:
    token = create_access_token({"sub": str(player_id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    """headers(player_id) builds a bearer token header for that player."""
    return auth_headers


@pytest_asyncio.fixture(scope="function")
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """
    Seed the database with a small league.

    Creates:
    - the default event type catalog
    - 1 admin and 2 players
    - 8 contestants, four in Luvu and four in Yase
    - episodes 1-3, with episode 1 current
    """
    await seed_event_types(db_session)

    admin = Player(name="Admin", email="admin@test.com", password_hash="x", is_admin=True)
    casey = Player(name="Casey", email="casey@test.com", password_hash="x")
    jordan = Player(name="Jordan", email="jordan@test.com", password_hash="x")
    db_session.add_all([admin, casey, jordan])

    cast = {
        "ana": ("Ana", "Luvu"),
        "ben": ("Ben", "Luvu"),
        "cal": ("Cal", "Luvu"),
        "dee": ("Dee", "Luvu"),
        "eli": ("Eli", "Yase"),
        "fay": ("Fay", "Yase"),
        "gus": ("Gus", "Yase"),
        "hal": ("Hal", "Yase"),
    }
    contestants = {}
    for key, (name, tribe) in cast.items():
        contestants[key] = Contestant(name=name, current_tribe=tribe, profession="Tester")
    db_session.add_all(contestants.values())

    episodes = {n: Episode(episode_number=n, title=f"Episode {n}") for n in (1, 2, 3)}
    db_session.add_all(episodes.values())
    await db_session.flush()

    await set_current_episode(db_session, episodes[1].id)

    event_types = {}
    for et in (await db_session.execute(EventType.__table__.select())).all():
        event_types[et.name] = et.id

    await db_session.commit()

    db_session.test_data = SeedIds(
        players={"admin": admin.id, "casey": casey.id, "jordan": jordan.id},
        contestants={key: c.id for key, c in contestants.items()},
        episodes={n: e.id for n, e in episodes.items()},
        event_types=event_types,
    )
    return db_session
