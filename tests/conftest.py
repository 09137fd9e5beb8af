import random

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fruitgacha.config import Settings
from fruitgacha.db.database import get_session
from fruitgacha.main import app
from fruitgacha.models.db import Base
from fruitgacha.services.catalog import get_catalog


class ScriptedRandom(random.Random):
    """Random source whose `random()` draws come from a script.

    Once the script runs out it falls back to the seeded generator.
    `choice` keeps using `getrandbits`, so scripted values are only
    consumed by tier, pity and power rolls.
    """

    def __init__(self, values=(), seed: int = 0):
        super().__init__(seed)
        self._values = list(values)

    def random(self) -> float:
        if self._values:
            return self._values.pop(0)
        return super().random()

    def getrandbits(self, k: int) -> int:
        return super().getrandbits(k)


@pytest.fixture
def rules() -> Settings:
    """Default economy with a short pity window for fast tests."""
    return Settings(
        soft_pity_threshold=20,
        hard_pity_threshold=30,
        admin_token="",
    )


@pytest.fixture(autouse=True)
def reset_catalog_cache():
    """Each test sees a freshly loaded catalog."""
    get_catalog.cache_clear()
    yield
    get_catalog.cache_clear()


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Provide an async test client with overridden database session."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def scripted_rng():
    """Factory for ScriptedRandom instances."""
    return ScriptedRandom
