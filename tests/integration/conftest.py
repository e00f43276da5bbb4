import pytest
import pytest_asyncio
from datetime import datetime
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import meta_ledger.domain  # noqa: F401  registers the ledger tables on SQLModel.metadata
from meta_ledger.depends import get_session


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Create a file-backed SQLite database so each session gets its own connection"""
    test_db_url = f"sqlite+aiosqlite:///{tmp_path}/ledger_test.db"

    engine = create_async_engine(test_db_url, echo=False, future=True)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create a new database session for each test"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def utc_now():
    return datetime.utcnow().replace(microsecond=0)


@pytest_asyncio.fixture
async def client(db_session):
    """Create test client with database session override"""
    from meta_ledger.api.app import create_app
    from config import ApplicationConfig

    app = create_app(ApplicationConfig)

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
