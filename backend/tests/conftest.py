"""
Shared test fixtures and configuration for ToolChat backend tests.
"""
import os

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["LLM_PROVIDER"] = "deepseek"
os.environ.pop("TAVILY_API_KEY", None)

from toolchat.core.config import settings  # noqa: E402
from toolchat.db.base import Base  # noqa: E402
from toolchat.db.session import enable_sqlite_foreign_keys  # noqa: E402
from toolchat.services.bootstrap import seed_demo_data  # noqa: E402
from toolchat.services.runtime import ToolRuntime  # noqa: E402
from toolchat.services.storage import ChatStorage  # noqa: E402
from toolchat.services.tools.executor import ToolExecutor  # noqa: E402
from toolchat.services.tools.orchestrator import ToolOrchestrator  # noqa: E402
from toolchat.services.tools.registry import ToolRegistry  # noqa: E402
from tests.utils.fakes import FakeCompletionGateway  # noqa: E402


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session in one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(db_session):
    return ChatStorage(db_session)


@pytest_asyncio.fixture
async def demo_user(db_session):
    """Demo user with the default prompts and tool rows."""
    return await seed_demo_data(db_session, settings)


@pytest.fixture
def fake_gateway():
    return FakeCompletionGateway()


@pytest_asyncio.fixture
async def registry():
    registry = ToolRegistry(settings)
    await registry.initialize()
    yield registry
    await registry.shutdown()


@pytest.fixture
def executor(registry):
    return ToolExecutor(registry, default_timeout_ms=5000)


@pytest.fixture
def orchestrator(fake_gateway, registry, executor):
    return ToolOrchestrator(fake_gateway, registry, executor, provider="deepseek")


@pytest.fixture
def runtime(fake_gateway, registry, executor, orchestrator):
    return ToolRuntime(registry=registry, executor=executor, gateway=fake_gateway, orchestrator=orchestrator)


@pytest_asyncio.fixture
async def client(session_factory, runtime, demo_user):
    """HTTP client against the app, backed by the in-memory database and fake gateway."""
    from toolchat.api.deps import get_db
    from toolchat.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.runtime = runtime

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.runtime = None
