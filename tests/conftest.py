"""Shared pytest fixtures."""

import pytest
import yaml
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import stratum.db.models  # noqa: F401 - register all models on Base
from stratum.db.base import Base
from stratum.lib.hooks import hooks


@pytest.fixture
def temp_app_yaml(tmp_path):
    """Create a temporary app.yaml file for testing."""
    config_path = tmp_path / "app.yaml"

    def _create_config(config: dict):
        with open(config_path, "w") as f:
            yaml.safe_dump(config, f)
        return config_path

    return _create_config


@pytest.fixture(autouse=True)
def clean_hooks():
    """Drop any hook handlers a test registered."""
    original_actions = {name: list(handlers) for name, handlers in hooks._actions.items()}
    yield
    hooks._actions.clear()
    hooks._actions.update(original_actions)


@pytest.fixture
async def engine():
    """In-memory SQLite engine with the full schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def collection(db_session):
    from stratum.db.services import collection_service

    return await collection_service.create_collection(db_session, "Docs", "docs", actor="alice")


@pytest.fixture
def make_content(db_session, collection):
    """Factory creating contents in the ``collection`` fixture."""
    from stratum.db.services import content_service

    async def _make(title="Page", **kwargs):
        return await content_service.create_content(db_session, collection, title, **kwargs)

    return _make
