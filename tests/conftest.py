"""
Shared fixtures: a throwaway SQLite database, test settings and connectors
wired to a scripted fake of the provider endpoints.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from config.settings import Settings
from connectors.instagram import InstagramConnector
from connectors.linkedin import LinkedInConnector
from connectors.manager import ConnectionManager
from connectors.registry import ConnectorRegistry
from connectors.state_store import SqlStateStore
from connectors.token_manager import ConnectedAccountSink
from connectors.twitter import TwitterConnector
from database.models import Base
from fakes import FakeProvider


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        twitter_client_id="tw-client",
        twitter_client_secret="tw-secret",
        linkedin_client_id="li-client",
        linkedin_client_secret="li-secret",
        instagram_client_id="ig-client",
        instagram_client_secret="ig-secret",
        public_base_url="https://app.example.com/",
        oauth_state_ttl_seconds=900,
        token_refresh_margin_seconds=120,
        token_encryption_key="",
    )


@pytest.fixture
def fake() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry(settings: Settings, fake: FakeProvider):
    ConnectorRegistry.reset()
    reg = ConnectorRegistry()
    for conn_cls in (TwitterConnector, LinkedInConnector, InstagramConnector):
        reg.register(conn_cls(settings, transport=fake.transport))
    yield reg
    ConnectorRegistry.reset()


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'oauth.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def state_store(session_factory) -> SqlStateStore:
    return SqlStateStore(session_factory)


@pytest.fixture
def sink(session_factory) -> ConnectedAccountSink:
    return ConnectedAccountSink(session_factory)


@pytest.fixture
def manager(state_store, sink, registry, settings) -> ConnectionManager:
    return ConnectionManager(state_store, sink, registry=registry, settings=settings)
