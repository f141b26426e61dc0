"""Shared fixtures: a throwaway database per test and in-memory fakes."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from inspector_pro.models import Base
from inspector_pro.services.notifications import NotificationDispatcher
from tests.support import FakeMediaStore, FakePushGateway


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store():
    return FakeMediaStore()


@pytest.fixture
def gateway():
    return FakePushGateway()


@pytest.fixture
def dispatcher(session_factory, gateway):
    return NotificationDispatcher(session_factory, gateway)
