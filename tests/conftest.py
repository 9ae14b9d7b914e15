"""Shared fixtures for drivetree tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import drivetree.models  # noqa: F401  (registers the tables on SQLModel.metadata)
from drivetree.drive.lifecycle import LifecycleService
from drivetree.drive.repository import NodeRepository
from drivetree.drive.sharing import SharingService
from drivetree.drive.tree import TreeService
from drivetree.drive.views import ViewProjector
from drivetree.models.nodes import File, Folder
from drivetree.models.shares import ShareGrant

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session on the in-memory engine."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


# ---------------------------------------------------------------------------
# Services over the default tables
# ---------------------------------------------------------------------------


@pytest.fixture
def repository() -> NodeRepository:
    return NodeRepository(Folder, File)


@pytest.fixture
def tree(repository: NodeRepository) -> TreeService:
    return TreeService(repository)


@pytest.fixture
def sharing(repository: NodeRepository) -> SharingService:
    return SharingService(ShareGrant, repository)


@pytest.fixture
def lifecycle(
    repository: NodeRepository, tree: TreeService, sharing: SharingService
) -> LifecycleService:
    return LifecycleService(repository, tree, sharing)


@pytest.fixture
def views(
    repository: NodeRepository, tree: TreeService, sharing: SharingService
) -> ViewProjector:
    return ViewProjector(repository, tree, sharing)
