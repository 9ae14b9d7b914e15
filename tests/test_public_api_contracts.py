"""Contract tests for Drive/DriveAsync public behavior."""

from __future__ import annotations

import re
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import drivetree
from drivetree._drive import Drive
from drivetree._drive_async import DriveAsync
from drivetree.drive.types import DeleteResult, ListResult, NodeResult, ShareResult


class BadCommitSession(AsyncSession):
    """Session whose commit fails the way a locked database does."""

    async def commit(self) -> None:
        raise OperationalError("COMMIT", {}, Exception("database is locked"))


@pytest.mark.asyncio
async def test_async_operations_return_result_types(async_engine) -> None:
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    d = DriveAsync(session_factory=factory)
    try:
        created = await d.create_folder("Docs", user_id="alice")
        listed = await d.list_items(user_id="alice")
        shared = await d.share(created.node.id, "bob", user_id="alice")
        await d.trash(created.node.id, user_id="alice")
        deleted = await d.permanently_delete(created.node.id, user_id="alice")

        assert isinstance(created, NodeResult)
        assert isinstance(listed, ListResult)
        assert isinstance(shared, ShareResult)
        assert isinstance(deleted, DeleteResult)
        assert created.success and listed.success and shared.success and deleted.success
    finally:
        await d.close()


@pytest.mark.asyncio
async def test_async_commit_failure_returns_retryable_result(async_engine) -> None:
    factory = async_sessionmaker(
        async_engine, class_=BadCommitSession, expire_on_commit=False
    )
    d = DriveAsync(session_factory=factory)
    try:
        result = await d.create_folder("Docs", user_id="alice")
        assert isinstance(result, NodeResult)
        assert not result.success
        assert result.error_code == "store_error"
        assert result.retryable is True
    finally:
        await d.close()


@pytest.mark.asyncio
async def test_async_failures_are_not_retryable(async_engine) -> None:
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    d = DriveAsync(session_factory=factory)
    try:
        for result in (
            await d.create_folder("", user_id="alice"),
            await d.rename("missing", "x", user_id="alice"),
            await d.restore("missing", user_id="alice"),
        ):
            assert not result.success
            assert result.error_code
            assert result.retryable is False
    finally:
        await d.close()


def test_sync_operations_return_result_types() -> None:
    with Drive() as d:
        created = d.create_folder("Docs", user_id="alice")
        assert isinstance(created, NodeResult)
        assert isinstance(d.list_items(user_id="alice"), ListResult)
        assert isinstance(d.share(created.node.id, "bob", user_id="alice"), ShareResult)


def test_version_is_exported() -> None:
    assert hasattr(drivetree, "__version__")
    assert isinstance(drivetree.__version__, str)
    assert re.match(r"^\d+\.\d+\.\d+$", drivetree.__version__)


def test_version_matches_pyproject() -> None:
    pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
    text = pyproject.read_text()
    match = re.search(r'^version\s*=\s*"(\d+\.\d+\.\d+)"', text, re.MULTILINE)
    assert match is not None, "Could not find version in pyproject.toml"
    assert drivetree.__version__ == match.group(1)


def test_public_names_exported() -> None:
    for name in ("Drive", "DriveAsync", "DriveConfig", "DriveError", "SharePermission"):
        assert name in drivetree.__all__
        assert hasattr(drivetree, name)
