"""Tests for NodeRepository — owner-scoped lookup, listing, persistence."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from drivetree.drive.exceptions import NotFoundError, StoreError
from drivetree.drive.repository import NodeRepository, as_utc, store_errors
from drivetree.models.nodes import File, Folder, NodeKind

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


async def _seed(session: AsyncSession, repository: NodeRepository) -> dict[str, str]:
    docs = await repository.insert(session, Folder(name="Docs", owner_id="alice"))
    a = await repository.insert(
        session, File(name="a.txt", owner_id="alice", parent_id=docs.id, size_bytes=5)
    )
    b = await repository.insert(
        session, File(name="b.txt", owner_id="alice", is_starred=True)
    )
    old = await repository.insert(
        session, File(name="old.txt", owner_id="alice", is_trashed=True)
    )
    other = await repository.insert(session, Folder(name="Bob's", owner_id="bob"))
    return {"docs": docs.id, "a": a.id, "b": b.id, "old": old.id, "other": other.id}


class TestFind:
    async def test_find_folder_and_file(self, async_session, repository):
        ids = await _seed(async_session, repository)
        assert (await repository.find(async_session, ids["docs"], "alice")).name == "Docs"
        assert (await repository.find(async_session, ids["a"], "alice")).name == "a.txt"

    async def test_find_is_owner_scoped(self, async_session, repository):
        ids = await _seed(async_session, repository)
        assert await repository.find(async_session, ids["other"], "alice") is None
        assert await repository.find(async_session, ids["docs"], "bob") is None

    async def test_find_by_kind(self, async_session, repository):
        ids = await _seed(async_session, repository)
        assert await repository.find(async_session, ids["a"], "alice", NodeKind.FOLDER) is None
        found = await repository.find(async_session, ids["a"], "alice", NodeKind.FILE)
        assert found is not None

    async def test_get_raises(self, async_session, repository):
        with pytest.raises(NotFoundError, match="Item not found"):
            await repository.get(async_session, "missing", "alice")
        with pytest.raises(NotFoundError, match="Folder not found"):
            await repository.get(async_session, "missing", "alice", NodeKind.FOLDER)

    async def test_find_unscoped(self, async_session, repository):
        ids = await _seed(async_session, repository)
        node = await repository.find_unscoped(async_session, ids["other"])
        assert node is not None
        assert node.owner_id == "bob"
        assert await repository.find_unscoped(async_session, "missing") is None


class TestListing:
    async def test_list_root(self, async_session, repository):
        await _seed(async_session, repository)
        nodes = await repository.list_by_parent(async_session, "alice", None)
        assert {n.name for n in nodes} == {"Docs", "b.txt", "old.txt"}

    async def test_list_root_excluding_trash(self, async_session, repository):
        await _seed(async_session, repository)
        nodes = await repository.list_by_parent(async_session, "alice", None, trashed=False)
        assert {n.name for n in nodes} == {"Docs", "b.txt"}

    async def test_list_children(self, async_session, repository):
        ids = await _seed(async_session, repository)
        nodes = await repository.list_by_parent(async_session, "alice", ids["docs"])
        assert [n.name for n in nodes] == ["a.txt"]

    async def test_list_nodes_flags(self, async_session, repository):
        await _seed(async_session, repository)
        starred = await repository.list_nodes(async_session, "alice", starred=True)
        assert [n.name for n in starred] == ["b.txt"]
        trashed = await repository.list_nodes(async_session, "alice", trashed=True)
        assert [n.name for n in trashed] == ["old.txt"]

    async def test_list_nodes_by_kind(self, async_session, repository):
        await _seed(async_session, repository)
        folders = await repository.list_nodes(async_session, "alice", kind=NodeKind.FOLDER)
        assert [n.name for n in folders] == ["Docs"]

    async def test_list_nodes_other_owner(self, async_session, repository):
        await _seed(async_session, repository)
        nodes = await repository.list_nodes(async_session, "bob")
        assert [n.name for n in nodes] == ["Bob's"]


class TestStorageUsed:
    async def test_counts_live_files_only(self, async_session, repository):
        ids = await _seed(async_session, repository)
        await repository.update(async_session, ids["old"], "alice", size_bytes=1000)
        await repository.update(async_session, ids["b"], "alice", size_bytes=7)
        assert await repository.storage_used(async_session, "alice") == (12, 2)

    async def test_file_under_trashed_folder_still_counts(self, async_session, repository):
        ids = await _seed(async_session, repository)
        await repository.update(async_session, ids["docs"], "alice", is_trashed=True)
        used, count = await repository.storage_used(async_session, "alice")
        assert (used, count) == (5, 2)

    async def test_empty_owner(self, async_session, repository):
        await _seed(async_session, repository)
        assert await repository.storage_used(async_session, "bob") == (0, 0)


class TestMutation:
    async def test_update_refreshes_updated_at(self, async_session, repository):
        ids = await _seed(async_session, repository)
        node = await repository.get(async_session, ids["b"], "alice")
        before = as_utc(node.updated_at)
        updated = await repository.update(async_session, ids["b"], "alice", name="c.txt")
        assert updated.name == "c.txt"
        assert as_utc(updated.updated_at) >= before

    async def test_update_explicit_timestamp(self, async_session, repository):
        ids = await _seed(async_session, repository)
        stamp = datetime(2020, 1, 1, tzinfo=UTC)
        updated = await repository.update(async_session, ids["b"], "alice", updated_at=stamp)
        assert as_utc(updated.updated_at) == stamp

    async def test_update_missing(self, async_session, repository):
        with pytest.raises(NotFoundError):
            await repository.update(async_session, "missing", "alice", name="x")

    async def test_delete(self, async_session, repository):
        ids = await _seed(async_session, repository)
        await repository.delete(async_session, ids["a"], "alice")
        assert await repository.find(async_session, ids["a"], "alice") is None

    async def test_delete_other_owner_raises(self, async_session, repository):
        ids = await _seed(async_session, repository)
        with pytest.raises(NotFoundError):
            await repository.delete(async_session, ids["other"], "alice")


class TestConversion:
    async def test_file_info(self, async_session, repository):
        ids = await _seed(async_session, repository)
        node = await repository.get(async_session, ids["a"], "alice")
        info = NodeRepository.node_to_info(node)
        assert info.kind == "file"
        assert info.size_bytes == 5
        assert info.parent_id == ids["docs"]
        assert info.is_folder is False
        assert info.created_at.tzinfo is not None

    async def test_folder_info_has_no_file_fields(self, async_session, repository):
        ids = await _seed(async_session, repository)
        node = await repository.get(async_session, ids["docs"], "alice")
        info = NodeRepository.node_to_info(node, "view")
        assert info.is_folder
        assert info.size_bytes is None
        assert info.mime_type is None
        assert info.permission == "view"


class TestHelpers:
    def test_as_utc_naive(self):
        naive = datetime(2024, 5, 1, 12, 0)
        assert as_utc(naive).tzinfo is UTC

    def test_as_utc_aware_untouched(self):
        aware = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
        assert as_utc(aware) is aware

    def test_as_utc_none(self):
        assert as_utc(None) is None

    def test_store_errors_wraps_sqlalchemy(self):
        with pytest.raises(StoreError) as exc_info:
            with store_errors("probe"):
                raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))
        assert exc_info.value.retryable is True
        assert "probe" in str(exc_info.value)

    def test_store_errors_passes_other_errors(self):
        with pytest.raises(KeyError):
            with store_errors("probe"):
                raise KeyError("x")
