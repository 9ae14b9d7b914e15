"""Tests for the synchronous Drive wrapper."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from drivetree._drive import Drive
from drivetree.config import DriveConfig

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture
def drive() -> Iterator[Drive]:
    d = Drive()
    yield d
    d.close()


class TestLifecycle:
    def test_context_manager(self):
        with Drive() as d:
            assert d.create_folder("Docs", user_id="alice").success
        assert d._closed
        d.close()

    def test_file_database_persists(self, tmp_path: Path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'drive.db'}"
        with Drive(url) as d:
            d.create_folder("Docs", user_id="alice")
        with Drive(url) as d:
            names = [e.name for e in d.list_items(user_id="alice").entries]
        assert names == ["Docs"]

    def test_config_is_passed_through(self):
        with Drive(config=DriveConfig(recent_limit=1)) as d:
            assert d.async_drive.views.recent_limit == 1


class TestOperations:
    def test_tree_operations(self, drive: Drive):
        a = drive.create_folder("A", user_id="alice").node
        b = drive.create_folder("B", user_id="alice", parent_id=a.id).node
        f = drive.upload_file("f.txt", user_id="alice", parent_id=b.id, size_bytes=3).node

        assert drive.move(a.id, b.id, user_id="alice").error_code == "invalid_move"
        assert [e.name for e in drive.breadcrumbs(f.id, user_id="alice").entries] == ["A", "B"]
        assert drive.rename(f.id, "g.txt", user_id="alice").node.name == "g.txt"
        assert drive.toggle_star(f.id, user_id="alice").node.is_starred
        assert drive.get_item(f.id, user_id="alice").node.name == "g.txt"
        assert drive.move_targets(user_id="alice", node_id=b.id).entries[0].id == a.id

    def test_trash_cycle(self, drive: Drive):
        f = drive.upload_file("f.txt", user_id="alice").node
        assert drive.trash(f.id, user_id="alice").success
        assert drive.restore(f.id, user_id="alice").success
        drive.trash(f.id, user_id="alice")
        assert drive.permanently_delete(f.id, user_id="alice").success
        assert drive.empty_trash(user_id="alice").total_deleted == 0

    def test_sharing(self, drive: Drive):
        docs = drive.create_folder("Docs", user_id="alice").node
        assert drive.share(docs.id, "bob", user_id="alice").success
        assert drive.update_permission(docs.id, "bob", "edit", user_id="alice").success
        shared = drive.list_shared_with_me(user_id="bob").entries
        assert [(e.name, e.permission) for e in shared] == [("Docs", "edit")]
        assert len(drive.list_grants(docs.id, user_id="alice").grants) == 1
        assert drive.unshare(docs.id, "bob", user_id="alice").success

    def test_bulk_and_activity(self, drive: Drive):
        ids = [drive.upload_file(n, user_id="alice").node.id for n in ("a", "b")]
        assert drive.bulk_star(ids, user_id="alice").success
        assert drive.bulk_move(ids, None, user_id="alice").success
        assert drive.bulk_trash(ids, user_id="alice").success
        activity = drive.list_activity(user_id="alice")
        assert len(activity.entries) >= 6

    def test_storage_usage(self, drive: Drive):
        drive.upload_file("a.bin", user_id="alice", size_bytes=2048)
        usage = drive.storage_usage(user_id="alice")
        assert usage.success
        assert (usage.used_bytes, usage.file_count) == (2048, 1)
