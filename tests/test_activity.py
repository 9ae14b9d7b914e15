"""Tests for ActivityService — recording and listing item events."""

from __future__ import annotations

import pytest

from drivetree.drive.activity import ActivityService
from drivetree.events import EventType, ItemEvent
from drivetree.models.activities import Activity


@pytest.fixture
def activity() -> ActivityService:
    return ActivityService(Activity)


def _event(event_type, node_id, owner_id="alice", user_id="alice", detail=None):
    return ItemEvent(
        event_type=event_type,
        node_id=node_id,
        owner_id=owner_id,
        user_id=user_id,
        detail=detail,
    )


class TestRecord:
    async def test_record(self, async_session, activity):
        row = await activity.record(
            async_session, _event(EventType.ITEM_RENAMED, "n1", detail="Papers")
        )
        assert row.id
        assert row.action == "item_renamed"
        assert row.detail == "Papers"
        assert row.owner_id == "alice"


class TestListActivity:
    async def test_newest_first(self, async_session, activity):
        for i, et in enumerate([EventType.ITEM_CREATED, EventType.ITEM_MOVED]):
            await activity.record(async_session, _event(et, f"n{i}"))
        rows = await activity.list_activity(async_session, "alice")
        assert [r.action for r in rows] == ["item_moved", "item_created"]

    async def test_includes_actions_on_owned_nodes(self, async_session, activity):
        await activity.record(
            async_session,
            _event(EventType.ITEM_RENAMED, "n1", owner_id="alice", user_id="bob"),
        )
        assert len(await activity.list_activity(async_session, "alice")) == 1
        assert len(await activity.list_activity(async_session, "bob")) == 1
        assert await activity.list_activity(async_session, "carol") == []

    async def test_filter_by_node_and_limit(self, async_session, activity):
        for et in (EventType.ITEM_CREATED, EventType.ITEM_STARRED, EventType.ITEM_TRASHED):
            await activity.record(async_session, _event(et, "n1"))
        await activity.record(async_session, _event(EventType.ITEM_CREATED, "n2"))

        rows = await activity.list_activity(async_session, "alice", node_id="n1")
        assert len(rows) == 3
        assert {r.node_id for r in rows} == {"n1"}
        limited = await activity.list_activity(async_session, "alice", limit=2)
        assert len(limited) == 2

    async def test_info(self, async_session, activity):
        row = await activity.record(async_session, _event(EventType.ITEM_CREATED, "n1"))
        info = ActivityService.activity_to_info(row)
        assert info.action == "item_created"
        assert info.created_at.tzinfo is not None
