"""ActivityService — records item events and lists them back."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlmodel import col, or_, select

from .repository import as_utc, store_errors
from .types import ActivityInfo

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.events import ItemEvent
    from drivetree.models.activities import ActivityBase


class ActivityService:
    """Append-only activity log, one row per emitted ``ItemEvent``."""

    def __init__(self, activity_model: type[ActivityBase]) -> None:
        self._activity_model = activity_model

    async def record(self, session: AsyncSession, event: ItemEvent) -> ActivityBase:
        """Add an activity row for *event*. Flushes but does not commit."""
        activity = self._activity_model(
            user_id=event.user_id,
            owner_id=event.owner_id,
            node_id=event.node_id,
            action=event.event_type.value,
            detail=event.detail,
        )
        with store_errors("record_activity"):
            session.add(activity)
            await session.flush()
        return activity

    async def list_activity(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        node_id: str | None = None,
        limit: int = 50,
    ) -> list[ActivityBase]:
        """Newest-first activity performed by *user_id* or on nodes they own."""
        model = self._activity_model
        stmt = select(model).where(
            or_(model.user_id == user_id, model.owner_id == user_id)
        )
        if node_id is not None:
            stmt = stmt.where(model.node_id == node_id)
        stmt = stmt.order_by(col(model.created_at).desc()).limit(limit)
        with store_errors("list_activity"):
            result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    def activity_to_info(activity: ActivityBase) -> ActivityInfo:
        return ActivityInfo(
            node_id=activity.node_id,
            user_id=activity.user_id,
            owner_id=activity.owner_id,
            action=activity.action,
            detail=activity.detail,
            created_at=as_utc(activity.created_at),
        )
