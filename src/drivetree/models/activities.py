"""Activity model — append-only log of item mutations."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class ActivityBase(SQLModel):
    """Base fields for an activity record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    owner_id: str = Field(index=True)
    node_id: str = Field(index=True)
    action: str = Field(default="")
    detail: str | None = Field(default=None)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Activity(ActivityBase, table=True):
    """Default activity table — ``drive_activities``."""

    __tablename__ = "drive_activities"
