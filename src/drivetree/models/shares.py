"""ShareGrant model — per-node grants from an owner to another principal.

Provides ``ShareGrantBase`` (non-table) and ``ShareGrant`` (concrete table).
Subclass ``ShareGrantBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.  Concrete tables must keep a
unique constraint on ``(node_id, grantee_id)``; sharing relies on it for
upserts.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class ShareGrantBase(SQLModel):
    """Base fields for a share grant. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    node_id: str = Field(index=True)
    node_kind: str = Field(default="file")
    owner_id: str = Field(index=True)
    grantee_id: str = Field(index=True)
    permission: str = Field(default="view")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class ShareGrant(ShareGrantBase, table=True):
    """Default share grant table — ``drive_share_grants``."""

    __tablename__ = "drive_share_grants"
    __table_args__ = (
        UniqueConstraint("node_id", "grantee_id", name="uq_drive_share_node_grantee"),
    )
