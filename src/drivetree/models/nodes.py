"""Folder and File node models.

Provides ``FolderBase`` and ``FileBase`` non-table base classes sharing the
``NodeBase`` fields.  Subclass with ``table=True`` and a custom
``__tablename__`` to use a different table name per backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class NodeKind(str, Enum):
    """Discriminator for the two node variants."""

    FOLDER = "folder"
    FILE = "file"


class NodeBase(SQLModel):
    """Fields shared by folders and files."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(default="")
    owner_id: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    is_starred: bool = Field(default=False)
    is_trashed: bool = Field(default=False, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class FolderBase(NodeBase):
    """Base fields for a folder. Subclass with ``table=True`` for a concrete table."""

    @property
    def kind(self) -> NodeKind:
        return NodeKind.FOLDER


class FileBase(NodeBase):
    """Base fields for a file. Subclass with ``table=True`` for a concrete table.

    ``storage_ref`` points into the external blob store; the bytes
    themselves never pass through this package.
    """

    mime_type: str | None = Field(default=None)
    size_bytes: int = Field(default=0)
    storage_ref: str | None = Field(default=None)

    @property
    def kind(self) -> NodeKind:
        return NodeKind.FILE


class Folder(FolderBase, table=True):
    """Default folder table — ``drive_folders``."""

    __tablename__ = "drive_folders"


class File(FileBase, table=True):
    """Default file table — ``drive_files``."""

    __tablename__ = "drive_files"


Node = FolderBase | FileBase
"""A folder or a file; the unit the tree and sharing logic operate on."""
