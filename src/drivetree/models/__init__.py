"""SQLModel database models for drivetree."""

from drivetree.models.activities import Activity, ActivityBase
from drivetree.models.nodes import (
    File,
    FileBase,
    Folder,
    FolderBase,
    Node,
    NodeBase,
    NodeKind,
)
from drivetree.models.shares import ShareGrant, ShareGrantBase

__all__ = [
    "Activity",
    "ActivityBase",
    "File",
    "FileBase",
    "Folder",
    "FolderBase",
    "Node",
    "NodeBase",
    "NodeKind",
    "ShareGrant",
    "ShareGrantBase",
]
