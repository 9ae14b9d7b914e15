"""Result types: NodeInfo, NodeResult, ListResult, ShareResult, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime


@dataclass
class NodeInfo:
    """Folder/file metadata as returned to callers."""

    id: str
    name: str
    kind: str
    owner_id: str
    parent_id: str | None = None
    is_starred: bool = False
    is_trashed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    mime_type: str | None = None
    size_bytes: int | None = None
    permission: str | None = None

    @property
    def is_folder(self) -> bool:
        return self.kind == "folder"


@dataclass
class GrantInfo:
    """Share grant metadata."""

    node_id: str
    node_kind: str
    owner_id: str
    grantee_id: str
    permission: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ActivityInfo:
    """Activity log entry."""

    node_id: str
    user_id: str
    owner_id: str
    action: str
    detail: str | None = None
    created_at: datetime | None = None


@dataclass
class NodeResult:
    """Result of a single-node operation.

    *reason* carries the rejection code of a refused move, such as
    ``"into_descendant"``.
    """

    success: bool
    message: str
    node: NodeInfo | None = None
    error_code: str | None = None
    retryable: bool = False
    warnings: list[str] = field(default_factory=list)
    reason: str | None = None


@dataclass
class ListResult:
    """Result of a listing operation."""

    success: bool
    message: str
    entries: list[NodeInfo] = field(default_factory=list)
    view: str = "my-drive"
    folder_id: str | None = None
    error_code: str | None = None
    retryable: bool = False


@dataclass
class PathResult:
    """Result of a breadcrumb lookup (root-first folders)."""

    success: bool
    message: str
    entries: list[NodeInfo] = field(default_factory=list)
    error_code: str | None = None
    retryable: bool = False


@dataclass
class DeleteResult:
    """Result of a permanent delete or empty-trash operation."""

    success: bool
    message: str
    node_id: str | None = None
    total_deleted: int = 0
    warnings: list[str] = field(default_factory=list)
    error_code: str | None = None
    retryable: bool = False


@dataclass
class ShareResult:
    """Result of a share/unshare/update-permission operation."""

    success: bool
    message: str
    grant: GrantInfo | None = None
    error_code: str | None = None
    retryable: bool = False


@dataclass
class ListSharesResult:
    """Result of a list-grants operation."""

    success: bool
    message: str
    grants: list[GrantInfo] = field(default_factory=list)
    error_code: str | None = None
    retryable: bool = False


@dataclass
class ActivityResult:
    """Result of an activity listing."""

    success: bool
    message: str
    entries: list[ActivityInfo] = field(default_factory=list)
    error_code: str | None = None
    retryable: bool = False


@dataclass
class StorageUsage:
    """Bytes held by an owner's non-trashed files against a display capacity."""

    success: bool
    message: str
    used_bytes: int = 0
    capacity_bytes: int = 0
    file_count: int = 0
    error_code: str | None = None
    retryable: bool = False

    @property
    def percent_used(self) -> float:
        """Share of ``capacity_bytes`` in use, capped at 100."""
        if self.capacity_bytes <= 0:
            return 0.0
        return min(self.used_bytes / self.capacity_bytes * 100, 100.0)


@dataclass
class BulkResult:
    """Result of a bulk operation issued as independent per-item calls.

    Items are not applied atomically: ``partial`` is True when some
    items succeeded and others failed.
    """

    success: bool
    message: str
    results: dict[str, NodeResult] = field(default_factory=dict)

    @property
    def succeeded(self) -> list[str]:
        return [node_id for node_id, r in self.results.items() if r.success]

    @property
    def failed(self) -> list[str]:
        return [node_id for node_id, r in self.results.items() if not r.success]

    @property
    def partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)
