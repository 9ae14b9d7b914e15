"""Item layer — repository, tree integrity, lifecycle, sharing, views."""

from drivetree.drive.activity import ActivityService
from drivetree.drive.exceptions import (
    CycleDetectedError,
    DriveError,
    GranteeNotFoundError,
    GrantNotFoundError,
    InvalidMoveError,
    NotFoundError,
    NotInTrashError,
    NotOwnerError,
    ParentNotFoundError,
    ParentStillTrashedError,
    StoreError,
    ValidationError,
)
from drivetree.drive.lifecycle import LifecycleService
from drivetree.drive.permissions import SharePermission, can_mutate, parse_permission
from drivetree.drive.repository import NodeRepository
from drivetree.drive.sharing import SharingService
from drivetree.drive.tree import MoveCheck, MoveRejection, TreeService, TreeVisibility
from drivetree.drive.types import (
    ActivityInfo,
    ActivityResult,
    BulkResult,
    DeleteResult,
    GrantInfo,
    ListResult,
    ListSharesResult,
    NodeInfo,
    NodeResult,
    PathResult,
    ShareResult,
    StorageUsage,
)
from drivetree.drive.views import DriveView, SortKey, SortOrder, ViewProjector, sort_nodes

__all__ = [
    "ActivityInfo",
    "ActivityResult",
    "ActivityService",
    "BulkResult",
    "CycleDetectedError",
    "DeleteResult",
    "DriveError",
    "DriveView",
    "GrantInfo",
    "GrantNotFoundError",
    "GranteeNotFoundError",
    "InvalidMoveError",
    "LifecycleService",
    "ListResult",
    "ListSharesResult",
    "MoveCheck",
    "MoveRejection",
    "NodeInfo",
    "NodeRepository",
    "NodeResult",
    "NotFoundError",
    "NotInTrashError",
    "NotOwnerError",
    "ParentNotFoundError",
    "ParentStillTrashedError",
    "PathResult",
    "SharePermission",
    "ShareResult",
    "SharingService",
    "SortKey",
    "SortOrder",
    "StorageUsage",
    "StoreError",
    "TreeService",
    "TreeVisibility",
    "ValidationError",
    "ViewProjector",
    "can_mutate",
    "parse_permission",
    "sort_nodes",
]
