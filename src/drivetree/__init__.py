"""drivetree: folders, files, trash and sharing for a personal drive.

Owner-scoped item hierarchy with cycle-safe moves, shallow trash,
per-item share grants and derived views, over SQLModel.
"""

__version__ = "0.1.0"

from drivetree._drive import Drive
from drivetree._drive_async import DriveAsync
from drivetree.config import DriveConfig
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
from drivetree.drive.permissions import SharePermission
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
from drivetree.drive.views import DriveView, SortKey, SortOrder
from drivetree.events import EventBus, EventType, ItemEvent

__all__ = [
    "ActivityInfo",
    "ActivityResult",
    "BulkResult",
    "CycleDetectedError",
    "DeleteResult",
    "Drive",
    "DriveAsync",
    "DriveConfig",
    "DriveError",
    "DriveView",
    "EventBus",
    "EventType",
    "GrantInfo",
    "GrantNotFoundError",
    "GranteeNotFoundError",
    "InvalidMoveError",
    "ItemEvent",
    "ListResult",
    "ListSharesResult",
    "NodeInfo",
    "NodeResult",
    "NotFoundError",
    "NotInTrashError",
    "NotOwnerError",
    "ParentNotFoundError",
    "ParentStillTrashedError",
    "PathResult",
    "SharePermission",
    "ShareResult",
    "SortKey",
    "SortOrder",
    "StorageUsage",
    "StoreError",
    "ValidationError",
    "__version__",
]
