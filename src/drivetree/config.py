"""DriveConfig — explicit settings for a ``DriveAsync`` instance."""

from __future__ import annotations

from dataclasses import dataclass

from drivetree.drive.lifecycle import DEFAULT_MAX_NAME_LENGTH
from drivetree.drive.views import DEFAULT_RECENT_LIMIT

DEFAULT_STORAGE_CAPACITY = 15 * 1024**3


@dataclass
class DriveConfig:
    """Configuration for a drive facade."""

    dialect: str | None = None
    """'sqlite', 'postgresql', ... ``None`` detects it from the engine."""

    schema: str | None = None
    """Optional schema qualifying the tables (PostgreSQL)."""

    recent_limit: int = DEFAULT_RECENT_LIMIT
    """Number of items in the ``recent`` view."""

    allow_grantee_edit: bool = False
    """If True, grantees holding ``edit`` may mutate shared nodes."""

    record_activity: bool = True
    """If True, every committed mutation is written to the activity log."""

    bulk_concurrency: int = 8
    """Upper bound on concurrent per-item calls in bulk operations."""

    max_name_length: int = DEFAULT_MAX_NAME_LENGTH
    """Longest accepted folder/file name."""

    storage_capacity_bytes: int = DEFAULT_STORAGE_CAPACITY
    """Display capacity for ``storage_usage``. Uploads are never refused against it."""

    def __post_init__(self) -> None:
        if self.recent_limit < 1:
            raise ValueError("recent_limit must be at least 1")
        if self.bulk_concurrency < 1:
            raise ValueError("bulk_concurrency must be at least 1")
        if self.max_name_length < 1:
            raise ValueError("max_name_length must be at least 1")
        if self.storage_capacity_bytes < 1:
            raise ValueError("storage_capacity_bytes must be at least 1")
