"""Custom exception hierarchy for the drivetree item layer.

Every error carries a stable ``code`` so that facades can report it
without string matching.  Only ``StoreError`` is ``retryable``; the
others mean the request itself has to change.
"""

from __future__ import annotations


class DriveError(Exception):
    """Base exception for all drivetree errors."""

    code: str = "drive_error"
    retryable: bool = False


class NotFoundError(DriveError):
    """Raised when a node or grant is absent or not visible to the caller."""

    code = "not_found"


class ParentNotFoundError(NotFoundError):
    """Raised when a parent folder does not resolve to a usable folder."""

    code = "parent_not_found"


class ValidationError(DriveError):
    """Raised on malformed input (empty name, bad permission, negative size)."""

    code = "validation_error"


class InvalidMoveError(DriveError):
    """Raised when a move would break the tree (self-move, cycle, bad target)."""

    code = "invalid_move"

    def __init__(self, reason: str, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or f"Invalid move: {reason}")


class CycleDetectedError(DriveError):
    """Raised when following parent references revisits a folder."""

    code = "cycle_detected"


class ParentStillTrashedError(DriveError):
    """Raised when restoring a node whose direct parent is in the trash."""

    code = "parent_still_trashed"


class NotInTrashError(DriveError):
    """Raised when an operation requires a trashed node."""

    code = "not_in_trash"


class NotOwnerError(DriveError):
    """Raised when a non-owner attempts an owner-only operation."""

    code = "not_owner"


class GranteeNotFoundError(DriveError):
    """Raised when a grantee identifier does not resolve to a principal."""

    code = "grantee_not_found"


class GrantNotFoundError(DriveError):
    """Raised when no share grant exists for a node/grantee pair."""

    code = "grant_not_found"


class StoreError(DriveError):
    """Raised on backing store failures (DB connection, constraint, I/O)."""

    code = "store_error"
    retryable = True
