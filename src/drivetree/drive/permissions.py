"""Share permission enum and the write-authorization policy."""

from __future__ import annotations

from enum import Enum

from .exceptions import ValidationError


class SharePermission(str, Enum):
    """Permission level granted to a grantee on a single node."""

    VIEW = "view"
    EDIT = "edit"


def parse_permission(value: str | SharePermission) -> SharePermission:
    """Coerce *value* to a ``SharePermission`` or raise ``ValidationError``."""
    if isinstance(value, SharePermission):
        return value
    try:
        return SharePermission(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid permission: {value!r}. Must be 'view' or 'edit'."
        ) from None


def can_mutate(
    owner_id: str,
    caller_id: str,
    permission: SharePermission | str | None,
    *,
    allow_grantee_edit: bool = False,
) -> bool:
    """Return True if *caller_id* may mutate a node owned by *owner_id*.

    *permission* is the caller's grant on the node, if any.  Owners can
    always mutate.  Grantees holding ``edit`` can mutate only when
    *allow_grantee_edit* is enabled; otherwise writes stay owner-only.
    """
    if owner_id == caller_id:
        return True
    if permission is None:
        return False
    return allow_grantee_edit and SharePermission(permission) is SharePermission.EDIT
