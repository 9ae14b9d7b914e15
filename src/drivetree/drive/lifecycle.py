"""LifecycleService — create, rename, move, star, trash, restore, delete.

Every mutation is validated before the repository is touched, so a
rejected request never leaves a partial write behind.  Trash and
permanent delete are shallow: children keep their own flags and rows.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from drivetree.models.nodes import FileBase, NodeKind

from .exceptions import (
    InvalidMoveError,
    NotFoundError,
    NotInTrashError,
    ParentNotFoundError,
    ParentStillTrashedError,
    ValidationError,
)
from .permissions import can_mutate

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import FolderBase, Node

    from .repository import NodeRepository
    from .sharing import SharingService
    from .tree import TreeService

    BlobReleaser = Callable[[str], Awaitable[None]]

logger = logging.getLogger(__name__)

DEFAULT_MAX_NAME_LENGTH = 255


class LifecycleService:
    """Orchestrates node mutations against the repository.

    *release_blob* is called by ``release_storage`` with a file's
    ``storage_ref`` once the delete of its metadata row has committed;
    failures there are logged and reported as warnings, never raised.
    """

    def __init__(
        self,
        repository: NodeRepository,
        tree: TreeService,
        sharing: SharingService,
        *,
        release_blob: BlobReleaser | None = None,
        allow_grantee_edit: bool = False,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
    ) -> None:
        self._repository = repository
        self._tree = tree
        self._sharing = sharing
        self._release_blob = release_blob
        self.allow_grantee_edit = allow_grantee_edit
        self.max_name_length = max_name_length

    # ------------------------------------------------------------------
    # Validation and authorization
    # ------------------------------------------------------------------

    def validate_name(self, name: str | None) -> str:
        """Return *name* trimmed, or raise ``ValidationError``."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name must not be empty")
        if len(name) > self.max_name_length:
            raise ValidationError(
                f"Name too long (max {self.max_name_length} characters)"
            )
        for ch in name:
            if ord(ch) < 0x20 or ord(ch) == 0x7F:
                raise ValidationError(f"Name contains control character: 0x{ord(ch):02x}")
        return name

    async def authorize_write(
        self, session: AsyncSession, node_id: str, caller_id: str
    ) -> Node:
        """Return the node *caller_id* may mutate, or raise ``NotFoundError``.

        Owners always pass.  Anyone else goes through ``can_mutate`` with
        their grant, so opening writes to ``edit`` grantees is a policy
        switch rather than a change at each call site.
        """
        node = await self._repository.find(session, node_id, caller_id)
        if node is not None:
            return node
        node = await self._repository.find_unscoped(session, node_id)
        if node is not None:
            permission = await self._sharing.permission_for(session, node.id, caller_id)
            if can_mutate(
                node.owner_id,
                caller_id,
                permission,
                allow_grantee_edit=self.allow_grantee_edit,
            ):
                return node
        raise NotFoundError(f"Item not found: {node_id}")

    async def _require_parent(
        self, session: AsyncSession, owner_id: str, parent_id: str | None
    ) -> FolderBase | None:
        if parent_id is None:
            return None
        parent = await self._repository.find(session, parent_id, owner_id, NodeKind.FOLDER)
        if parent is None or parent.is_trashed:
            raise ParentNotFoundError(f"Parent folder not found: {parent_id}")
        return parent  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create(
        self,
        session: AsyncSession,
        owner_id: str,
        kind: NodeKind,
        name: str,
        parent_id: str | None = None,
        **fields: Any,
    ) -> Node:
        """Create a folder or file under *parent_id* (``None`` = root)."""
        name = self.validate_name(name)
        await self._require_parent(session, owner_id, parent_id)

        if kind is NodeKind.FOLDER:
            node: Node = self._repository.folder_model(
                name=name, owner_id=owner_id, parent_id=parent_id
            )
        else:
            size = fields.get("size_bytes") or 0
            if size < 0:
                raise ValidationError("File size must not be negative")
            node = self._repository.file_model(
                name=name,
                owner_id=owner_id,
                parent_id=parent_id,
                mime_type=fields.get("mime_type"),
                size_bytes=size,
                storage_ref=fields.get("storage_ref"),
            )
        await self._repository.insert(session, node)
        logger.debug("Created %s %s (%r) for %s", kind.value, node.id, name, owner_id)
        return node

    async def create_folder(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        parent_id: str | None = None,
    ) -> FolderBase:
        return await self.create(session, owner_id, NodeKind.FOLDER, name, parent_id)  # type: ignore[return-value]

    async def create_file(
        self,
        session: AsyncSession,
        owner_id: str,
        name: str,
        parent_id: str | None = None,
        *,
        mime_type: str | None = None,
        size_bytes: int = 0,
        storage_ref: str | None = None,
    ) -> FileBase:
        return await self.create(  # type: ignore[return-value]
            session,
            owner_id,
            NodeKind.FILE,
            name,
            parent_id,
            mime_type=mime_type,
            size_bytes=size_bytes,
            storage_ref=storage_ref,
        )

    # ------------------------------------------------------------------
    # In-place mutations
    # ------------------------------------------------------------------

    async def rename(
        self, session: AsyncSession, node_id: str, caller_id: str, new_name: str
    ) -> Node:
        """Rename a node. Renaming to the current name is a no-op."""
        new_name = self.validate_name(new_name)
        node = await self.authorize_write(session, node_id, caller_id)
        if node.name.strip() == new_name:
            logger.debug("Rename of %s is a no-op", node_id)
            return node
        return await self._repository.update(session, node.id, node.owner_id, name=new_name)

    async def move(
        self,
        session: AsyncSession,
        node_id: str,
        caller_id: str,
        destination_id: str | None,
    ) -> Node:
        """Re-parent a node after ``TreeService.check_move`` approves it."""
        node = await self.authorize_write(session, node_id, caller_id)
        if node.parent_id == destination_id:
            logger.debug("Move of %s to its current parent is a no-op", node_id)
            return node

        check = await self._tree.check_move(session, node, destination_id)
        if not check.allowed:
            assert check.reason is not None
            raise InvalidMoveError(check.reason.value, check.message)

        moved = await self._repository.update(
            session, node.id, node.owner_id, parent_id=destination_id
        )
        logger.info("Moved %s %s to %s", node.kind.value, node.id, destination_id or "root")
        return moved

    async def set_starred(
        self, session: AsyncSession, node_id: str, caller_id: str, starred: bool
    ) -> Node:
        node = await self.authorize_write(session, node_id, caller_id)
        return await self._repository.update(
            session, node.id, node.owner_id, is_starred=starred
        )

    async def toggle_star(
        self, session: AsyncSession, node_id: str, caller_id: str
    ) -> Node:
        """Flip ``is_starred``. Each call toggles."""
        node = await self.authorize_write(session, node_id, caller_id)
        return await self._repository.update(
            session, node.id, node.owner_id, is_starred=not node.is_starred
        )

    # ------------------------------------------------------------------
    # Trash
    # ------------------------------------------------------------------

    async def trash(self, session: AsyncSession, node_id: str, caller_id: str) -> Node:
        """Mark a node trashed. Children are left untouched."""
        node = await self.authorize_write(session, node_id, caller_id)
        if node.is_trashed:
            logger.debug("%s is already in the trash", node_id)
            return node
        trashed = await self._repository.update(
            session, node.id, node.owner_id, is_trashed=True
        )
        logger.info("Trashed %s %s", node.kind.value, node.id)
        return trashed

    async def restore(self, session: AsyncSession, node_id: str, caller_id: str) -> Node:
        """Take a node out of the trash if its direct parent is not trashed."""
        node = await self.authorize_write(session, node_id, caller_id)
        if not node.is_trashed:
            raise NotInTrashError(f"Item is not in the trash: {node_id}")
        if node.parent_id is not None:
            parent = await self._repository.find(
                session, node.parent_id, node.owner_id, NodeKind.FOLDER
            )
            if parent is None:
                raise ParentNotFoundError(
                    f"Parent folder of {node_id} no longer exists: {node.parent_id}"
                )
            if parent.is_trashed:
                raise ParentStillTrashedError(
                    f"Restore the parent folder {parent.name!r} first"
                )
        restored = await self._repository.update(
            session, node.id, node.owner_id, is_trashed=False
        )
        logger.info("Restored %s %s", node.kind.value, node.id)
        return restored

    async def permanently_delete(
        self, session: AsyncSession, node_id: str, caller_id: str
    ) -> Node:
        """Remove a trashed node for good and return it.

        Folder deletion is shallow: children keep a ``parent_id`` that no
        longer resolves.  Stored bytes are not touched here; callers pass
        the node's ``storage_refs`` to ``release_storage`` once the
        delete has been committed.
        """
        try:
            node = await self.authorize_write(session, node_id, caller_id)
        except NotFoundError:
            raise NotInTrashError(f"Item is not in the trash: {node_id}") from None
        if not node.is_trashed:
            raise NotInTrashError(f"Item is not in the trash: {node_id}")

        await self._repository.delete(session, node.id, node.owner_id)
        logger.info("Permanently deleted %s %s", node.kind.value, node.id)
        return node

    async def empty_trash(self, session: AsyncSession, owner_id: str) -> list[Node]:
        """Permanently delete every trashed node of *owner_id*."""
        trashed = await self._repository.list_nodes(session, owner_id, trashed=True)
        for node in trashed:
            await self.permanently_delete(session, node.id, owner_id)
        return trashed

    # ------------------------------------------------------------------
    # Stored bytes
    # ------------------------------------------------------------------

    @staticmethod
    def storage_refs(nodes: list[Node]) -> list[tuple[str, str]]:
        """Return ``(name, storage_ref)`` for every file in *nodes* that has bytes."""
        return [
            (node.name, node.storage_ref)
            for node in nodes
            if isinstance(node, FileBase) and node.storage_ref
        ]

    async def release_storage(self, refs: list[tuple[str, str]]) -> list[str]:
        """Hand each ref to *release_blob*. Returns one warning per failure."""
        warnings: list[str] = []
        if self._release_blob is None:
            return warnings
        for name, ref in refs:
            try:
                await self._release_blob(ref)
            except Exception:
                logger.warning("Could not release blob %s for %r", ref, name, exc_info=True)
                warnings.append(f"Stored bytes for {name!r} could not be released")
        return warnings
