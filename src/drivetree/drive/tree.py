"""TreeService — parent/child consistency, cycle checks, breadcrumbs.

Every traversal of the folder tree lives here so that move validation,
the folder picker, breadcrumbs and view filtering share one
implementation.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from drivetree.models.nodes import NodeKind

from .exceptions import CycleDetectedError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import FolderBase, Node

    from .repository import NodeRepository

logger = logging.getLogger(__name__)


class MoveRejection(str, Enum):
    """Reason codes for a rejected move."""

    SELF_MOVE = "self_move"
    INTO_DESCENDANT = "into_descendant"
    DESTINATION_NOT_FOUND = "destination_not_found"
    DESTINATION_TRASHED = "destination_trashed"


@dataclass(frozen=True)
class MoveCheck:
    """Outcome of ``TreeService.check_move``."""

    allowed: bool
    reason: MoveRejection | None = None
    message: str = ""


@dataclass
class TreeVisibility:
    """Display-time view of which parts of an owner's tree are hidden.

    Trashing a folder does not touch its children in storage, but every
    non-trash listing must hide them.  ``hidden_ids`` holds folders that
    are trashed or sit under a trashed folder, plus parent ids that no
    longer resolve to a folder (orphans left by a shallow delete).
    """

    folder_ids: set[str] = field(default_factory=set)
    hidden_ids: set[str] = field(default_factory=set)

    def hides(self, node: Node) -> bool:
        """True if *node* must not appear in a non-trash listing."""
        if node.is_trashed or node.id in self.hidden_ids:
            return True
        parent_id = node.parent_id
        if parent_id is None:
            return False
        return parent_id in self.hidden_ids or parent_id not in self.folder_ids


class TreeService:
    """Tree integrity checks built on ``NodeRepository`` lookups.

    Stateless; receives a session per call.
    """

    def __init__(self, repository: NodeRepository) -> None:
        self._repository = repository

    async def path_to(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
    ) -> list[FolderBase]:
        """Return the root-first chain of folders leading to *node_id*.

        The chain ends with the node itself when it is a folder.  A parent
        that no longer exists ends the chain early.
        """
        node = await self._repository.get(session, node_id, owner_id)
        chain: list[FolderBase] = []
        if node.kind is NodeKind.FOLDER:
            chain.append(node)  # type: ignore[arg-type]

        seen = {node.id}
        parent_id = node.parent_id
        while parent_id is not None:
            if parent_id in seen:
                raise CycleDetectedError(f"Cycle detected at folder {parent_id}")
            seen.add(parent_id)
            parent = await self._repository.find(
                session, parent_id, owner_id, NodeKind.FOLDER
            )
            if parent is None:
                logger.warning(
                    "Dangling parent %s on the path of %s", parent_id, node_id
                )
                break
            chain.append(parent)  # type: ignore[arg-type]
            parent_id = parent.parent_id

        chain.reverse()
        return chain

    async def descendants_of(
        self,
        session: AsyncSession,
        folder_id: str,
        owner_id: str,
    ) -> set[str]:
        """Return ids of every node nested under *folder_id*, breadth-first.

        Trashed nodes are included; the folder itself is not.
        """
        found: set[str] = set()
        queue: deque[str] = deque([folder_id])
        while queue:
            current = queue.popleft()
            children = await self._repository.list_by_parent(session, owner_id, current)
            for child in children:
                if child.id == folder_id or child.id in found:
                    continue
                found.add(child.id)
                if child.kind is NodeKind.FOLDER:
                    queue.append(child.id)
        return found

    async def check_move(
        self,
        session: AsyncSession,
        node: Node,
        destination_id: str | None,
    ) -> MoveCheck:
        """Decide whether *node* may be filed under *destination_id*.

        ``None`` means the owner's root and is always a valid target.
        """
        if destination_id is None:
            return MoveCheck(allowed=True)

        if destination_id == node.id:
            return MoveCheck(
                allowed=False,
                reason=MoveRejection.SELF_MOVE,
                message=f"Cannot move {node.name!r} into itself",
            )

        if node.kind is NodeKind.FOLDER:
            descendants = await self.descendants_of(session, node.id, node.owner_id)
            if destination_id in descendants:
                return MoveCheck(
                    allowed=False,
                    reason=MoveRejection.INTO_DESCENDANT,
                    message=f"Cannot move {node.name!r} into one of its own subfolders",
                )

        destination = await self._repository.find(
            session, destination_id, node.owner_id, NodeKind.FOLDER
        )
        if destination is None:
            return MoveCheck(
                allowed=False,
                reason=MoveRejection.DESTINATION_NOT_FOUND,
                message=f"Destination folder not found: {destination_id}",
            )
        if destination.is_trashed:
            return MoveCheck(
                allowed=False,
                reason=MoveRejection.DESTINATION_TRASHED,
                message=f"Destination folder is in the trash: {destination.name!r}",
            )
        return MoveCheck(allowed=True)

    async def validate_move(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
        destination_id: str | None,
    ) -> MoveCheck:
        """Load *node_id* and run ``check_move`` against it."""
        node = await self._repository.get(session, node_id, owner_id)
        return await self.check_move(session, node, destination_id)

    async def visibility(self, session: AsyncSession, owner_id: str) -> TreeVisibility:
        """Compute the hidden folder set for *owner_id* from one folder query."""
        folders = await self._repository.list_nodes(
            session, owner_id, kind=NodeKind.FOLDER
        )
        by_id = {f.id: f for f in folders}
        hidden: set[str] = set()
        visible: set[str] = set()

        for folder in folders:
            chain: list[str] = []
            on_chain: set[str] = set()
            is_hidden = False
            current: Node | None = folder
            while current is not None:
                if current.id in hidden:
                    is_hidden = True
                    break
                if current.id in visible:
                    break
                if current.id in on_chain:
                    raise CycleDetectedError(f"Cycle detected at folder {current.id}")
                chain.append(current.id)
                on_chain.add(current.id)
                if current.is_trashed:
                    is_hidden = True
                    break
                parent_id = current.parent_id
                if parent_id is None:
                    break
                current = by_id.get(parent_id)
                if current is None:
                    hidden.add(parent_id)
                    is_hidden = True
            (hidden if is_hidden else visible).update(chain)

        return TreeVisibility(folder_ids=set(by_id), hidden_ids=hidden)

    async def move_targets(
        self,
        session: AsyncSession,
        owner_id: str,
        node_id: str | None = None,
    ) -> list[FolderBase]:
        """List folders a node can be moved into, sorted by name.

        Hidden folders are left out, and so is the subtree of *node_id*
        when it is a folder.
        """
        excluded: set[str] = set()
        if node_id is not None:
            node = await self._repository.get(session, node_id, owner_id)
            if node.kind is NodeKind.FOLDER:
                excluded = await self.descendants_of(session, node.id, owner_id)
                excluded.add(node.id)

        vis = await self.visibility(session, owner_id)
        folders = await self._repository.list_nodes(
            session, owner_id, trashed=False, kind=NodeKind.FOLDER
        )
        targets = [f for f in folders if f.id not in excluded and not vis.hides(f)]
        targets.sort(key=lambda f: (f.name.casefold(), f.id))
        return targets  # type: ignore[return-value]

    async def orphans(self, session: AsyncSession, owner_id: str) -> list[Node]:
        """Return nodes whose ``parent_id`` no longer resolves to a folder."""
        nodes = await self._repository.list_nodes(session, owner_id)
        folder_ids = {n.id for n in nodes if n.kind is NodeKind.FOLDER}
        return [
            n for n in nodes if n.parent_id is not None and n.parent_id not in folder_ids
        ]
