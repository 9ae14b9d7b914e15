"""NodeRepository — owner-scoped lookup, listing and persistence of nodes.

Holds no validation logic: integrity checks live in ``TreeService`` and
``LifecycleService``.  Every backing-store failure surfaces as
``StoreError``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from drivetree.models.nodes import FileBase, NodeKind

from .exceptions import NotFoundError, StoreError
from .types import NodeInfo

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import FolderBase, Node

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate SQLAlchemy failures raised inside the block into ``StoreError``."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.warning("Store failure during %s", action, exc_info=True)
        raise StoreError(f"Store failure during {action}: {e}") from e


def as_utc(value: datetime | None) -> datetime | None:
    """Return *value* as an aware UTC datetime (SQLite hands back naive ones)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class NodeRepository:
    """Persistence over the folder and file tables, scoped by owner.

    Receives the concrete models at construction so callers can use
    custom SQLModel subclasses with different table names.  Node ids
    are unique across both tables.
    """

    def __init__(
        self,
        folder_model: type[FolderBase],
        file_model: type[FileBase],
    ) -> None:
        self._folder_model = folder_model
        self._file_model = file_model

    @property
    def folder_model(self) -> type[FolderBase]:
        return self._folder_model

    @property
    def file_model(self) -> type[FileBase]:
        return self._file_model

    def _models(self, kind: NodeKind | None = None) -> list[type[Node]]:
        if kind is NodeKind.FOLDER:
            return [self._folder_model]
        if kind is NodeKind.FILE:
            return [self._file_model]
        return [self._folder_model, self._file_model]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def find(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
        kind: NodeKind | None = None,
    ) -> Node | None:
        """Return the node with *node_id* owned by *owner_id*, or None."""
        with store_errors("find"):
            for model in self._models(kind):
                result = await session.execute(
                    select(model).where(
                        model.id == node_id,
                        model.owner_id == owner_id,
                    )
                )
                node = result.scalar_one_or_none()
                if node is not None:
                    return node
        return None

    async def get(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
        kind: NodeKind | None = None,
    ) -> Node:
        """Like ``find`` but raises ``NotFoundError`` when absent."""
        node = await self.find(session, node_id, owner_id, kind)
        if node is None:
            label = kind.value.capitalize() if kind else "Item"
            raise NotFoundError(f"{label} not found: {node_id}")
        return node

    async def find_unscoped(self, session: AsyncSession, node_id: str) -> Node | None:
        """Look a node up by id regardless of owner.

        Internal use only (authorization and grant resolution).  Callers
        must never return the result without a permission check.
        """
        with store_errors("find"):
            for model in self._models():
                node = await session.get(model, node_id)
                if node is not None:
                    return node
        return None

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_by_parent(
        self,
        session: AsyncSession,
        owner_id: str,
        parent_id: str | None,
        *,
        trashed: bool | None = None,
        starred: bool | None = None,
        kind: NodeKind | None = None,
    ) -> list[Node]:
        """List the direct children of *parent_id* (``None`` = root)."""
        nodes: list[Node] = []
        with store_errors("list_by_parent"):
            for model in self._models(kind):
                conditions: list[Any] = [model.owner_id == owner_id]
                if parent_id is None:
                    conditions.append(model.parent_id.is_(None))  # type: ignore[union-attr]
                else:
                    conditions.append(model.parent_id == parent_id)
                conditions.extend(self._flag_conditions(model, trashed, starred))
                result = await session.execute(select(model).where(*conditions))
                nodes.extend(result.scalars().all())
        return nodes

    async def list_nodes(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        trashed: bool | None = None,
        starred: bool | None = None,
        kind: NodeKind | None = None,
    ) -> list[Node]:
        """List every node of *owner_id* matching the flag filters, any folder."""
        nodes: list[Node] = []
        with store_errors("list_nodes"):
            for model in self._models(kind):
                conditions: list[Any] = [model.owner_id == owner_id]
                conditions.extend(self._flag_conditions(model, trashed, starred))
                result = await session.execute(select(model).where(*conditions))
                nodes.extend(result.scalars().all())
        return nodes

    async def storage_used(self, session: AsyncSession, owner_id: str) -> tuple[int, int]:
        """Return ``(bytes, file_count)`` over *owner_id*'s non-trashed files.

        Only a file's own trash flag counts; a file under a trashed folder
        still uses space until it is deleted.
        """
        model = self.file_model
        conditions = [model.owner_id == owner_id, *self._flag_conditions(model, False, None)]
        stmt = select(
            func.coalesce(func.sum(model.size_bytes), 0), func.count(model.id)
        ).where(*conditions)
        with store_errors("storage_used"):
            result = await session.execute(stmt)
            used, count = result.one()
        return int(used), int(count)

    @staticmethod
    def _flag_conditions(
        model: type[Node],
        trashed: bool | None,
        starred: bool | None,
    ) -> list[Any]:
        conditions: list[Any] = []
        if trashed is not None:
            conditions.append(model.is_trashed == trashed)
        if starred is not None:
            conditions.append(model.is_starred == starred)
        return conditions

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def insert(self, session: AsyncSession, node: Node) -> Node:
        """Add *node* and flush. Does not commit."""
        with store_errors("insert"):
            session.add(node)
            await session.flush()
        return node

    async def update(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
        **patch: Any,
    ) -> Node:
        """Apply *patch* to a node and refresh ``updated_at``. Flushes, does not commit."""
        node = await self.get(session, node_id, owner_id)
        for key, value in patch.items():
            setattr(node, key, value)
        if "updated_at" not in patch:
            node.updated_at = datetime.now(UTC)
        with store_errors("update"):
            await session.flush()
        return node

    async def delete(self, session: AsyncSession, node_id: str, owner_id: str) -> None:
        """Remove a node row. Flushes, does not commit."""
        node = await self.get(session, node_id, owner_id)
        with store_errors("delete"):
            await session.delete(node)
            await session.flush()

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def node_to_info(node: Node, permission: str | None = None) -> NodeInfo:
        """Convert a node record to ``NodeInfo``."""
        is_file = isinstance(node, FileBase)
        return NodeInfo(
            id=node.id,
            name=node.name,
            kind=node.kind.value,
            owner_id=node.owner_id,
            parent_id=node.parent_id,
            is_starred=node.is_starred,
            is_trashed=node.is_trashed,
            created_at=as_utc(node.created_at),
            updated_at=as_utc(node.updated_at),
            mime_type=node.mime_type if is_file else None,
            size_bytes=node.size_bytes if is_file else None,
            permission=permission,
        )
