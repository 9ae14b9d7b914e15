"""ViewProjector — turns stored nodes into the listing a client asked for."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from functools import cmp_to_key
from typing import TYPE_CHECKING

from drivetree.models.nodes import NodeKind

from .exceptions import NotFoundError, ValidationError
from .repository import as_utc

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import Node

    from .permissions import SharePermission
    from .repository import NodeRepository
    from .sharing import SharingService
    from .tree import TreeService, TreeVisibility

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 20

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class DriveView(str, Enum):
    """Listings a client can request."""

    MY_DRIVE = "my-drive"
    RECENT = "recent"
    STARRED = "starred"
    TRASH = "trash"
    SHARED = "shared"


class SortKey(str, Enum):
    NAME = "name"
    DATE = "date"
    SIZE = "size"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _coerce(enum_cls: type[Enum], value: object, label: str) -> Enum:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(repr(m.value) for m in enum_cls)
        raise ValidationError(f"Invalid {label}: {value!r}. Must be one of {allowed}.") from None


def parse_view(value: str | DriveView) -> DriveView:
    return _coerce(DriveView, value, "view")  # type: ignore[return-value]


def parse_sort_key(value: str | SortKey) -> SortKey:
    return _coerce(SortKey, value, "sort key")  # type: ignore[return-value]


def parse_sort_order(value: str | SortOrder) -> SortOrder:
    return _coerce(SortOrder, value, "sort order")  # type: ignore[return-value]


def matches_search(node: Node, query: str | None) -> bool:
    """Case-insensitive substring match on the node name."""
    if not query:
        return True
    return query.casefold() in node.name.casefold()


def _size_of(node: Node) -> int:
    if node.kind is NodeKind.FOLDER:
        return 0
    return getattr(node, "size_bytes", 0) or 0


def sort_nodes(
    nodes: list[Node],
    key: SortKey = SortKey.NAME,
    order: SortOrder = SortOrder.ASC,
) -> list[Node]:
    """Folders first, then by *key*; *order* flips the key comparison only."""
    direction = -1 if order is SortOrder.DESC else 1

    def key_value(node: Node) -> object:
        if key is SortKey.DATE:
            return as_utc(node.created_at) or _EPOCH
        if key is SortKey.SIZE:
            return _size_of(node)
        return node.name.casefold()

    def compare(a: Node, b: Node) -> int:
        a_folder = a.kind is NodeKind.FOLDER
        b_folder = b.kind is NodeKind.FOLDER
        if a_folder != b_folder:
            return -1 if a_folder else 1
        ka, kb = key_value(a), key_value(b)
        if ka != kb:
            return direction * (-1 if ka < kb else 1)  # type: ignore[operator]
        # Stable, order-independent tie break.
        ta, tb = (a.name.casefold(), a.id), (b.name.casefold(), b.id)
        if ta == tb:
            return 0
        return -1 if ta < tb else 1

    return sorted(nodes, key=cmp_to_key(compare))


class ViewProjector:
    """Builds the my-drive, recent, starred, trash and shared listings.

    Non-trash views hide anything that is trashed or sits under a
    trashed folder, without persisting that implied state.
    """

    def __init__(
        self,
        repository: NodeRepository,
        tree: TreeService,
        sharing: SharingService,
        *,
        recent_limit: int = DEFAULT_RECENT_LIMIT,
    ) -> None:
        self._repository = repository
        self._tree = tree
        self._sharing = sharing
        self.recent_limit = recent_limit

    async def project(
        self,
        session: AsyncSession,
        owner_id: str,
        view: str | DriveView = DriveView.MY_DRIVE,
        folder_id: str | None = None,
        search: str | None = None,
        sort_key: str | SortKey | None = None,
        order: str | SortOrder = SortOrder.ASC,
    ) -> list[tuple[Node, SharePermission | None]]:
        """Return ``(node, permission)`` pairs; permission is set for shared items only.

        Search runs before the recent view is cut to ``recent_limit``.  The
        recent view keeps recency order unless *sort_key* is given, so
        *order* alone does not change it; other views sort by name.
        """
        view = parse_view(view)
        key = parse_sort_key(sort_key) if sort_key is not None else None
        direction = parse_sort_order(order)

        if view is DriveView.SHARED:
            return await self._shared(session, owner_id, folder_id, search, key, direction)

        if view is DriveView.MY_DRIVE:
            nodes = await self._my_drive(session, owner_id, folder_id)
        elif view is DriveView.RECENT:
            nodes = await self._recent(session, owner_id, search)
        elif view is DriveView.STARRED:
            nodes = await self._visible(session, owner_id, starred=True)
        else:
            nodes = await self._repository.list_nodes(session, owner_id, trashed=True)

        nodes = [n for n in nodes if matches_search(n, search)]
        if key is not None:
            nodes = sort_nodes(nodes, key, direction)
        elif view is not DriveView.RECENT:
            nodes = sort_nodes(nodes, SortKey.NAME, direction)
        return [(n, None) for n in nodes]

    async def _visible(
        self,
        session: AsyncSession,
        owner_id: str,
        *,
        starred: bool | None = None,
    ) -> list[Node]:
        vis = await self._tree.visibility(session, owner_id)
        nodes = await self._repository.list_nodes(
            session, owner_id, trashed=False, starred=starred
        )
        return [n for n in nodes if not vis.hides(n)]

    async def _my_drive(
        self, session: AsyncSession, owner_id: str, folder_id: str | None
    ) -> list[Node]:
        if folder_id is not None:
            folder = await self._repository.find(
                session, folder_id, owner_id, NodeKind.FOLDER
            )
            if folder is None:
                raise NotFoundError(f"Folder not found: {folder_id}")
            vis = await self._tree.visibility(session, owner_id)
            if vis.hides(folder):
                logger.debug("Folder %s is hidden by the trash; listing is empty", folder_id)
                return []
        return await self._repository.list_by_parent(
            session, owner_id, folder_id, trashed=False
        )

    async def _recent(
        self, session: AsyncSession, owner_id: str, search: str | None
    ) -> list[Node]:
        visible = await self._visible(session, owner_id)
        nodes = [n for n in visible if matches_search(n, search)]
        nodes.sort(
            key=lambda n: (as_utc(n.updated_at) or _EPOCH, n.id),
            reverse=True,
        )
        return nodes[: self.recent_limit]

    async def _shared(
        self,
        session: AsyncSession,
        principal_id: str,
        folder_id: str | None,
        search: str | None,
        key: SortKey | None,
        direction: SortOrder,
    ) -> list[tuple[Node, SharePermission | None]]:
        if folder_id is not None:
            items = await self._sharing.list_shared_folder(session, principal_id, folder_id)
        else:
            items = await self._sharing.list_shared_with_me(session, principal_id)

        visibility: dict[str, TreeVisibility] = {}
        kept: list[tuple[Node, SharePermission]] = []
        for node, permission in items:
            if node.is_trashed or not matches_search(node, search):
                continue
            # A browsed folder's children are hidden through their parent
            # when the folder sits under a trashed ancestor.
            if node.owner_id not in visibility:
                visibility[node.owner_id] = await self._tree.visibility(
                    session, node.owner_id
                )
            if visibility[node.owner_id].hides(node):
                continue
            kept.append((node, permission))

        permissions = {id(node): permission for node, permission in kept}
        ordered = sort_nodes([n for n, _ in kept], key or SortKey.NAME, direction)
        return [(n, permissions[id(n)]) for n in ordered]
