"""SharingService — grant CRUD and shared-with-me resolution.

Stateless service that receives the grant model and the node repository
at construction and a session at call time.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlmodel import select

from drivetree.models.nodes import NodeKind

from .dialect import upsert_row
from .exceptions import (
    GranteeNotFoundError,
    GrantNotFoundError,
    NotFoundError,
    NotOwnerError,
    ValidationError,
)
from .permissions import SharePermission, parse_permission
from .repository import as_utc, store_errors
from .types import GrantInfo

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from drivetree.models.nodes import Node
    from drivetree.models.shares import ShareGrantBase

    from .repository import NodeRepository

    PrincipalResolver = Callable[[str], Awaitable[str | None]]

logger = logging.getLogger(__name__)


class SharingService:
    """Manages per-node grants between principals.

    Constructor receives the concrete grant model so callers can use
    custom SQLModel subclasses with different table names.
    *resolve_principal* maps an identifier such as an email address to a
    principal id (``None`` when unknown); without it identifiers are
    taken to be principal ids already.
    """

    def __init__(
        self,
        share_model: type[ShareGrantBase],
        repository: NodeRepository,
        *,
        resolve_principal: PrincipalResolver | None = None,
        dialect: str = "sqlite",
        schema: str | None = None,
    ) -> None:
        self._share_model = share_model
        self._repository = repository
        self._resolve_principal = resolve_principal
        self.dialect = dialect
        self.schema = schema

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def resolve_grantee(self, identifier: str) -> str:
        """Turn a grantee identifier into a principal id."""
        identifier = (identifier or "").strip()
        if not identifier:
            raise ValidationError("Grantee identifier must not be empty")
        if self._resolve_principal is None:
            return identifier
        principal_id = await self._resolve_principal(identifier)
        if not principal_id:
            raise GranteeNotFoundError(f"No user found for {identifier!r}")
        return principal_id

    async def _owned_node(
        self, session: AsyncSession, node_id: str, caller_id: str
    ) -> Node:
        node = await self._repository.find(session, node_id, caller_id)
        if node is not None:
            return node
        # A grantee already knows the node exists; anyone else sees NotFound.
        if await self.get_grant(session, node_id, caller_id) is not None:
            raise NotOwnerError(f"Only the owner can manage sharing on {node_id}")
        raise NotFoundError(f"Item not found: {node_id}")

    async def get_grant(
        self,
        session: AsyncSession,
        node_id: str,
        grantee_id: str,
        *,
        refresh: bool = False,
    ) -> ShareGrantBase | None:
        """Return the grant for ``(node_id, grantee_id)`` or None."""
        model = self._share_model
        stmt = select(model).where(
            model.node_id == node_id,
            model.grantee_id == grantee_id,
        )
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        with store_errors("get_grant"):
            result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def permission_for(
        self, session: AsyncSession, node_id: str, principal_id: str
    ) -> SharePermission | None:
        """Return *principal_id*'s permission on *node_id*, if granted."""
        grant = await self.get_grant(session, node_id, principal_id)
        if grant is None:
            return None
        return SharePermission(grant.permission)

    # ------------------------------------------------------------------
    # Grant CRUD
    # ------------------------------------------------------------------

    async def share(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
        grantee: str,
        permission: str | SharePermission = SharePermission.VIEW,
    ) -> ShareGrantBase:
        """Create or overwrite the grant for *grantee* on *node_id*.

        Flushes but does not commit.  At most one grant exists per
        ``(node_id, grantee_id)``; re-sharing replaces its permission.
        """
        perm = parse_permission(permission)
        node = await self._owned_node(session, node_id, owner_id)
        grantee_id = await self.resolve_grantee(grantee)
        if grantee_id == owner_id:
            raise ValidationError("Cannot share an item with its owner")

        now = datetime.now(UTC)
        with store_errors("share"):
            await upsert_row(
                session,
                self.dialect,
                self._share_model,
                values={
                    "id": str(uuid.uuid4()),
                    "node_id": node.id,
                    "node_kind": node.kind.value,
                    "owner_id": owner_id,
                    "grantee_id": grantee_id,
                    "permission": perm.value,
                    "created_at": now,
                    "updated_at": now,
                },
                conflict_keys=["node_id", "grantee_id"],
                update_keys=["permission", "updated_at"],
                schema=self.schema,
            )
        grant = await self.get_grant(session, node.id, grantee_id, refresh=True)
        assert grant is not None
        logger.info(
            "Shared %s %s with %s (%s)", node.kind.value, node.id, grantee_id, perm.value
        )
        return grant

    async def unshare(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
        grantee_id: str,
    ) -> bool:
        """Remove the grant if present. Returns True if one was removed."""
        await self._owned_node(session, node_id, owner_id)
        grant = await self.get_grant(session, node_id, grantee_id)
        if grant is None:
            logger.debug("No grant on %s for %s; nothing to remove", node_id, grantee_id)
            return False
        with store_errors("unshare"):
            await session.delete(grant)
            await session.flush()
        logger.info("Removed grant on %s for %s", node_id, grantee_id)
        return True

    async def update_permission(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
        grantee_id: str,
        permission: str | SharePermission,
    ) -> ShareGrantBase:
        """Change the permission of an existing grant."""
        perm = parse_permission(permission)
        await self._owned_node(session, node_id, owner_id)
        grant = await self.get_grant(session, node_id, grantee_id)
        if grant is None:
            raise GrantNotFoundError(f"No grant on {node_id} for {grantee_id}")
        grant.permission = perm.value
        grant.updated_at = datetime.now(UTC)
        with store_errors("update_permission"):
            await session.flush()
        return grant

    async def list_grants(
        self,
        session: AsyncSession,
        node_id: str,
        owner_id: str,
    ) -> list[ShareGrantBase]:
        """List every grant on a node the caller owns."""
        await self._owned_node(session, node_id, owner_id)
        model = self._share_model
        with store_errors("list_grants"):
            result = await session.execute(
                select(model).where(
                    model.node_id == node_id,
                    model.owner_id == owner_id,
                )
            )
        grants = list(result.scalars().all())
        grants.sort(key=lambda g: (as_utc(g.created_at), g.grantee_id))
        return grants

    async def list_shared_with(
        self,
        session: AsyncSession,
        grantee_id: str,
    ) -> list[ShareGrantBase]:
        """List all grants held by *grantee_id*."""
        model = self._share_model
        with store_errors("list_shared_with"):
            result = await session.execute(
                select(model).where(model.grantee_id == grantee_id)
            )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Shared views
    # ------------------------------------------------------------------

    async def list_shared_with_me(
        self,
        session: AsyncSession,
        principal_id: str,
    ) -> list[tuple[Node, SharePermission]]:
        """Resolve every grant held by *principal_id* to its node.

        Grants whose node has been permanently deleted are skipped; they
        are not cleaned up here.
        """
        items: list[tuple[Node, SharePermission]] = []
        for grant in await self.list_shared_with(session, principal_id):
            node = await self._repository.find(session, grant.node_id, grant.owner_id)
            if node is None:
                logger.debug("Skipping dangling grant %s on %s", grant.id, grant.node_id)
                continue
            items.append((node, SharePermission(grant.permission)))
        return items

    async def list_shared_folder(
        self,
        session: AsyncSession,
        principal_id: str,
        folder_id: str,
    ) -> list[tuple[Node, SharePermission]]:
        """List the immediate, non-trashed children of a folder shared with *principal_id*.

        Children are resolved under the owner's tree and inherit the
        folder grant's permission for display only; the grant does not
        extend to the children themselves.
        """
        grant = await self.get_grant(session, folder_id, principal_id)
        if grant is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        folder = await self._repository.find(
            session, folder_id, grant.owner_id, NodeKind.FOLDER
        )
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        if folder.is_trashed:
            return []
        permission = SharePermission(grant.permission)
        children = await self._repository.list_by_parent(
            session, grant.owner_id, folder_id, trashed=False
        )
        return [(child, permission) for child in children]

    @staticmethod
    def grant_to_info(grant: ShareGrantBase) -> GrantInfo:
        """Convert a grant record to ``GrantInfo``."""
        return GrantInfo(
            node_id=grant.node_id,
            node_kind=grant.node_kind,
            owner_id=grant.owner_id,
            grantee_id=grant.grantee_id,
            permission=grant.permission,
            created_at=as_utc(grant.created_at),
            updated_at=as_utc(grant.updated_at),
        )
