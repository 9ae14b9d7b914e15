"""DriveAsync — primary async facade over the item services."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from drivetree.config import DriveConfig
from drivetree.drive.activity import ActivityService
from drivetree.drive.dialect import get_dialect
from drivetree.drive.exceptions import DriveError, NotFoundError, StoreError
from drivetree.drive.lifecycle import LifecycleService
from drivetree.drive.repository import NodeRepository
from drivetree.drive.sharing import SharingService
from drivetree.drive.tree import TreeService
from drivetree.drive.types import (
    ActivityResult,
    BulkResult,
    DeleteResult,
    ListResult,
    ListSharesResult,
    NodeResult,
    PathResult,
    ShareResult,
    StorageUsage,
)
from drivetree.drive.views import DriveView, ViewProjector, parse_view
from drivetree.events import EventBus, EventType, ItemEvent
from drivetree.models.activities import Activity
from drivetree.models.nodes import File, Folder
from drivetree.models.shares import ShareGrant

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from drivetree.drive.types import NodeInfo
    from drivetree.models.activities import ActivityBase
    from drivetree.models.nodes import FileBase, FolderBase, Node
    from drivetree.models.shares import ShareGrantBase

logger = logging.getLogger(__name__)


class DriveAsync:
    """Async facade wiring repository, tree, lifecycle, sharing, views and events.

    Each operation runs in its own session: committed on success, rolled
    back on any error.  Every operation takes the acting principal as the
    keyword-only ``user_id``; nothing about the caller is kept on the
    instance.  Failures come back as result objects carrying a stable
    ``error_code``.

    Usage::

        engine = create_async_engine("sqlite+aiosqlite:///drive.db")
        async with DriveAsync(engine) as drive:
            docs = await drive.create_folder("Docs", user_id="alice")
            await drive.share(docs.node.id, "bob@example.com", "view", user_id="alice")
    """

    def __init__(
        self,
        engine: AsyncEngine | None = None,
        *,
        session_factory: Callable[..., AsyncSession] | None = None,
        config: DriveConfig | None = None,
        folder_model: type[FolderBase] | None = None,
        file_model: type[FileBase] | None = None,
        share_model: type[ShareGrantBase] | None = None,
        activity_model: type[ActivityBase] | None = None,
        release_blob: Callable[[str], Awaitable[None]] | None = None,
        resolve_principal: Callable[[str], Awaitable[str | None]] | None = None,
    ) -> None:
        if engine is not None and session_factory is not None:
            raise ValueError("Provide engine or session_factory, not both")
        if engine is None and session_factory is None:
            raise ValueError("Provide engine or session_factory")

        self.config = config or DriveConfig()
        self._engine = engine
        self._session_factory: Callable[..., AsyncSession] = session_factory or (
            async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        )
        if self.config.dialect is not None:
            self.dialect = self.config.dialect
        elif engine is not None:
            self.dialect = get_dialect(engine)
        else:
            self.dialect = "sqlite"

        self._models: list[type[SQLModel]] = [
            folder_model or Folder,
            file_model or File,
            share_model or ShareGrant,
            activity_model or Activity,
        ]

        # Composed services
        self.repository = NodeRepository(folder_model or Folder, file_model or File)
        self.tree = TreeService(self.repository)
        self.sharing = SharingService(
            share_model or ShareGrant,
            self.repository,
            resolve_principal=resolve_principal,
            dialect=self.dialect,
            schema=self.config.schema,
        )
        self.lifecycle = LifecycleService(
            self.repository,
            self.tree,
            self.sharing,
            release_blob=release_blob,
            allow_grantee_edit=self.config.allow_grantee_edit,
            max_name_length=self.config.max_name_length,
        )
        self.views = ViewProjector(
            self.repository,
            self.tree,
            self.sharing,
            recent_limit=self.config.recent_limit,
        )
        self.activity = ActivityService(activity_model or Activity)

        # SQLite has a single writer; concurrent bulk writers only contend.
        self._bulk_concurrency = 1 if self.dialect == "sqlite" else self.config.bulk_concurrency

        self._event_bus = EventBus()
        if self.config.record_activity:
            self._event_bus.subscribe(self._record_activity)
        self._closed = False

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the drive tables when an engine was supplied."""
        if self._engine is None:
            return
        tables = [m.__table__ for m in self._models]  # type: ignore[attr-defined]
        async with self._engine.begin() as conn:
            await conn.run_sync(
                lambda sync_conn: SQLModel.metadata.create_all(sync_conn, tables=tables)
            )

    async def close(self) -> None:
        """Dispose the engine (if any) and drop registered handlers."""
        if self._closed:
            return
        self._closed = True
        self._event_bus.clear()
        if self._engine is not None:
            await self._engine.dispose()

    async def __aenter__(self) -> DriveAsync:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session that commits on success and rolls back on error."""
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.warning("Transaction failed", exc_info=True)
            raise StoreError(f"Transaction failed: {e}") from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    @staticmethod
    def _failure(result_cls: type, error: DriveError, **extra: Any) -> Any:
        return result_cls(
            success=False,
            message=str(error),
            error_code=error.code,
            retryable=error.retryable,
            **extra,
        )

    async def _emit(
        self,
        event_type: EventType,
        node_id: str,
        owner_id: str,
        user_id: str,
        detail: str | None = None,
    ) -> None:
        await self._event_bus.emit(
            ItemEvent(
                event_type=event_type,
                node_id=node_id,
                owner_id=owner_id,
                user_id=user_id,
                detail=detail,
            )
        )

    async def _record_activity(self, event: ItemEvent) -> None:
        async with self._session() as sess:
            await self.activity.record(sess, event)

    async def _mutate(
        self,
        event_type: EventType,
        user_id: str,
        op: Callable[[AsyncSession], Awaitable[Node]],
        describe: Callable[[NodeInfo], str],
        detail: Callable[[NodeInfo], str | None] | None = None,
    ) -> NodeResult:
        """Run a single-node mutation in its own session and emit its event."""
        try:
            async with self._session() as sess:
                node = await op(sess)
                info = self.repository.node_to_info(node)
        except DriveError as e:
            logger.debug("%s rejected: %s", event_type.value, e)
            return self._failure(NodeResult, e, reason=getattr(e, "reason", None))

        await self._emit(
            event_type,
            info.id,
            info.owner_id,
            user_id,
            detail(info) if detail else None,
        )
        return NodeResult(success=True, message=describe(info), node=info)

    async def _bulk(
        self,
        node_ids: list[str],
        op: Callable[[str], Awaitable[NodeResult]],
        verb: str,
    ) -> BulkResult:
        """Run *op* per item concurrently; failures do not stop the others."""
        semaphore = asyncio.Semaphore(self._bulk_concurrency)

        async def run(node_id: str) -> tuple[str, NodeResult]:
            async with semaphore:
                return node_id, await op(node_id)

        unique_ids = list(dict.fromkeys(node_ids))
        pairs = await asyncio.gather(*(run(node_id) for node_id in unique_ids))
        result = BulkResult(success=True, message="", results=dict(pairs))
        result.success = not result.failed
        result.message = f"{verb} {len(result.succeeded)} of {len(unique_ids)} item(s)"
        if result.partial:
            logger.info("Partial bulk operation: %s", result.message)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_items(
        self,
        *,
        user_id: str,
        view: str | DriveView = DriveView.MY_DRIVE,
        folder_id: str | None = None,
        search: str | None = None,
        sort: str | None = None,
        order: str = "asc",
    ) -> ListResult:
        """List a view (my-drive, recent, starred, trash, shared) for *user_id*."""
        try:
            view = parse_view(view)
            async with self._session() as sess:
                pairs = await self.views.project(
                    sess, user_id, view, folder_id, search, sort, order
                )
                entries = [
                    self.repository.node_to_info(
                        node, permission.value if permission else None
                    )
                    for node, permission in pairs
                ]
        except DriveError as e:
            return self._failure(ListResult, e, folder_id=folder_id)
        return ListResult(
            success=True,
            message=f"Found {len(entries)} item(s)",
            entries=entries,
            view=view.value,
            folder_id=folder_id,
        )

    async def list_shared_with_me(self, *, user_id: str) -> ListResult:
        """Items other principals shared with *user_id*, with the granted permission."""
        return await self.list_items(user_id=user_id, view=DriveView.SHARED)

    async def get_item(self, node_id: str, *, user_id: str) -> NodeResult:
        """Look up one node owned by, or directly shared with, *user_id*."""
        try:
            async with self._session() as sess:
                node = await self.repository.find(sess, node_id, user_id)
                permission: str | None = None
                if node is None:
                    granted = await self.sharing.permission_for(sess, node_id, user_id)
                    if granted is not None:
                        node = await self.repository.find_unscoped(sess, node_id)
                        permission = granted.value
                if node is None:
                    raise NotFoundError(f"Item not found: {node_id}")
                info = self.repository.node_to_info(node, permission)
        except DriveError as e:
            return self._failure(NodeResult, e)
        return NodeResult(success=True, message=f"Found {info.name!r}", node=info)

    async def breadcrumbs(self, node_id: str, *, user_id: str) -> PathResult:
        """Root-first folder chain of *node_id*."""
        try:
            async with self._session() as sess:
                chain = await self.tree.path_to(sess, node_id, user_id)
                entries = [self.repository.node_to_info(f) for f in chain]
        except DriveError as e:
            return self._failure(PathResult, e)
        return PathResult(
            success=True, message=f"Path has {len(entries)} folder(s)", entries=entries
        )

    async def move_targets(
        self, *, user_id: str, node_id: str | None = None
    ) -> ListResult:
        """Folders *node_id* could be moved into (its own subtree excluded)."""
        try:
            async with self._session() as sess:
                folders = await self.tree.move_targets(sess, user_id, node_id)
                entries = [self.repository.node_to_info(f) for f in folders]
        except DriveError as e:
            return self._failure(ListResult, e, view="move-targets")
        return ListResult(
            success=True,
            message=f"Found {len(entries)} folder(s)",
            entries=entries,
            view="move-targets",
        )

    async def list_activity(
        self,
        *,
        user_id: str,
        node_id: str | None = None,
        limit: int = 50,
    ) -> ActivityResult:
        try:
            async with self._session() as sess:
                rows = await self.activity.list_activity(
                    sess, user_id, node_id=node_id, limit=limit
                )
                entries = [ActivityService.activity_to_info(a) for a in rows]
        except DriveError as e:
            return self._failure(ActivityResult, e)
        return ActivityResult(
            success=True, message=f"Found {len(entries)} event(s)", entries=entries
        )

    async def storage_usage(self, *, user_id: str) -> StorageUsage:
        """Sum the sizes of *user_id*'s non-trashed files for display."""
        capacity = self.config.storage_capacity_bytes
        try:
            async with self._session() as sess:
                used, count = await self.repository.storage_used(sess, user_id)
        except DriveError as e:
            return self._failure(StorageUsage, e, capacity_bytes=capacity)
        return StorageUsage(
            success=True,
            message=f"{used} of {capacity} bytes used",
            used_bytes=used,
            capacity_bytes=capacity,
            file_count=count,
        )

    # ------------------------------------------------------------------
    # Item mutations
    # ------------------------------------------------------------------

    async def create_folder(
        self, name: str, *, user_id: str, parent_id: str | None = None
    ) -> NodeResult:
        return await self._mutate(
            EventType.ITEM_CREATED,
            user_id,
            lambda s: self.lifecycle.create_folder(s, user_id, name, parent_id),
            lambda info: f"Created folder {info.name!r}",
            lambda info: info.name,
        )

    async def upload_file(
        self,
        name: str,
        *,
        user_id: str,
        parent_id: str | None = None,
        mime_type: str | None = None,
        size_bytes: int = 0,
        storage_ref: str | None = None,
    ) -> NodeResult:
        """Record an uploaded file; the bytes already live in the blob store."""
        return await self._mutate(
            EventType.ITEM_CREATED,
            user_id,
            lambda s: self.lifecycle.create_file(
                s,
                user_id,
                name,
                parent_id,
                mime_type=mime_type,
                size_bytes=size_bytes,
                storage_ref=storage_ref,
            ),
            lambda info: f"Uploaded {info.name!r}",
            lambda info: info.name,
        )

    async def rename(self, node_id: str, new_name: str, *, user_id: str) -> NodeResult:
        return await self._mutate(
            EventType.ITEM_RENAMED,
            user_id,
            lambda s: self.lifecycle.rename(s, node_id, user_id, new_name),
            lambda info: f"Renamed to {info.name!r}",
            lambda info: info.name,
        )

    async def move(
        self, node_id: str, destination_id: str | None, *, user_id: str
    ) -> NodeResult:
        """Move a node under *destination_id* (``None`` = root)."""
        return await self._mutate(
            EventType.ITEM_MOVED,
            user_id,
            lambda s: self.lifecycle.move(s, node_id, user_id, destination_id),
            lambda info: f"Moved {info.name!r}",
            lambda info: info.parent_id or "root",
        )

    async def toggle_star(self, node_id: str, *, user_id: str) -> NodeResult:
        return await self._mutate(
            EventType.ITEM_STARRED,
            user_id,
            lambda s: self.lifecycle.toggle_star(s, node_id, user_id),
            lambda info: (
                f"Starred {info.name!r}" if info.is_starred else f"Unstarred {info.name!r}"
            ),
            lambda info: "starred" if info.is_starred else "unstarred",
        )

    async def trash(self, node_id: str, *, user_id: str) -> NodeResult:
        return await self._mutate(
            EventType.ITEM_TRASHED,
            user_id,
            lambda s: self.lifecycle.trash(s, node_id, user_id),
            lambda info: f"Moved {info.name!r} to trash",
        )

    async def restore(self, node_id: str, *, user_id: str) -> NodeResult:
        return await self._mutate(
            EventType.ITEM_RESTORED,
            user_id,
            lambda s: self.lifecycle.restore(s, node_id, user_id),
            lambda info: f"Restored {info.name!r}",
        )

    async def permanently_delete(self, node_id: str, *, user_id: str) -> DeleteResult:
        """Delete a trashed node for good; blob cleanup failures become warnings.

        Stored bytes are released only after the delete has committed.
        """
        try:
            async with self._session() as sess:
                node = await self.lifecycle.permanently_delete(sess, node_id, user_id)
                owner_id, name = node.owner_id, node.name
                refs = self.lifecycle.storage_refs([node])
        except DriveError as e:
            return self._failure(DeleteResult, e, node_id=node_id)

        warnings = await self.lifecycle.release_storage(refs)
        await self._emit(EventType.ITEM_DELETED, node_id, owner_id, user_id, name)
        return DeleteResult(
            success=True,
            message=f"Permanently deleted {name!r}",
            node_id=node_id,
            total_deleted=1,
            warnings=warnings,
        )

    async def empty_trash(self, *, user_id: str) -> DeleteResult:
        """Permanently delete everything in *user_id*'s trash."""
        try:
            async with self._session() as sess:
                nodes = await self.lifecycle.empty_trash(sess, user_id)
                deleted = [(n.id, n.name) for n in nodes]
                refs = self.lifecycle.storage_refs(nodes)
        except DriveError as e:
            return self._failure(DeleteResult, e)

        warnings = await self.lifecycle.release_storage(refs)
        for node_id, name in deleted:
            await self._emit(EventType.ITEM_DELETED, node_id, user_id, user_id, name)
        return DeleteResult(
            success=True,
            message=f"Permanently deleted {len(deleted)} item(s) from trash",
            total_deleted=len(deleted),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    async def bulk_star(
        self, node_ids: list[str], *, user_id: str, starred: bool = True
    ) -> BulkResult:
        """Set ``is_starred`` on each item independently."""
        return await self._bulk(
            node_ids,
            lambda node_id: self._mutate(
                EventType.ITEM_STARRED,
                user_id,
                lambda s: self.lifecycle.set_starred(s, node_id, user_id, starred),
                lambda info: f"Updated {info.name!r}",
                lambda info: "starred" if info.is_starred else "unstarred",
            ),
            "Starred" if starred else "Unstarred",
        )

    async def bulk_trash(self, node_ids: list[str], *, user_id: str) -> BulkResult:
        return await self._bulk(
            node_ids,
            lambda node_id: self.trash(node_id, user_id=user_id),
            "Trashed",
        )

    async def bulk_move(
        self,
        node_ids: list[str],
        destination_id: str | None,
        *,
        user_id: str,
    ) -> BulkResult:
        return await self._bulk(
            node_ids,
            lambda node_id: self.move(node_id, destination_id, user_id=user_id),
            "Moved",
        )

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    async def share(
        self,
        node_id: str,
        grantee: str,
        permission: str = "view",
        *,
        user_id: str,
    ) -> ShareResult:
        """Share a node with *grantee* (an identifier such as an email)."""
        try:
            async with self._session() as sess:
                grant = await self.sharing.share(sess, node_id, user_id, grantee, permission)
                info = SharingService.grant_to_info(grant)
        except DriveError as e:
            return self._failure(ShareResult, e)

        await self._emit(
            EventType.ITEM_SHARED,
            node_id,
            user_id,
            user_id,
            f"{info.grantee_id}:{info.permission}",
        )
        return ShareResult(
            success=True,
            message=f"Shared with {info.grantee_id} ({info.permission})",
            grant=info,
        )

    async def unshare(self, node_id: str, grantee_id: str, *, user_id: str) -> ShareResult:
        try:
            async with self._session() as sess:
                removed = await self.sharing.unshare(sess, node_id, user_id, grantee_id)
        except DriveError as e:
            return self._failure(ShareResult, e)

        if not removed:
            return ShareResult(
                success=True, message=f"No share found on {node_id} for {grantee_id}"
            )
        await self._emit(EventType.ITEM_UNSHARED, node_id, user_id, user_id, grantee_id)
        return ShareResult(
            success=True, message=f"Removed share on {node_id} for {grantee_id}"
        )

    async def update_permission(
        self,
        node_id: str,
        grantee_id: str,
        permission: str,
        *,
        user_id: str,
    ) -> ShareResult:
        try:
            async with self._session() as sess:
                grant = await self.sharing.update_permission(
                    sess, node_id, user_id, grantee_id, permission
                )
                info = SharingService.grant_to_info(grant)
        except DriveError as e:
            return self._failure(ShareResult, e)

        await self._emit(
            EventType.ITEM_SHARED,
            node_id,
            user_id,
            user_id,
            f"{info.grantee_id}:{info.permission}",
        )
        return ShareResult(
            success=True,
            message=f"Permission for {grantee_id} set to {info.permission}",
            grant=info,
        )

    async def list_grants(self, node_id: str, *, user_id: str) -> ListSharesResult:
        """List every grant on a node owned by *user_id*."""
        try:
            async with self._session() as sess:
                grants = await self.sharing.list_grants(sess, node_id, user_id)
                infos = [SharingService.grant_to_info(g) for g in grants]
        except DriveError as e:
            return self._failure(ListSharesResult, e)
        return ListSharesResult(
            success=True, message=f"Found {len(infos)} share(s)", grants=infos
        )
