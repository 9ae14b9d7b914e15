"""Main Drive class — sync wrappers around DriveAsync."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any

from drivetree._drive_async import DriveAsync

if TYPE_CHECKING:
    from drivetree.config import DriveConfig
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

logger = logging.getLogger(__name__)


class Drive:
    """Synchronous drive backed by a private event loop in a background thread.

    The engine, the sessions and every service live on that loop; each
    public method submits the matching ``DriveAsync`` coroutine and blocks
    for its result, so a ``Drive`` works from plain scripts, notebooks or
    a thread inside an async application.

    Usage::

        with Drive("sqlite+aiosqlite:///drive.db") as drive:
            docs = drive.create_folder("Docs", user_id="alice")
            drive.upload_file("notes.txt", user_id="alice", parent_id=docs.node.id)
            print(drive.list_items(user_id="alice", folder_id=docs.node.id).entries)
    """

    def __init__(
        self,
        url: str = "sqlite+aiosqlite://",
        *,
        config: DriveConfig | None = None,
        **kwargs: Any,
    ) -> None:
        self._closed = False

        # Private event loop in a daemon thread
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        try:
            self._async: DriveAsync = self._run(self._async_init(url, config, kwargs))
        except BaseException:
            self._stop_loop()
            raise

    async def _async_init(
        self, url: str, config: DriveConfig | None, kwargs: dict[str, Any]
    ) -> DriveAsync:
        from sqlalchemy.ext.asyncio import create_async_engine

        engine = create_async_engine(url, echo=False)
        drive = DriveAsync(engine, config=config, **kwargs)
        await drive.open()
        logger.debug("Drive opened on %s", engine.url.render_as_string(hide_password=True))
        return drive

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    def _stop_loop(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)

    @property
    def async_drive(self) -> DriveAsync:
        """The underlying async facade (bound to the private loop)."""
        return self._async

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Dispose the engine, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._stop_loop()

    def __enter__(self) -> Drive:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_items(
        self,
        *,
        user_id: str,
        view: str = "my-drive",
        folder_id: str | None = None,
        search: str | None = None,
        sort: str | None = None,
        order: str = "asc",
    ) -> ListResult:
        return self._run(
            self._async.list_items(
                user_id=user_id,
                view=view,
                folder_id=folder_id,
                search=search,
                sort=sort,
                order=order,
            )
        )

    def list_shared_with_me(self, *, user_id: str) -> ListResult:
        return self._run(self._async.list_shared_with_me(user_id=user_id))

    def get_item(self, node_id: str, *, user_id: str) -> NodeResult:
        return self._run(self._async.get_item(node_id, user_id=user_id))

    def breadcrumbs(self, node_id: str, *, user_id: str) -> PathResult:
        return self._run(self._async.breadcrumbs(node_id, user_id=user_id))

    def move_targets(self, *, user_id: str, node_id: str | None = None) -> ListResult:
        return self._run(self._async.move_targets(user_id=user_id, node_id=node_id))

    def list_activity(
        self, *, user_id: str, node_id: str | None = None, limit: int = 50
    ) -> ActivityResult:
        return self._run(
            self._async.list_activity(user_id=user_id, node_id=node_id, limit=limit)
        )

    def storage_usage(self, *, user_id: str) -> StorageUsage:
        return self._run(self._async.storage_usage(user_id=user_id))

    # ------------------------------------------------------------------
    # Item mutations
    # ------------------------------------------------------------------

    def create_folder(
        self, name: str, *, user_id: str, parent_id: str | None = None
    ) -> NodeResult:
        return self._run(
            self._async.create_folder(name, user_id=user_id, parent_id=parent_id)
        )

    def upload_file(
        self,
        name: str,
        *,
        user_id: str,
        parent_id: str | None = None,
        mime_type: str | None = None,
        size_bytes: int = 0,
        storage_ref: str | None = None,
    ) -> NodeResult:
        return self._run(
            self._async.upload_file(
                name,
                user_id=user_id,
                parent_id=parent_id,
                mime_type=mime_type,
                size_bytes=size_bytes,
                storage_ref=storage_ref,
            )
        )

    def rename(self, node_id: str, new_name: str, *, user_id: str) -> NodeResult:
        return self._run(self._async.rename(node_id, new_name, user_id=user_id))

    def move(self, node_id: str, destination_id: str | None, *, user_id: str) -> NodeResult:
        return self._run(self._async.move(node_id, destination_id, user_id=user_id))

    def toggle_star(self, node_id: str, *, user_id: str) -> NodeResult:
        return self._run(self._async.toggle_star(node_id, user_id=user_id))

    def trash(self, node_id: str, *, user_id: str) -> NodeResult:
        return self._run(self._async.trash(node_id, user_id=user_id))

    def restore(self, node_id: str, *, user_id: str) -> NodeResult:
        return self._run(self._async.restore(node_id, user_id=user_id))

    def permanently_delete(self, node_id: str, *, user_id: str) -> DeleteResult:
        return self._run(self._async.permanently_delete(node_id, user_id=user_id))

    def empty_trash(self, *, user_id: str) -> DeleteResult:
        return self._run(self._async.empty_trash(user_id=user_id))

    def bulk_star(
        self, node_ids: list[str], *, user_id: str, starred: bool = True
    ) -> BulkResult:
        return self._run(
            self._async.bulk_star(node_ids, user_id=user_id, starred=starred)
        )

    def bulk_trash(self, node_ids: list[str], *, user_id: str) -> BulkResult:
        return self._run(self._async.bulk_trash(node_ids, user_id=user_id))

    def bulk_move(
        self, node_ids: list[str], destination_id: str | None, *, user_id: str
    ) -> BulkResult:
        return self._run(
            self._async.bulk_move(node_ids, destination_id, user_id=user_id)
        )

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def share(
        self, node_id: str, grantee: str, permission: str = "view", *, user_id: str
    ) -> ShareResult:
        return self._run(
            self._async.share(node_id, grantee, permission, user_id=user_id)
        )

    def unshare(self, node_id: str, grantee_id: str, *, user_id: str) -> ShareResult:
        return self._run(self._async.unshare(node_id, grantee_id, user_id=user_id))

    def update_permission(
        self, node_id: str, grantee_id: str, permission: str, *, user_id: str
    ) -> ShareResult:
        return self._run(
            self._async.update_permission(
                node_id, grantee_id, permission, user_id=user_id
            )
        )

    def list_grants(self, node_id: str, *, user_id: str) -> ListSharesResult:
        return self._run(self._async.list_grants(node_id, user_id=user_id))
