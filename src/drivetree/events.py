"""EventBus and event types for item mutations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Kinds of committed item mutations."""

    ITEM_CREATED = "item_created"
    ITEM_RENAMED = "item_renamed"
    ITEM_MOVED = "item_moved"
    ITEM_STARRED = "item_starred"
    ITEM_TRASHED = "item_trashed"
    ITEM_RESTORED = "item_restored"
    ITEM_DELETED = "item_deleted"
    ITEM_SHARED = "item_shared"
    ITEM_UNSHARED = "item_unshared"


@dataclass(frozen=True, slots=True)
class ItemEvent:
    """Immutable record of a committed mutation.

    Attributes:
        event_type: The kind of mutation that occurred.
        node_id: Id of the affected folder or file.
        owner_id: Owner of the node.
        user_id: Principal who performed the mutation.
        detail: Short free-form context (new name, destination, grantee).
    """

    event_type: EventType
    node_id: str
    owner_id: str
    user_id: str
    detail: str | None = None


class EventBus:
    """Fans committed item events out to subscribers.

    A subscriber given no event types receives every event.  Subscribers
    run one after another in subscription order; an exception is logged
    and the next subscriber still runs, so a failing subscriber costs an
    activity record, never the mutation that was already committed.
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[Callable[..., Any], frozenset[EventType]]] = []

    def subscribe(self, handler: Callable[..., Any], *event_types: EventType) -> None:
        """Deliver events of *event_types* (all types if none given) to *handler*."""
        self._subscribers.append((handler, frozenset(event_types or EventType)))

    def subscribers_for(self, event_type: EventType) -> list[Callable[..., Any]]:
        return [h for h, types in self._subscribers if event_type in types]

    async def emit(self, event: ItemEvent) -> None:
        """Await every subscriber of ``event.event_type`` with *event*."""
        for handler in self.subscribers_for(event.event_type):
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Subscriber %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.node_id,
                    exc_info=True,
                )

    def clear(self) -> None:
        """Drop every subscriber."""
        self._subscribers.clear()
