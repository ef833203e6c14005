import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Callable, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)


class Collection(str, Enum):
    CLIENTS = "clients"
    PROJECTS = "projects"
    ORDERS = "orders"
    EMPLOYEES = "employees"
    EXPENSES = "expenses"


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class ChangeEvent(BaseModel):
    collection: Collection
    kind: ChangeKind
    tenant_id: UUID
    record_id: UUID
    # Owning client for nested project records
    parent_id: Optional[UUID] = None

    model_config = ConfigDict(frozen=True)

    @property
    def structural(self) -> bool:
        return self.kind in (ChangeKind.CREATED, ChangeKind.DELETED)


ChangeListener = Callable[[ChangeEvent], None]


class ChangeFeed:
    """In-process fan-out of record changes, one room per collection."""

    def __init__(self):
        # Map collection -> queues of live listeners
        self.rooms: Dict[Collection, List[asyncio.Queue]] = {}
        self.listeners: List[ChangeListener] = []

    @asynccontextmanager
    async def listen(self, collection: Collection) -> AsyncIterator[asyncio.Queue]:
        queue: asyncio.Queue = asyncio.Queue()
        self.rooms.setdefault(collection, []).append(queue)
        logger.debug(f"Feed listener joined {collection.value}. Total in room: {len(self.rooms[collection])}")
        try:
            yield queue
        finally:
            room = self.rooms.get(collection, [])
            if queue in room:
                room.remove(queue)
                if not room:
                    del self.rooms[collection]
            logger.debug(f"Feed listener left {collection.value}")

    def add_listener(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a synchronous callback; returns a function that removes it."""
        self.listeners.append(listener)

        def remove():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return remove

    def publish(self, event: ChangeEvent):
        # Synchronous listeners first so cursor invalidation happens before any re-query.
        for listener in list(self.listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Change listener failed for {event.collection.value}/{event.record_id}")
        for queue in self.rooms.get(event.collection, []):
            queue.put_nowait(event)


feed = ChangeFeed()
