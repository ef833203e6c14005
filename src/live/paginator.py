import asyncio
import logging
import math
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from src.config import settings
from src.core.feed import ChangeEvent, ChangeKind, Collection
from src.live import query as q
from src.live.query import Cursor, TenantQuery
from src.live.store import RecordStore
from src.shared.exceptions import PaginationSequenceError

logger = logging.getLogger(__name__)


class Page(BaseModel):
    parent_id: UUID
    page_number: int
    page_size: int
    total: int
    has_more: bool
    records: List[Any]

    def numbered(self) -> List[Tuple[int, Any]]:
        """Presentational serial numbers; positional, never stored."""
        offset = (self.page_number - 1) * self.page_size
        return [(offset + index + 1, record) for index, record in enumerate(self.records)]


class PaginationSession:
    """Cursor history for one parent: ``cursors[i]`` marks the end of page i + 1."""

    def __init__(self, parent_id: UUID):
        self.parent_id = parent_id
        self.cursors: List[Cursor] = []
        self.total: Optional[int] = None
        self.lock = asyncio.Lock()

    def record(self, page_number: int, cursor: Cursor):
        index = page_number - 1
        if index == len(self.cursors):
            self.cursors.append(cursor)
        elif self.cursors[index] != cursor:
            # Page boundary moved; later cursors were derived from the old one
            self.cursors[index] = cursor
            del self.cursors[index + 1:]


class CursorPaginator:
    """Forward/backward paging over a nested collection, one session per parent.

    Bound to a single tenant, page size and ordering: cursors are only valid
    for the exact query they came from, so sessions are never shared across
    paginators.
    """

    def __init__(
        self,
        store: RecordStore,
        tenant_id: UUID,
        page_size: int = settings.PROJECTS_PAGE_SIZE,
        collection: Collection = Collection.PROJECTS,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.tenant_id = q.require_tenant_id(tenant_id)
        self.page_size = page_size
        self.collection = collection
        self.sessions: Dict[UUID, PaginationSession] = {}
        self._remove_listener = None

    def attach(self):
        """Start invalidating cursor history from the store's change feed."""
        if self._remove_listener is None:
            self._remove_listener = self.store.feed.add_listener(self.handle_change)

    def detach(self):
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def _query(self, parent_id: UUID) -> TenantQuery:
        spec = q.CollectionSpec(collection=self.collection, parent_id=parent_id)
        return q.scoped(spec, self.tenant_id)

    def _session(self, parent_id: UUID) -> PaginationSession:
        session = self.sessions.get(parent_id)
        if session is None:
            session = self.sessions[parent_id] = PaginationSession(parent_id)
        return session

    async def get_page(self, parent_id: UUID, page_number: int) -> Page:
        if page_number < 1:
            raise ValueError("page_number starts at 1")

        while True:
            session = self._session(parent_id)
            async with session.lock:
                page = await self._read(session, page_number)
            if page is not None:
                return page
            # History was discarded under us; only page 1 can start a new one
            if page_number > 1:
                raise PaginationSequenceError(parent_id, page_number)
            logger.debug(f"Restarting page 1 of {parent_id} on fresh cursor history")

    def _is_current(self, session: PaginationSession) -> bool:
        return self.sessions.get(session.parent_id) is session

    async def _read(self, session: PaginationSession, page_number: int) -> Optional[Page]:
        """Read one page under ``session.lock``. Returns None if the session went stale."""
        parent_id = session.parent_id
        if not self._is_current(session):
            return None
        base = self._query(parent_id)

        if page_number == 1:
            cursor = None
        elif len(session.cursors) >= page_number - 1:
            cursor = session.cursors[page_number - 2]
        else:
            raise PaginationSequenceError(parent_id, page_number)

        if session.total is None:
            session.total = await self.store.count(base)

        records = await self.store.fetch(base.page(self.page_size, cursor))

        if not self._is_current(session):
            logger.debug(f"Discarded page {page_number} of {parent_id}: history invalidated")
            return None
        if records:
            session.record(page_number, Cursor.after(records[-1]))

        total_pages = math.ceil(session.total / self.page_size)
        return Page(
            parent_id=parent_id,
            page_number=page_number,
            page_size=self.page_size,
            total=session.total,
            has_more=page_number < total_pages,
            records=records,
        )

    def invalidate(self, parent_id: UUID):
        if self.sessions.pop(parent_id, None) is not None:
            logger.info(f"Cursor history for {parent_id} invalidated; paging restarts at page 1")

    def invalidate_all(self):
        self.sessions.clear()

    def handle_change(self, event: ChangeEvent):
        """Feed listener: creates/deletes shift every cursor after them."""
        if event.tenant_id != self.tenant_id:
            return
        if event.collection == self.collection and event.structural and event.parent_id is not None:
            self.invalidate(event.parent_id)
        elif event.collection == Collection.CLIENTS and event.kind == ChangeKind.DELETED:
            # Cascade: a deleted client takes its nested records with it
            self.invalidate(event.record_id)


class PaginatorRegistry:
    """Process-wide paginators, one per tenant, each listening to its store's feed."""

    def __init__(self, page_size: int = settings.PROJECTS_PAGE_SIZE):
        self.page_size = page_size
        self.paginators: Dict[UUID, CursorPaginator] = {}

    def get(self, store: RecordStore, tenant_id: UUID) -> CursorPaginator:
        tenant_id = q.require_tenant_id(tenant_id)
        paginator = self.paginators.get(tenant_id)
        if paginator is None or paginator.store is not store:
            if paginator is not None:
                paginator.detach()
            paginator = CursorPaginator(store, tenant_id, page_size=self.page_size)
            paginator.attach()
            self.paginators[tenant_id] = paginator
        return paginator

    def clear(self):
        for paginator in self.paginators.values():
            paginator.detach()
        self.paginators.clear()


paginators = PaginatorRegistry()
