import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import desc, func, select, tuple_
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from src.clients.models import Client, Project
from src.clients.schemas import ClientRecord, ProjectRecord
from src.core.feed import ChangeEvent, ChangeFeed, Collection, feed as default_feed
from src.database import session_scope
from src.employees.models import Employee
from src.employees.schemas import EmployeeRecord
from src.expenses.models import Expense
from src.expenses.schemas import ExpenseRecord
from src.live.query import TenantQuery
from src.orders.models import Order
from src.orders.schemas import OrderRecord
from src.shared.exceptions import TransientFetchError

logger = logging.getLogger(__name__)

RECORD_TYPES: Dict[Collection, Type[BaseModel]] = {
    Collection.CLIENTS: ClientRecord,
    Collection.PROJECTS: ProjectRecord,
    Collection.ORDERS: OrderRecord,
    Collection.EMPLOYEES: EmployeeRecord,
    Collection.EXPENSES: ExpenseRecord,
}


def affects(query: TenantQuery, event: ChangeEvent) -> bool:
    if event.collection != query.spec.collection or event.tenant_id != query.tenant_id:
        return False
    if query.spec.parent_id is not None:
        return event.parent_id == query.spec.parent_id
    return True


class RecordStore(ABC):
    """Read/subscribe interface over the tenant-unaware record store.

    Subscriptions never deliver diffs: every relevant change re-runs the query
    and yields the full current result set.
    """

    def __init__(self, feed: ChangeFeed):
        self.feed = feed

    @abstractmethod
    async def fetch(self, query: TenantQuery) -> List[Any]:
        ...

    @abstractmethod
    async def count(self, query: TenantQuery) -> int:
        ...

    @abstractmethod
    async def get_one(self, collection: Collection, record_id: UUID, parent_id: Optional[UUID] = None) -> Optional[Any]:
        """Point read by id. Not tenant-scoped; callers check ``tenant_id``."""
        ...

    async def subscribe(self, query: TenantQuery) -> AsyncIterator[List[Any]]:
        async with self.feed.listen(query.spec.collection) as events:
            yield await self.fetch(query)
            while True:
                event = await events.get()
                relevant = affects(query, event)
                # Coalesce a burst of changes into one re-query
                while not events.empty():
                    relevant = affects(query, events.get_nowait()) or relevant
                if relevant:
                    yield await self.fetch(query)


class SqlRecordStore(RecordStore):
    MODELS: Dict[Collection, Any] = {
        Collection.CLIENTS: Client,
        Collection.PROJECTS: Project,
        Collection.ORDERS: Order,
        Collection.EMPLOYEES: Employee,
        Collection.EXPENSES: Expense,
    }

    def __init__(self, feed: ChangeFeed = default_feed, session_factory: Callable = session_scope):
        super().__init__(feed)
        self.session_factory = session_factory

    def _where(self, model, query: TenantQuery) -> list:
        spec = query.spec
        clauses = [model.tenant_id == query.tenant_id]
        if spec.parent_id is not None:
            clauses.append(model.client_id == spec.parent_id)
        for field, value in spec.filters:
            clauses.append(getattr(model, field) == value)
        return clauses

    async def _run(self, label: str, work):
        try:
            async with self.session_factory() as session:
                return await work(session)
        except (DBAPIError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Store read failed ({label}): {type(e).__name__}: {e}")
            raise TransientFetchError(f"Failed to read {label}", cause=e) from e

    async def fetch(self, query: TenantQuery) -> List[Any]:
        spec = query.spec
        model = self.MODELS[spec.collection]
        record_type = RECORD_TYPES[spec.collection]
        order_col = getattr(model, spec.order_by)

        stmt = select(model).where(*self._where(model, query))
        if spec.start_after is not None:
            position = tuple_(order_col, model.id)
            marker = tuple_(spec.start_after.created_at, spec.start_after.id)
            stmt = stmt.where(position < marker if spec.descending else position > marker)
        if spec.descending:
            stmt = stmt.order_by(desc(order_col), desc(model.id))
        else:
            stmt = stmt.order_by(order_col, model.id)
        if spec.limit is not None:
            stmt = stmt.limit(spec.limit)

        async def work(session: AsyncSession):
            result = await session.execute(stmt)
            return [record_type.model_validate(row) for row in result.scalars().all()]

        return await self._run(spec.collection.value, work)

    async def count(self, query: TenantQuery) -> int:
        model = self.MODELS[query.spec.collection]
        stmt = select(func.count()).select_from(model).where(*self._where(model, query.unpaged()))

        async def work(session: AsyncSession):
            result = await session.execute(stmt)
            return result.scalar_one()

        return await self._run(f"{query.spec.collection.value} count", work)

    async def get_one(self, collection: Collection, record_id: UUID, parent_id: Optional[UUID] = None) -> Optional[Any]:
        model = self.MODELS[collection]

        async def work(session: AsyncSession):
            row = await session.get(model, record_id)
            if row is None:
                return None
            if parent_id is not None and row.client_id != parent_id:
                return None
            return RECORD_TYPES[collection].model_validate(row)

        return await self._run(f"{collection.value}/{record_id}", work)


store = SqlRecordStore()


def get_store() -> RecordStore:
    return store
