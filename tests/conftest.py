import asyncio
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.sql.expression import BooleanClauseList
from typing import Any, AsyncGenerator, Dict, Generator, List, Optional
from uuid import UUID, uuid4

from src.main import app
from src.clients.schemas import ClientRecord, ProjectRecord
from src.core.feed import ChangeEvent, ChangeFeed, ChangeKind, Collection, feed as default_feed
from src.database import get_db
from src.employees.schemas import EmployeeRecord
from src.expenses.schemas import ExpenseRecord
from src.live.paginator import paginators
from src.live.query import TenantQuery
from src.live.store import RecordStore, get_store
from src.orders.models import OrderStatus
from src.orders.schemas import OrderRecord
from src.shared.exceptions import TransientFetchError

BASE_TIME = datetime(2024, 1, 1, 9, 0, 0)

COLLECTIONS = {
    ClientRecord: Collection.CLIENTS,
    ProjectRecord: Collection.PROJECTS,
    EmployeeRecord: Collection.EMPLOYEES,
    OrderRecord: Collection.ORDERS,
    ExpenseRecord: Collection.EXPENSES,
}


class InMemoryStore(RecordStore):
    """Record store kept in dicts. Mirrors the SQL store's ordering and cursor rules."""

    def __init__(self):
        super().__init__(ChangeFeed())
        self.records: Dict[Collection, Dict[UUID, Any]] = {c: {} for c in Collection}
        self.reads: List[tuple] = []
        self.fetches = 0
        self.counts = 0
        # Number of upcoming reads that fail with TransientFetchError
        self.failures = 0
        # When set, point reads wait for it before answering
        self.read_gate: Optional[asyncio.Event] = None
        # When set, collection reads wait for it; `parked` counts the waiters
        self.fetch_gate: Optional[asyncio.Event] = None
        self.parked = 0

    def _fail_if_scheduled(self):
        if self.failures:
            self.failures -= 1
            raise TransientFetchError("Record store unavailable")

    def _matches(self, record: Any, query: TenantQuery) -> bool:
        spec = query.spec
        if record.tenant_id != query.tenant_id:
            return False
        if spec.parent_id is not None and record.client_id != spec.parent_id:
            return False
        return all(getattr(record, field) == value for field, value in spec.filters)

    async def fetch(self, query: TenantQuery) -> List[Any]:
        if self.fetch_gate is not None:
            self.parked += 1
            await self.fetch_gate.wait()
            self.parked -= 1
        await asyncio.sleep(0)
        self.fetches += 1
        self._fail_if_scheduled()
        spec = query.spec
        rows = [r for r in self.records[spec.collection].values() if self._matches(r, query)]
        rows.sort(key=lambda r: (getattr(r, spec.order_by), r.id), reverse=spec.descending)
        if spec.start_after is not None:
            marker = (spec.start_after.created_at, spec.start_after.id)
            if spec.descending:
                rows = [r for r in rows if (r.created_at, r.id) < marker]
            else:
                rows = [r for r in rows if (r.created_at, r.id) > marker]
        if spec.limit is not None:
            rows = rows[:spec.limit]
        return rows

    async def count(self, query: TenantQuery) -> int:
        await asyncio.sleep(0)
        self.counts += 1
        self._fail_if_scheduled()
        unpaged = query.unpaged()
        return len([r for r in self.records[unpaged.spec.collection].values() if self._matches(r, unpaged)])

    async def get_one(self, collection: Collection, record_id: UUID, parent_id: Optional[UUID] = None) -> Optional[Any]:
        self.reads.append((collection, record_id))
        if self.read_gate is not None:
            await self.read_gate.wait()
        await asyncio.sleep(0)
        self._fail_if_scheduled()
        record = self.records[collection].get(record_id)
        if record is None:
            return None
        if parent_id is not None and record.client_id != parent_id:
            return None
        return record

    def put(self, record: Any) -> Any:
        collection = COLLECTIONS[type(record)]
        kind = ChangeKind.UPDATED if record.id in self.records[collection] else ChangeKind.CREATED
        self.records[collection][record.id] = record
        self._publish(collection, kind, record)
        return record

    def remove(self, record: Any):
        collection = COLLECTIONS[type(record)]
        del self.records[collection][record.id]
        self._publish(collection, ChangeKind.DELETED, record)

    def _publish(self, collection: Collection, kind: ChangeKind, record: Any):
        self.feed.publish(ChangeEvent(
            collection=collection,
            kind=kind,
            tenant_id=record.tenant_id,
            record_id=record.id,
            parent_id=record.client_id if collection == Collection.PROJECTS else None,
        ))


class RecordFactory:
    """Builds records with strictly increasing ``created_at`` and stores them."""

    def __init__(self, store: InMemoryStore):
        self.store = store
        self.tick = 0

    def now(self) -> datetime:
        self.tick += 1
        return BASE_TIME + timedelta(minutes=self.tick)

    def _stamps(self, fields: dict) -> dict:
        created_at = fields.pop("created_at", None) or self.now()
        return {"id": fields.pop("id", None) or uuid4(), "created_at": created_at, "updated_at": created_at}

    def client(self, tenant_id: UUID, full_name: str = "Acme Ltd", **fields) -> ClientRecord:
        stamps = self._stamps(fields)
        record = ClientRecord(tenant_id=tenant_id, full_name=full_name, **stamps, **fields)
        return self.store.put(record)

    def project(self, client: ClientRecord, name: str = "Website", budget: Decimal = Decimal("1000"), **fields) -> ProjectRecord:
        tenant_id = fields.pop("tenant_id", client.tenant_id)
        stamps = self._stamps(fields)
        record = ProjectRecord(
            tenant_id=tenant_id,
            client_id=client.id,
            name=name,
            budget=budget,
            **stamps,
            **fields,
        )
        return self.store.put(record)

    def employee(self, tenant_id: UUID, full_name: str = "Jane Doe", **fields) -> EmployeeRecord:
        stamps = self._stamps(fields)
        record = EmployeeRecord(tenant_id=tenant_id, full_name=full_name, **stamps, **fields)
        return self.store.put(record)

    def order(
        self,
        tenant_id: UUID,
        client_id: UUID,
        employee_id: UUID,
        project_id: Optional[UUID] = None,
        amount: Decimal = Decimal("100"),
        title: str = "Design work",
        status: OrderStatus = OrderStatus.PENDING,
        **fields,
    ) -> OrderRecord:
        stamps = self._stamps(fields)
        record = OrderRecord(
            tenant_id=tenant_id,
            client_id=client_id,
            employee_id=employee_id,
            project_id=project_id,
            amount=amount,
            title=title,
            status=status,
            **stamps,
            **fields,
        )
        return self.store.put(record)

    def expense(self, tenant_id: UUID, description: str = "Printer paper", amount: Decimal = Decimal("40"), **fields) -> ExpenseRecord:
        stamps = self._stamps(fields)
        expense_date = fields.pop("expense_date", None) or stamps["created_at"].date()
        record = ExpenseRecord(
            tenant_id=tenant_id,
            description=description,
            amount=amount,
            expense_date=expense_date,
            **stamps,
            **fields,
        )
        return self.store.put(record)


class FakeResult:
    def __init__(self, values: List[Any]):
        self.values = values

    def scalar_one_or_none(self) -> Any:
        return self.values[0] if self.values else None

    def scalars(self) -> "FakeResult":
        return self

    def all(self) -> List[Any]:
        return list(self.values)


class FakeSession:
    """AsyncSession stand-in holding ORM objects in a list.

    Understands the statements the services issue: ``select(Model)`` or
    ``select(Model.column)`` with column comparisons joined by AND. Ordering
    and paging are ignored.
    """

    def __init__(self):
        self.objects: List[Any] = []
        self.commits = 0

    def add(self, obj: Any):
        now = datetime.utcnow()
        if obj.id is None:
            obj.id = uuid4()
        if obj.created_at is None:
            obj.created_at = now
        obj.updated_at = now
        self.objects.append(obj)

    def seed(self, *objects: Any) -> Any:
        for obj in objects:
            self.add(obj)
        return objects[0] if len(objects) == 1 else objects

    async def delete(self, obj: Any):
        self.objects.remove(obj)

    async def commit(self):
        self.commits += 1

    async def refresh(self, obj: Any):
        pass

    async def close(self):
        pass

    async def execute(self, statement) -> FakeResult:
        [column] = statement.column_descriptions
        model = column["entity"]
        rows = [o for o in self.objects if isinstance(o, model) and self._matches(o, statement.whereclause)]
        if column["expr"] is not model:
            rows = [getattr(o, column["name"]) for o in rows]
        return FakeResult(rows)

    def _matches(self, obj: Any, clause) -> bool:
        if clause is None:
            return True
        criteria = clause.clauses if isinstance(clause, BooleanClauseList) else [clause]
        return all(c.operator(getattr(obj, c.left.key), c.right.value) for c in criteria)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def records(store: InMemoryStore) -> RecordFactory:
    return RecordFactory(store)


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def tenant_headers(tenant_id: UUID) -> Dict[str, str]:
    return {"X-Business-Id": str(tenant_id)}


@pytest.fixture
def db() -> FakeSession:
    return FakeSession()


@pytest.fixture
def published() -> Generator[List[ChangeEvent], None, None]:
    """Events published on the process-wide feed by the services."""
    events: List[ChangeEvent] = []
    remove = default_feed.add_listener(events.append)
    yield events
    remove()


@pytest_asyncio.fixture(scope="function")
async def async_client(store: InMemoryStore, db: FakeSession) -> AsyncGenerator[AsyncClient, None]:
    """Client for testing API endpoints against the in-memory store and a fake DB session."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_db] = lambda: db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    paginators.clear()
