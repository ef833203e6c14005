"""Client-side joins between orders and the records they reference.

Resolution prefers records already held by live subscriptions and falls back
to point reads, at most one per distinct key per pass. A reference that is
missing or belongs to another tenant resolves to the sentinel display value
and is recorded in ``gaps``; it never fails the batch.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel

from src.clients.schemas import ClientRecord, ProjectRecord
from src.config import settings
from src.core.feed import Collection
from src.employees.schemas import EmployeeRecord
from src.live.store import RecordStore
from src.orders.schemas import OrderRecord

logger = logging.getLogger(__name__)

# (collection, record id, parent id)
RefKey = Tuple[Collection, UUID, Optional[UUID]]


class ResolvedOrder(BaseModel):
    order: OrderRecord
    client_name: str
    project_name: str
    employee_name: str
    client: Optional[ClientRecord] = None
    project: Optional[ProjectRecord] = None
    employee: Optional[EmployeeRecord] = None
    gaps: List[str] = []


class ResolvedProject(BaseModel):
    project: ProjectRecord
    client_name: str
    client: Optional[ClientRecord] = None


class ResidentRecords:
    """Records currently delivered by live subscriptions, indexed for joins."""

    def __init__(self):
        self.clients: Dict[UUID, ClientRecord] = {}
        self.projects: Dict[Tuple[UUID, UUID], ProjectRecord] = {}
        self.employees: Dict[UUID, EmployeeRecord] = {}

    def set_clients(self, clients: Iterable[ClientRecord]) -> List[UUID]:
        """Replace the client set; returns ids of clients that disappeared."""
        fresh = {c.id: c for c in clients}
        removed = [client_id for client_id in self.clients if client_id not in fresh]
        self.clients = fresh
        for client_id in removed:
            self.drop_projects(client_id)
        return removed

    def set_projects(self, client_id: UUID, projects: Iterable[ProjectRecord]):
        self.drop_projects(client_id)
        for project in projects:
            self.projects[(client_id, project.id)] = project

    def drop_projects(self, client_id: UUID):
        for key in [k for k in self.projects if k[0] == client_id]:
            del self.projects[key]

    def set_employees(self, employees: Iterable[EmployeeRecord]):
        self.employees = {e.id: e for e in employees}

    def clear(self):
        self.clients.clear()
        self.projects.clear()
        self.employees.clear()

    def lookup(self, key: RefKey) -> Optional[Any]:
        collection, record_id, parent_id = key
        if collection == Collection.CLIENTS:
            return self.clients.get(record_id)
        if collection == Collection.EMPLOYEES:
            return self.employees.get(record_id)
        if collection == Collection.PROJECTS:
            return self.projects.get((parent_id, record_id))
        return None


def display_name(record: Any, field: str) -> str:
    value = getattr(record, field, None) if record is not None else None
    return value or settings.SENTINEL_VALUE


class JoinResolver:
    def __init__(self, store: RecordStore, tenant_id: UUID, resident: Optional[ResidentRecords] = None):
        self.store = store
        self.tenant_id = tenant_id
        self.resident = resident or ResidentRecords()

    async def resolve(self, orders: Iterable[OrderRecord]) -> List[ResolvedOrder]:
        visible = []
        for order in orders:
            if order.tenant_id != self.tenant_id:
                logger.warning(f"Dropped order {order.id} from tenant {order.tenant_id}")
                continue
            visible.append(order)

        keys: Dict[RefKey, None] = {}
        for order in visible:
            for key in self._references(order):
                keys[key] = None

        found: Dict[RefKey, Any] = {}
        misses: List[RefKey] = []
        for key in keys:
            record = self.resident.lookup(key)
            if record is None:
                misses.append(key)
            else:
                found[key] = record

        if misses:
            logger.debug(f"Resolving {len(misses)} references by point read")
            records = await asyncio.gather(
                *(self.store.get_one(collection, record_id, parent_id) for collection, record_id, parent_id in misses)
            )
            found.update(zip(misses, records))

        return [self._join(order, found) for order in visible]

    def resolve_projects(self) -> List[ResolvedProject]:
        """Join resident projects with their owning client."""
        rows = []
        for (client_id, _), project in self.resident.projects.items():
            if project.tenant_id != self.tenant_id:
                logger.warning(f"Dropped project {project.id} from tenant {project.tenant_id}")
                continue
            client = self._accept(self.resident.clients.get(client_id), "client", project.id)
            rows.append(ResolvedProject(
                project=project,
                client=client,
                client_name=display_name(client, "full_name"),
            ))
        return rows

    def _references(self, order: OrderRecord) -> List[RefKey]:
        refs = [
            (Collection.CLIENTS, order.client_id, None),
            (Collection.EMPLOYEES, order.employee_id, None),
        ]
        if order.project_id is not None:
            refs.append((Collection.PROJECTS, order.project_id, order.client_id))
        return refs

    def _accept(self, record: Any, label: str, owner_id: UUID) -> Optional[Any]:
        if record is None:
            return None
        if record.tenant_id != self.tenant_id:
            logger.warning(f"Cross-tenant {label} {record.id} referenced by {owner_id}; hidden")
            return None
        return record

    def _join(self, order: OrderRecord, found: Dict[RefKey, Any]) -> ResolvedOrder:
        gaps = []

        client = self._accept(found.get((Collection.CLIENTS, order.client_id, None)), "client", order.id)
        if client is None:
            gaps.append("client")

        employee = self._accept(found.get((Collection.EMPLOYEES, order.employee_id, None)), "employee", order.id)
        if employee is None:
            gaps.append("employee")

        project = None
        if order.project_id is not None:
            key = (Collection.PROJECTS, order.project_id, order.client_id)
            project = self._accept(found.get(key), "project", order.id)
            if project is None:
                gaps.append("project")

        if gaps:
            logger.warning(f"Order {order.id} has unresolved references: {', '.join(gaps)}")

        return ResolvedOrder(
            order=order,
            client=client,
            project=project,
            employee=employee,
            client_name=display_name(client, "full_name"),
            project_name=display_name(project, "name"),
            employee_name=display_name(employee, "full_name"),
            gaps=gaps,
        )
