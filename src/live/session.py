"""Live views: subscriptions → joins → rollups, re-derived on every snapshot.

A ``LiveView`` owns one ``SubscriptionManager``. Each delivered snapshot
replaces the corresponding resident state and schedules a resolution pass;
a newer pass cancels the in-flight one and results of superseded passes are
discarded, so the published view only moves forward.
"""
import asyncio
import contextlib
import logging
from functools import partial
from typing import Any, AsyncIterator, Dict, List, Optional, Set
from uuid import UUID

from pydantic import BaseModel

from src.clients.schemas import ClientRecord, ProjectRecord
from src.employees.schemas import EmployeeRecord
from src.live import query as q
from src.live.aggregator import BusinessReport, DashboardSummary, ViewFilters, ViewKind, ViewRow, aggregate, report, summarize
from src.live.resolver import JoinResolver, ResidentRecords, ResolvedOrder, ResolvedProject
from src.live.store import RecordStore
from src.live.subscriptions import SubscriptionManager
from src.orders.schemas import OrderRecord
from src.shared.exceptions import TransientFetchError

logger = logging.getLogger(__name__)

BASE_SLOTS = {"clients", "employees", "orders"}


class ViewSnapshot(BaseModel):
    view_kind: ViewKind
    version: int
    ready: bool
    rows: List[ViewRow]
    summary: DashboardSummary
    error: Optional[str] = None


class LiveView:
    def __init__(
        self,
        store: RecordStore,
        tenant_id: UUID,
        view_kind: ViewKind,
        filters: Optional[ViewFilters] = None,
        order_filters: Optional[Dict[str, Any]] = None,
        subscriptions: Optional[SubscriptionManager] = None,
    ):
        self.store = store
        self.tenant_id = q.require_tenant_id(tenant_id)
        self.view_kind = view_kind
        self.filters = filters or ViewFilters()
        self.order_filters = dict(order_filters or {})
        self.subscriptions = subscriptions or SubscriptionManager(store)

        self.resident = ResidentRecords()
        self.orders: Optional[List[OrderRecord]] = None
        self.resolved_orders: List[ResolvedOrder] = []
        self.resolved_projects: List[ResolvedProject] = []
        self.loaded: Set[str] = set()

        self._generation = 0
        self._resolution: Optional[asyncio.Task] = None
        self._current: Optional[ViewSnapshot] = None
        self._version = 0
        self._changed = asyncio.Event()
        self._closed = False

    async def __aenter__(self) -> "LiveView":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def current(self) -> Optional[ViewSnapshot]:
        return self._current

    async def start(self):
        logger.info(f"Starting {self.view_kind.value} view for tenant {self.tenant_id}")
        await self.subscriptions.subscribe(q.clients(), self.tenant_id, self._on_clients, self._on_error)
        await self.subscriptions.subscribe(q.employees(), self.tenant_id, self._on_employees, self._on_error)
        await self._subscribe_orders()

    async def close(self):
        self._closed = True
        await self._cancel_resolution()
        await self.subscriptions.close()
        self._changed.set()

    async def rescope(self, tenant_id: Optional[UUID] = None, order_filters: Optional[Dict[str, Any]] = None):
        """Re-subscribe after a tenant switch or an order filter change."""
        if tenant_id is not None and q.require_tenant_id(tenant_id) != self.tenant_id:
            await self.subscriptions.close()
            await self._cancel_resolution()
            self._generation += 1
            self.tenant_id = q.require_tenant_id(tenant_id)
            if order_filters is not None:
                self.order_filters = dict(order_filters)
            self.resident.clear()
            self.orders = None
            self.resolved_orders = []
            self.resolved_projects = []
            self.loaded.clear()
            self._current = None
            await self.start()
        elif order_filters is not None and dict(order_filters) != self.order_filters:
            self.order_filters = dict(order_filters)
            self.loaded.discard("orders")
            await self._subscribe_orders()

    def set_filters(self, filters: ViewFilters):
        """Search/date filters are applied locally; no re-subscription or re-resolution."""
        self.filters = filters
        if self._current is not None:
            self._publish(error=None)

    async def updates(self) -> AsyncIterator[ViewSnapshot]:
        """Yield the latest snapshot whenever it changes. Intermediate versions may be skipped."""
        seen = 0
        while not self._closed:
            current = self._current
            if current is not None and current.version > seen:
                seen = current.version
                yield current
                continue
            self._changed.clear()
            await self._changed.wait()

    async def wait_ready(self) -> ViewSnapshot:
        async for snapshot in self.updates():
            if snapshot.ready:
                return snapshot
        raise RuntimeError("view closed before it was ready")

    async def _subscribe_orders(self):
        spec = q.orders(**self.order_filters)
        await self.subscriptions.subscribe(spec, self.tenant_id, self._on_orders, self._on_error, slot="orders")

    async def _on_clients(self, clients: List[ClientRecord]):
        removed = self.resident.set_clients(clients)
        for client_id in removed:
            await self.subscriptions.unsubscribe_slot(q.projects(client_id).slot)
            self.loaded.discard(q.projects(client_id).slot)
        for client in clients:
            spec = q.projects(client.id)
            existing = self.subscriptions.active.get(spec.slot)
            # A pump that gave up after its retries is done but still holds the slot
            if existing is None or not existing.active:
                await self.subscriptions.subscribe(
                    spec, self.tenant_id, partial(self._on_projects, client.id), self._on_error
                )
        self.loaded.add("clients")
        self._schedule()

    def _on_projects(self, client_id: UUID, projects: List[ProjectRecord]):
        if client_id not in self.resident.clients:
            return
        self.resident.set_projects(client_id, projects)
        self.loaded.add(q.projects(client_id).slot)
        self._schedule()

    def _on_employees(self, employees: List[EmployeeRecord]):
        self.resident.set_employees(employees)
        self.loaded.add("employees")
        self._schedule()

    def _on_orders(self, orders: List[OrderRecord]):
        self.orders = orders
        self.loaded.add("orders")
        self._schedule()

    def _on_error(self, exc: Exception):
        detail = exc.detail if isinstance(exc, TransientFetchError) else "Live update failed"
        self._publish(error=detail, keep_rows=True)

    def _ready(self) -> bool:
        if not BASE_SLOTS <= self.loaded:
            return False
        return all(q.projects(client_id).slot in self.loaded for client_id in self.resident.clients)

    def _schedule(self):
        if self._closed or self.orders is None:
            return
        self._generation += 1
        if self._resolution is not None and not self._resolution.done():
            self._resolution.cancel()
        self._resolution = asyncio.create_task(self._recompute(self._generation))

    async def _cancel_resolution(self):
        if self._resolution is not None and not self._resolution.done():
            self._resolution.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._resolution
        self._resolution = None

    async def _recompute(self, generation: int):
        resolver = JoinResolver(self.store, self.tenant_id, self.resident)
        try:
            resolved = await resolver.resolve(list(self.orders or []))
        except TransientFetchError as e:
            if generation == self._generation:
                self._publish(error=e.detail, keep_rows=True)
            return

        if generation != self._generation:
            logger.debug(f"Discarded superseded resolution pass {generation}")
            return

        self.resolved_orders = resolved
        self.resolved_projects = resolver.resolve_projects()
        self._publish(error=None)

    def _publish(self, error: Optional[str], keep_rows: bool = False):
        previous = self._current
        if keep_rows and previous is not None:
            rows = previous.rows
            summary = previous.summary
        else:
            rows = aggregate(self.resolved_projects, self.resolved_orders, self.view_kind, self.filters)
            summary = summarize(self.resolved_projects, self.resolved_orders)

        self._version += 1
        self._current = ViewSnapshot(
            view_kind=self.view_kind,
            version=self._version,
            ready=self._ready(),
            rows=rows,
            summary=summary,
            error=error,
        )
        self._changed.set()


async def snapshot_view(
    store: RecordStore,
    tenant_id: UUID,
    view_kind: ViewKind,
    filters: Optional[ViewFilters] = None,
    order_filters: Optional[Dict[str, Any]] = None,
) -> ViewSnapshot:
    """One-shot computation of a view from current data, without subscriptions."""
    tenant_id = q.require_tenant_id(tenant_id)
    clients, employees, orders = await asyncio.gather(
        store.fetch(q.scoped(q.clients(), tenant_id)),
        store.fetch(q.scoped(q.employees(), tenant_id)),
        store.fetch(q.scoped(q.orders(**(order_filters or {})), tenant_id)),
    )

    resident = ResidentRecords()
    resident.set_clients(clients)
    resident.set_employees(employees)
    project_lists = await asyncio.gather(
        *(store.fetch(q.scoped(q.projects(client.id), tenant_id)) for client in clients)
    )
    for client, projects in zip(clients, project_lists):
        resident.set_projects(client.id, projects)

    resolver = JoinResolver(store, tenant_id, resident)
    resolved_orders = await resolver.resolve(orders)
    resolved_projects = resolver.resolve_projects()
    return ViewSnapshot(
        view_kind=view_kind,
        version=1,
        ready=True,
        rows=aggregate(resolved_projects, resolved_orders, view_kind, filters),
        summary=summarize(resolved_projects, resolved_orders),
    )


async def business_report(store: RecordStore, tenant_id: UUID) -> BusinessReport:
    tenant_id = q.require_tenant_id(tenant_id)
    clients, employees, orders, expenses = await asyncio.gather(
        store.fetch(q.scoped(q.clients(), tenant_id)),
        store.fetch(q.scoped(q.employees(), tenant_id)),
        store.fetch(q.scoped(q.orders(), tenant_id)),
        store.fetch(q.scoped(q.expenses(), tenant_id)),
    )
    return report(clients, employees, orders, expenses)
