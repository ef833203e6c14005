"""Derived view-model rows for the projects, income, profits and expenses views.

Everything here is a pure function of its inputs. Views are rebuilt from the
full current snapshot on every change rather than patched.
"""
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from pydantic import BaseModel, ConfigDict, model_validator

from src.clients.schemas import ClientRecord, ClientStatus
from src.config import settings
from src.employees.schemas import EmployeeRecord, EmployeeStatus
from src.expenses.models import ExpenseStatus
from src.expenses.schemas import ExpenseRecord
from src.live.resolver import ResolvedOrder, ResolvedProject
from src.orders.models import OrderStatus
from src.orders.schemas import OrderRecord

ZERO = Decimal("0")


class ViewKind(str, Enum):
    PROJECTS = "projects"
    INCOME = "income"
    PROFITS = "profits"
    EXPENSES = "expenses"


def as_utc(value: datetime) -> datetime:
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class DateRange(BaseModel):
    start: datetime
    end: datetime

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _ordered(self):
        if as_utc(self.start) > as_utc(self.end):
            raise ValueError("date range start must not be after its end")
        return self

    def contains(self, value: datetime) -> bool:
        return as_utc(self.start) <= as_utc(value) <= as_utc(self.end)


class ViewFilters(BaseModel):
    date_range: Optional[DateRange] = None
    search_text: Optional[str] = None
    status: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ViewRow(BaseModel):
    id: UUID
    kind: ViewKind
    created_at: datetime
    client_id: Optional[UUID] = None
    client_name: str
    project_id: Optional[UUID] = None
    project_name: str
    employee_name: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    status: str
    budget: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    total_expense: Optional[Decimal] = None
    profit: Optional[Decimal] = None
    deadline: Optional[date] = None


class DashboardSummary(BaseModel):
    total_projects: int
    income: Decimal
    expenses: Decimal
    profit: Decimal


class MonthlyIncome(BaseModel):
    month: str
    income: Decimal


class BusinessReport(BaseModel):
    total_orders: int
    active_orders: int
    completed_orders: int
    cancelled_orders: int
    total_clients: int
    active_clients: int
    total_employees: int
    active_employees: int
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    monthly_income: List[MonthlyIncome]


SEARCH_FIELDS: Dict[ViewKind, tuple] = {
    ViewKind.PROJECTS: ("project_name", "client_name", "description"),
    ViewKind.INCOME: ("project_name", "client_name", "description"),
    ViewKind.PROFITS: ("project_name", "client_name", "description"),
    ViewKind.EXPENSES: ("title", "description", "project_name", "client_name", "employee_name"),
}


def _orders_by_project(orders: Iterable[ResolvedOrder]) -> Dict[UUID, List[OrderRecord]]:
    grouped: Dict[UUID, List[OrderRecord]] = {}
    for resolved in orders:
        if resolved.order.project_id is not None:
            grouped.setdefault(resolved.order.project_id, []).append(resolved.order)
    return grouped


def derived_status(project_status: Optional[str], project_orders: Sequence[OrderRecord]) -> str:
    """Latest order's status wins, then the project's own, then the default."""
    if project_orders:
        latest = max(project_orders, key=lambda o: (as_utc(o.created_at), str(o.id)))
        return latest.status.value
    return project_status or settings.DEFAULT_PROJECT_STATUS


def _project_rows(view_kind: ViewKind, projects: Iterable[ResolvedProject], orders: Iterable[ResolvedOrder]) -> List[ViewRow]:
    grouped = _orders_by_project(orders)
    rows = []
    for resolved in projects:
        project = resolved.project
        project_orders = grouped.get(project.id, [])
        budget = project.budget if project.budget is not None else ZERO
        row = ViewRow(
            id=project.id,
            kind=view_kind,
            created_at=project.created_at,
            client_id=project.client_id,
            client_name=resolved.client_name,
            project_id=project.id,
            project_name=project.name or settings.SENTINEL_VALUE,
            description=project.requirements,
            status=derived_status(project.status, project_orders),
            budget=project.budget,
            deadline=project.deadline,
        )
        if view_kind == ViewKind.INCOME:
            row.amount = budget
        elif view_kind == ViewKind.PROFITS:
            total_expense = sum((o.amount for o in project_orders), ZERO)
            row.total_expense = total_expense
            row.profit = budget - total_expense
        rows.append(row)
    return rows


def _expense_rows(orders: Iterable[ResolvedOrder]) -> List[ViewRow]:
    return [
        ViewRow(
            id=resolved.order.id,
            kind=ViewKind.EXPENSES,
            created_at=resolved.order.created_at,
            client_id=resolved.order.client_id,
            client_name=resolved.client_name,
            project_id=resolved.order.project_id,
            project_name=resolved.project_name,
            employee_name=resolved.employee_name,
            title=resolved.order.title,
            description=resolved.order.description,
            status=resolved.order.status.value,
            amount=resolved.order.amount,
            deadline=resolved.order.deadline,
        )
        for resolved in orders
    ]


def matches_search(row: ViewRow, text: str) -> bool:
    needle = text.lower()
    for field in SEARCH_FIELDS[row.kind]:
        value = getattr(row, field)
        if value and needle in value.lower():
            return True
    return False


def sort_rows(rows: Iterable[ViewRow]) -> List[ViewRow]:
    return sorted(rows, key=lambda r: (as_utc(r.created_at), str(r.id)), reverse=True)


def aggregate(
    projects: Sequence[ResolvedProject],
    orders: Sequence[ResolvedOrder],
    view_kind: ViewKind,
    filters: Optional[ViewFilters] = None,
) -> List[ViewRow]:
    filters = filters or ViewFilters()

    if view_kind == ViewKind.EXPENSES:
        rows = _expense_rows(orders)
    else:
        rows = _project_rows(view_kind, projects, orders)

    if filters.date_range is not None:
        rows = [r for r in rows if filters.date_range.contains(r.created_at)]

    search_text = (filters.search_text or "").strip()
    if search_text:
        rows = [r for r in rows if matches_search(r, search_text)]

    if filters.status:
        rows = [r for r in rows if r.status == filters.status]

    # Joined rows do not arrive in source order, so sorting is always reapplied
    return sort_rows(rows)


def summarize(projects: Sequence[ResolvedProject], orders: Sequence[ResolvedOrder]) -> DashboardSummary:
    income = sum((p.project.budget or ZERO for p in projects), ZERO)
    expenses = sum((o.order.amount for o in orders), ZERO)
    return DashboardSummary(
        total_projects=len(projects),
        income=income,
        expenses=expenses,
        profit=income - expenses,
    )


def select_rows(rows: Sequence[ViewRow], ids: Iterable[UUID]) -> List[ViewRow]:
    wanted = set(ids)
    return [r for r in rows if r.id in wanted]


def report(
    clients: Sequence[ClientRecord],
    employees: Sequence[EmployeeRecord],
    orders: Sequence[OrderRecord],
    expenses: Sequence[ExpenseRecord] = (),
) -> BusinessReport:
    """Business-wide counts and financials.

    Income is earned by completed orders only. Rejected expenses are not spent.
    ``monthly_income`` buckets completed orders by ``YYYY-MM`` of creation, oldest first.
    """
    completed = [o for o in orders if o.status == OrderStatus.COMPLETED]
    total_income = sum((o.amount for o in completed), ZERO)
    total_expenses = sum((e.amount for e in expenses if e.status != ExpenseStatus.REJECTED), ZERO)

    monthly: Dict[str, Decimal] = {}
    for order in completed:
        month = as_utc(order.created_at).strftime("%Y-%m")
        monthly[month] = monthly.get(month, ZERO) + order.amount

    return BusinessReport(
        total_orders=len(orders),
        active_orders=sum(1 for o in orders if o.status == OrderStatus.IN_PROGRESS),
        completed_orders=len(completed),
        cancelled_orders=sum(1 for o in orders if o.status == OrderStatus.CANCELLED),
        total_clients=len(clients),
        active_clients=sum(1 for c in clients if c.status == ClientStatus.ACTIVE),
        total_employees=len(employees),
        active_employees=sum(1 for e in employees if e.status == EmployeeStatus.ACTIVE),
        total_income=total_income,
        total_expenses=total_expenses,
        net_profit=total_income - total_expenses,
        monthly_income=[MonthlyIncome(month=m, income=monthly[m]) for m in sorted(monthly)],
    )
