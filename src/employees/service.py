from typing import List
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException

from src.core.feed import ChangeEvent, ChangeFeed, ChangeKind, Collection, feed as default_feed
from src.employees.models import Employee
from src.employees.schemas import EmployeeCreate, EmployeeUpdate


class EmployeeService:
    def __init__(self, db: AsyncSession, feed: ChangeFeed = default_feed):
        self.db = db
        self.feed = feed

    def _publish(self, kind: ChangeKind, tenant_id: UUID, employee_id: UUID):
        self.feed.publish(ChangeEvent(
            collection=Collection.EMPLOYEES,
            kind=kind,
            tenant_id=tenant_id,
            record_id=employee_id,
        ))

    async def create_employee(self, employee_in: EmployeeCreate, tenant_id: UUID) -> Employee:
        employee = Employee(**employee_in.model_dump(), tenant_id=tenant_id)
        self.db.add(employee)
        await self.db.commit()
        await self.db.refresh(employee)
        self._publish(ChangeKind.CREATED, tenant_id, employee.id)
        return employee

    async def list_employees(self, tenant_id: UUID, skip: int = 0, limit: int = 100) -> List[Employee]:
        query = (
            select(Employee)
            .where(Employee.tenant_id == tenant_id)
            .order_by(Employee.created_at.desc(), Employee.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_employee(self, employee_id: UUID, tenant_id: UUID) -> Employee:
        query = select(Employee).where(Employee.id == employee_id, Employee.tenant_id == tenant_id)
        result = await self.db.execute(query)
        employee = result.scalar_one_or_none()
        if not employee:
            raise HTTPException(status_code=404, detail="Employee not found")
        return employee

    async def update_employee(self, employee_id: UUID, tenant_id: UUID, employee_in: EmployeeUpdate) -> Employee:
        employee = await self.get_employee(employee_id, tenant_id)

        for field, value in employee_in.model_dump(exclude_unset=True).items():
            setattr(employee, field, value)

        await self.db.commit()
        await self.db.refresh(employee)
        self._publish(ChangeKind.UPDATED, tenant_id, employee.id)
        return employee

    async def delete_employee(self, employee_id: UUID, tenant_id: UUID) -> None:
        # Orders assigned to the employee are kept; their employee resolves to "N/A"
        employee = await self.get_employee(employee_id, tenant_id)
        await self.db.delete(employee)
        await self.db.commit()
        self._publish(ChangeKind.DELETED, tenant_id, employee_id)
