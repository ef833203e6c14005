from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession
from src.database import get_db
from src.auth.dependencies import require_tenant
from src.employees.schemas import EmployeeCreate, EmployeeUpdate, EmployeeRecord
from src.employees.service import EmployeeService

router = APIRouter(prefix="/employees", tags=["employees"])


@router.post("", response_model=EmployeeRecord)
async def create_employee(
    employee: EmployeeCreate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = EmployeeService(db)
    return await service.create_employee(employee, tenant_id)


@router.get("", response_model=List[EmployeeRecord])
async def list_employees(
    skip: int = 0,
    limit: int = 100,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = EmployeeService(db)
    return await service.list_employees(tenant_id, skip, limit)


@router.get("/{employee_id}", response_model=EmployeeRecord)
async def get_employee(
    employee_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = EmployeeService(db)
    return await service.get_employee(employee_id, tenant_id)


@router.patch("/{employee_id}", response_model=EmployeeRecord)
async def update_employee(
    employee_id: UUID,
    employee: EmployeeUpdate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = EmployeeService(db)
    return await service.update_employee(employee_id, tenant_id, employee)


@router.delete("/{employee_id}", status_code=204)
async def delete_employee(
    employee_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = EmployeeService(db)
    await service.delete_employee(employee_id, tenant_id)
    return Response(status_code=204)
