from datetime import date
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession
from src.database import get_db
from src.auth.dependencies import require_tenant
from src.expenses.models import ExpenseCategory, ExpenseStatus
from src.expenses.schemas import ExpenseCreate, ExpenseUpdate, ExpenseRecord
from src.expenses.service import ExpenseService

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.post("", response_model=ExpenseRecord)
async def create_expense(
    expense: ExpenseCreate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ExpenseService(db)
    return await service.create_expense(expense, tenant_id)


@router.get("", response_model=List[ExpenseRecord])
async def list_expenses(
    status: Optional[ExpenseStatus] = None,
    category: Optional[ExpenseCategory] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ExpenseService(db)
    return await service.list_expenses(
        tenant_id, status=status, category=category, start=start, end=end, skip=skip, limit=limit
    )


@router.get("/{expense_id}", response_model=ExpenseRecord)
async def get_expense(
    expense_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ExpenseService(db)
    return await service.get_expense(expense_id, tenant_id)


@router.patch("/{expense_id}", response_model=ExpenseRecord)
async def update_expense(
    expense_id: UUID,
    expense: ExpenseUpdate,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ExpenseService(db)
    return await service.update_expense(expense_id, tenant_id, expense)


@router.delete("/{expense_id}", status_code=204)
async def delete_expense(
    expense_id: UUID,
    tenant_id: UUID = Depends(require_tenant),
    db: AsyncSession = Depends(get_db),
):
    service = ExpenseService(db)
    await service.delete_expense(expense_id, tenant_id)
    return Response(status_code=204)
