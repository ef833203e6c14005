import logging
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException

from src.core.feed import ChangeEvent, ChangeFeed, ChangeKind, Collection, feed as default_feed
from src.expenses.models import Expense, ExpenseCategory, ExpenseStatus
from src.expenses.schemas import ExpenseCreate, ExpenseUpdate

logger = logging.getLogger(__name__)


class ExpenseService:
    def __init__(self, db: AsyncSession, feed: ChangeFeed = default_feed):
        self.db = db
        self.feed = feed

    def _publish(self, kind: ChangeKind, tenant_id: UUID, expense_id: UUID):
        self.feed.publish(ChangeEvent(
            collection=Collection.EXPENSES,
            kind=kind,
            tenant_id=tenant_id,
            record_id=expense_id,
        ))

    async def create_expense(self, expense_in: ExpenseCreate, tenant_id: UUID) -> Expense:
        data = expense_in.model_dump()
        data["expense_date"] = data["expense_date"] or datetime.utcnow().date()
        expense = Expense(**data, tenant_id=tenant_id)
        self.db.add(expense)
        await self.db.commit()
        await self.db.refresh(expense)
        logger.info(f"Recorded {expense_in.category.value} expense {expense.id} of {expense.amount}")
        self._publish(ChangeKind.CREATED, tenant_id, expense.id)
        return expense

    async def list_expenses(
        self,
        tenant_id: UUID,
        status: Optional[ExpenseStatus] = None,
        category: Optional[ExpenseCategory] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Expense]:
        """Newest expense date first. ``start``/``end`` are inclusive."""
        if start is not None and end is not None and start > end:
            raise HTTPException(status_code=422, detail="start must not be after end")

        query = select(Expense).where(Expense.tenant_id == tenant_id)
        if status is not None:
            query = query.where(Expense.status == status.value)
        if category is not None:
            query = query.where(Expense.category == category.value)
        if start is not None:
            query = query.where(Expense.expense_date >= start)
        if end is not None:
            query = query.where(Expense.expense_date <= end)
        query = (
            query.order_by(Expense.expense_date.desc(), Expense.created_at.desc(), Expense.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_expense(self, expense_id: UUID, tenant_id: UUID) -> Expense:
        query = select(Expense).where(Expense.id == expense_id, Expense.tenant_id == tenant_id)
        result = await self.db.execute(query)
        expense = result.scalar_one_or_none()
        if not expense:
            raise HTTPException(status_code=404, detail="Expense not found")
        return expense

    async def update_expense(self, expense_id: UUID, tenant_id: UUID, expense_in: ExpenseUpdate) -> Expense:
        expense = await self.get_expense(expense_id, tenant_id)

        for field, value in expense_in.model_dump(exclude_unset=True).items():
            setattr(expense, field, value)

        await self.db.commit()
        await self.db.refresh(expense)
        self._publish(ChangeKind.UPDATED, tenant_id, expense.id)
        return expense

    async def delete_expense(self, expense_id: UUID, tenant_id: UUID) -> None:
        expense = await self.get_expense(expense_id, tenant_id)
        await self.db.delete(expense)
        await self.db.commit()
        self._publish(ChangeKind.DELETED, tenant_id, expense_id)
