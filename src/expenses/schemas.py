from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from src.expenses.models import ExpenseCategory, ExpenseStatus
from src.shared.schemas import PartialUpdate


class ExpenseBase(BaseModel):
    description: str
    amount: Decimal = Field(ge=0)
    category: ExpenseCategory = ExpenseCategory.UNCATEGORIZED
    # Defaults to the day the expense is recorded
    expense_date: Optional[date] = None
    status: ExpenseStatus = ExpenseStatus.PENDING
    receipt_url: Optional[str] = None
    notes: Optional[str] = None

class ExpenseCreate(ExpenseBase):
    pass

class ExpenseUpdate(PartialUpdate, ExpenseBase):
    required_fields = ("description", "amount", "category", "expense_date", "status")

    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    category: Optional[ExpenseCategory] = None
    status: Optional[ExpenseStatus] = None

class ExpenseRecord(ExpenseBase):
    id: UUID
    tenant_id: UUID
    expense_date: date
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
