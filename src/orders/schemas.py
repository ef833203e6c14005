from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from src.orders.models import OrderStatus
from src.shared.schemas import PartialUpdate


class OrderBase(BaseModel):
    title: str
    description: Optional[str] = None
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    deadline: Optional[date] = None
    status: OrderStatus = OrderStatus.PENDING

class OrderCreate(OrderBase):
    client_id: UUID
    project_id: Optional[UUID] = None
    employee_id: UUID

class OrderUpdate(PartialUpdate):
    # Orders are never re-parented, so references are not editable.
    required_fields = ("title", "amount", "status")

    title: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    deadline: Optional[date] = None
    status: Optional[OrderStatus] = None

class OrderRecord(OrderBase):
    id: UUID
    tenant_id: UUID
    client_id: UUID
    project_id: Optional[UUID] = None
    employee_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
