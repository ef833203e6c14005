from datetime import datetime
from enum import Enum
from uuid import UUID
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr
from src.shared.schemas import PartialUpdate


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class EmployeeBase(BaseModel):
    full_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    skills: List[str] = []
    experience: Optional[str] = None
    status: EmployeeStatus = EmployeeStatus.ACTIVE

class EmployeeCreate(EmployeeBase):
    pass

class EmployeeUpdate(PartialUpdate, EmployeeBase):
    required_fields = ("full_name", "skills", "status")

    full_name: Optional[str] = None
    skills: Optional[List[str]] = None
    status: Optional[EmployeeStatus] = None

class EmployeeRecord(EmployeeBase):
    id: UUID
    tenant_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
