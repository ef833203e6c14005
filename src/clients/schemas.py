from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr
from src.shared.schemas import PartialUpdate


class ClientStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ClientBase(BaseModel):
    full_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    tags: List[str] = []
    budget: Optional[Decimal] = None
    status: ClientStatus = ClientStatus.ACTIVE

class ClientCreate(ClientBase):
    pass

class ClientUpdate(PartialUpdate, ClientBase):
    required_fields = ("full_name", "tags", "status")

    full_name: Optional[str] = None
    tags: Optional[List[str]] = None
    status: Optional[ClientStatus] = None

class ClientRecord(ClientBase):
    id: UUID
    tenant_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectBase(BaseModel):
    name: str
    budget: Optional[Decimal] = None
    deadline: Optional[date] = None
    requirements: Optional[str] = None
    status: Optional[str] = None

class ProjectCreate(ProjectBase):
    pass

class ProjectUpdate(PartialUpdate, ProjectBase):
    required_fields = ("name",)

    name: Optional[str] = None

class ProjectRecord(ProjectBase):
    id: UUID
    client_id: UUID
    tenant_id: UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProjectPage(BaseModel):
    """One page of a client's projects. ``serial_numbers`` is positional only."""
    page: int
    page_size: int
    total: int
    has_more: bool
    serial_numbers: List[int]
    projects: List[ProjectRecord]
