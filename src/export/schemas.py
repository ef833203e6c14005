from enum import Enum
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class ExportFormat(str, Enum):
    TABULAR = "tabular"
    DOCUMENT = "document"
    CSV = "csv"


class ExportParty(BaseModel):
    """Billed party shown in the document title block."""
    id: Optional[UUID] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class ExportRequest(BaseModel):
    row_ids: List[UUID] = Field(default_factory=list)
    format: ExportFormat = ExportFormat.TABULAR


class InvoiceRequest(BaseModel):
    project_ids: List[UUID] = Field(default_factory=list)
    format: ExportFormat = ExportFormat.DOCUMENT
