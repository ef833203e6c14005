import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime
from sqlalchemy.dialects.postgresql import UUID

class UUIDMixin:
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

class TenantMixin:
    # The owning business. Every query filters on it.
    tenant_id = Column(UUID(as_uuid=True), nullable=False, index=True)

class AuditMixin(UUIDMixin, TimestampMixin, TenantMixin):
    """Combines UUID, timestamps and tenant scoping for standard entities."""
    pass
