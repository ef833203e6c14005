from enum import Enum
from sqlalchemy import Column, String, ForeignKey, Numeric, Date, Text, Enum as SAEnum
from sqlalchemy.dialects.postgresql import UUID
from src.database import Base
from src.shared.models import AuditMixin


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base, AuditMixin):
    """Work ordered for a client, optionally against one of its projects.

    Foreign keys are plain columns without database constraints: clients and
    employees are hard-deleted and orders keep pointing at them.
    """
    __tablename__ = "orders"

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    deadline = Column(Date, nullable=True)
    status = Column(
        SAEnum(OrderStatus, values_callable=lambda e: [m.value for m in e]),
        default=OrderStatus.PENDING,
        nullable=False,
    )

    client_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    project_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    employee_id = Column(UUID(as_uuid=True), nullable=False, index=True)
