from sqlalchemy import Column, String, ForeignKey, Numeric, Date, Text, ARRAY
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from src.database import Base
from src.shared.models import AuditMixin


class Client(Base, AuditMixin):
    """Customer of the business. Owns its projects."""
    __tablename__ = "clients"

    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    company = Column(String, nullable=True)
    tags = Column(ARRAY(String), nullable=False, default=list)
    budget = Column(Numeric(12, 2), nullable=True)
    status = Column(String, nullable=False, default="active")

    projects = relationship("Project", back_populates="client", cascade="all, delete-orphan", passive_deletes=True)


class Project(Base, AuditMixin):
    """Nested under a client; deleted with it."""
    __tablename__ = "projects"

    client_id = Column(UUID(as_uuid=True), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    budget = Column(Numeric(12, 2), nullable=True)
    deadline = Column(Date, nullable=True)
    requirements = Column(Text, nullable=True)
    status = Column(String, nullable=True)

    client = relationship("Client", back_populates="projects")
