from sqlalchemy import Column, String, ARRAY
from src.database import Base
from src.shared.models import AuditMixin


class Employee(Base, AuditMixin):
    __tablename__ = "employees"

    full_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    skills = Column(ARRAY(String), nullable=False, default=list)
    experience = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
