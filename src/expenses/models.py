from enum import Enum
from sqlalchemy import Column, String, Numeric, Date, Text
from src.database import Base
from src.shared.models import AuditMixin


class ExpenseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ExpenseCategory(str, Enum):
    OFFICE_SUPPLIES = "office-supplies"
    TRAVEL = "travel"
    MARKETING = "marketing"
    UTILITIES = "utilities"
    RENT = "rent"
    EQUIPMENT = "equipment"
    OTHER = "other"
    UNCATEGORIZED = "uncategorized"


class Expense(Base, AuditMixin):
    """Spending of the business itself, outside of client orders."""
    __tablename__ = "expenses"

    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    category = Column(String, nullable=False, default=ExpenseCategory.UNCATEGORIZED.value, index=True)
    expense_date = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=False, default=ExpenseStatus.PENDING.value)
    receipt_url = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
