"""
Employee allowance and deduction models
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Numeric, Index
from sqlalchemy.sql import text
import enum
from settlement.db.base import Base


class EntryStatus(str, enum.Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


class DeductionCategory(str, enum.Enum):
    CUSTOM = "custom"
    PENALTY = "penalty"


class EmployeeAllowance(Base):
    __tablename__ = "employee_allowances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    name = Column(String, nullable=False)  # allowance type, e.g. "transport", "housing"
    amount = Column(Numeric(12, 2), nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=False)
    start_month = Column(String(7), nullable=False)
    end_month = Column(String(7), nullable=True)
    status = Column(String, nullable=False, default=EntryStatus.ACTIVE.value)
    source_request_id = Column(Integer, ForeignKey("approval_requests.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    __table_args__ = (
        Index("ix_employee_allowances_employee_month", "employee_id", "start_month"),
    )


class EmployeeDeduction(Base):
    __tablename__ = "employee_deductions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, default=DeductionCategory.CUSTOM.value)
    amount = Column(Numeric(12, 2), nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=False)
    start_month = Column(String(7), nullable=False)
    end_month = Column(String(7), nullable=True)
    status = Column(String, nullable=False, default=EntryStatus.ACTIVE.value)
    reason = Column(Text, nullable=True)
    source_request_id = Column(Integer, ForeignKey("approval_requests.id", ondelete="SET NULL"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)

    __table_args__ = (
        Index("ix_employee_deductions_employee_month", "employee_id", "start_month"),
    )
