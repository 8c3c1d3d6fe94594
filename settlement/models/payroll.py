"""
Payroll month and record models
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Numeric,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import enum
from settlement.db.base import Base


class PayrollMonthStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"
    LOCKED = "locked"


class PayrollMonth(Base):
    __tablename__ = "payroll_months"

    id = Column(Integer, primary_key=True, index=True)
    month_key = Column(String(7), nullable=False, unique=True, index=True)
    status = Column(String, nullable=False, default=PayrollMonthStatus.DRAFT.value)
    generated_at = Column(DateTime(timezone=True), nullable=True)
    generated_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)
    finalized_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    locked_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    reopen_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False)

    records = relationship(
        "PayrollRecord",
        back_populates="payroll_month",
        cascade="all, delete-orphan",
        order_by="PayrollRecord.employee_id",
    )

    __mapper_args__ = {"version_id_col": version}


class PayrollRecord(Base):
    """Derived per-employee totals for one payroll month."""
    __tablename__ = "payroll_records"

    id = Column(Integer, primary_key=True, index=True)
    payroll_month_id = Column(Integer, ForeignKey("payroll_months.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    employment_type = Column(String, nullable=False)
    base_salary = Column(Numeric(12, 2), nullable=False)
    total_allowances = Column(Numeric(12, 2), nullable=False)
    custom_deductions = Column(Numeric(12, 2), nullable=False)
    loan_installments = Column(Numeric(12, 2), nullable=False)
    total_deductions = Column(Numeric(12, 2), nullable=False)
    total_hours = Column(Numeric(8, 2), nullable=False, default=0)
    unpaid_leave_days = Column(Numeric(6, 2), nullable=False, default=0)
    estimated_net = Column(Numeric(12, 2), nullable=False)
    breakdown_json = Column(JSON, nullable=True)

    payroll_month = relationship("PayrollMonth", back_populates="records")

    __table_args__ = (
        UniqueConstraint("payroll_month_id", "employee_id", name="uq_payroll_records_month_employee"),
    )
