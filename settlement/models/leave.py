"""
Leave balance models
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from settlement.db.base import Base


class LeaveType(str, enum.Enum):
    ANNUAL = "annual"
    SICK = "sick"
    EMERGENCY = "emergency"
    UNPAID = "unpaid"


# Leave types backed by a bucket that can run out
BUCKET_LEAVE_TYPES = (LeaveType.ANNUAL, LeaveType.SICK, LeaveType.EMERGENCY)


class LeaveTransactionAction(str, enum.Enum):
    DEDUCT = "DEDUCT"
    RESTORE = "RESTORE"


class LeaveBalance(Base):
    """
    One row per employee: three paid buckets plus the unpaid-taken counter.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, unique=True, index=True)
    annual_balance = Column(Numeric(6, 2), nullable=False, default=0)
    sick_balance = Column(Numeric(6, 2), nullable=False, default=0)
    emergency_balance = Column(Numeric(6, 2), nullable=False, default=0)
    unpaid_taken = Column(Numeric(6, 2), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    version = Column(Integer, nullable=False)

    employee = relationship("Employee")

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        CheckConstraint("annual_balance >= 0", name="check_annual_balance_non_negative"),
        CheckConstraint("sick_balance >= 0", name="check_sick_balance_non_negative"),
        CheckConstraint("emergency_balance >= 0", name="check_emergency_balance_non_negative"),
        CheckConstraint("unpaid_taken >= 0", name="check_unpaid_taken_non_negative"),
    )


class LeaveTransaction(Base):
    """Ledger history: every deduction/restoration against a balance."""
    __tablename__ = "leave_transactions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("approval_requests.id", ondelete="SET NULL"), nullable=True, index=True)
    leave_type = Column(String, nullable=False)
    action = Column(String, nullable=False)
    delta_days = Column(Numeric(6, 2), nullable=False)  # negative on deduct for paid buckets
    remarks = Column(Text, nullable=True)
    action_by_employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    action_at = Column(DateTime(timezone=True), nullable=False)
