"""
Loan and installment consumption models
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from settlement.db.base import Base


class LoanType(str, enum.Enum):
    INSTALLMENT = "installment"
    MONTHLY_ADVANCE = "monthly_advance"


class LoanStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"
    CANCELLED = "cancelled"  # request rejected/cancelled before any installment was consumed


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    request_id = Column(Integer, ForeignKey("approval_requests.id", ondelete="SET NULL"), nullable=True, unique=True)
    loan_type = Column(String, nullable=False, default=LoanType.INSTALLMENT.value)
    loan_amount = Column(Numeric(12, 2), nullable=False)
    installment_amount = Column(Numeric(12, 2), nullable=False)
    total_installments = Column(Integer, nullable=False)
    remaining_installments = Column(Integer, nullable=False)
    start_month = Column(String(7), nullable=False)  # YYYY-MM, first month an installment is due
    disbursed = Column(Boolean, nullable=False, default=False)
    disbursed_at = Column(DateTime(timezone=True), nullable=True)
    disbursed_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    status = Column(String, nullable=False, default=LoanStatus.PENDING.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    version = Column(Integer, nullable=False)

    installments = relationship(
        "LoanInstallment",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="LoanInstallment.month_key",
    )

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (
        CheckConstraint("remaining_installments >= 0", name="check_loan_remaining_non_negative"),
        CheckConstraint("remaining_installments <= total_installments", name="check_loan_remaining_le_total"),
        CheckConstraint("total_installments >= 1", name="check_loan_total_positive"),
    )


class LoanInstallment(Base):
    """
    One row per consumed installment. The (loan, month) uniqueness is what keeps
    a month from decrementing the same loan twice.
    """
    __tablename__ = "loan_installments"

    id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    month_key = Column(String(7), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=False)

    loan = relationship("Loan", back_populates="installments")

    __table_args__ = (
        UniqueConstraint("loan_id", "month_key", name="uq_loan_installments_loan_month"),
    )
