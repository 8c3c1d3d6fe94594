"""
Approval delegation model
"""
from sqlalchemy import Column, Integer, Boolean, Date, DateTime, ForeignKey, CheckConstraint, Index
from sqlalchemy.sql import text
from settlement.db.base import Base


class ApprovalDelegation(Base):
    """
    While active, the delegate acts on every step assigned to the delegator
    for dates inside [active_from, active_to].
    """
    __tablename__ = "approval_delegations"

    id = Column(Integer, primary_key=True, index=True)
    delegator_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    delegate_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    active_from = Column(Date, nullable=False)
    active_to = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    ended_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    __table_args__ = (
        CheckConstraint("active_from <= active_to", name="check_delegation_from_le_to"),
        Index("ix_approval_delegations_delegator_dates", "delegator_id", "active_from", "active_to"),
    )
