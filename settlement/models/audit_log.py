"""
Audit log model (append-only)
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from settlement.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String, nullable=False)  # e.g. "approval_request", "payroll_month", "loan"
    entity_id = Column(Integer, nullable=True)
    action = Column(String, nullable=False)  # e.g. "APPROVE_STEP", "FINALIZE", "ESCALATE"
    # Null for system actors (escalation sweep)
    actor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)
    meta_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )
