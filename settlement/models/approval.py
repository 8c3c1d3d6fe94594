"""
Approval request, chain step and settings-version models
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    JSON,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
import enum
from settlement.db.base import Base


class RequestType(str, enum.Enum):
    LEAVE = "leave"
    LOAN = "loan"
    ALLOWANCE = "allowance"
    PENALTY = "penalty"
    OTHER = "other"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


TERMINAL_REQUEST_STATUSES = (RequestStatus.APPROVED, RequestStatus.REJECTED, RequestStatus.CANCELLED)


class ApprovalSettingsVersion(Base):
    """
    One immutable row per settings revision. The highest version is current;
    requests record the version that governed them.
    """
    __tablename__ = "approval_settings_versions"

    id = Column(Integer, primary_key=True, index=True)
    version = Column(Integer, nullable=False, unique=True, index=True)
    rules_json = Column(JSON, nullable=False)
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)


class ApprovalRequest(Base):
    __tablename__ = "approval_requests"

    id = Column(Integer, primary_key=True, index=True)
    request_type = Column(String, nullable=False, index=True)
    requester_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    payload_json = Column(JSON, nullable=False)
    settings_version = Column(Integer, nullable=False)
    final_status = Column(String, nullable=False, default=RequestStatus.PENDING.value, index=True)

    auto_approved = Column(Boolean, nullable=False, default=False)
    override_status = Column(String, nullable=True)
    override_reason = Column(Text, nullable=True)
    override_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    # Ledger effect guards: applied at most once, reversed at most once per application
    effect_applied = Column(Boolean, nullable=False, default=False)
    effect_reversed = Column(Boolean, nullable=False, default=False)

    escalated = Column(Boolean, nullable=False, default=False)
    escalated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    version = Column(Integer, nullable=False)

    requester = relationship("Employee", foreign_keys=[requester_id])
    steps = relationship(
        "ApprovalStep",
        back_populates="request",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.level",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None


class ApprovalStep(Base):
    """One level of the chain snapshot frozen at request creation."""
    __tablename__ = "approval_steps"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(Integer, ForeignKey("approval_requests.id", ondelete="CASCADE"), nullable=False, index=True)
    level = Column(Integer, nullable=False)
    approver_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default=StepStatus.PENDING.value)
    acted_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    delegation_id = Column(Integer, ForeignKey("approval_delegations.id"), nullable=True)
    acted_at = Column(DateTime(timezone=True), nullable=True)
    remarks = Column(Text, nullable=True)

    request = relationship("ApprovalRequest", back_populates="steps")

    __table_args__ = (
        UniqueConstraint("request_id", "level", name="uq_approval_steps_request_level"),
        CheckConstraint("level >= 1", name="check_approval_step_level_positive"),
        Index("ix_approval_steps_approver_status", "approver_id", "status"),
    )
