"""
Database models
"""
from settlement.models.employee import Employee, Role, EmploymentType, ADMIN_ROLES
from settlement.models.audit_log import AuditLog
from settlement.models.approval import (
    ApprovalSettingsVersion,
    ApprovalRequest,
    ApprovalStep,
    RequestType,
    RequestStatus,
    StepStatus,
    TERMINAL_REQUEST_STATUSES,
)
from settlement.models.delegation import ApprovalDelegation
from settlement.models.leave import (
    LeaveBalance,
    LeaveTransaction,
    LeaveType,
    LeaveTransactionAction,
    BUCKET_LEAVE_TYPES,
)
from settlement.models.loan import Loan, LoanInstallment, LoanType, LoanStatus
from settlement.models.financials import (
    EmployeeAllowance,
    EmployeeDeduction,
    EntryStatus,
    DeductionCategory,
)
from settlement.models.payroll import PayrollMonth, PayrollRecord, PayrollMonthStatus

__all__ = [
    "Employee",
    "Role",
    "EmploymentType",
    "ADMIN_ROLES",
    "AuditLog",
    "ApprovalSettingsVersion",
    "ApprovalRequest",
    "ApprovalStep",
    "RequestType",
    "RequestStatus",
    "StepStatus",
    "TERMINAL_REQUEST_STATUSES",
    "ApprovalDelegation",
    "LeaveBalance",
    "LeaveTransaction",
    "LeaveType",
    "LeaveTransactionAction",
    "BUCKET_LEAVE_TYPES",
    "Loan",
    "LoanInstallment",
    "LoanType",
    "LoanStatus",
    "EmployeeAllowance",
    "EmployeeDeduction",
    "EntryStatus",
    "DeductionCategory",
    "PayrollMonth",
    "PayrollRecord",
    "PayrollMonthStatus",
]
