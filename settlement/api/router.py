"""
Main API router
"""
from fastapi import APIRouter

from settlement.api.v1 import (
    health,
    version,
    approvals,
    delegations,
    approval_settings,
    leave_balances,
    loans,
    allowances,
    deductions,
    payroll,
    audit,
    escalations,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(version.router, tags=["version"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(delegations.router, prefix="/delegations", tags=["delegations"])
api_router.include_router(approval_settings.router, prefix="/approval-settings", tags=["approval-settings"])
api_router.include_router(leave_balances.router, prefix="/leave-balances", tags=["leave-balances"])
api_router.include_router(loans.router, prefix="/loans", tags=["loans"])
api_router.include_router(allowances.router, prefix="/allowances", tags=["allowances"])
api_router.include_router(deductions.router, prefix="/deductions", tags=["deductions"])
api_router.include_router(payroll.router, prefix="/payroll", tags=["payroll"])
api_router.include_router(audit.router, prefix="/audit", tags=["audit"])
api_router.include_router(escalations.router, prefix="/escalations", tags=["escalations"])
