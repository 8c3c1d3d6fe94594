"""
FastAPI dependencies: database session and the acting employee
"""
from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from settlement.core.security import read_employee_id
from settlement.db.session import SessionLocal
from settlement.models.employee import ADMIN_ROLES, Employee, Role

security = HTTPBearer()


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """The employee the bearer token acts for. Inactive employees cannot act."""
    try:
        employee_id = read_employee_id(credentials.credentials)
    except (ValueError, TypeError):
        raise _unauthorized("Invalid authentication credentials")

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise _unauthorized("Employee not found")
    if not employee.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive employee")
    return employee


def require_roles(*allowed_roles: Role):
    """
    Guard a route to the given roles. ADMIN always passes.

    Usage:
        current_user: Employee = Depends(require_roles(Role.ADMIN))
    """
    allowed = {Role.ADMIN.value} | {r.value for r in allowed_roles}

    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if current_user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {sorted(allowed)}"
            )
        return current_user
    return role_checker


def require_admin(current_user: Employee = Depends(get_current_user)) -> Employee:
    """HR or ADMIN (the engine's administrative actors)"""
    if current_user.role not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. HR or ADMIN role required."
        )
    return current_user
