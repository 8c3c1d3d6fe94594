"""
Employee model (directory record, read-only to the engine)
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from settlement.db.base import Base


class Role(str, enum.Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    HR = "HR"
    ADMIN = "ADMIN"


class EmploymentType(str, enum.Enum):
    MONTHLY = "monthly"
    HOURLY = "hourly"


# Roles allowed to cancel on behalf of others, override decisions and run payroll
ADMIN_ROLES = (Role.HR, Role.ADMIN)


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    emp_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, default=Role.EMPLOYEE.value)
    reporting_manager_id = Column(Integer, ForeignKey("employees.id"), nullable=True, index=True)
    employment_type = Column(String, nullable=False, default=EmploymentType.MONTHLY.value)
    base_salary = Column(Numeric(12, 2), nullable=False, default=0)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp(), nullable=False)

    reporting_manager = relationship("Employee", remote_side=[id], backref="direct_reports")

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES
