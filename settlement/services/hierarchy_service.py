"""
Reporting hierarchy resolution
"""
from typing import Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from settlement.core.exceptions import CycleDetected, NotFound
from settlement.models.employee import Employee


def resolve_manager_chain(employee_id: int, directory: Mapping[int, Optional[int]]) -> List[int]:
    """
    Managers of employee_id, nearest first, up to the organization root.

    Args:
        employee_id: Employee whose chain is resolved
        directory: employee id -> reporting manager id (None at the root)

    Returns:
        Ordered list of manager ids (empty for the root)

    Raises:
        NotFound: If employee_id is not in the directory
        CycleDetected: If the walk revisits an id, including self-management
    """
    if employee_id not in directory:
        raise NotFound(f"Employee {employee_id} not found", entity_type="employee", entity_id=employee_id)

    chain: List[int] = []
    seen = {employee_id}
    path = [employee_id]
    current = directory.get(employee_id)
    while current is not None:
        path.append(current)
        if current in seen:
            raise CycleDetected(path, entity_id=employee_id)
        seen.add(current)
        chain.append(current)
        # A manager missing from the directory ends the chain there
        current = directory.get(current)
    return chain


def load_directory(db: Session) -> Dict[int, Optional[int]]:
    """Snapshot of the reporting lines of all employees."""
    rows = db.query(Employee.id, Employee.reporting_manager_id).all()
    return {row.id: row.reporting_manager_id for row in rows}


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFound(f"Employee {employee_id} not found", entity_type="employee", entity_id=employee_id)
    return employee


def get_manager_chain(db: Session, employee_id: int) -> List[int]:
    return resolve_manager_chain(employee_id, load_directory(db))
