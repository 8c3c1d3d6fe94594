"""
Pytest configuration and fixtures
"""
import os

# Keep the application engine off the working directory during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from settlement.main import app
from settlement.db.base import Base
from settlement.core.deps import get_db
from settlement.core.security import issue_token
from settlement.models import Employee, Role, EmploymentType  # noqa: F401  (registers all tables)
from settlement.services import notifications


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_notification_subscribers():
    yield
    notifications.clear_subscribers()


def make_employee(db, emp_code, role=Role.EMPLOYEE, manager=None, **kwargs):
    employee = Employee(
        emp_code=emp_code,
        name=kwargs.pop("name", emp_code),
        role=role.value,
        reporting_manager_id=manager.id if manager else None,
        employment_type=kwargs.pop("employment_type", EmploymentType.MONTHLY.value),
        base_salary=kwargs.pop("base_salary", Decimal("3000")),
        active=kwargs.pop("active", True),
        **kwargs,
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


def auth_headers(employee) -> dict:
    token = issue_token(employee.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    """Top of the hierarchy (no manager)"""
    return make_employee(db, "ADM001", Role.ADMIN, name="Admin")


@pytest.fixture
def hr(db, admin):
    return make_employee(db, "HR001", Role.HR, manager=admin, name="HR Officer")


@pytest.fixture
def manager(db, admin):
    return make_employee(db, "MGR001", Role.MANAGER, manager=admin, name="Line Manager")


@pytest.fixture
def backup_manager(db, admin):
    return make_employee(db, "MGR002", Role.MANAGER, manager=admin, name="Backup Manager")


@pytest.fixture
def employee(db, manager):
    """Reports to manager, who reports to admin"""
    return make_employee(db, "EMP001", Role.EMPLOYEE, manager=manager, name="Employee")
