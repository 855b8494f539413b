"""
Pytest configuration and fixtures
"""
import os

# Settings are read at import time
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-leave-management-tests")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("APP_ENV", "local")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine
from app.main import app
from app.db.base import Base
from app.core.deps import get_db
from app.core.security import create_access_token

# Import all models to ensure they're registered with Base.metadata
from app.models import (  # noqa: F401
    Organization,
    Department,
    Employee,
    Role,
    AuditLog,
    LeaveType,
    LeaveBalance,
    LeaveRequest,
    LeaveComment,
    LeaveStatus,
)


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
def concurrent_db(db):
    """A second session on the same database, standing in for another request"""
    other = TestingSessionLocal()
    try:
        yield other
    finally:
        other.close()


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


# ----------------------------------------------------------------------
# Tenants and people
# ----------------------------------------------------------------------

@pytest.fixture
def organization(db):
    org = Organization(name="Acme Corp", domain="acme.test")
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def other_organization(db):
    org = Organization(name="Globex", domain="globex.test")
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture
def engineering(db, organization):
    dept = Department(organization_id=organization.id, name="Engineering", active=True)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


@pytest.fixture
def sales(db, organization):
    dept = Department(organization_id=organization.id, name="Sales", active=True)
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


@pytest.fixture
def make_employee(db, organization, engineering):
    """Factory for employees; defaults to an active EMPLOYEE in Engineering"""
    counter = {"n": 0}

    def _make(
        role=Role.EMPLOYEE,
        first_name="Test",
        last_name=None,
        department=engineering,
        org=organization,
        active=True,
        password_hash=None,
    ):
        counter["n"] += 1
        n = counter["n"]
        employee = Employee(
            organization_id=org.id,
            department_id=department.id if department is not None else None,
            employee_number=f"E{n:03d}",
            email=f"user{n}@{org.domain}",
            first_name=first_name,
            last_name=last_name or f"User{n}",
            role=role.value,
            password_hash=password_hash,
            active=active,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee

    return _make


@pytest.fixture
def employee(make_employee):
    return make_employee(first_name="Alice", last_name="Employee")


@pytest.fixture
def colleague(make_employee):
    return make_employee(first_name="Bob", last_name="Colleague")


@pytest.fixture
def manager(make_employee):
    return make_employee(role=Role.MANAGER, first_name="Mona", last_name="Manager")


@pytest.fixture
def hr_admin(make_employee):
    return make_employee(role=Role.HR_ADMIN, first_name="Hank", last_name="Hr")


@pytest.fixture
def super_admin(make_employee):
    return make_employee(role=Role.SUPER_ADMIN, first_name="Sue", last_name="Admin")


@pytest.fixture
def outsider(make_employee, other_organization):
    """HR admin of another tenant"""
    return make_employee(role=Role.HR_ADMIN, first_name="Olga", last_name="Outsider",
                         department=None, org=other_organization)


# ----------------------------------------------------------------------
# Leave setup
# ----------------------------------------------------------------------

@pytest.fixture
def annual_leave(db, organization):
    leave_type = LeaveType(
        organization_id=organization.id,
        name="Annual Leave",
        description="Paid yearly vacation",
        max_days_per_year=20,
    )
    db.add(leave_type)
    db.commit()
    db.refresh(leave_type)
    return leave_type


@pytest.fixture
def sick_leave(db, organization):
    leave_type = LeaveType(
        organization_id=organization.id,
        name="Sick Leave",
        max_days_per_year=10,
    )
    db.add(leave_type)
    db.commit()
    db.refresh(leave_type)
    return leave_type


@pytest.fixture
def make_balance(db):
    def _make(employee, leave_type, year, total_days=10, used_days=0, carried_over=0):
        balance = LeaveBalance(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            year=year,
            total_days=total_days,
            used_days=used_days,
            carried_over=carried_over,
        )
        db.add(balance)
        db.commit()
        db.refresh(balance)
        return balance

    return _make


@pytest.fixture
def auth_headers():
    """Bearer header for an employee, minted without going through /auth/login"""
    def _headers(employee):
        token = create_access_token({"sub": str(employee.id), "org": employee.organization_id, "role": employee.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def add_request(db):
    """Insert a request directly in the given status"""
    def _add(employee, leave_type, start, end, status=LeaveStatus.APPROVED, reason=None):
        leave = LeaveRequest(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=start,
            end_date=end,
            total_days=(end - start).days + 1,
            reason=reason,
            status=status.value,
        )
        db.add(leave)
        db.commit()
        db.refresh(leave)
        return leave

    return _add
