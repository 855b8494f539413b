"""
Tests for the first-run bootstrap
"""
from app.core.config import settings
from app.core.security import verify_password
from app.db.init_db import init_db
from app.models.employee import Employee, Role
from app.models.organization import Organization


def test_bootstrap_creates_organization_and_super_admin(db):
    admin = init_db(db)

    assert admin is not None
    assert admin.role == Role.SUPER_ADMIN.value
    assert admin.email == settings.INITIAL_ADMIN_EMAIL.strip().lower()
    assert verify_password(settings.INITIAL_ADMIN_PASSWORD, admin.password_hash)
    organization = db.query(Organization).one()
    assert organization.name == settings.INITIAL_ORGANIZATION_NAME
    assert admin.organization_id == organization.id


def test_bootstrap_skipped_when_employees_exist(db, employee):
    assert init_db(db) is None
    assert db.query(Employee).count() == 1
    assert db.query(Organization).count() == 1


def test_bootstrapped_admin_can_log_in(client, db):
    init_db(db)

    response = client.post(
        "/api/v1/auth/login",
        json={"email": settings.INITIAL_ADMIN_EMAIL, "password": settings.INITIAL_ADMIN_PASSWORD},
    )

    assert response.status_code == 200
    assert response.json()["access_token"]
