"""
Database initialization
Creates the first organization and its SUPER_ADMIN on an empty database
"""
import logging
from typing import Optional
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.security import hash_password, validate_password
from app.models.employee import Employee, Role
from app.models.organization import Organization

logger = logging.getLogger(__name__)


def init_db(db: Session) -> Optional[Employee]:
    """
    Bootstrap one organization and a SUPER_ADMIN when no employee exists.

    Returns the created admin, or None when the database already has
    employees.
    """
    if db.query(Employee.id).first() is not None:
        logger.info("Employees already exist, skipping initial bootstrap")
        return None

    logger.info("No employees found, creating initial organization and super admin...")
    organization = Organization(name=settings.INITIAL_ORGANIZATION_NAME)
    db.add(organization)
    db.flush()

    admin = Employee(
        organization_id=organization.id,
        email=settings.INITIAL_ADMIN_EMAIL.strip().lower(),
        first_name="System",
        last_name="Administrator",
        employee_number="ADM-001",
        role=Role.SUPER_ADMIN.value,
        password_hash=hash_password(validate_password(settings.INITIAL_ADMIN_PASSWORD)),
        active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)

    logger.info("Initial super admin created: %s", admin.email)
    logger.info("Password: [set via INITIAL_ADMIN_PASSWORD environment variable]")
    return admin
