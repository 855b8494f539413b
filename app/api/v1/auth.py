"""
Authentication endpoints
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user
from app.core.security import verify_password, create_access_token
from app.models.employee import Employee
from app.schemas.auth import LoginRequest, TokenResponse
from app.schemas.employee import EmployeeOut
from app.services.audit_service import log_audit

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token

    Validates email and password, rejects inactive employees.
    The token carries employee id (sub), organization id and role.
    """
    employee = db.query(Employee).filter(
        func.lower(Employee.email) == login_data.email.strip().lower()
    ).first()

    # Same message for unknown email, missing hash and wrong password
    if employee is None or employee.password_hash is None or not verify_password(
        login_data.password, employee.password_hash
    ):
        logger.info("Failed login attempt for %s", login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    # JWT 'sub' claim must be a string
    token_data = {
        "sub": str(employee.id),
        "org": employee.organization_id,
        "role": employee.role,
    }
    access_token = create_access_token(data=token_data)

    log_audit(
        db=db,
        actor_id=employee.id,
        organization_id=employee.organization_id,
        action="AUTH_LOGIN_SUCCESS",
        entity_type="auth",
        meta={"email": employee.email, "role": employee.role},
    )

    return TokenResponse(access_token=access_token, token_type="bearer")


@router.get("/me", response_model=EmployeeOut)
async def me(current_user: Employee = Depends(get_current_user)):
    """Profile of the authenticated employee"""
    return current_user
