"""
Dependencies and guards for FastAPI endpoints
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.security import decode_token
from app.models.employee import Employee, Role
from app.utils.roles import role_at_least


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Employee:
    """
    Get current authenticated user from JWT token
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise _unauthorized("Invalid authentication credentials")
        # Convert string sub back to integer
        employee_id: int = int(sub_value)
    except (ValueError, TypeError):
        raise _unauthorized("Invalid authentication credentials")

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if employee is None:
        raise _unauthorized("User not found")

    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )

    return employee


def require_role(min_role: Role):
    """
    Dependency factory for role-based access control

    Usage:
        @router.post("/leave-types")
        async def create_type(user: Employee = Depends(require_role(Role.HR_ADMIN))):
            ...
    """
    def role_checker(current_user: Employee = Depends(get_current_user)) -> Employee:
        if not role_at_least(current_user.role, min_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Requires {min_role.value} or above"
            )
        return current_user
    return role_checker
