"""
Organization endpoints - the caller's own tenant
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.core.deps import get_db, get_current_user, require_role
from app.models.employee import Role, Employee
from app.schemas.organization import OrganizationOut, OrganizationStats, OrganizationUpdate
from app.services import organization_service

router = APIRouter()


@router.get("", response_model=OrganizationOut)
async def get_organization(
    db: Session = Depends(get_db),
    current_user: Employee = Depends(get_current_user)
):
    return organization_service.organization_detail(db, current_user.organization_id)


@router.patch("", response_model=OrganizationOut)
async def update_organization(
    data: OrganizationUpdate,
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Rename the organization or change its domain (HR_ADMIN and above)"""
    return organization_service.update_organization(db, current_user.organization_id, data, current_user.id)


@router.get("/stats", response_model=OrganizationStats)
async def get_organization_stats(
    include_inactive: bool = Query(False, description="Count deactivated employees too"),
    db: Session = Depends(get_db),
    current_user: Employee = Depends(require_role(Role.HR_ADMIN))
):
    """Headcount and leave activity (HR_ADMIN and above)"""
    return organization_service.get_organization_stats(
        db, current_user.organization_id, include_inactive=include_inactive
    )
