"""
Version and metadata endpoint
"""
from fastapi import APIRouter
from app.core.config import settings

router = APIRouter()


@router.get("/version")
async def get_version():
    """
    Get application version and metadata

    Returns:
        Service name, version, environment and the active day count policy
    """
    return {
        "service": "leave-management-backend",
        "version": settings.VERSION or "1.0.0",
        "env": settings.APP_ENV,
        "leave_day_count_policy": settings.LEAVE_DAY_COUNT_POLICY,
    }
