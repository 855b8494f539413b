"""
Leave Management Backend - Main Application Entry Point
"""
import logging
from urllib.parse import urlparse, urlunparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.api.router import api_router
from app.core.config import settings
from app.core.errors import (
    http_exception_handler,
    leave_error_handler,
    validation_exception_handler,
    generic_exception_handler
)
from app.core.exceptions import LeaveManagementError
from app.core.logging import setup_logging
from app.db.base import Base
from app.db.init_db import init_db
from app.db.session import SessionLocal, engine
from app import models  # noqa: F401  registers every model on Base.metadata

# Setup logging first
setup_logging()
logger = logging.getLogger(__name__)


def _mask_database_url(url: str) -> str:
    """Mask password in DATABASE_URL for safe logging; show full path for sqlite."""
    try:
        parsed = urlparse(url)
        if parsed.scheme.startswith("sqlite"):
            return url  # Safe to log path
        if parsed.password:
            netloc = f"{parsed.username}:****@{parsed.hostname or ''}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(parsed._replace(netloc=netloc))
    except ValueError:
        return "***"
    return url


# Create FastAPI app
app = FastAPI(
    title="Leave Management Backend",
    description="Multi-tenant leave requests, approvals, balances and reports",
    version=settings.VERSION or "1.0.0"
)

# Configure CORS - must be before other middleware
allowed_origins = settings.get_allowed_origins_list()
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=allowed_origins != ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(LeaveManagementError, leave_error_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# Include all API routes under /api/v1
app.include_router(api_router, prefix="/api/v1")


@app.on_event("startup")
def startup_log_config() -> None:
    """Log DATABASE_URL and day count policy at startup."""
    masked = _mask_database_url(settings.DATABASE_URL)
    logger.info("DATABASE_URL (app): %s", masked)
    logger.info("LEAVE_DAY_COUNT_POLICY: %s", settings.LEAVE_DAY_COUNT_POLICY)


@app.on_event("startup")
def bootstrap_database() -> None:
    """
    Create tables for SQLite databases and make sure at least one
    organization with a SUPER_ADMIN exists.
    """
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        init_db(db)
    except SQLAlchemyError as e:
        # Schema not created yet on a server database
        db.rollback()
        logger.error("Database error during initial bootstrap: %s", e)
    finally:
        db.close()
