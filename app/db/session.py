"""
Database session management
"""
import logging
from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from app.core.config import settings
from app.core.exceptions import InternalError, LeaveManagementError

if settings.DATABASE_URL.startswith("sqlite"):
    engine = create_engine(
        settings.DATABASE_URL,
        connect_args={"check_same_thread": False},
        echo=False
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        echo=False
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def rollback_on_error(db: Session, logger: logging.Logger, action: str, **context):
    """
    Roll the session back when the wrapped block fails.

    Domain errors propagate unchanged. Datastore errors are logged with
    `context` and surfaced as InternalError so callers never see driver
    internals.
    """
    try:
        yield
    except LeaveManagementError:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Database error during %s: %s", action, context)
        raise InternalError(f"Could not {action}")
