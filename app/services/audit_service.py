"""
Audit logging service
"""
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog
from app.utils.datetime_utils import now_utc
from app.utils.json_serializer import serialize_meta
from typing import Optional, Dict, Any


def log_audit(
    db: Session,
    actor_id: int,
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None,
    organization_id: Optional[int] = None,
    commit: bool = True,
) -> AuditLog:
    """
    Create an audit log entry

    Args:
        db: Database session
        actor_id: ID of the employee performing the action
        action: Action type (e.g., "CREATE", "APPROVE", "CANCEL", "ASSIGN")
        entity_type: Type of entity (e.g., "leave_request", "leave_balance")
        entity_id: ID of the affected entity (optional)
        meta: Additional metadata as dictionary (optional)
        organization_id: Tenant the action happened in (optional)
        commit: Commit immediately; pass False to join the caller's transaction

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        organization_id=organization_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=serialize_meta(meta),
        created_at=now_utc(),
    )
    db.add(audit_log)
    if commit:
        db.commit()
        db.refresh(audit_log)
    else:
        db.flush()
    return audit_log
