"""
Audit logging service

Audit rows are written inside the caller's transaction (flush, no commit) so a
state change and its audit record commit or roll back together.
"""
import logging
from typing import Optional, Dict, Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement.core.exceptions import AuditWriteError
from settlement.models.audit_log import AuditLog
from settlement.utils.datetime_utils import now_utc
from settlement.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    reason: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Append an audit log entry

    Args:
        db: Database session
        actor_id: ID of the effective actor (None for system sweeps)
        action: Action type (e.g. "APPROVE_STEP", "OVERRIDE", "FINALIZE")
        entity_type: Type of entity (e.g. "approval_request", "payroll_month")
        entity_id: ID of the affected entity
        before: State snapshot before the transition
        after: State snapshot after the transition
        reason: Mandatory for overrides, reopens and hard deletes
        meta: Additional metadata (delegation used, settings version, ...)

    Returns:
        Created AuditLog instance

    Raises:
        AuditWriteError: If the audit row cannot be written
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_state=sanitize_for_json(before) if before is not None else None,
        after_state=sanitize_for_json(after) if after is not None else None,
        reason=reason,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=now_utc(),
    )
    try:
        db.add(audit_log)
        db.flush()
    except StaleDataError:
        # Version conflict on a row flushed alongside; the retry loop owns it
        raise
    except SQLAlchemyError as exc:
        logger.error(
            "Audit write failed: action=%s entity=%s id=%s error=%s",
            action, entity_type, entity_id, exc,
        )
        raise AuditWriteError(
            f"Could not record audit entry {action} for {entity_type} {entity_id}",
            entity_type=entity_type,
            entity_id=entity_id,
        ) from exc
    return audit_log


def list_audit_logs(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 200,
) -> List[AuditLog]:
    """Newest first."""
    query = db.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if actor_id is not None:
        query = query.filter(AuditLog.actor_id == actor_id)
    if action:
        query = query.filter(AuditLog.action == action)
    return query.order_by(AuditLog.id.desc()).limit(limit).all()
