"""Activity and audit trail writers.

Domain services call these inside their own transaction so the trail rows
commit or roll back together with the change they describe.
"""

import logging

from sqlalchemy.orm import Session

from app.models.audit import ActivityLog, AuditLog
from app.services.entity_kinds import kind_of
from app.services.presenters import serialize

logger = logging.getLogger(__name__)


def snapshot(entity, fields) -> dict:
    return {name: serialize(getattr(entity, name, None)) for name in fields}


def log_activity(
    db: Session,
    user_id,
    action: str,
    subject=None,
    description: str | None = None,
    properties: dict | None = None,
    workspace_id=None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ActivityLog:
    if workspace_id is None and subject is not None:
        workspace_id = getattr(subject, "workspace_id", None)
    entry = ActivityLog(
        user_id=user_id,
        workspace_id=workspace_id,
        action=action,
        description=description,
        subject_type=kind_of(subject) if subject is not None else None,
        subject_id=subject.id if subject is not None else None,
        properties=properties,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    db.flush()
    logger.debug("Logged activity %s for %s", action, entry.subject_id)
    return entry


def record_audit(
    db: Session,
    user_id,
    event: str,
    entity,
    old_values: dict | None = None,
    new_values: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AuditLog:
    entry = AuditLog(
        user_id=user_id,
        workspace_id=getattr(entity, "workspace_id", None),
        event=event,
        auditable_type=kind_of(entity),
        auditable_id=entity.id,
        old_values=old_values,
        new_values=new_values,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    db.flush()
    return entry


def record_update(db: Session, user_id, entity, before: dict) -> AuditLog | None:
    """Audit only the keys of ``before`` whose value actually changed."""
    after = snapshot(entity, before)
    old_values = {key: before[key] for key in before if before[key] != after[key]}
    if not old_values:
        return None
    new_values = {key: after[key] for key in old_values}
    return record_audit(db, user_id, "updated", entity, old_values, new_values)
