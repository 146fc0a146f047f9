from flask import g, has_app_context
from cms_publisher.extensions import db
from cms_publisher.models.audit_log import AuditLog
from typing import Optional

def log_action(
    *,
    action: str,
    entity_type: str,
    entity_id: Optional[str],
    payload: dict | None = None,
    actor_id: Optional[str] = None,
):
    if actor_id is None and has_app_context():
        actor_id = getattr(g, "actor_id", None)

    log = AuditLog()
    log.actor_id = actor_id
    log.action = action
    log.entity_type = entity_type
    log.entity_id = entity_id or "*"
    log.payload = payload or {}

    db.session.add(log)
