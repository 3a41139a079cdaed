import uuid
from typing import Any

from sqlalchemy.orm import Session

from perfreview.models.audit_event import AuditEvent


def log_event(
    *,
    db: Session,
    actor_id: uuid.UUID | None,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID,
    metadata: dict[str, Any] | None = None,
):
    """Queue an audit row in the caller's transaction; it commits with the change it describes."""
    event = AuditEvent(
        actor_user_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata,
    )
    db.add(event)
    return event
