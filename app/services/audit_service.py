"""
Audit trail helpers
"""
from sqlalchemy.orm import Session
from typing import Optional

from app.models import AuditLog


def record_audit(
    db: Session,
    table_name: str,
    record_id,
    action: str,
    before_data: Optional[dict] = None,
    after_data: Optional[dict] = None,
    performed_by: Optional[str] = None,
    performed_at=None,
) -> AuditLog:
    """Add an audit row to the current transaction (caller commits)"""
    audit = AuditLog(
        table_name=table_name,
        record_id=str(record_id),
        action=action,
        performed_by=performed_by,
        before_data=before_data,
        after_data=after_data,
    )
    if performed_at is not None:
        audit.performed_at = performed_at
    db.add(audit)
    return audit
