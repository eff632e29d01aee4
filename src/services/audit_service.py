"""
Audit Service
Appends AuditLog rows inside the caller's transaction

The matching audit log line is held on the session and written only once
that transaction commits.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from src.models.audit_log import AuditLog
from src.utils.logger import setup_logger, log_audit

logger = setup_logger()

PENDING_AUDIT_KEY = "pending_audit_lines"


@dataclass
class RequestContext:
    """Client details recorded alongside audit entries"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditService:
    """Service for writing the audit trail"""

    def log_activity(
        self,
        db: Session,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        context: Optional[RequestContext] = None
    ) -> AuditLog:
        """
        Add an audit entry to the session without committing

        The entry is persisted by the surrounding transaction, so it is
        discarded together with the change it describes on rollback. The
        audit log line follows the same rule.

        Args:
            db: Database session
            user_id: Acting user
            action: Action performed (see AuditAction)
            entity_type: Kind of entity touched (see EntityType)
            entity_id: Primary key of the entity
            old_values: Snapshot before the change
            new_values: Snapshot after the change
            context: Client IP and user-agent

        Returns:
            AuditLog: The pending entry
        """
        context = context or RequestContext()
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old_values,
            new_values=new_values,
            ip_address=context.ip_address,
            user_agent=context.user_agent
        )
        db.add(entry)

        db.info.setdefault(PENDING_AUDIT_KEY, []).append(
            (user_id, action, entity_type, entity_id, f"old={old_values} new={new_values}")
        )
        return entry


# Create singleton instance
audit_service = AuditService()


@event.listens_for(Session, "after_commit")
def _write_committed_audit_lines(session: Session):
    for line in session.info.pop(PENDING_AUDIT_KEY, []):
        log_audit(*line)


@event.listens_for(Session, "after_soft_rollback")
def _drop_rolled_back_audit_lines(session: Session, previous_transaction):
    session.info.pop(PENDING_AUDIT_KEY, None)
