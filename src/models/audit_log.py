"""
Audit Log Model
Tracks all user actions for compliance and auditing
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime


from src.config.database import Base


class AuditAction:
    """Common audit actions"""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    SUBMIT = "submit"
    LOGIN = "login"
    LOGOUT = "logout"
    VIEW = "view"
    EXPORT = "export"
    IMPORT = "import"


class EntityType:
    """Common entity types"""
    CLAIM = "claim"
    USER = "user"
    USER_GROUP = "user_group"
    CLAIM_TYPE = "claim_type"
    APPROVAL_LEVEL = "approval_level"
    CLAIM_APPROVAL = "claim_approval"
    BALANCE = "user_claim_balance"
    SYSTEM = "system"


class AuditLog(Base):
    """Audit log model"""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # User who performed the action
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Action details
    action = Column(String, nullable=False, index=True)  # e.g., "create", "approve"
    entity_type = Column(String, nullable=False)  # e.g., "claim", "approval_level"
    entity_id = Column(Integer, nullable=True)

    # Before/after snapshots
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)

    # Request information
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    # Timestamp
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    user = relationship("User", back_populates="audit_logs")

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type} by User {self.user_id}>"

    @property
    def description(self) -> str:
        templates = {
            AuditAction.CREATE: "Created {entity}",
            AuditAction.UPDATE: "Updated {entity}",
            AuditAction.DELETE: "Deleted {entity}",
            AuditAction.APPROVE: "Approved {entity}",
            AuditAction.REJECT: "Rejected {entity}",
            AuditAction.SUBMIT: "Submitted {entity}",
            AuditAction.LOGIN: "User logged in",
            AuditAction.LOGOUT: "User logged out",
            AuditAction.VIEW: "Viewed {entity}",
            AuditAction.EXPORT: "Exported {entity} data",
            AuditAction.IMPORT: "Imported {entity} data",
        }
        template = templates.get(self.action, f"{self.action} {{entity}}")
        return template.format(entity=self.entity_type)

    @property
    def action_type(self) -> str:
        if self.action in (AuditAction.CREATE, AuditAction.IMPORT):
            return "create"
        if self.action in (AuditAction.UPDATE, AuditAction.APPROVE, AuditAction.REJECT, AuditAction.SUBMIT):
            return "update"
        if self.action == AuditAction.DELETE:
            return "delete"
        if self.action in (AuditAction.LOGIN, AuditAction.LOGOUT):
            return "auth"
        if self.action in (AuditAction.VIEW, AuditAction.EXPORT):
            return "read"
        return "other"

    @property
    def severity(self) -> str:
        if self.action == AuditAction.DELETE:
            return "high"
        if self.action in (AuditAction.LOGIN, AuditAction.LOGOUT, AuditAction.VIEW, AuditAction.EXPORT):
            return "low"
        return "medium"
